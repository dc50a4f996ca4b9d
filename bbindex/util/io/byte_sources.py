#!/usr/bin/env python
"""Byte sources supply raw bytes of a BBI file to |BBIFile| on request.

A byte source is any object implementing:

    ``async fetch(offset, length) -> bytes``
        Return exactly `length` bytes starting at `offset`. Raise
        :class:`IOError` on a short read or a transport failure

    ``size``
        Total size of the file in bytes, or `None` if unknown. If unknown,
        the coarsest zoom level of a file cannot be used, because its index
        cannot be bounded

Chunk size limits, caching and coalescing of requests are handled by
|BBIFile|, not by the sources. Retrying failed fetches is the business of the
source, if it is done at all; the sources here do not retry.

Sources
-------
|FileByteSource|
    Reads from a file on local disk

|MemoryByteSource|
    Serves bytes from an in-memory buffer
"""
import os


class FileByteSource(object):
    """Fetch byte ranges from a file on local disk

    Attributes
    ----------
    filename : str
        Path to file

    size : int
        Size of file, in bytes
    """

    def __init__(self,filename):
        """Create a |FileByteSource|

        Parameters
        ----------
        filename : str
            Path to file (*not* open filehandle)

        Raises
        ------
        IOError
            If the file cannot be opened
        """
        self.filename = filename
        self.fh = open(filename,"rb")
        self.size = os.fstat(self.fh.fileno()).st_size

    def __repr__(self):
        return "<%s filename='%s' size=%s>" % (self.__class__.__name__,self.filename,self.size)

    async def fetch(self,offset,length):
        """Read `length` bytes starting at `offset`

        Parameters
        ----------
        offset : int
            Start position in file

        length : int
            Number of bytes to read

        Returns
        -------
        bytes

        Raises
        ------
        IOError
            If fewer than `length` bytes could be read
        """
        self.fh.seek(offset)
        data = self.fh.read(length)
        if len(data) != length:
            raise IOError("Short read from '%s': requested %s bytes at offset %s, got %s." % (self.filename,
                                                                                            length,
                                                                                            offset,
                                                                                            len(data)))
        return data

    def close(self):
        self.fh.close()


class MemoryByteSource(object):
    """Serve byte ranges from an in-memory buffer

    Attributes
    ----------
    data : bytes
        Contents of file

    size : int or None
        Size of `data`, or `None` if the size is hidden from readers
    """

    def __init__(self,data,name="<memory>",hide_size=False):
        """Create a |MemoryByteSource|

        Parameters
        ----------
        data : bytes
            File contents

        name : str, optional
            Name used in messages (Default: `'<memory>'`)

        hide_size : bool, optional
            If `True`, report `size` as `None`, as a remote source that cannot
            determine file length would (Default: `False`)
        """
        self.data = bytes(data)
        self.filename = name
        self.size = None if hide_size else len(self.data)

    def __repr__(self):
        return "<%s name='%s' size=%s>" % (self.__class__.__name__,self.filename,self.size)

    async def fetch(self,offset,length):
        """Return `length` bytes starting at `offset`

        Raises
        ------
        IOError
            If the range runs past the end of the buffer
        """
        if offset < 0 or offset + length > len(self.data):
            raise IOError("Short read from '%s': requested %s bytes at offset %s of %s." % (self.filename,
                                                                                          length,
                                                                                          offset,
                                                                                          len(self.data)))
        return self.data[offset:offset+length]

    def close(self):
        pass
