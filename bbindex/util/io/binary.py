#!/usr/bin/env python
"""Tools for reading values from binary buffers

Important classes and functions
-------------------------------
|BinaryParserFactory|
    Creates parsers that unpack fixed-width binary records from a buffer
    into :class:`~collections.namedtuple` instances

:func:`find_null_bytes`
    Locate all null characters in a byte string

:func:`round_up`
    Round an offset up to the next multiple of an alignment

See Also
--------
:py:mod:`struct`
    Binary data structures in Python
"""
import struct
import numpy
from collections import namedtuple


class BinaryParserFactory(object):
    """Parser factory for different types of binary records.

    Creates parsers that unpack records from byte buffers into
    :class:`~collections.namedtuple` instances that match field names to values.
    These parsers are most useful as components of binary file readers, where
    a block of the file has been fetched into memory and individual records
    are read from it by offset.

    Byte strings in unpacked records are trimmed at the first null character
    and decoded to :class:`str`.

    Attributes
    ----------
    name : str
        Human-readable name for parser

    fmt : str
        String specifying binary format of data, as specified in :py:mod:`struct`,
        excluding the byte-order character

    fields : list
        List of strings specifying variable names to bind to data
        when unpacked, in same order as items in ``fmt``

    nt : :class:`~collections.namedtuple`
        A :class:`~collections.namedtuple` class that will provide names
        to the unpacked data


    Examples
    --------
    A binary RGB color parser::

        >>> ColorParser = BinaryParserFactory("ColorParser","3B",["r","g","b"])
        >>> ColorParser(b"\\xff\\x00\\x34")
        ColorParser(r=255, g=0, b=52)

        >>> ColorParser(b"\\x00\\x00\\x00\\xff\\x00\\x34",offset=3)
        ColorParser(r=255, g=0, b=52)


    See Also
    --------
    struct
        For information on format strings
    """

    def __init__(self,name,fmt,fields):
        """Create a |BinaryParserFactory|

        Parameters
        ----------
        name : str
            Name for parser

        fmt : str
            String specifying binary format of data. See :py:mod:`struct`

        fields : list
            Ordered list of field names to bind to unpacked data
        """
        self.name   = name
        self.fmt    = fmt
        self.fields = fields
        self.nt = namedtuple(name,fields)
        self._structs = {}

    def __str__(self):
        return "<%s fmt='%s' fields='%s'>" % (self.name,self.fmt,",".join(self.fields))

    def __repr__(self):
        return str(self)

    def _get_struct(self,byte_order):
        try:
            return self._structs[byte_order]
        except KeyError:
            my_struct = struct.Struct(byte_order+self.fmt)
            self._structs[byte_order] = my_struct
            return my_struct

    def _make(self,values):
        if any(isinstance(X,bytes) for X in values):
            values = [X.split(b"\x00",1)[0].decode("ascii") if isinstance(X,bytes) else X for X in values]

        return self.nt._make(values)

    def __call__(self,data,offset=0,byte_order="<"):
        """Unpack a single record from `data`, starting at `offset`

        Parameters
        ----------
        data : bytes
            Buffer holding the record

        offset : int, optional
            Position of the start of the record in `data` (Default: 0)

        byte_order : str, optional
            Character indicating endian-ness of data (default: `'<'` for little-endian)

        Returns
        -------
        :class:`~collections.namedtuple`
            Record mapping field names from `self.fields` to their values

        Raises
        ------
        struct.error
            If `data` holds fewer than :meth:`calcsize` bytes past `offset`
        """
        return self._make(self._get_struct(byte_order).unpack_from(data,offset))

    def iter_from(self,data,offset,count,byte_order="<"):
        """Unpack `count` consecutive records from `data`, starting at `offset`

        Parameters
        ----------
        data : bytes
            Buffer holding the records

        offset : int
            Position of the first record in `data`

        count : int
            Number of records to unpack

        byte_order : str, optional
            Character indicating endian-ness of data (default: `'<'` for little-endian)

        Yields
        ------
        :class:`~collections.namedtuple`
        """
        my_struct = self._get_struct(byte_order)
        for n in range(count):
            yield self._make(my_struct.unpack_from(data,offset + n*my_struct.size))

    def calcsize(self,byte_order="<"):
        """Return calculated size, in bytes, of record

        Parameters
        ----------
        byte_order : str
            Character indicating endian-ness of data (default: `'<'` for little-endian)

        Returns
        -------
        int
            Calculated size of record, in bytes
        """
        return self._get_struct(byte_order).size


def find_null_bytes(inp,null=b"\x00"):
    """Finds all null characters in a byte-formatted input string

    Parameters
    ----------
    inp : bytes
        byte string

    null : bytes, optional
        Character to search for (Default: `b"\\x00"`)

    Returns
    -------
    :py:class:`numpy.ndarray`
        numpy array of integers indexing where the null character was found
    """
    indices = []
    last_found = inp.find(null)
    while last_found > -1:
        indices.append(last_found)
        last_found = inp.find(null,1+last_found)

    return numpy.array(indices,dtype=int)


def round_up(offset,alignment=4):
    """Round `offset` up to the nearest multiple of `alignment`

    Parameters
    ----------
    offset : int

    alignment : int, optional
        (Default: 4)

    Returns
    -------
    int
    """
    remainder = offset % alignment
    return offset if remainder == 0 else offset + alignment - remainder
