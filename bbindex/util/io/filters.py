#!/usr/bin/env python
"""Writers used as `printer` objects for progress messages.

Library code in :data:`bbindex` logs to a `printer`, any object with a
``write()`` method. By default this is a |NullWriter|, which discards
everything. Command-line scripts instead pass a |NameDateWriter|, which
stamps each message with the program name and the time, in color when the
destination is a terminal.

    :class:`AbstractWriter`
        Base class. Subclasses override :py:meth:`~AbstractWriter.filter`

    :class:`NameDateWriter`
        Prefix messages with program name and timestamp

    :func:`colored`
        :func:`termcolor.colored` if :obj:`sys.stderr` is a terminal,
        otherwise a function returning its input unchanged


Examples
--------
    >>> printer = NameDateWriter("bbi_query")
    >>> printer.write("Opened file.")
    bbi_query [2016-01-01 12:00:00]: Opened file.
"""
import sys
import datetime
from abc import abstractmethod
from io import IOBase

import termcolor

if hasattr(sys.stderr,"isatty") and sys.stderr.isatty():
    colored = termcolor.colored
else:
    colored = lambda x, **kwargs: str(x)


class AbstractWriter(IOBase):
    """Pass each unit of data through :meth:`filter` before writing it to a stream

    Parameters
    ----------
    stream : file-like, open for writing
        Destination of filtered output
    """
    def __init__(self,stream):
        self.stream = stream

    def isatty(self):
        return hasattr(self.stream,"isatty") and self.stream.isatty()

    def writable(self):
        return True

    def write(self,data):
        self.stream.write(self.filter(data))

    def flush(self):
        self.stream.flush()

    def close(self):
        if not self.stream.closed:
            self.flush()
            self.stream.close()

    @abstractmethod
    def filter(self,data):
        """Format `data` for output. Override in subclasses"""
        pass


class NameDateWriter(AbstractWriter):
    """Prefix each message with a program name, the date, and the time

    Parameters
    ----------
    name : str
        Program name

    line_delimiter : str, optional
        Appended to each message (Default: `'\\n'`)

    stream : file-like, optional
        Destination (Default: :obj:`sys.stderr`)
    """

    def __init__(self,name,line_delimiter="\n",stream=None):
        AbstractWriter.__init__(self,sys.stderr if stream is None else stream)
        self.name = name
        self.delimiter = line_delimiter

        paint = termcolor.colored if self.isatty() else (lambda x, **kwargs: x)
        bracket = lambda x: paint(x,color="blue",attrs=["bold"])
        self.fmtstr = "%s %s%s %s%s: {2}%s" % (bracket(name),
                                               bracket("["),
                                               paint("{0}",color="green"),
                                               paint("{1}",color="green",attrs=["bold"]),
                                               bracket("]"),
                                               line_delimiter)

    def filter(self,line):
        now = datetime.datetime.now()
        return self.fmtstr.format(now.strftime("%Y-%m-%d"),
                                  now.strftime("%H:%M:%S"),
                                  line.strip(self.delimiter))
