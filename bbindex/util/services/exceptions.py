#!/usr/bin/env python
"""Custom exception and warning classes for BBI files, a custom warning filter
action called `"onceperfamily"`, and colorized warning output.

Contents:

.. contents::
   :local:

Exception types
---------------
|MalformedFileError|
    Raised when a file cannot be parsed as expected, and
    execution must halt

|FormatError|
    A |MalformedFileError| raised when a binary structure of a BigWig or
    BigBed file is invalid. Its `kind` attribute names the structure and
    the problem (see :data:`FORMAT_ERROR_KINDS`)

|SizeLimitExceeded|
    Raised when a read larger than the configured chunk size limit is requested.
    No I/O is issued for such requests


Warning types
-------------
|FileFormatWarning|
    Warning for slightly malformed but usable files, or for files lacking
    optional structures (e.g. the total summary block of a BBI file)


The `onceperfamily` action
--------------------------
`onceperfamily` groups warning messages into families by regular expression,
and only shows the first warning that matches a given family. In contrast,
Python's native `once` action shows each distinct message once, so messages
that embed a filename would be shown once per file. Use
:func:`warn_onceperfamily` to issue a warning and register its family.

See also
--------
:mod:`warnings`
    Warnings module
"""
import re
import linecache
import textwrap
import warnings
from bbindex.util.io.filters import colored

_wrapper = textwrap.TextWrapper(break_long_words=False,width=77)


#===============================================================================
# INDEX: Exception and warning classes
#===============================================================================

class MalformedFileError(Exception):
    """Exception class for when files cannot be parsed as they should be
    """

    def __init__(self,filename,message,line_num=None):
        """Create a |MalformedFileError|

        Parameters
        ----------
        filename : str
            Name of file causing problem

        message : str
            Message explaining how the file is malformed.

        line_num : int or None, optional
            Number of line causing problems
        """
        Exception.__init__(self,filename,message)
        self.filename = filename
        self.msg      = message
        self.line_num = line_num

    def __str__(self):
        if self.line_num is None:
            return "Error opening file '%s': %s" % (self.filename, self.msg)
        else:
            return "Error opening file '%s' at line %s: %s" % (self.filename, self.line_num, self.msg)


FORMAT_ERROR_KINDS = (
    "NotBigWigFamily",
    "TruncatedHeader",
    "BadChromTreeMagic",
    "TruncatedChromTree",
    "BadIndexMagic",
    "BadIndexNode",
    "TruncatedIndex",
    "TreeTooDeep",
    "BadDataBlock",
)
"""Values that :attr:`FormatError.kind` can take"""


class FormatError(MalformedFileError):
    """Raised when a binary structure in a `BigWig`_ or `BigBed`_ file
    cannot be parsed. Fatal for the file (header, chromosome tree) or for
    the traversal in which it occurred (R tree index)

    Attributes
    ----------
    kind : str
        One of :data:`FORMAT_ERROR_KINDS`
    """

    def __init__(self,filename,kind,message):
        assert kind in FORMAT_ERROR_KINDS
        MalformedFileError.__init__(self,filename,"%s: %s" % (kind,message))
        self.kind = kind


class SizeLimitExceeded(ValueError):
    """Raised when a requested read exceeds the configured chunk size limit"""

    def __init__(self,offset,length,limit):
        ValueError.__init__(self,offset,length,limit)
        self.offset = offset
        self.length = length
        self.limit  = limit

    def __str__(self):
        return "Read of %s bytes at offset %s exceeds chunk size limit of %s bytes." % (self.length,
                                                                                       self.offset,
                                                                                       self.limit)


class FileFormatWarning(Warning):
    """Warning for slightly malformed but usable files"""
    pass


#===============================================================================
# INDEX: `onceperfamily` warnings
#===============================================================================

pl_once_registry = {}
"""Registry of `onceperfamily` families that have been shown in the current execution context"""

pl_filters = []
"""Families registered via :func:`filterwarnings`, as tuples of *(compiled regex, category)*"""

def filterwarnings(action,message="",category=Warning,**kwargs):
    """Insert an entry into the warnings filter. Behaves as :func:`warnings.filterwarnings`,
    except that the additional action `'onceperfamily'` shows only the first warning
    whose text matches the regex `message`

    Parameters
    ----------
    action : str
        Filter action. `'onceperfamily'`, or any action accepted by
        :func:`warnings.filterwarnings`

    message : str, optional
        Regex matched against warning messages (Default: `""`, match any message)

    category : Warning or subclass, optional
        Type of warning. (Default: :class:`Warning`)

    kwargs : keyword arguments
        Passed to :func:`warnings.filterwarnings` for other actions
    """
    if action == "onceperfamily":
        tup = (re.compile(message,re.I),category)
        if tup not in pl_filters:
            pl_filters.insert(0,tup)
    else:
        warnings.filterwarnings(action,message=message,category=category,**kwargs)

def warn_onceperfamily(message,pattern=None,category=None,stacklevel=2):
    """Issue a warning, registering a `onceperfamily` filter for it if one does not exist

    Parameters
    ----------
    message : str
        Message of warning

    pattern : str or None, optional
        Regex describing the family of `message`. If `None`, `message` itself is used

    category: :class:`Warning`, or subclass, optional
        Type of warning (Default: :class:`UserWarning`)

    stacklevel : int, optional
        Frame, counted from caller, to which the warning is attributed (Default: 2)
    """
    if category is None:
        category = UserWarning

    if pattern is None:
        pattern = re.escape(message)

    filterwarnings("onceperfamily",message=pattern,category=category)
    for pat, filter_category in pl_filters:
        if pat.match(message) and issubclass(category,filter_category):
            key = (pat.pattern,filter_category)
            if key in pl_once_registry:
                return
            pl_once_registry[key] = 1
            break

    warnings.warn(message,category=category,stacklevel=stacklevel+1)


#===============================================================================
# INDEX: Colorized warning output
#===============================================================================

def formatwarning(message,category,filename,lineno,file=None,line=None):
    """Colorize warnings for readability. Overrides :func:`warnings.formatwarning`

    Parameters
    ----------
    message : str
        Warning message

    category : Warning
        Class (not instance) of warning

    filename : str
        Name of file calling warning

    lineno : int
        Line in file calling warning

    file : file-like, optional
        Ignored

    line : str, optional
        Text of line in file calling warning. If `None`, the lines surrounding
        `lineno` are read from `filename`

    Returns
    -------
    str
        Pretty-printed warning message
    """
    sep     = colored("-"*75,color="cyan")
    message = str(message)
    if "\n" not in message:
        message = _wrapper.fill(message)

    message = colored(message,color="white",attrs=["bold"])
    name    = colored(category.__name__,color="cyan",attrs=["bold"])

    if line is None:
        fmtstr = "{0: >%ss} {1}" % len(str(lineno+3))
        lines  = []
        for x in range(max(0,lineno-2),lineno+3):
            tmpline = linecache.getline(filename,x).strip("\n")
            if tmpline:
                attrs = ["bold"] if x == lineno else []
                lines.append(fmtstr.format(colored(x,color="green",attrs=attrs),
                                           colored(tmpline,attrs=attrs)))
        line = "\n".join(lines)

    location = "in %s, line %s:" % (colored(filename,color="cyan"),lineno)
    return "\n".join([sep,name,message,location,"",line,"",sep,""])


warnings.formatwarning = formatwarning
