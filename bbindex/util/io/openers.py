#!/usr/bin/env python
"""Wrappers and utilities for opening and writing files.

Important methods
-----------------
:py:func:`argsopener`
    Opens a file for writing within a command-line script and writes to it
    all command-line arguments as a pretty-printed dictionary of metadata,
    commented out. The open file handle is then returned for subsequent
    writing

:py:func:`read_pl_table`
    Open a table written by one of :data:`bbindex`'s command-line scripts
    into a :class:`pandas.DataFrame`

:py:class:`NullWriter`
    Discards everything written to it. The default `printer` of library code

:py:func:`get_short_name`
    Basename of a file or module, used to name script output
"""
import datetime
import os
import re
import sys
import pandas as pd
from bbindex.util.io.filters import AbstractWriter


class NullWriter(AbstractWriter):
    """Writes to system-dependent null location.
    On Unix-like systems & OSX, this is typically /dev/null. On Windows, simply "nul"
    """

    def __init__(self):
        AbstractWriter.__init__(self,open(os.devnull,"w"))

    def filter(self,stream):
        return stream

    def __repr__(self):
        # unusual repr, but useful for documentation by Sphinx
        return "NullWriter()"

    def __str__(self):
        return self.__repr__()


def read_pl_table(filename,**kwargs):
    """Open a table saved by one of :data:`bbindex`'s command-line scripts,
    passing default arguments to :func:`pandas.read_csv`:

        ==========   =======
        Key          Value
        ----------   -------
        sep          `"\\t"`
        comment      `"#"`
        index_col    `None`
        header       `0`
        ==========   =======

    Parameters
    ----------
    filename : str
        Name of file

    kwargs : keyword arguments
        Other keyword arguments to pass to :func:`pandas.read_csv`.
        Will override defaults.

    Returns
    -------
    :class:`pandas.DataFrame`
    """
    args = { "sep"       : "\t",
             "comment"   : "#",
             "index_col" : None,
             "header"    : 0,
        }
    args.update(kwargs)
    return pd.read_csv(filename,**args)

def get_short_name(inpt,separator=os.path.sep,terminator=""):
    """Gives the basename of a filename or module name passed as a string.
    If the string doesn't match the pattern specified by the separator
    and terminator, it is returned unchanged.

    Examples
    --------
    >>> get_short_name("/home/jdoe/bbi_query.py",terminator=".py")
    'bbi_query'

    >>> get_short_name("bbindex.bin.bbi_info",separator="\\.")
    'bbi_info'

    Parameters
    ----------
    inpt : str
        Input

    separator : str, optional
        Path separator, as a regex character class member (default: `os.path.sep`)

    terminator : str, optional
        File terminator (default: "")

    Returns
    -------
    str
    """
    if terminator and inpt.endswith(terminator):
        inpt = inpt[:-len(terminator)]

    match = re.search(r"([^%s]+)$" % separator,inpt)
    return inpt if match is None else match.group(1)

def argsopener(filename,namespace,mode="w"):
    """Open a file for writing, and write to it command-line arguments
    formatted as a pretty-printed dictionary in comment metadata.

    Parameters
    ----------
    filename : str
        Name of file to open

    namespace : :py:class:`argparse.Namespace`
        Namespace object from argparse.ArgumentParser

    mode : str
        Mode of writing (Default: `'w'`)

    Returns
    -------
    open filehandle
    """
    fout = open(filename,mode)
    fout.write(args_to_comment(namespace))
    return fout

def args_to_comment(namespace):
    """Formats a :class:`argparse.Namespace` into a comment block
    for the header of output files

    Parameters
    ----------
    namespace  : :py:class:`argparse.Namespace`

    Returns
    -------
    str
    """
    dtmp   = vars(namespace)
    maxlen = 2 + max([len(K) for K in dtmp] + [0])
    ltmp   = ["## date = '%s'" % datetime.datetime.today(),
              "## execstr = '%s'" % " ".join(sys.argv),
              "## args = {  "]
    for k, v in sorted(dtmp.items()):
        v = "'%s'" % v if isinstance(v,str) else v
        ltmp.append(("##          {0:<%s} : {1}," % maxlen).format("'%s'" % k,v))

    ltmp.append("##        }")
    return "\n".join(ltmp) + "\n"
