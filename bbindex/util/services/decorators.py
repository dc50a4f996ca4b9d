#!/usr/bin/env python
"""Decorators that quiet noisy functions, used mainly by tests of
command-line scripts, whose progress messages go to standard error.

    :py:func:`catch_warnings`
        Apply a :mod:`warnings` filter action for the duration of each call

    :py:func:`catch_stderr`
        Redirect the process-level standard error stream during each call
"""
import functools
import os
import sys
import warnings


def catch_warnings(simple_filter="ignore"):
    """Return a decorator that runs its function under a temporary warnings filter

    Parameters
    ----------
    simple_filter : str, optional
        Any action accepted by :func:`warnings.simplefilter`, e.g. `'ignore'`,
        `'error'`, or `'always'` (Default: `'ignore'`)

    Returns
    -------
    function
        Decorator
    """
    def decorator(func):
        @functools.wraps(func)
        def new_func(*args,**kwargs):
            with warnings.catch_warnings():
                warnings.simplefilter(simple_filter)
                return func(*args,**kwargs)

        return new_func

    return decorator

def catch_stderr(buf=None):
    """Return a decorator that sends standard error of its function to `buf`

    The file descriptor behind :obj:`sys.__stderr__` is swapped, so output
    written by C libraries or by writers holding a reference to
    :obj:`sys.stderr` is captured too.

    Parameters
    ----------
    buf : file, optional
        Open file with a ``fileno()``. If `None`, output is sent to :obj:`os.devnull`

    Returns
    -------
    function
        Decorator
    """
    def decorator(func):
        @functools.wraps(func)
        def new_func(*args,**kwargs):
            sink = open(os.devnull,"a") if buf is None else buf
            saved_fd = os.dup(sys.__stderr__.fileno())
            os.dup2(sink.fileno(),sys.__stderr__.fileno())
            try:
                return func(*args,**kwargs)
            finally:
                sys.__stderr__.flush()
                os.dup2(saved_fd,sys.__stderr__.fileno())
                os.close(saved_fd)
                if buf is None:
                    sink.close()

        return new_func

    return decorator
