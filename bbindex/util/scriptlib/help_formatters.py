#!/usr/bin/env python
"""Reformat module docstrings for use as command-line help, by removing
`reStructuredText`_ markup and truncating at the first `numpydoc`_ section.
"""
import re

_pyrst_pattern = re.compile(r"(?P<spacing>^|\s+)(?::(?P<domain>[^:`<>]+))?:(?P<role>[^:`]*):`(?P<argument>[^`<>]+)(?: +<(?P<pointer>[^`]+)>)?`")
"""Matches ``:domain:role:`argument``` or ``:role:`argument``` tokens"""

_subst_pattern = re.compile(r"\|([^|]*)\|")
"""Matches ``|substitution|`` tokens"""

_link_pattern = re.compile(r"`([^`<>]+)( <[^`]+>)?`_")
"""Matches ```Linkname`_`` and ```Link text <url>`_`` tokens"""

_sections = ("Parameters","Returns","Yields","Raises","Attributes","See also")

_separator = "\n" + (78*"-") + "\n"

def shorten_help(inp):
    """Strip `reStructuredText`_ markup from a docstring, and truncate it at
    the first `numpydoc`_ section heading

    Parameters
    ----------
    inp : str
        Docstring

    Returns
    -------
    str
        Cleaned helptext
    """
    inp = _pyrst_pattern.sub(r"\g<spacing>\g<argument>",inp)
    inp = _subst_pattern.sub(r"\g<1>",inp)
    inp = _link_pattern.sub(r"\g<1>",inp)

    indices = [inp.find(X) for X in _sections]
    indices = [X for X in indices if X > -1] + [len(inp)]
    return inp[:min(indices)].strip() + "\n"

def format_module_docstring(inp):
    """Format a module docstring as command-line help, surrounded by separators

    Parameters
    ----------
    inp : str
        Module docstring

    Returns
    -------
    str
    """
    return _separator + "\n" + shorten_help(inp) + "\n" + _separator
