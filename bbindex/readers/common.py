#!/usr/bin/env python
"""Functions shared by readers of BBI files

Reference names
---------------
Files and queries often disagree on how chromosomes are named (e.g. `chr1`,
`Chr01`, `chromosome1`, or `1`). :func:`canonicalize_name` maps all of these
to a single canonical form. It is applied both to names stored in a file's
chromosome tree and to names used in queries, so lookups succeed regardless
of naming convention.
"""
import re

_NAME_RULES = [
    (re.compile(r"^chro?m?(osome)?"), "chr"),
    (re.compile(r"^co?n?ti?g"), "ctg"),
    (re.compile(r"^scaff?o?l?d?"), "scaffold"),
    (re.compile(r"^([a-z]*)0+"), r"\1"),
    (re.compile(r"^(\d+)$"), r"chr\1"),
]
"""Rewrite rules applied, in order, to lower-cased reference names"""


def canonicalize_name(name):
    """Convert a reference (chromosome, contig, scaffold) name to canonical form.

    The name is lower-cased, prefixes of `chromosome`, `contig` and `scaffold`
    are shortened to `chr`, `ctg` and `scaffold`, zeros leading the number
    following an alphabetic prefix are removed, and bare numbers are prefixed
    with `chr`.

    Examples
    --------
    >>> canonicalize_name("Chromosome01")
    'chr1'

    >>> canonicalize_name("7")
    'chr7'

    >>> canonicalize_name("contig0012")
    'ctg12'

    >>> canonicalize_name("chrX")
    'chrx'

    Parameters
    ----------
    name : str
        Reference name

    Returns
    -------
    str
        Canonical name
    """
    name = name.lower()
    for pattern, replacement in _NAME_RULES:
        name = pattern.sub(replacement,name,count=1)

    return name
