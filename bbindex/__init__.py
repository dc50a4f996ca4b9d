#!/usr/bin/env python
"""Welcome to bbindex!

This package reads `BigWig`_ and `BigBed`_ files (collectively, BBI files)
and answers range queries against them without loading the whole file. To
this end, it provides:

  #. Parsers for the binary structures of BBI files: the file header, the
     chromosome B+ tree, and the R tree ("CIR tree") indexes of the base data
     and of each zoom level (see |readers|)

  #. A query layer that picks the zoom level appropriate for a given
     resolution, finds the data blocks overlapping a region of interest, and
     decodes them into records

  #. Command-line scripts to inspect and query BBI files (see |bin|)


Package overview
----------------
bbindex is divided into the following subpackages:

    ==============    =========================================================
    Package           Contents
    --------------    ---------------------------------------------------------
    |bin|             Command-line scripts
    |readers|         Parsers and query layer for BigWig and BigBed files
    |util|            Utilities (e.g. byte sources, exceptions, binary parsers)
    |test|            Unit and functional tests
    ==============    =========================================================
     
"""
__version__ = "0.1.0"

from bbindex.readers.bbifile import BBIFile, BBIReader
