"""Readers for `BigWig`_ and `BigBed`_ files

Important modules
-----------------
:mod:`~bbindex.readers.bbifile`
    |BBIFile| and |BBIReader|, which answer range queries against BBI files

:mod:`~bbindex.readers.bbi_header`
    Parsers for file headers, zoom level tables, and total summary blocks

:mod:`~bbindex.readers.bplus_tree`
    Chromosome index

:mod:`~bbindex.readers.r_tree`
    Spatial index of data blocks

:mod:`~bbindex.readers.records`
    Decoders for data blocks
"""
