#!/usr/bin/env python
"""Parsers for the fixed header, zoom level table, and total summary block of
`BigWig`_ and `BigBed`_ (BBI) files.

The header occupies the first 64 bytes of the file, and is followed
immediately by one 24-byte header per zoom level. Byte order is not
declared explicitly; it is recovered from the magic number, which is
read first as little-endian and, failing that, as big-endian. The byte
order that produces a match is used for every subsequent read of the file.

See `Kent2010 <http://dx.doi.org/10.1093/bioinformatics/btq351>`_,
supplemental tables 5-7, for a full description of these structures.
"""
import struct
from collections import namedtuple
from bbindex.util.io.binary import BinaryParserFactory
from bbindex.util.services.exceptions import FormatError

BIGWIG_MAGIC = 0x888FFC26
"""Magic number of BigWig files (-2003829722 as a signed 32-bit integer)"""

BIGBED_MAGIC = 0x8789F2EB
"""Magic number of BigBed files (-2021002517 as a signed 32-bit integer)"""

FILE_TYPES = { BIGWIG_MAGIC : "bigwig",
               BIGBED_MAGIC : "bigbed",
             }

DEFAULT_HEADER_SIZE = 512
"""Number of bytes fetched from the start of a file when it is opened"""

TOTAL_SUMMARY_SIZE = 40


#===============================================================================
# INDEX: Header data structures
#===============================================================================

FileHeader = namedtuple("FileHeader",["magic",
                                      "file_type",
                                      "byte_order",
                                      "version",
                                      "zoom_level_count",
                                      "chrom_tree_offset",
                                      "unzoomed_data_offset",
                                      "unzoomed_index_offset",
                                      "field_count",
                                      "defined_field_count",
                                      "autosql_offset",
                                      "total_summary_offset",
                                      "uncompress_buf_size",
                                      "zoom_levels",
                                      ])
"""Parsed header of a BBI file. Immutable once parsed"""


class TotalSummary(object):
    """Summary statistics over all data in a BBI file, stored in the
    file's total summary block. Mean and standard deviation are
    calculated on first access and cached.

    Attributes
    ----------
    bases_covered : int
        Number of bases with data

    min_val : float
        Minimum value over all bases

    max_val : float
        Maximum value over all bases

    sum_data : float
        Sum of values over all bases

    sum_squares : float
        Sum of squares of values over all bases
    """

    def __init__(self,bases_covered,min_val,max_val,sum_data,sum_squares):
        self.bases_covered = bases_covered
        self.min_val       = min_val
        self.max_val       = max_val
        self.sum_data      = sum_data
        self.sum_squares   = sum_squares
        self._mean = None
        self._std  = None

    def __repr__(self):
        return "<%s bases_covered=%s min=%s max=%s mean=%s>" % (self.__class__.__name__,
                                                                self.bases_covered,
                                                                self.min_val,
                                                                self.max_val,
                                                                self.mean)

    @property
    def mean(self):
        """Mean value over covered bases, or 0 if no bases are covered"""
        if self._mean is None:
            self._mean = float(self.sum_data) / self.bases_covered if self.bases_covered else 0.0
        return self._mean

    @property
    def std(self):
        """Sample standard deviation over covered bases, calculated from
        `sum_data` and `sum_squares`. 0 if no bases are covered"""
        if self._std is None:
            self._std = std_from_sums(self.sum_data,self.sum_squares,self.bases_covered)
        return self._std

    def as_dict(self):
        """Return summary statistics, including derived ones, as a :class:`dict`"""
        return { "bases_covered" : self.bases_covered,
                 "min_val"       : self.min_val,
                 "max_val"       : self.max_val,
                 "sum_data"      : self.sum_data,
                 "sum_squares"   : self.sum_squares,
                 "mean"          : self.mean,
                 "std"           : self.std,
               }


def std_from_sums(sum_data,sum_squares,n):
    """Calculate a sample standard deviation from a sum, a sum of squares,
    and a number of observations

    Parameters
    ----------
    sum_data : float

    sum_squares : float

    n : int

    Returns
    -------
    float
        Standard deviation, using an `n - 1` denominator if `n` > 1.
        Negative variances arising from rounding are clamped to 0
    """
    if n == 0:
        return 0.0

    variance = sum_squares - float(sum_data)**2 / n
    if n > 1:
        variance /= n - 1

    return 0.0 if variance < 0 else variance**0.5


#===============================================================================
# INDEX: Parsers
#===============================================================================

def parse_header(data,filename="<unknown>"):
    """Parse the fixed header and zoom level table of a BBI file

    Header table information from Kent2010, Supplemental table 5:

    ========================  ==== ====  =================================================
    Field                     Size Type   Summary
    ========================  ==== ====  =================================================
    magic                     4    uint   0x888FFC26 (BigWig) or 0x8789F2EB (BigBed)
    version                   2    uint   File version
    zoom_levels               2    uint   Number of zoom summary resolutions
    chrom_tree_offset         8    uint   Offset to chromosome B+ tree
    unzoomed_data_offset      8    uint   Offset to main data. Starts with data count
    unzoomed_index_offset     8    uint   Offset to R tree index of main data
    field_count               2    uint   Number of fields in BED file (0 for BigWig)
    defined_field_count       2    uint   Number of fields that are pre-defined BED fields
    autosql_offset            8    uint   Offset to zero-terminated autoSql string, or 0
    total_summary_offset      8    uint   Offset to total summary block, or 0
    uncompress_buf_size       4    uint   Size of largest uncompressed block, or 0 if uncompressed
    reserved                  8    uint   Reserved for future expansion
    ========================  ==== ====  =================================================

    Parameters
    ----------
    data : bytes
        Bytes from the start of the file, including the whole zoom level table

    filename : str, optional
        Name of file, for error messages

    Returns
    -------
    |FileHeader|

    Raises
    ------
    |FormatError|
        of kind `NotBigWigFamily` if the magic number matches neither BigWig
        nor BigBed in either byte order, or `TruncatedHeader` if `data` is too
        short to contain the header and zoom table
    """
    header_size = HeaderFactory.calcsize()
    if len(data) < 4:
        raise FormatError(filename,"TruncatedHeader",
                          "Need %s bytes of header, got %s." % (header_size,len(data)))

    byte_order = detect_byte_order(data,filename=filename)
    if len(data) < header_size:
        raise FormatError(filename,"TruncatedHeader",
                          "Need %s bytes of header, got %s." % (header_size,len(data)))

    items = HeaderFactory(data,0,byte_order)

    zoom_size = ZoomHeaderFactory.calcsize()
    zoom_end  = header_size + items.zoom_levels*zoom_size
    if len(data) < zoom_end:
        raise FormatError(filename,"TruncatedHeader",
                          "Zoom level table of %s levels runs past byte %s." % (items.zoom_levels,len(data)))

    zoom_levels = tuple(ZoomLevel(X.reduction_level,X.data_offset,X.index_offset) \
                        for X in ZoomHeaderFactory.iter_from(data,header_size,items.zoom_levels,byte_order))

    return FileHeader(magic                 = items.magic,
                      file_type             = FILE_TYPES[items.magic],
                      byte_order            = byte_order,
                      version               = items.version,
                      zoom_level_count      = items.zoom_levels,
                      chrom_tree_offset     = items.chrom_tree_offset,
                      unzoomed_data_offset  = items.unzoomed_data_offset,
                      unzoomed_index_offset = items.unzoomed_index_offset,
                      field_count           = items.field_count,
                      defined_field_count   = items.defined_field_count,
                      autosql_offset        = items.autosql_offset,
                      total_summary_offset  = items.total_summary_offset,
                      uncompress_buf_size   = items.uncompress_buf_size,
                      zoom_levels           = zoom_levels)

def header_length(data,filename="<unknown>"):
    """Number of bytes spanned by the header and zoom level table of a file
    whose first bytes are `data`

    Parameters
    ----------
    data : bytes
        At least the first 8 bytes of a BBI file

    filename : str, optional
        Name of file, for error messages

    Returns
    -------
    int
    """
    byte_order = detect_byte_order(data,filename=filename)
    num_zooms, = struct.unpack_from(byte_order+"H",data,6)
    return HeaderFactory.calcsize() + num_zooms*ZoomHeaderFactory.calcsize()

def detect_byte_order(data,filename="<unknown>"):
    """Determine byte order of a BBI file from its magic number

    Parameters
    ----------
    data : bytes
        At least the first 4 bytes of the file

    filename : str, optional
        Name of file, for error messages

    Returns
    -------
    str
        `'<'` for little-endian, `'>'` for big-endian

    Raises
    ------
    |FormatError|
        of kind `NotBigWigFamily` if the magic number matches neither format
        in either byte order
    """
    if len(data) >= 4:
        for byte_order in ("<",">"):
            magic, = struct.unpack_from(byte_order+"I",data,0)
            if magic in FILE_TYPES:
                return byte_order

    raise FormatError(filename,"NotBigWigFamily","Not a BigWig or BigBed file.")

def parse_total_summary(data,byte_order="<"):
    """Parse a total summary block

    ===============  ====  ======  =========================================
    Field            Size  Type    Summary
    ===============  ====  ======  =========================================
    bases_covered    8     uint    Number of bases with data
    min_val          8     float   Minimum value
    max_val          8     float   Maximum value
    sum_data         8     float   Sum of values
    sum_squares      8     float   Sum of squares of values
    ===============  ====  ======  =========================================

    Parameters
    ----------
    data : bytes
        At least 40 bytes, starting at the total summary offset

    byte_order : str, optional
        Byte order of file (Default: `'<'`)

    Returns
    -------
    |TotalSummary|
    """
    return TotalSummary(*TotalSummaryFactory(data,0,byte_order))


#===============================================================================
# INDEX: Factories for header record formats
#===============================================================================

ZoomLevel = namedtuple("ZoomLevel",["reduction_level","data_offset","index_offset"])
"""Zoom level: number of bases summarized per bin, and offsets of the level's data and R tree index"""

HeaderFactory = BinaryParserFactory("BBIHeader","IHH3QHHQQIQ",["magic",
                                                              "version",
                                                              "zoom_levels",
                                                              "chrom_tree_offset",
                                                              "unzoomed_data_offset",
                                                              "unzoomed_index_offset",
                                                              "field_count",
                                                              "defined_field_count",
                                                              "autosql_offset",
                                                              "total_summary_offset",
                                                              "uncompress_buf_size",
                                                              "reserved"
                                                              ])
"""Reads headers for BigWig and BigBed files"""

ZoomHeaderFactory = BinaryParserFactory("ZoomHeader","2I2Q",["reduction_level",
                                                             "reserved",
                                                             "data_offset",
                                                             "index_offset"])
"""Parses zoom level headers in BigWig and BigBed files"""

TotalSummaryFactory = BinaryParserFactory("TotalSummary","Q4d",["bases_covered",
                                                                "min_val",
                                                                "max_val",
                                                                "sum_data",
                                                                "sum_squares"])
"""Parses 'Total Summary' tables in BigWig and BigBed files"""
