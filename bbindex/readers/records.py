#!/usr/bin/env python
"""Decoders for the data blocks of `BigWig`_ and `BigBed`_ files.

Blocks are found via an |IndexView|, fetched by |BBIFile|, and decoded here
into records. Three kinds of block exist:

    ==================  =====================================================
    **Block**           **Contents**
    ------------------  -----------------------------------------------------
    BigWig data         One section: a 24-byte header followed by items in
                        `bedGraph`, `variableStep`, or `fixedStep` layout.
                        Decoded to |WigRecord|

    Zoom data           32-byte summary records of a zoom level, in either
                        file type. Decoded to |SummaryRecord|

    BigBed data         Records of chromosome ID, start, end, and a
                        null-terminated, tab-delimited string holding the
                        remaining BED columns. Decoded to |BedRecord|
    ==================  =====================================================

Blocks are compressed with zlib if the file declares a non-zero uncompressed
buffer size, and stored raw otherwise.
"""
import zlib
import numpy
from collections import namedtuple
from bbindex.util.io.binary import BinaryParserFactory, find_null_bytes
from bbindex.util.services.exceptions import FormatError

BIGWIG_TYPE_GRAPH = 1
BIGWIG_TYPE_VSTEP = 2
BIGWIG_TYPE_FSTEP = 3

WigRecord = namedtuple("WigRecord",["chrom","start","end","value"])
"""A value over a half-open genomic interval, from a BigWig file"""

SummaryRecord = namedtuple("SummaryRecord",["chrom",
                                            "start",
                                            "end",
                                            "valid_count",
                                            "min_val",
                                            "max_val",
                                            "sum_data",
                                            "sum_squares"])
"""Summary of data in one zoom level bin"""

BedRecord = namedtuple("BedRecord",["chrom","start","end","rest"])
"""A BigBed feature. `rest` holds the tab-delimited BED columns after the third"""


def inflate(raw,expected_size,filename="<unknown>"):
    """Decompress a zlib-compressed data block

    Parameters
    ----------
    raw : bytes
        Compressed block

    expected_size : int
        Uncompressed buffer size declared by the file, used as the
        initial output buffer size

    filename : str, optional
        Name of file, for error messages

    Returns
    -------
    bytes
    """
    try:
        return zlib.decompress(raw,bufsize=max(expected_size,1))
    except zlib.error as e:
        raise FormatError(filename,"BadDataBlock","Could not decompress data block: %s" % e)

def decode_block(raw,block,file_type,byte_order,chrom_names,filename="<unknown>"):
    """Inflate, if needed, and decode a data block

    Parameters
    ----------
    raw : bytes
        Block as stored in file

    block : |Block|
        Descriptor of block

    file_type : str
        `'bigwig'` or `'bigbed'`

    byte_order : str
        Byte order of file

    chrom_names : dict
        Dictionary mapping chromosome IDs to names

    filename : str, optional
        Name of file, for error messages

    Returns
    -------
    list
        List of |WigRecord|, |SummaryRecord|, or |BedRecord|
    """
    data = inflate(raw,block.uncompress_buf_size,filename) if block.uncompress_buf_size > 0 else raw
    if block.is_zoom:
        return decode_summaries(data,byte_order,chrom_names)
    elif file_type == "bigwig":
        return decode_wig_section(data,byte_order,chrom_names,filename=filename)
    else:
        return decode_bed_records(data,byte_order,chrom_names,filename=filename)

def _chrom_name(chrom_names,chrom_id):
    return chrom_names.get(chrom_id,str(chrom_id))

def decode_wig_section(data,byte_order,chrom_names,filename="<unknown>"):
    """Decode a BigWig data section

    Section header information from Kent2010, Supplemental table 12:

    ===============  ====  ======  ==================================================
    Field            Size  Type    Summary
    ===============  ====  ======  ==================================================
    chrom_id         4     uint    Chromosome ID
    start            4     uint    Start of section
    end              4     uint    End of section
    item_step        4     uint    Spacing between items (`fixedStep` only)
    item_span        4     uint    Number of bases per item (`varStep` and `fixedStep`)
    type             1     uint    1: bedGraph, 2: variableStep, 3: fixedStep
    reserved         1     uint    Reserved
    item_count       2     uint    Number of items in section
    ===============  ====  ======  ==================================================

    Parameters
    ----------
    data : bytes
        Uncompressed section

    byte_order : str
        Byte order of file

    chrom_names : dict
        Dictionary mapping chromosome IDs to names

    filename : str, optional
        Name of file, for error messages

    Returns
    -------
    list
        List of |WigRecord|
    """
    header_size = WigSectionHeaderFactory.calcsize()
    if len(data) < header_size:
        raise FormatError(filename,"BadDataBlock","BigWig section of %s bytes has no header." % len(data))

    section = WigSectionHeaderFactory(data,0,byte_order)
    try:
        dtype = numpy.dtype(_WIG_ITEM_FIELDS[section.type]).newbyteorder(byte_order)
    except KeyError:
        raise FormatError(filename,"BadDataBlock","Unknown BigWig section type %s." % section.type)

    if header_size + section.item_count*dtype.itemsize > len(data):
        raise FormatError(filename,"BadDataBlock",
                          "BigWig section of %s items runs past end of block." % section.item_count)

    if section.item_count == 0:
        return []

    items = numpy.frombuffer(data,dtype=dtype,count=section.item_count,offset=header_size)
    values = items["value"]
    if section.type == BIGWIG_TYPE_GRAPH:
        starts = items["start"].astype(numpy.int64)
        ends   = items["end"].astype(numpy.int64)
    elif section.type == BIGWIG_TYPE_VSTEP:
        starts = items["start"].astype(numpy.int64)
        ends   = starts + section.item_span
    else:
        starts = section.start + numpy.arange(section.item_count,dtype=numpy.int64)*section.item_step
        ends   = starts + section.item_span

    chrom = _chrom_name(chrom_names,section.chrom_id)
    return [WigRecord(chrom,int(S),int(E),float(V)) for S, E, V in zip(starts,ends,values)]

def decode_summaries(data,byte_order,chrom_names):
    """Decode a block of zoom level summary records

    Parameters
    ----------
    data : bytes
        Uncompressed block

    byte_order : str
        Byte order of file

    chrom_names : dict
        Dictionary mapping chromosome IDs to names

    Returns
    -------
    list
        List of |SummaryRecord|
    """
    dtype = numpy.dtype(_SUMMARY_FIELDS).newbyteorder(byte_order)
    count = len(data) // dtype.itemsize
    if count == 0:
        return []

    items = numpy.frombuffer(data,dtype=dtype,count=count)
    return [SummaryRecord(_chrom_name(chrom_names,int(X["chrom_id"])),
                          int(X["start"]),
                          int(X["end"]),
                          int(X["valid_count"]),
                          float(X["min_val"]),
                          float(X["max_val"]),
                          float(X["sum_data"]),
                          float(X["sum_squares"])) for X in items]

def decode_bed_records(data,byte_order,chrom_names,filename="<unknown>",null=b"\x00"):
    """Decode a block of BigBed records

    Each record holds a chromosome ID, start, and end, followed by a
    null-terminated string of the remaining tab-delimited BED columns,
    which is empty for BED3 files.

    Parameters
    ----------
    data : bytes
        Uncompressed block

    byte_order : str
        Byte order of file

    chrom_names : dict
        Dictionary mapping chromosome IDs to names

    filename : str, optional
        Name of file, for error messages

    null : bytes, optional
        Null character. Default: *\\x00*

    Returns
    -------
    list
        List of |BedRecord|
    """
    base_size    = BedRecordFactory.calcsize()
    null_indices = find_null_bytes(data,null=null)
    records      = []
    last_index   = 0
    while last_index + base_size <= len(data):
        chrom_id, chrom_start, chrom_end = BedRecordFactory(data,last_index,byte_order)

        # first null not inside the numeric fields ends the record
        n = numpy.searchsorted(null_indices,last_index + base_size)
        if n == len(null_indices):
            raise FormatError(filename,"BadDataBlock",
                              "Unterminated BigBed record at block position %s." % last_index)

        end_index = int(null_indices[n])
        rest = data[last_index+base_size:end_index].decode("ascii")
        records.append(BedRecord(_chrom_name(chrom_names,chrom_id),chrom_start,chrom_end,rest))
        last_index = end_index + 1

    return records


#===============================================================================
# INDEX: Record formats
#===============================================================================

WigSectionHeaderFactory = BinaryParserFactory("WigSectionHeader",
                                              "5IBBH",
                                              ["chrom_id",
                                               "start",
                                               "end",
                                               "item_step",
                                               "item_span",
                                               "type",
                                               "reserved",
                                               "item_count"])
"""Parses headers of BigWig data sections"""

BedRecordFactory = BinaryParserFactory("BedRecord","3I",["chrom_id","start","end"])
"""Parses numeric fields of BigBed records"""

_WIG_ITEM_FIELDS = {
    BIGWIG_TYPE_GRAPH : [("start","u4"),("end","u4"),("value","f4")],
    BIGWIG_TYPE_VSTEP : [("start","u4"),("value","f4")],
    BIGWIG_TYPE_FSTEP : [("value","f4")],
}
"""numpy dtype fields of BigWig section items, by section type"""

_SUMMARY_FIELDS = [("chrom_id","u4"),
                   ("start","u4"),
                   ("end","u4"),
                   ("valid_count","u4"),
                   ("min_val","f4"),
                   ("max_val","f4"),
                   ("sum_data","f4"),
                   ("sum_squares","f4")]
"""numpy dtype fields of zoom level summary records"""
