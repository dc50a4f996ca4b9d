#!/usr/bin/env python
"""Helpers shared by test suites, chiefly :func:`build_bbi`, which assembles
small `BigWig`_ and `BigBed`_ files in memory, in either byte order, with
multi-level chromosome and data indices.

Files are laid out as follows::

    header | zoom headers | autoSql | total summary | chromosome B+ tree |
    data count + data blocks | R tree index |
    (zoom data count + zoom blocks | zoom R tree index) for each zoom level |
    magic

Sample data used by several test suites are defined in module-level
constants, with helpers :func:`build_sample_bigwig` and
:func:`build_sample_bigbed`.
"""
import struct
import zlib
from bbindex.readers.bbi_header import BIGWIG_MAGIC, BIGBED_MAGIC
from bbindex.readers.bplus_tree import BPLUS_TREE_MAGIC
from bbindex.readers.r_tree import R_TREE_MAGIC
from bbindex.readers.records import BIGWIG_TYPE_GRAPH, BIGWIG_TYPE_VSTEP, BIGWIG_TYPE_FSTEP

#===============================================================================
# INDEX: sample data
#===============================================================================

SAMPLE_CHROMS = [("chr1",50000),("chr2",30000),("chrX",10000)]
"""Chromosome names and lengths. IDs follow list order"""

SAMPLE_WIG_SECTIONS = [
    # chrom_id, section type, start, end, step, span, items
    (0,BIGWIG_TYPE_GRAPH,0,600,0,0,[(0,100,1.0),(100,200,2.0),(500,600,3.0)]),
    (0,BIGWIG_TYPE_VSTEP,1000,1110,0,10,[(1000,4.0),(1050,5.0),(1100,6.0)]),
    (0,BIGWIG_TYPE_FSTEP,2000,2350,100,50,[7.0,8.0,9.0,10.0]),
    (1,BIGWIG_TYPE_GRAPH,0,1000,0,0,[(0,1000,0.5)]),
    (1,BIGWIG_TYPE_FSTEP,5000,5030,10,10,[1.0,2.0,3.0]),
    (2,BIGWIG_TYPE_VSTEP,100,205,0,5,[(100,0.25),(200,0.75)]),
]
"""BigWig sections, one per data block"""

SAMPLE_WIG_RECORDS = {
    "chr1" : [(0,100,1.0),(100,200,2.0),(500,600,3.0),
              (1000,1010,4.0),(1050,1060,5.0),(1100,1110,6.0),
              (2000,2050,7.0),(2100,2150,8.0),(2200,2250,9.0),(2300,2350,10.0)],
    "chr2" : [(0,1000,0.5),(5000,5010,1.0),(5010,5020,2.0),(5020,5030,3.0)],
    "chrX" : [(100,105,0.25),(200,205,0.75)],
}
"""Decoded contents of :data:`SAMPLE_WIG_SECTIONS`, as *(start, end, value)* per chromosome"""

SAMPLE_ZOOMS = [
    (1000,[[(0,0,1000,330,1.0,6.0,650.0,2150.0),
            (0,1000,2000,30,4.0,6.0,150.0,770.0)],
           [(0,2000,3000,200,7.0,10.0,1700.0,14700.0),
            (1,0,1000,1000,0.5,0.5,500.0,250.0)],
           [(1,5000,6000,30,1.0,3.0,60.0,140.0),
            (2,0,1000,10,0.25,0.75,5.0,3.125)]]),
    (10000,[[(0,0,10000,560,1.0,10.0,2500.0,17620.0),
             (1,0,10000,1030,0.5,3.0,560.0,390.0),
             (2,0,10000,10,0.25,0.75,5.0,3.125)]]),
]
"""Zoom levels, as *(reduction level, blocks)*. Each block is a list of
summary records *(chrom_id, start, end, valid_count, min, max, sum, sum of squares)*"""

SAMPLE_BED_BLOCKS = [
    [(0,100,200,"feat1\t0\t+"),(0,150,400,"feat2\t5\t-")],
    [(0,1000,1200,"feat3\t10\t+"),(1,10,20,"feat4\t0\t+")],
    [(1,500,900,"feat5\t0\t-"),(2,0,50,"feat6\t0\t+")],
]
"""BigBed records *(chrom_id, start, end, rest)*, grouped into data blocks.
The second block spans two chromosomes"""

SAMPLE_AUTOSQL = """table bed6
"Browser extensible data"
    (
    string chrom;      "Reference sequence chromosome or scaffold"
    uint   chromStart; "Start position in chromosome"
    uint   chromEnd;   "End position in chromosome"
    string name;       "Name of item"
    uint   score;      "Score from 0-1000"
    char[1] strand;    "+ or -"
    )
"""


#===============================================================================
# INDEX: tree builders
#===============================================================================

def _pack_tree(items,block_size,offset,byte_order,item_key,merge_keys,
               pack_leaf_item,pack_nonleaf_item,leaf_size,nonleaf_size):
    """Lay out a tree over `items` with at most `block_size` children per
    node, root first, then each level below in order, leaves last

    Parameters
    ----------
    items : list
        Leaf items, in order

    block_size : int
        Maximum children per node

    offset : int
        Position in file of the first (root) node

    byte_order : str
        Byte order of file

    item_key : callable
        Returns the key of a leaf item

    merge_keys : callable
        Combines a list of child keys into the key of their parent

    pack_leaf_item : callable
        Packs a leaf item to bytes

    pack_nonleaf_item : callable
        Packs *(key, child offset)* to bytes

    leaf_size, nonleaf_size : int
        Sizes in bytes of leaf and non-leaf items

    Returns
    -------
    bytes
    """
    # levels[0] holds leaves as lists of items; higher levels hold lists of
    # indices into the level below
    levels = [[items[i:i+block_size] for i in range(0,len(items),block_size)] or [[]]]
    while len(levels[-1]) > 1:
        below = levels[-1]
        levels.append([list(range(i,min(i+block_size,len(below)))) for i in range(0,len(below),block_size)])

    offsets = {}
    pos = offset
    for depth in range(len(levels)-1,-1,-1):
        item_size = leaf_size if depth == 0 else nonleaf_size
        for n, node in enumerate(levels[depth]):
            offsets[(depth,n)] = pos
            pos += 4 + len(node)*item_size

    keys = {}
    for n, node in enumerate(levels[0]):
        keys[(0,n)] = merge_keys([item_key(X) for X in node]) if node else None
    for depth in range(1,len(levels)):
        for n, node in enumerate(levels[depth]):
            keys[(depth,n)] = merge_keys([keys[(depth-1,X)] for X in node])

    chunks = []
    for depth in range(len(levels)-1,-1,-1):
        for node in levels[depth]:
            chunks.append(struct.pack(byte_order+"BBH",1 if depth == 0 else 0,0,len(node)))
            for X in node:
                if depth == 0:
                    chunks.append(pack_leaf_item(X))
                else:
                    chunks.append(pack_nonleaf_item(keys[(depth-1,X)],offsets[(depth-1,X)]))

    return b"".join(chunks)

def build_chrom_tree(chroms,offset,byte_order="<",block_size=2):
    """Build a chromosome B+ tree

    Parameters
    ----------
    chroms : list
        List of *(name, length)*. IDs follow list order

    offset : int
        Position of tree in file

    byte_order : str, optional

    block_size : int, optional
        Maximum children per node. Small values force multi-level trees (Default: 2)

    Returns
    -------
    bytes
    """
    key_size = max([len(X[0]) for X in chroms] + [1])
    items = sorted((name,n,length) for n, (name,length) in enumerate(chroms))
    header = struct.pack(byte_order+"4I2Q",BPLUS_TREE_MAGIC,block_size,key_size,8,len(chroms),0)
    leaf_fmt    = byte_order + "%dsII" % key_size
    nonleaf_fmt = byte_order + "%dsQ" % key_size
    body = _pack_tree(items,
                      block_size,
                      offset + len(header),
                      byte_order,
                      lambda X: X[0],
                      lambda keys: keys[0],
                      lambda X: struct.pack(leaf_fmt,X[0].encode("ascii"),X[1],X[2]),
                      lambda key, child: struct.pack(nonleaf_fmt,key.encode("ascii"),child),
                      struct.calcsize(leaf_fmt),
                      struct.calcsize(nonleaf_fmt))
    return header + body

def build_r_tree(leaves,offset,end_file_offset,byte_order="<",block_size=2):
    """Build an R tree index over data blocks

    Parameters
    ----------
    leaves : list
        List of *(start_chrom_id, start_base, end_chrom_id, end_base, data_offset, data_size)*

    offset : int
        Position of tree header in file

    end_file_offset : int
        Position where indexed data end

    byte_order : str, optional

    block_size : int, optional
        Maximum children per node (Default: 2)

    Returns
    -------
    bytes
    """
    def merge(keys):
        keys = [X for X in keys if X is not None]
        if not keys:
            return (0,0,0,0)
        start = min((X[0],X[1]) for X in keys)
        end   = max((X[2],X[3]) for X in keys)
        return start + end

    bounds = merge([X[:4] for X in leaves])
    header = struct.pack(byte_order+"IIQ4IQII",R_TREE_MAGIC,block_size,len(leaves),
                         bounds[0],bounds[1],bounds[2],bounds[3],end_file_offset,1,0)
    body = _pack_tree(leaves,
                      block_size,
                      offset + len(header),
                      byte_order,
                      lambda X: tuple(X[:4]),
                      merge,
                      lambda X: struct.pack(byte_order+"4I2Q",*X),
                      lambda key, child: struct.pack(byte_order+"4IQ",*(key + (child,))),
                      32,
                      24)
    return header + body


#===============================================================================
# INDEX: data block encoders
#===============================================================================

def pack_wig_section(section,byte_order="<"):
    """Pack a BigWig section given as in :data:`SAMPLE_WIG_SECTIONS`"""
    chrom_id, section_type, start, end, step, span, items = section
    ltmp = [struct.pack(byte_order+"5IBBH",chrom_id,start,end,step,span,section_type,0,len(items))]
    for item in items:
        if section_type == BIGWIG_TYPE_GRAPH:
            ltmp.append(struct.pack(byte_order+"IIf",*item))
        elif section_type == BIGWIG_TYPE_VSTEP:
            ltmp.append(struct.pack(byte_order+"If",*item))
        else:
            ltmp.append(struct.pack(byte_order+"f",item))

    return b"".join(ltmp)

def pack_bed_block(records,byte_order="<"):
    """Pack a block of BigBed records *(chrom_id, start, end, rest)*"""
    return b"".join(struct.pack(byte_order+"3I",*X[:3]) + X[3].encode("ascii") + b"\x00" for X in records)

def pack_zoom_block(records,byte_order="<"):
    """Pack a block of zoom summary records"""
    return b"".join(struct.pack(byte_order+"4I4f",*X) for X in records)

def wig_section_bounds(section):
    return (section[0],section[2],section[0],section[3])

def record_bounds(records):
    """Return *(start_chrom_id, start_base, end_chrom_id, end_base)* of a block of records"""
    start = min((X[0],X[1]) for X in records)
    end   = max((X[0],X[2]) for X in records)
    return start + end

def wig_summary(sections):
    """Calculate a total summary over BigWig sections"""
    bases = 0
    vmin  = None
    vmax  = None
    total = 0.0
    sumsq = 0.0
    for section in sections:
        chrom_id, section_type, start, end, step, span, items = section
        for n, item in enumerate(items):
            if section_type == BIGWIG_TYPE_GRAPH:
                length, value = item[1] - item[0], item[2]
            elif section_type == BIGWIG_TYPE_VSTEP:
                length, value = span, item[1]
            else:
                length, value = span, item

            bases += length
            total += value*length
            sumsq += value*value*length
            vmin = value if vmin is None else min(vmin,value)
            vmax = value if vmax is None else max(vmax,value)

    return (bases,vmin or 0.0,vmax or 0.0,total,sumsq)


#===============================================================================
# INDEX: file builder
#===============================================================================

def build_bbi(file_type="bigwig",
              chroms=SAMPLE_CHROMS,
              blocks=None,
              zoom_levels=(),
              byte_order="<",
              compress=True,
              summary=None,
              include_summary=True,
              autosql=None,
              field_count=None,
              chrom_block_size=2,
              index_block_size=2,
              magic=None):
    """Assemble a BigWig or BigBed file in memory

    Parameters
    ----------
    file_type : str, optional
        `'bigwig'` or `'bigbed'` (Default: `'bigwig'`)

    chroms : list, optional
        List of *(name, length)*. IDs follow list order

    blocks : list, optional
        For BigWig files, list of sections as in :data:`SAMPLE_WIG_SECTIONS`.
        For BigBed files, list of blocks of records as in :data:`SAMPLE_BED_BLOCKS`.
        Each becomes one data block

    zoom_levels : list, optional
        List of *(reduction level, blocks)* as in :data:`SAMPLE_ZOOMS`

    byte_order : str, optional
        `'<'` or `'>'` (Default: `'<'`)

    compress : bool, optional
        Compress data blocks with zlib (Default: `True`)

    summary : tuple or None, optional
        *(bases covered, min, max, sum, sum of squares)*. If `None`,
        calculated from BigWig data, or from feature coverage for BigBed

    include_summary : bool, optional
        If `False`, write no total summary block (Default: `True`)

    autosql : str or None, optional
        autoSql declaration to store

    field_count : int or None, optional
        Number of BED fields. Defaults to 0 for BigWig and 3 plus the number
        of columns in `rest` for BigBed

    chrom_block_size, index_block_size : int, optional
        Maximum children per node in the B+ and R trees (Default: 2)

    magic : int or None, optional
        Override magic number, to build invalid files

    Returns
    -------
    bytes
    """
    bo = byte_order
    if blocks is None:
        blocks = SAMPLE_WIG_SECTIONS if file_type == "bigwig" else SAMPLE_BED_BLOCKS

    if file_type == "bigwig":
        raw_blocks  = [pack_wig_section(X,bo) for X in blocks]
        bounds      = [wig_section_bounds(X) for X in blocks]
        data_count  = len(blocks)
        file_magic  = BIGWIG_MAGIC
        if field_count is None:
            field_count = 0
        if summary is None:
            summary = wig_summary(blocks)
    else:
        raw_blocks  = [pack_bed_block(X,bo) for X in blocks]
        bounds      = [record_bounds(X) for X in blocks]
        data_count  = sum(len(X) for X in blocks)
        file_magic  = BIGBED_MAGIC
        if field_count is None:
            first = blocks[0][0][3] if blocks and blocks[0] else ""
            field_count = 3 + (len(first.split("\t")) if first else 0)
        if summary is None:
            bases = sum(X[2] - X[1] for Y in blocks for X in Y)
            summary = (bases,1.0,1.0,float(bases),float(bases))

    zoom_raw = [[pack_zoom_block(X,bo) for X in Y[1]] for Y in zoom_levels]
    all_raw = raw_blocks + [X for Y in zoom_raw for X in Y]
    uncompress_buf_size = max([len(X) for X in all_raw] + [1]) if compress else 0

    def store(raw):
        return zlib.compress(raw) if compress else raw

    header_size = 64 + 24*len(zoom_levels)
    pos = header_size
    autosql_offset = 0
    autosql_bytes  = b""
    if autosql is not None:
        autosql_offset = pos
        autosql_bytes  = autosql.encode("ascii") + b"\x00"
        pos += len(autosql_bytes)

    total_summary_offset = 0
    summary_bytes = b""
    if include_summary:
        total_summary_offset = pos
        summary_bytes = struct.pack(bo+"Q4d",*summary)
        pos += len(summary_bytes)

    chrom_tree_offset = pos
    chrom_tree = build_chrom_tree(chroms,chrom_tree_offset,bo,block_size=chrom_block_size)
    pos += len(chrom_tree)

    unzoomed_data_offset = pos
    data = [struct.pack(bo+"Q",data_count)]
    pos += 8
    leaves = []
    for bound, raw in zip(bounds,raw_blocks):
        stored = store(raw)
        leaves.append(bound + (pos,len(stored)))
        data.append(stored)
        pos += len(stored)

    unzoomed_index_offset = pos
    index = build_r_tree(leaves,pos,unzoomed_index_offset,bo,block_size=index_block_size)
    data.append(index)
    pos += len(index)

    zoom_headers = []
    for (reduction_level, zoom_blocks), raw_zoom_blocks in zip(zoom_levels,zoom_raw):
        zoom_data_offset = pos
        data.append(struct.pack(bo+"I",sum(len(X) for X in zoom_blocks)))
        pos += 4
        zoom_leaves = []
        for records, raw in zip(zoom_blocks,raw_zoom_blocks):
            stored = store(raw)
            zoom_leaves.append(record_bounds(records) + (pos,len(stored)))
            data.append(stored)
            pos += len(stored)

        zoom_index_offset = pos
        zoom_index = build_r_tree(zoom_leaves,pos,zoom_index_offset,bo,block_size=index_block_size)
        data.append(zoom_index)
        pos += len(zoom_index)
        zoom_headers.append(struct.pack(bo+"2I2Q",reduction_level,0,zoom_data_offset,zoom_index_offset))

    header = struct.pack(bo+"IHH3QHHQQIQ",
                         file_magic if magic is None else magic,
                         4,
                         len(zoom_levels),
                         chrom_tree_offset,
                         unzoomed_data_offset,
                         unzoomed_index_offset,
                         field_count,
                         field_count,
                         autosql_offset,
                         total_summary_offset,
                         uncompress_buf_size,
                         0)

    trailer = struct.pack(bo+"I",file_magic if magic is None else magic)
    return b"".join([header] + zoom_headers + [autosql_bytes,summary_bytes,chrom_tree] + data + [trailer])

def build_sample_bigwig(byte_order="<",**kwargs):
    """Build a BigWig file of :data:`SAMPLE_WIG_SECTIONS` with :data:`SAMPLE_ZOOMS`"""
    kwargs.setdefault("zoom_levels",SAMPLE_ZOOMS)
    return build_bbi("bigwig",blocks=SAMPLE_WIG_SECTIONS,byte_order=byte_order,**kwargs)

def build_sample_bigbed(byte_order="<",**kwargs):
    """Build a BigBed file of :data:`SAMPLE_BED_BLOCKS`, with :data:`SAMPLE_AUTOSQL`"""
    kwargs.setdefault("autosql",SAMPLE_AUTOSQL)
    return build_bbi("bigbed",blocks=SAMPLE_BED_BLOCKS,byte_order=byte_order,**kwargs)
