#!/usr/bin/env python
"""|IndexView|, a decoder for the R trees ("CIR trees") that index genomic
coordinates to data blocks in `BigWig`_ and `BigBed`_ files.

Each BBI file holds one R tree over its base-pair resolution data, and one
more per zoom level. An |IndexView| binds one such tree, identified by the
offset of its header and the number of bytes it may span, and answers the
question "which data blocks overlap this interval?" by descending only into
nodes whose genomic span overlaps the interval. Query cost is therefore
proportional to the depth of the tree and the number of overlapping leaves,
not to the size of the file.

The header and root node of each tree are fetched at most once, no matter
how many queries arrive concurrently (see |CoalescedLoad|).

See `Kent2010 <http://dx.doi.org/10.1093/bioinformatics/btq351>`_,
supplemental tables 14-17, for a description of the R tree.
"""
from collections import namedtuple
from bbindex.util.io.binary import BinaryParserFactory
from bbindex.util.services.coalesce import CoalescedLoad
from bbindex.util.services.exceptions import FormatError

R_TREE_MAGIC = 0x2468ACE0
"""Magic number of R tree headers"""

MAX_TREE_DEPTH = 64
"""Maximum depth of tree traversal before a tree is declared malformed"""

Block = namedtuple("Block",["data_offset","data_size","uncompress_buf_size","is_zoom"])
"""A data block found in an R tree leaf: its position and size in the file, the
file's uncompressed buffer size (0 if blocks are stored uncompressed), and
whether the block holds zoom level summaries"""

RTreeNode = namedtuple("RTreeNode",["offset","is_leaf","items"])
"""A parsed R tree node: its offset in the file, whether it is a leaf, and
its items, which are `RTreeLeaf` or `RTreeNonLeaf` records"""


def node_overlaps_roi(node,roi_chrom_id,roi_start_base,roi_end_base):
    """Determines whether an R tree item overlaps a region of interest (ROI)

    Items may span chromosome boundaries, so positions are compared
    lexicographically as *(chromosome ID, base)* pairs. An item overlaps
    the ROI unless it ends at or before the ROI's start, or starts at or
    after the ROI's end.

    Parameters
    ----------
    node : `RTreeLeaf` or `RTreeNonLeaf`
        Query item

    roi_chrom_id: int
        Integer corresponding to chromosome ID for ROI

    roi_start_base : int
        Coordinate of leftmost genomic position of ROI (0-indexed)

    roi_end_base : int
        Coordinate one past rightmost genomic position of ROI

    Returns
    -------
    bool
        *True* if ``node`` overlaps the ROI. *False* otherwise
    """
    if (node.end_chrom_id,node.end_base) <= (roi_chrom_id,roi_start_base):
        return False
    if (node.start_chrom_id,node.start_base) >= (roi_chrom_id,roi_end_base):
        return False
    return True


class IndexView(object):
    """View of one R tree in a BBI file, bound to the region of the file it occupies

    Attributes
    ----------
    index_offset : int
        Offset of R tree header in file

    extent : int
        Number of bytes, starting at `index_offset`, that the tree may occupy.
        Nodes running past this extent are malformed

    is_zoom : bool
        Whether the tree indexes zoom level data

    uncompress_buf_size : int
        Uncompressed buffer size of file, copied into each |Block|

    root_offset : int
        Offset of root node in file
    """

    def __init__(self,read,index_offset,extent,byte_order="<",is_zoom=False,
                 uncompress_buf_size=0,filename="<unknown>"):
        """Create an |IndexView|

        Parameters
        ----------
        read : coroutine function
            Called as ``read(offset, length)`` to fetch bytes from the file

        index_offset : int
            Offset, in bytes, of R tree header

        extent : int
            Number of bytes the tree may occupy, starting at `index_offset`

        byte_order : str, optional
            Character indicating endian-ness of data (default: "<" for little-endian)

        is_zoom : bool, optional
            Whether the tree indexes zoom level data (Default: `False`)

        uncompress_buf_size : int, optional
            Uncompressed buffer size declared in file header (Default: 0)

        filename : str, optional
            Name of file, for error messages
        """
        self._read               = read
        self._byte_order         = byte_order
        self.index_offset        = index_offset
        self.extent              = extent
        self.is_zoom             = is_zoom
        self.uncompress_buf_size = uncompress_buf_size
        self.filename            = filename
        self.root_offset         = index_offset + RTreeHeaderFactory.calcsize()

        self._header_load = CoalescedLoad(self._load_header,name="R tree header at %s" % index_offset)
        self._root_load   = CoalescedLoad(self._load_root,name="R tree root at %s" % self.root_offset)

    def __repr__(self):
        return "<%s offset=%s extent=%s zoom=%s>" % (self.__class__.__name__,
                                                     self.index_offset,
                                                     self.extent,
                                                     self.is_zoom)

    @property
    def end_offset(self):
        """Offset one past the last byte the tree may occupy"""
        return self.index_offset + self.extent

    async def get_header(self):
        """Fetch and parse the R tree header, once

        Header table information from Kent2010, Supplemental table 14:

        ===================  ======  ======  =================================================
        Field                Size    Type    Summary
        ===================  ======  ======  =================================================
        magic                  4      uint   0x2468ACE0
        block_size             4      uint   Maximum number of children per node
        item_count             8      uint   Number of items (data blocks) indexed
        start_chrom_id         4      uint   ID of first chromosome in index
        start_base             4      uint   Position of first base in index
        end_chrom_id           4      uint   ID of last chromosome in index
        end_base               4      uint   Position of last base in index
        end_file_offset        8      uint   Position in file where indexed data end
        items_per_slot         4      uint   Number of items pointed to by leaves of index
        reserved               4      uint   Reserved
        ===================  ======  ======  =================================================

        Returns
        -------
        namedtuple
        """
        return await self._header_load.get()

    async def get_root(self):
        """Fetch and parse the root node of the tree, once

        Returns
        -------
        |RTreeNode|
        """
        return await self._root_load.get()

    async def find_blocks(self,chrom_id,start,end):
        """Search the tree for data blocks overlapping a region of interest

        Parameters
        ----------
        chrom_id : int
            Numeric ID of chromosome

        start : int
            Start of region, 0-indexed

        end : int
            End of region, half-open

        Returns
        -------
        list
            List of |Block| whose indexed span overlaps the region, in the order
            in which they appear in the tree (sorted by starting position)

        Raises
        ------
        |FormatError|
            If the tree is malformed. No partial results are returned
        """
        header = await self.get_header()
        root   = await self.get_root()
        blocks = []
        await self._find_blocks(root,chrom_id,start,end,header.block_size,0,blocks)
        return blocks

    async def _find_blocks(self,node,chrom_id,start,end,block_size,depth,blocks):
        if depth > MAX_TREE_DEPTH:
            raise FormatError(self.filename,"TreeTooDeep",
                              "R tree at %s deeper than %s levels." % (self.index_offset,MAX_TREE_DEPTH))

        for item in node.items:
            if not node_overlaps_roi(item,chrom_id,start,end):
                continue

            if node.is_leaf:
                blocks.append(Block(item.data_offset,item.data_size,self.uncompress_buf_size,self.is_zoom))
            else:
                child = await self._read_node(item.child_data_offset,block_size)
                await self._find_blocks(child,chrom_id,start,end,block_size,depth+1,blocks)

    async def _load_header(self):
        header_size = RTreeHeaderFactory.calcsize()
        if self.extent < header_size + RTreeNodeFormatFactory.calcsize():
            raise FormatError(self.filename,"TruncatedIndex",
                              "R tree at %s has extent of only %s bytes." % (self.index_offset,self.extent))

        data = await self._read(self.index_offset,header_size)
        header = RTreeHeaderFactory(data,0,self._byte_order)
        if header.magic != R_TREE_MAGIC:
            raise FormatError(self.filename,"BadIndexMagic",
                              "Expected R tree magic number %s at %s, found %s." % (R_TREE_MAGIC,
                                                                                   self.index_offset,
                                                                                   header.magic))
        return header

    async def _load_root(self):
        header = await self.get_header()
        return await self._read_node(self.root_offset,header.block_size)

    async def _read_node(self,offset,block_size):
        """Fetch and parse the node at `offset`. At most enough bytes for a
        full leaf node of `block_size` items are read, clipped to the extent
        of the tree

        Parameters
        ----------
        offset : int
            Offset of node in file

        block_size : int
            Maximum number of items per node, from R tree header

        Returns
        -------
        |RTreeNode|
        """
        format_size = RTreeNodeFormatFactory.calcsize()
        if offset < self.root_offset or offset + format_size > self.end_offset:
            raise FormatError(self.filename,"TruncatedIndex",
                              "R tree node at %s lies outside index spanning %s-%s." % (offset,
                                                                                       self.index_offset,
                                                                                       self.end_offset))

        length = min(format_size + block_size*RTreeLeafFactory.calcsize(),self.end_offset - offset)
        data = await self._read(offset,length)
        node_info = RTreeNodeFormatFactory(data,0,self._byte_order)
        if node_info.count > block_size:
            raise FormatError(self.filename,"BadIndexNode",
                              "R tree node at %s declares %s items, more than block size %s." % (offset,
                                                                                                node_info.count,
                                                                                                block_size))

        factory = RTreeLeafFactory if node_info.is_leaf else RTreeNonLeafFactory
        if format_size + node_info.count*factory.calcsize() > len(data):
            raise FormatError(self.filename,"TruncatedIndex",
                              "R tree node at %s with %s items runs past end of index at %s." % (offset,
                                                                                                node_info.count,
                                                                                                self.end_offset))

        items = list(factory.iter_from(data,format_size,node_info.count,self._byte_order))
        return RTreeNode(offset,bool(node_info.is_leaf),items)


#===============================================================================
# INDEX: Factories for R tree record formats
#===============================================================================

RTreeHeaderFactory = BinaryParserFactory("RTreeHeader",
                                         "IIQ4IQII",
                                        ["magic",
                                         "block_size",
                                         "item_count",
                                         "start_chrom_id",
                                         "start_base",
                                         "end_chrom_id",
                                         "end_base",
                                         "end_file_offset",
                                         "items_per_slot",
                                         "reserved"])
"""Parses headers of R Trees"""

RTreeNodeFormatFactory = BinaryParserFactory("RTreeNodeFormat",
                                            "BBH",
                                            ["is_leaf","reserved","count"]
                                            )
"""Determines format of R Tree nodes"""

RTreeLeafFactory = BinaryParserFactory("RTreeLeaf",
                                       "4I2Q",
                                      ["start_chrom_id",
                                       "start_base",
                                       "end_chrom_id",
                                       "end_base",
                                       "data_offset",
                                       "data_size"
                                       ])
"""Parses items of R tree leaf nodes"""

RTreeNonLeafFactory = BinaryParserFactory("RTreeNonLeaf",
                                          "4IQ",
                                          ["start_chrom_id",
                                           "start_base",
                                           "end_chrom_id",
                                           "end_base",
                                           "child_data_offset"])
"""Parses items of R tree non-leaf nodes"""
