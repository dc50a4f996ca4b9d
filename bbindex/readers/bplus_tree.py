#!/usr/bin/env python
"""|ChromIndex|, a decoder for the B+ tree that maps chromosome names to
numeric IDs and lengths in `BigWig`_ and `BigBed`_ files.

The tree is parsed once, in full, from a single buffer spanning the region
between the start of the tree and the start of the file's data section.
Child references are followed as offsets into that buffer, and traversal
depth is bounded, so malformed trees fail with a |FormatError| rather than
recursing without end.

See `Kent2010 <http://dx.doi.org/10.1093/bioinformatics/btq351>`_,
supplemental tables 8-11, for a description of the B+ tree.
"""
from collections import OrderedDict, namedtuple
from bbindex.readers.common import canonicalize_name
from bbindex.util.io.binary import BinaryParserFactory
from bbindex.util.services.exceptions import FormatError

BPLUS_TREE_MAGIC = 0x78CA8C91
"""Magic number of chromosome B+ trees (2026540177)"""

MAX_TREE_DEPTH = 64
"""Maximum depth of tree traversal before a tree is declared malformed"""

ChromRecord = namedtuple("ChromRecord",["name","canonical_name","id","length"])
"""A chromosome: name as stored in file, canonical name, numeric ID, and length"""


class ChromIndex(object):
    """Decode the chromosome B+ tree of a BBI file, and look up chromosomes
    by name or by numeric ID.

    Names are canonicalized via a name-normalization function (by default
    :func:`~bbindex.readers.common.canonicalize_name`) when the index is
    built and when it is queried.

    Attributes
    ----------
    header : namedtuple
        B+ tree header

    tree_offset : int
        Offset of tree in file

    by_name : OrderedDict
        Dictionary mapping canonical chromosome names to |ChromRecord|

    by_id : OrderedDict
        Dictionary mapping chromosome IDs to |ChromRecord|
    """

    def __init__(self,data,tree_offset,byte_order="<",canonicalize=canonicalize_name,filename="<unknown>"):
        """Create a |ChromIndex|

        Parameters
        ----------
        data : bytes
            Bytes spanning the B+ tree, starting at `tree_offset`

        tree_offset : int
            Offset, in bytes, of tree header in file. Used to convert absolute
            child offsets stored in the tree into offsets within `data`

        byte_order : str, optional
            Character indicating endian-ness of data (default: "<" for little-endian)

        canonicalize : callable, optional
            Name-normalization function (Default: :func:`canonicalize_name`)

        filename : str, optional
            Name of file, for error messages

        Raises
        ------
        |FormatError|
            of kind `BadChromTreeMagic`, `TruncatedChromTree`, or `TreeTooDeep`
        """
        self.data         = data
        self.tree_offset  = tree_offset
        self.canonicalize = canonicalize
        self.filename     = filename
        self._byte_order  = byte_order

        self.header = self._parse_header()
        self.LeafFactory = BinaryParserFactory("BPlusTreeLeaf",
                                               "%ssII" % self.header.key_size,
                                               ["chrom_name","chrom_id","chrom_size"])
        self.NonLeafFactory = BinaryParserFactory("BPlusTreeNonLeaf",
                                                  "%ssQ" % self.header.key_size,
                                                  ["chrom_name","child_offset"])

        self.by_name = OrderedDict()
        self.by_id   = OrderedDict()
        for record in self._walk_tree(BPlusTreeHeaderFactory.calcsize(),0):
            self.by_name[record.canonical_name] = record
            self.by_id[record.id] = record

    def __repr__(self):
        return "<%s chroms=%s>" % (self.__class__.__name__,self.num_chroms)

    def __len__(self):
        return len(self.by_id)

    def __contains__(self,name):
        return self.canonicalize(name) in self.by_name

    @property
    def num_chroms(self):
        """Number of chromosomes in index"""
        return len(self.by_id)

    @property
    def chrom_sizes(self):
        """Dictionary mapping chromosome names, as stored in the file, to lengths"""
        return OrderedDict((X.name,X.length) for X in self.by_id.values())

    def lookup(self,name):
        """Find a chromosome by name

        Parameters
        ----------
        name : str
            Chromosome name, in any naming convention understood by `self.canonicalize`

        Returns
        -------
        |ChromRecord| or None
            `None` if chromosome is not in the file
        """
        return self.by_name.get(self.canonicalize(name))

    def get(self,chrom_id):
        """Find a chromosome by numeric ID

        Returns
        -------
        |ChromRecord| or None
        """
        return self.by_id.get(chrom_id)

    def _parse_header(self):
        """Parses B+ tree header

        Header table information from Kent2010, Supplemental table 8:

        =====================  =====  =====  ========================================
        Field                  Size   Type   Summary
        =====================  =====  =====  ========================================
        magic                  4      uint   0x78CA8C91
        block_size             4      uint   Number of children per block
        key_size               4      uint   Number of significant bytes per key
        val_size               4      uint   Size of value being indexed. Currently 8
        item_count             8      uint   Number of chromosomes or contigs
        reserved               8      uint   Reserved for future expansion
        =====================  =====  =====  ========================================

        Returns
        -------
        namedtuple
        """
        if len(self.data) < BPlusTreeHeaderFactory.calcsize():
            raise FormatError(self.filename,"TruncatedChromTree",
                              "Buffer of %s bytes too short for B+ tree header." % len(self.data))

        header = BPlusTreeHeaderFactory(self.data,0,self._byte_order)
        if header.magic != BPLUS_TREE_MAGIC:
            raise FormatError(self.filename,"BadChromTreeMagic",
                              "Expected B+ tree magic number %s, found %s." % (BPLUS_TREE_MAGIC,header.magic))
        return header

    def _walk_tree(self,offset,depth):
        """Exhaustively traverse the tree depth-first, left-to-right, starting
        at the node at `offset` in `self.data`

        Parameters
        ----------
        offset : int
            Offset of node in `self.data`

        depth : int
            Depth of node in tree

        Returns
        -------
        list
            List of |ChromRecord|, in order of traversal
        """
        if depth > MAX_TREE_DEPTH:
            raise FormatError(self.filename,"TreeTooDeep",
                              "B+ tree deeper than %s levels." % MAX_TREE_DEPTH)

        node_size = BPlusTreeNodeFormatFactory.calcsize()
        if offset < 0 or offset + node_size > len(self.data):
            raise FormatError(self.filename,"TruncatedChromTree",
                              "Node at tree offset %s lies outside buffer of %s bytes." % (offset,len(self.data)))

        node_info = BPlusTreeNodeFormatFactory(self.data,offset,self._byte_order)
        factory = self.LeafFactory if node_info.is_leaf else self.NonLeafFactory
        items_start = offset + node_size
        items_end   = items_start + node_info.child_count*factory.calcsize(self._byte_order)
        if items_end > len(self.data):
            raise FormatError(self.filename,"TruncatedChromTree",
                              "Node at tree offset %s with %s items runs past end of buffer." % (offset,
                                                                                               node_info.child_count))

        chrom_info = []
        items = factory.iter_from(self.data,items_start,node_info.child_count,self._byte_order)
        if node_info.is_leaf:
            for item in items:
                chrom_info.append(ChromRecord(item.chrom_name,
                                              self.canonicalize(item.chrom_name),
                                              item.chrom_id,
                                              item.chrom_size))
        else:
            for item in items:
                chrom_info.extend(self._walk_tree(item.child_offset - self.tree_offset,depth+1))

        return chrom_info


#===============================================================================
# INDEX: Factories for B+ tree record formats
#===============================================================================

BPlusTreeHeaderFactory = BinaryParserFactory("BPlusTreeHeader",
                                             "4I2Q",
                                             ["magic",
                                              "block_size",
                                              "key_size",
                                              "val_size",
                                              "item_count",
                                              "reserved"])
"""Parses headers of B+ trees"""

BPlusTreeNodeFormatFactory = BinaryParserFactory("BPlusTreeNodeFormat",
                                                 "BBH",
                                                 ["is_leaf",
                                                  "reserved",
                                                  "child_count"])
"""Determines format of B+ tree nodes"""
