#!/usr/bin/env python
"""Test suite for :py:mod:`bbindex.readers.bplus_tree`"""
import struct
import unittest
import pytest
from bbindex.readers.bplus_tree import ChromIndex, BPLUS_TREE_MAGIC
from bbindex.test.common import build_chrom_tree
from bbindex.util.services.exceptions import FormatError

#===============================================================================
# INDEX: test data
#===============================================================================

TREE_OFFSET = 1000

CHROMS = [("chrI",230218),
          ("chrII",813184),
          ("chrIII",316620),
          ("chrIV",1531933),
          ("chrV",576874),
          ("chrVI",270161),
          ("chrVII",1090940),
          ("chrM",85779),
          ("2micron",6318)]
"""Yeast chromosomes, in order of ID"""

KEY_SIZE = max(len(X[0]) for X in CHROMS)


#===============================================================================
# INDEX: test suites
#===============================================================================

@pytest.mark.unit
class TestChromIndex(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        # keep canonical names distinct for these tests
        cls.trees = { (bo,bs) : build_chrom_tree(CHROMS,TREE_OFFSET,bo,block_size=bs) \
                      for bo in ("<",">") for bs in (2,3,256) }

    def make_index(self,data,byte_order="<",**kwargs):
        return ChromIndex(data,TREE_OFFSET,byte_order=byte_order,canonicalize=lambda x: x,**kwargs)

    def test_all_leaves_found(self):
        for (bo, bs), data in self.trees.items():
            index = self.make_index(data,bo)
            self.assertEqual(len(index),len(CHROMS))
            self.assertEqual(len(index.by_name),len(CHROMS))
            self.assertEqual(len(index.by_id),len(CHROMS))

    def test_header(self):
        index = self.make_index(self.trees[("<",3)])
        self.assertEqual(index.header.magic,BPLUS_TREE_MAGIC)
        self.assertEqual(index.header.block_size,3)
        self.assertEqual(index.header.key_size,KEY_SIZE)
        self.assertEqual(index.header.item_count,len(CHROMS))

    def test_lookup_by_name_and_id_agree(self):
        for (bo, bs), data in self.trees.items():
            index = self.make_index(data,bo)
            for chrom_id, (name, length) in enumerate(CHROMS):
                by_name = index.lookup(name)
                self.assertEqual(by_name.id,chrom_id)
                self.assertEqual(by_name.length,length)
                self.assertEqual(index.get(chrom_id).name,name)

    def test_chrom_sizes(self):
        index = self.make_index(self.trees[(">",2)],">")
        self.assertEqual(dict(index.chrom_sizes),dict(CHROMS))

    def test_missing_chrom(self):
        index = self.make_index(self.trees[("<",2)])
        self.assertIsNone(index.lookup("chrXVII"))
        self.assertIsNone(index.get(len(CHROMS)))
        self.assertFalse("chrXVII" in index)
        self.assertTrue("chrIV" in index)

    def test_canonicalized_lookup(self):
        data = build_chrom_tree([("chr1",100),("chr02",200),("Chromosome3",300)],TREE_OFFSET)
        index = ChromIndex(data,TREE_OFFSET)
        self.assertEqual(index.lookup("1").id,0)
        self.assertEqual(index.lookup("chr2").id,1)
        self.assertEqual(index.lookup("chr03").id,2)
        self.assertEqual(index.lookup("CHR3").name,"Chromosome3")
        self.assertEqual(index.lookup("chr2").canonical_name,"chr2")

    def test_bad_magic(self):
        data = bytearray(self.trees[("<",2)])
        data[0:4] = struct.pack("<I",0xDEADBEEF)
        with self.assertRaises(FormatError) as cm:
            self.make_index(bytes(data))
        self.assertEqual(cm.exception.kind,"BadChromTreeMagic")

    def test_wrong_byte_order_is_bad_magic(self):
        with self.assertRaises(FormatError) as cm:
            self.make_index(self.trees[(">",2)],"<")
        self.assertEqual(cm.exception.kind,"BadChromTreeMagic")

    def test_truncated_header(self):
        with self.assertRaises(FormatError) as cm:
            self.make_index(self.trees[("<",2)][:20])
        self.assertEqual(cm.exception.kind,"TruncatedChromTree")

    def test_truncated_node(self):
        data = self.trees[("<",2)]
        with self.assertRaises(FormatError) as cm:
            self.make_index(data[:len(data) - 5])
        self.assertEqual(cm.exception.kind,"TruncatedChromTree")

    def test_child_outside_buffer(self):
        # root is a non-leaf node; point its first child far past the buffer
        data = bytearray(self.trees[("<",2)])
        key_size = KEY_SIZE
        child_pos = 32 + 4 + key_size
        data[child_pos:child_pos+8] = struct.pack("<Q",TREE_OFFSET + 10**6)
        with self.assertRaises(FormatError) as cm:
            self.make_index(bytes(data))
        self.assertEqual(cm.exception.kind,"TruncatedChromTree")

    def test_cycle_raises_tree_too_deep(self):
        # point the root's first child back at the root
        data = bytearray(self.trees[("<",2)])
        key_size = KEY_SIZE
        child_pos = 32 + 4 + key_size
        data[child_pos:child_pos+8] = struct.pack("<Q",TREE_OFFSET + 32)
        with self.assertRaises(FormatError) as cm:
            self.make_index(bytes(data))
        self.assertEqual(cm.exception.kind,"TreeTooDeep")
