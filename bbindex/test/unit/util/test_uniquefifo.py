#!/usr/bin/env python
"""Tests capabilities of |UniqueFIFO|"""
import unittest
import pytest
from bbindex.util.unique_fifo import UniqueFIFO


@pytest.mark.unit
class TestUniqueFIFO(unittest.TestCase):

    def test_getitem(self):
        my_fifo = UniqueFIFO(5)
        for i in range(5):
            my_fifo[i] = "value %s" % i
            self.assertEqual(my_fifo[i],"value %s" % i)

        with self.assertRaises(KeyError):
            my_fifo[17]

    def test_contains(self):
        my_fifo = UniqueFIFO(5)
        self.assertFalse(0 in my_fifo)
        for i in range(5):
            my_fifo[i] = i
            self.assertTrue(0 in my_fifo)

        my_fifo[5] = 5
        self.assertFalse(0 in my_fifo)
        self.assertTrue(5 in my_fifo)

    def test_iter(self):
        my_fifo = UniqueFIFO(5)
        for i in range(5,15):
            my_fifo[i] = i
            expected = list(range(max(5,i-4),i+1))
            self.assertEqual(list(my_fifo),expected)

    def test_len(self):
        my_fifo = UniqueFIFO(3)
        for i in range(10):
            my_fifo[i] = i
            self.assertEqual(len(my_fifo),min(i+1,3))

    def test_repeated_key_not_duplicated(self):
        my_fifo = UniqueFIFO(3)
        for i in (1,2,3,1):
            my_fifo[i] = i
        self.assertEqual(list(my_fifo),[2,3,1])
        self.assertEqual(len(my_fifo),3)

    def test_access_refreshes_key(self):
        my_fifo = UniqueFIFO(3)
        for i in (1,2,3):
            my_fifo[i] = i
        my_fifo[1]
        my_fifo[4] = 4
        self.assertEqual(list(my_fifo),[3,1,4])

    def test_get(self):
        my_fifo = UniqueFIFO(2)
        my_fifo["a"] = 1
        self.assertEqual(my_fifo.get("a"),1)
        self.assertIsNone(my_fifo.get("b"))
        self.assertEqual(my_fifo.get("b",7),7)
