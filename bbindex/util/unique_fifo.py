#!/usr/bin/env python
"""|UniqueFIFO|, a bounded first-in-first-out cache keyed by unique keys.
|BBIFile| uses it to keep recently decoded data blocks in memory.
"""
from collections import OrderedDict


class UniqueFIFO(object):
    """FIFO of unique keys, each bound to a value. If a key already present
    in the FIFO is stored again, it is moved to the right end and no element
    is removed. Elements are only removed when a key not present in the FIFO
    is added and the number of elements would exceed `self.max_size`, in
    which case the leftmost (oldest) element is dropped.

    Attributes
    ----------
    max_size : int
        Maximum number of elements held
    """
    def __init__(self,size):
        assert size > 0
        self.max_size  = size
        self._elements = OrderedDict()

    def __getitem__(self,key):
        """Fetch the value bound to `key`, moving `key` to the right end

        Raises
        ------
        KeyError
            If `key` is not in the |UniqueFIFO|
        """
        value = self._elements[key]
        self._elements.move_to_end(key)
        return value

    def __setitem__(self,key,value):
        """Bind `value` to `key` at the right end of the |UniqueFIFO|,
        dropping the oldest element if the |UniqueFIFO| would grow past
        `self.max_size`
        """
        if key in self._elements:
            self._elements.move_to_end(key)
        elif len(self._elements) >= self.max_size:
            self._elements.popitem(last=False)

        self._elements[key] = value

    def __contains__(self,key):
        return key in self._elements

    def __iter__(self):
        """Iterate over keys, oldest first"""
        return iter(self._elements)

    def __len__(self):
        return len(self._elements)

    def get(self,key,default=None):
        """Fetch the value bound to `key`, or `default` if absent"""
        try:
            return self[key]
        except KeyError:
            return default

    def __repr__(self):
        return "<UniqueFIFO %s>" % repr(list(self._elements))
