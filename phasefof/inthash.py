"""Open-addressing hash table keyed by 64-bit signed integers."""

import math
import random

IH_INVALID = 2 ** 63 - 1
IH_DELETED = 2 ** 63 - 2
IH_SKIP = 2 ** 63 - 3

_MASK = 2 ** 64 - 1
_MAX_LOAD_FACTOR = 0.7
_INT64_MIN = -(2 ** 63)


def _next_probe(key):
    v = (key * key + key + 3) & _MASK
    return v - 2 ** 64 if v >= 2 ** 63 else v


class IntHash:
    """Hash table from int64 keys to arbitrary values.

    Keys must lie in the signed 64-bit range and be no larger than ``IH_SKIP``.
    """

    def __init__(self, seed=None):
        self._rng = random.Random(seed)
        self._hashnum = self._rng.getrandbits(64) | 1
        self._hashwidth = 8
        self._keys = [IH_INVALID] * (1 << self._hashwidth)
        self._values = [None] * (1 << self._hashwidth)
        self._elems = 0

    @staticmethod
    def _check_key(key):
        if not _INT64_MIN <= key <= IH_SKIP:
            raise ValueError(f"key {key} is outside the storable int64 range")

    def _hash(self, key):
        return (((key & _MASK) * self._hashnum) & _MASK) >> (64 - self._hashwidth)

    def _find(self, key):
        slot = self._hash(key)
        probe = key
        while self._keys[slot] != IH_INVALID:
            if self._keys[slot] == key:
                return slot
            probe = _next_probe(probe)
            slot = self._hash(probe)
        return slot

    def _find_or_deleted(self, key):
        slot = self._hash(key)
        deleted = None
        probe = key
        while self._keys[slot] != IH_INVALID:
            if self._keys[slot] == key:
                return slot
            if self._keys[slot] == IH_DELETED:
                deleted = slot
            probe = _next_probe(probe)
            slot = self._hash(probe)
        return slot if deleted is None else deleted

    def _grow(self, factor):
        old_keys, old_values = self._keys, self._values
        self._hashwidth += factor
        size = 1 << self._hashwidth
        self._keys = [IH_INVALID] * size
        self._values = [None] * size
        for key, value in zip(old_keys, old_values):
            if key > IH_SKIP:
                continue
            probe = key
            while True:
                slot = self._hash(probe)
                probe = _next_probe(probe)
                if self._keys[slot] == IH_INVALID:
                    break
            self._keys[slot] = key
            self._values[slot] = value

    def get(self, key, default=None):
        """Return the value stored under ``key``, or ``default``."""
        self._check_key(key)
        slot = self._find(key)
        if self._keys[slot] == key:
            return self._values[slot]
        return default

    def set(self, key, value):
        """Store ``value`` under ``key``, growing the table when too full."""
        self._check_key(key)
        slot = self._find_or_deleted(key)
        if self._keys[slot] > IH_SKIP:
            if self._elems >= len(self._keys) * _MAX_LOAD_FACTOR:
                self._grow(1)
                slot = self._find(key)
            self._elems += 1
            self._keys[slot] = key
        self._values[slot] = value

    def delete(self, key):
        """Remove ``key`` if present; missing keys are ignored."""
        if key > IH_SKIP:
            return
        self._check_key(key)
        slot = self._find(key)
        if self._keys[slot] != key:
            return
        self._keys[slot] = IH_DELETED
        self._values[slot] = None
        self._elems -= 1

    def keys(self):
        """Return the stored keys in table order."""
        return [k for k in self._keys if k <= IH_SKIP]

    def prealloc(self, size):
        """Make room for ``size`` elements without further growth."""
        if size <= 0:
            return
        numbits = math.ceil(math.log(size / _MAX_LOAD_FACTOR) / math.log(2))
        if numbits <= self._hashwidth:
            return
        self._grow(numbits - self._hashwidth)

    def __len__(self):
        return self._elems

    def __contains__(self, key):
        if not _INT64_MIN <= key <= IH_SKIP:
            return False
        return self._keys[self._find(key)] == key

    def get2(self, key1, key2, default=None):
        """Look up a value in the two-level table under (key1, key2)."""
        inner = self.get(key1)
        if inner is None:
            return default
        return inner.get(key2, default)

    def set2(self, key1, key2, value):
        """Store ``value`` in the two-level table under (key1, key2)."""
        inner = self.get(key1)
        if inner is None:
            inner = IntHash(self._rng.getrandbits(64))
            self.set(key1, inner)
        inner.set(key2, value)