"""A compact fixed-size array of bits."""


class BitArray:
    """Fixed-size array of ``n`` bits, all cleared on creation."""

    __slots__ = ("_n", "_bytes")

    def __init__(self, n):
        if n < 0:
            raise ValueError("bit array size must be non-negative")
        self._n = n
        self._bytes = bytearray(n // 8 + 1)

    def _locate(self, i):
        if not 0 <= i < self._n:
            raise IndexError(f"bit index {i} out of range for {self._n} bits")
        return i >> 3, 1 << (i & 7)

    def set(self, i):
        """Set bit ``i`` to 1."""
        byte, mask = self._locate(i)
        self._bytes[byte] |= mask

    def clear(self, i):
        """Set bit ``i`` to 0."""
        byte, mask = self._locate(i)
        self._bytes[byte] &= 0xFF ^ mask

    def test(self, i):
        """Return True if bit ``i`` is 1."""
        byte, mask = self._locate(i)
        return bool(self._bytes[byte] & mask)

    def clear_all(self):
        """Set every bit to 0."""
        self._bytes[:] = bytes(len(self._bytes))

    def __len__(self):
        return self._n