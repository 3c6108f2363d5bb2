"""Halo finder building blocks: halo records, mass definitions, boundary group linking, hashing and reliable sockets."""

__version__ = "0.99.9"

__all__ = [
    "address",
    "bitarray",
    "constants",
    "groupies",
    "halo",
    "hubble",
    "integrate",
    "interleaving",
    "inthash",
    "netsocket",
    "rsocket",
]