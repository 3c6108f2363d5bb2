"""Linking of boundary groups that straddle the chunks of a distributed run."""

import dataclasses
from dataclasses import dataclass, field

from .inthash import IntHash


@dataclass
class BParticle:
    """A boundary particle: position and velocity plus the group and chunk it came from."""

    id: int = 0
    pos: list = field(default_factory=lambda: [0.0] * 6)
    bgid: int = 0
    chunk: int = 0

    def __post_init__(self):
        self.pos = [float(x) for x in self.pos]
        if len(self.pos) != 6:
            raise ValueError("boundary particle phase-space position needs 6 components")


@dataclass
class BGroup:
    """A boundary group in a linked chain; ``next`` and ``head`` are indices, -1 for none."""

    id: int = 0
    chunk: int = 0
    num_p: int = 0
    tagged: int = -1
    next: int = -1
    head: int = -1


class BGroupLinker:
    """Registry of boundary groups seen by one chunk, with chains of linked groups.

    Each chain is headed by the group with the lowest chunk number.
    """

    def __init__(self, our_chunk, max_gid):
        if max_gid <= 0:
            raise ValueError("max_gid must be positive")
        self.our_chunk = our_chunk
        self.max_gid = max_gid
        self.groups = []
        self._index = IntHash()

    def _uid(self, gid, chunk):
        return chunk * self.max_gid + gid

    def _lookup(self, gid, chunk):
        if gid >= self.max_gid:
            return None
        return self._index.get(self._uid(gid, chunk))

    def __len__(self):
        return len(self.groups)

    def add_group(self, particle, num_p=0):
        """Register the group of ``particle`` and return its index.

        Groups from our own chunk must report their particle count; counts for
        groups from other chunks are not known here and are stored as zero.
        """
        if not 0 <= particle.bgid < self.max_gid:
            raise ValueError(f"group id {particle.bgid} outside [0, {self.max_gid})")
        existing = self._lookup(particle.bgid, particle.chunk)
        if existing is not None:
            return existing
        if particle.chunk == self.our_chunk:
            if not num_p:
                raise ValueError("group from our own chunk must have particles")
        else:
            num_p = 0
        index = len(self.groups)
        self.groups.append(BGroup(id=particle.bgid, chunk=particle.chunk,
                                  num_p=num_p, head=index))
        self._index.set(self._uid(particle.bgid, particle.chunk), index)
        return index

    def find_group(self, particle):
        """Return the index of the group ``particle`` belongs to, or None."""
        return self._lookup(particle.bgid, particle.chunk)

    def find_group_from_id(self, gid, chunk):
        """Return the group with id ``gid`` from ``chunk``, or None."""
        index = self._lookup(gid, chunk)
        return None if index is None else self.groups[index]

    def _chain(self, start):
        while start > -1:
            yield start
            start = self.groups[start].next

    def link_groups(self, gid1, gid2):
        """Merge the chains holding groups ``gid1`` and ``gid2``."""
        g = self.groups
        if gid1 == gid2 or g[gid1].head == g[gid2].head:
            return
        if g[g[gid1].head].chunk > g[g[gid2].head].chunk:
            gid1, gid2 = gid2, gid1
        gid2 = g[gid2].head
        tail = gid1
        while g[tail].next > -1:
            tail = g[tail].next
        g[tail].next = gid2
        new_head = g[gid1].head
        for member in self._chain(gid2):
            g[member].head = new_head

    def _merge_num_p(self, known, requested):
        if requested.num_p:
            if known.num_p and known.num_p != requested.num_p:
                raise ValueError(
                    f"conflicting particle counts for group {known.id} in chunk {known.chunk}")
            known.num_p = requested.num_p

    def find_bgroup_sets(self, chunk, sets):
        """Resolve requested sets of groups against the groups known here.

        Sets that share linked groups are merged into the first of them, sets
        whose chain is headed by a chunk below ``chunk`` are dropped, and groups
        not known here are carried over unchanged. Returns the new list of sets.
        """
        sets = [list(s) for s in sets]
        g = self.groups
        num_new = [0] * len(sets)
        firsts = []

        for i, s in enumerate(sets):
            if not s:
                raise ValueError("empty group set in request")
            first = None
            j = 0
            for j, grp in enumerate(s):
                idx = self._lookup(grp.id, grp.chunk)
                if idx is None:
                    num_new[i] += 1
                    continue
                self._merge_num_p(g[idx], grp)
                s[0], s[j] = s[j], s[0]
                g[g[idx].head].tagged = -1
                first = idx
                break
            if first is not None:
                for grp in s[j + 1:]:
                    idx = self._lookup(grp.id, grp.chunk)
                    if idx is None:
                        num_new[i] += 1
                        continue
                    g[g[idx].head].tagged = -1
                    self.link_groups(first, idx)
                    self._merge_num_p(g[idx], grp)
            firsts.append(first)

        for i, first in enumerate(firsts):
            if first is None:
                continue
            head = g[first].head
            if g[head].chunk < chunk:
                for member in self._chain(head):
                    if g[member].chunk != self.our_chunk:
                        g[member].num_p = 0
                continue
            if g[head].tagged < 0:
                g[head].tagged = i

        new_sets = [[] for _ in sets]
        for i, (s, first) in enumerate(zip(sets, firsts)):
            if first is None:
                if num_new[i] != len(s):
                    raise ValueError("inconsistent count of unknown groups")
                new_sets[i].extend(dataclasses.replace(grp) for grp in s)
                continue
            head = g[first].head
            if g[head].chunk < chunk:
                continue
            tagged = g[head].tagged
            if not 0 <= tagged < len(sets):
                raise ValueError("linked group set was never tagged")
            if tagged == i:
                for member in self._chain(head):
                    new_sets[i].append(dataclasses.replace(g[member]))
                    if g[member].chunk != self.our_chunk:
                        g[member].num_p = 0
            for grp in s:
                if self._lookup(grp.id, grp.chunk) is None:
                    new_sets[tagged].append(grp)

        result = [s for s in new_sets if s]
        check_bgroup_sanity(result)
        return result

    def to_setlist(self, min_halo_particles):
        """Return the linked chains as sets and forget all registered groups.

        Lone groups smaller than ``min_halo_particles`` and chains headed by a
        lower chunk than ours are left out.
        """
        sets = []
        for i, grp in enumerate(self.groups):
            if grp.head != i:
                continue
            if grp.next == -1 and grp.num_p < min_halo_particles:
                continue
            if grp.chunk < self.our_chunk:
                continue
            sets.append([dataclasses.replace(self.groups[m]) for m in self._chain(i)])
        self.groups = []
        self._index = IntHash()
        return sets


def prune_setlist(sets, min_halo_particles):
    """Keep only the sets holding at least ``min_halo_particles`` particles in total."""
    return [list(s) for s in sets
            if sum(grp.num_p for grp in s) >= min_halo_particles]


def calc_next_bgroup_chunk(sets, num_writers):
    """Return the chunk owning the most groups of unknown size, or None if there are none."""
    counts = [0] * num_writers
    for s in sets:
        for grp in s:
            if not 0 <= grp.chunk < num_writers:
                raise ValueError(f"group chunk {grp.chunk} outside [0, {num_writers})")
            if not grp.num_p:
                counts[grp.chunk] += 1
    if not counts:
        return None
    best = max(range(num_writers), key=lambda c: (counts[c], -c))
    return best if counts[best] else None


def check_bgroup_sanity(sets):
    """Raise ValueError unless every set holds a group that ends a chain."""
    for s in sets:
        if not any(grp.next == -1 for grp in s):
            raise ValueError("boundary group sanity test failed")