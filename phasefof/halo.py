"""Particle and halo records shared by the halo finder."""

import copy as _copy
from dataclasses import dataclass, field
from enum import IntFlag

HALO_FORMAT_REVISION = 2


class HaloFlag(IntFlag):
    """Bit flags carried by a halo."""

    GROWING = 1
    DELETE = 2
    POSSIBLE_SWAP = 4
    TAGGED = 8
    ALWAYS_PRINT = 16


def _zeros(n):
    return field(default_factory=lambda: [0.0] * n)


@dataclass
class Particle:
    """A particle: identifier plus position (x, y, z) and velocity (vx, vy, vz)."""

    id: int = 0
    pos: list = _zeros(6)

    def __post_init__(self):
        self.pos = [float(x) for x in self.pos]
        if len(self.pos) != 6:
            raise ValueError("particle phase-space position needs 6 components")

    def copy(self):
        """Return an independent copy."""
        return Particle(self.id, list(self.pos))


@dataclass
class Halo:
    """Properties of a single halo."""

    id: int = 0
    pos: list = _zeros(6)
    corevel: list = _zeros(3)
    bulkvel: list = _zeros(3)
    m: float = 0.0
    r: float = 0.0
    child_r: float = 0.0
    vmax_r: float = 0.0
    mgrav: float = 0.0
    vmax: float = 0.0
    rvmax: float = 0.0
    rs: float = 0.0
    klypin_rs: float = 0.0
    vrms: float = 0.0
    J: list = _zeros(3)
    energy: float = 0.0
    spin: float = 0.0
    alt_m: list = _zeros(4)
    xoff: float = 0.0
    voff: float = 0.0
    b_to_a: float = 0.0
    c_to_a: float = 0.0
    A: list = _zeros(3)
    b_to_a2: float = 0.0
    c_to_a2: float = 0.0
    A2: list = _zeros(3)
    bullock_spin: float = 0.0
    kin_to_pot: float = 0.0
    m_pe_b: float = 0.0
    m_pe_d: float = 0.0
    halfmass_radius: float = 0.0
    num_p: int = 0
    num_child_particles: int = 0
    p_start: int = 0
    desc: int = 0
    flags: HaloFlag = HaloFlag(0)
    n_core: int = 0
    min_pos_err: float = 0.0
    min_vel_err: float = 0.0
    min_bulkvel_err: float = 0.0

    def copy(self):
        """Return an independent copy, including all vector fields."""
        return _copy.deepcopy(self)


@dataclass
class ExtraHaloInfo:
    """Links between halos in the substructure tree; -1 means none."""

    child: int = -1
    next_cochild: int = -1
    prev_cochild: int = -1
    sub_of: int = -1
    ph: int = -1
    max_metric: float = 0.0