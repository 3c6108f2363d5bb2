"""Mass definitions, median radii and halo bookkeeping for the substructure finder."""

import math
import random
import re
from dataclasses import dataclass, field

from .constants import CRITICAL_DENSITY, Gc
from .halo import ExtraHaloInfo, Halo, HaloFlag

_LEADING_FLOAT = re.compile(
    r"\s*([+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?))"
)


def _leading_float(text):
    """Parse the leading number of ``text`` the way atof does; 0.0 if none."""
    match = _LEADING_FLOAT.match(text)
    return float(match.group(1)) if match else 0.0


def vir_density(cosmology, a):
    """Virial overdensity relative to the background (Bryan & Norman fit) at scale ``a``."""
    x = (cosmology.omega_m / a ** 3) / cosmology.hubble_scaling(1.0 / a - 1.0) ** 2 - 1.0
    return (18 * math.pi * math.pi + 82.0 * x - 39 * x * x) / (1.0 + x)


def calc_mass_definition(definition, cosmology, scale, particle_mass):
    """Return ``(threshold density in particles per volume, normalised definition)``.

    Definitions ending in 'b' are relative to the background density, those
    ending in 'c' to the critical density; a leading 'm' is ignored.  Anything
    else is treated as the virial definition.
    """
    last_char = definition[-1] if definition else ""
    matter_fraction = (cosmology.omega_m / scale ** 3) / cosmology.hubble_scaling(
        1.0 / scale - 1.0) ** 2
    background = cosmology.omega_m * CRITICAL_DENSITY / particle_mass
    mass = definition[1:] if definition[:1] in ("m", "M") else definition

    if last_char in ("b", "B"):
        return _leading_float(mass) * background, definition
    if last_char in ("c", "C"):
        return _leading_float(mass) * background / matter_fraction, definition
    if definition.lower() != "vir":
        definition = "vir"
    return vir_density(cosmology, scale) * background, definition


@dataclass(frozen=True)
class MassThresholds:
    """Threshold densities for each mass definition plus the virial reference values."""

    thresholds: tuple
    definitions: tuple
    rvir_dens: float
    rvir_dens_z0: float
    dynamical_time: float
    min_dens_index: int


def calc_mass_definitions(definitions, cosmology, scale, particle_mass):
    """Compute the threshold densities for all ``definitions`` at scale factor ``scale``."""
    definitions = list(definitions)
    if not definitions:
        raise ValueError("at least one mass definition is required")
    results = [calc_mass_definition(d, cosmology, scale, particle_mass)
               for d in definitions]
    thresholds = tuple(t for t, _ in results)
    names = tuple(n for _, n in results)
    rvir_dens, _ = calc_mass_definition("vir", cosmology, scale, particle_mass)
    background = cosmology.omega_m * CRITICAL_DENSITY / particle_mass
    rvir_dens_z0 = vir_density(cosmology, 1.0) * background
    dynamical_time = 1.0 / math.sqrt(
        (4.0 * math.pi * Gc / 3.0) * rvir_dens * particle_mass)
    min_index = min(range(len(thresholds)), key=lambda i: (thresholds[i], i))
    return MassThresholds(thresholds, names, rvir_dens, rvir_dens_z0,
                          dynamical_time, min_index)


def _partition(rad, left, right, pivot_ind):
    pivot = rad[pivot_ind]
    rad[pivot_ind], rad[right - 1] = rad[right - 1], rad[pivot_ind]
    si = right - 2
    i = left
    while i < si:
        if rad[i] > pivot:
            rad[i], rad[si] = rad[si], rad[i]
            si -= 1
        else:
            i += 1
    if rad[si] <= pivot:
        si += 1
    rad[right - 1], rad[si] = rad[si], rad[right - 1]
    return si


def find_median_r(radii, frac, rng=None):
    """Return the element of rank ``int(len(radii) * frac)`` by randomised quickselect."""
    rad = list(radii)
    num_p = len(rad)
    if not num_p:
        raise ValueError("cannot select from an empty sequence")
    if num_p < 2:
        return rad[0]
    k = int(num_p * frac)
    if not 0 <= k < num_p:
        raise ValueError("fraction must lie in [0, 1)")
    rng = rng or random.Random()
    left, right = 0, num_p
    while True:
        if right - left == 1:
            return rad[left]
        pivot_index = _partition(rad, left, right,
                                 left + int(rng.random() * (right - left)))
        if k == pivot_index or rad[left] == rad[right - 1]:
            return rad[k]
        if k < pivot_index:
            right = pivot_index
        else:
            left = pivot_index + 1


def could_be_poisson_or_force_res(h1, h2, force_res):
    """Decide whether ``h1`` may be noise relative to ``h2``.

    Returns ``(could_be, is_force_res)``: the second is True when the two halos
    overlap below 1.5 times the force resolution.
    """
    if not h1.min_pos_err or not h1.min_vel_err:
        return True, False
    r = sum((h1.pos[k] - h2.pos[k]) ** 2 for k in range(3))
    v = sum((h1.pos[k] - h2.pos[k]) ** 2 for k in range(3, 6))
    dx = (r / h1.min_pos_err + v / h1.min_vel_err) / 2.0
    if not dx > 100:
        return True, False
    r = math.sqrt(r)
    v = math.sqrt(v)
    if (h1.r + h2.r > r and 1.5 * (h1.vrms + h2.vrms) > v
            and r < 1.5 * force_res):
        return True, True
    return False, False


@dataclass
class HaloCatalog:
    """Halos found so far together with their substructure links."""

    halos: list = field(default_factory=list)
    extra_info: list = field(default_factory=list)

    def __init__(self):
        self.halos = []
        self.extra_info = []

    def add_new_halo(self):
        """Append an empty growing halo and return its index."""
        self.halos.append(Halo(flags=HaloFlag.GROWING))
        self.extra_info.append(ExtraHaloInfo())
        return len(self.halos) - 1

    def reassign_halo_particles(self, particles, particle_halos, p_start, p_end):
        """Group particles in [p_start, p_end) by halo and update halo extents.

        ``particles`` and ``particle_halos`` are reordered in place.
        """
        if p_end <= p_start:
            raise ValueError("particle range is empty")
        pairs = sorted(zip(particle_halos[p_start:p_end], particles[p_start:p_end]),
                       key=lambda pair: pair[0])
        particle_halos[p_start:p_end] = [h for h, _ in pairs]
        particles[p_start:p_end] = [p for _, p in pairs]

        last = particle_halos[p_start]
        self.halos[last].p_start = p_start
        for j in range(p_start + 1, p_end):
            current = particle_halos[j]
            if current == last:
                continue
            self.halos[last].num_p = j - self.halos[last].p_start
            last = current
            self.halos[last].p_start = j
        self.halos[last].num_p = p_end - self.halos[last].p_start

    def tag_halo_as_in_bounds(self, index):
        """Tag a halo and all its substructure; return how many were newly tagged."""
        tagged = 0
        stack = [index]
        while stack:
            cur = stack.pop()
            halo = self.halos[cur]
            if halo.flags & HaloFlag.TAGGED:
                continue
            halo.flags |= HaloFlag.TAGGED
            tagged += 1
            first = self.extra_info[cur].child
            child = first
            while child != -1:
                stack.append(child)
                child = self.extra_info[child].next_cochild
                if child == first:
                    raise ValueError("cycle in substructure links")
        return tagged

    def __len__(self):
        return len(self.halos)