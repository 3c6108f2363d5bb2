import math
import random

import pytest

from phasefof.constants import CRITICAL_DENSITY, Gc
from phasefof.groupies import (
    HaloCatalog,
    calc_mass_definition,
    calc_mass_definitions,
    could_be_poisson_or_force_res,
    find_median_r,
    vir_density,
)
from phasefof.halo import Halo, HaloFlag, Particle
from phasefof.hubble import Cosmology

EDS = Cosmology(omega_m=1.0, omega_l=0.0)
FLAT = Cosmology(omega_m=0.3, omega_l=0.7)
PMASS = 1e9


def test_vir_density_einstein_de_sitter():
    assert vir_density(EDS, 1.0) == pytest.approx(18 * math.pi ** 2)
    assert vir_density(EDS, 0.5) == pytest.approx(18 * math.pi ** 2)


def test_background_definition():
    thresh, name = calc_mass_definition("200b", FLAT, 1.0, PMASS)
    assert name == "200b"
    assert thresh == pytest.approx(200 * 0.3 * CRITICAL_DENSITY / PMASS)


def test_critical_vs_background_at_z0():
    tb, _ = calc_mass_definition("200b", FLAT, 1.0, PMASS)
    tc, _ = calc_mass_definition("200c", FLAT, 1.0, PMASS)
    assert tc / tb == pytest.approx(1 / 0.3)


def test_m_prefix_is_ignored():
    t1, _ = calc_mass_definition("200c", FLAT, 0.7, PMASS)
    t2, name = calc_mass_definition("M200c", FLAT, 0.7, PMASS)
    assert t1 == pytest.approx(t2)
    assert name == "M200c"


@pytest.mark.parametrize("definition", ["garbage", "", "500"])
def test_unknown_definition_becomes_vir(definition):
    tv, _ = calc_mass_definition("vir", FLAT, 0.8, PMASS)
    t, name = calc_mass_definition(definition, FLAT, 0.8, PMASS)
    assert name == "vir"
    assert t == pytest.approx(tv)


def test_vir_case_preserved():
    _, name = calc_mass_definition("VIR", FLAT, 1.0, PMASS)
    assert name == "VIR"


def test_calc_mass_definitions():
    defs = ["vir", "200b", "200c", "500c", "2500c"]
    result = calc_mass_definitions(defs, FLAT, 1.0, PMASS)
    assert len(result.thresholds) == 5
    assert result.thresholds[result.min_dens_index] == min(result.thresholds)
    assert result.min_dens_index == 1
    assert result.definitions == tuple(defs)
    assert result.rvir_dens == pytest.approx(result.thresholds[0])
    assert result.rvir_dens_z0 == pytest.approx(result.rvir_dens)
    product = result.dynamical_time ** 2 * (4 * math.pi * Gc / 3) * result.rvir_dens * PMASS
    assert product == pytest.approx(1.0)


def test_calc_mass_definitions_empty():
    with pytest.raises(ValueError):
        calc_mass_definitions([], FLAT, 1.0, PMASS)


def test_find_median_empty():
    with pytest.raises(ValueError):
        find_median_r([], 0.5)


def test_find_median_single():
    assert find_median_r([3.5], 0.5) == 3.5


@pytest.mark.parametrize("seed", range(8))
@pytest.mark.parametrize("frac", [0.0, 0.25, 0.5, 0.9])
def test_find_median_matches_rank(seed, frac):
    data_rng = random.Random(seed)
    values = data_rng.sample(range(10000), 57)
    radii = [v / 10.0 for v in values]
    original = list(radii)
    got = find_median_r(radii, frac, random.Random(seed + 100))
    assert got == sorted(radii)[int(len(radii) * frac)]
    assert radii == original


def test_find_median_bad_fraction():
    with pytest.raises(ValueError):
        find_median_r([1.0, 2.0], 1.0)


def _halo(x, vx, **kw):
    return Halo(pos=[x, 0, 0, vx, 0, 0], **kw)


def test_poisson_without_errors():
    assert could_be_poisson_or_force_res(_halo(0, 0), _halo(5, 5), 0.01) == (True, False)


def test_poisson_close_in_phase_space():
    h1 = _halo(0, 0, min_pos_err=1.0, min_vel_err=1.0)
    h2 = _halo(1.0, 1.0)
    assert could_be_poisson_or_force_res(h1, h2, 0.01) == (True, False)


def test_force_resolution_overlap():
    h1 = _halo(0, 0, min_pos_err=1e-8, min_vel_err=1e-8, r=0.005, vrms=5)
    h2 = _halo(0.001, 1.0, r=0.005, vrms=5)
    assert could_be_poisson_or_force_res(h1, h2, 0.01) == (True, True)
    assert could_be_poisson_or_force_res(h1, h2, 0.0) == (False, False)


def test_add_new_halo():
    cat = HaloCatalog()
    assert cat.add_new_halo() == 0
    assert cat.add_new_halo() == 1
    assert len(cat) == 2
    assert cat.halos[1].flags & HaloFlag.GROWING
    info = cat.extra_info[0]
    assert (info.child, info.next_cochild, info.prev_cochild, info.sub_of, info.ph) == (-1,) * 5


def test_reassign_halo_particles():
    cat = HaloCatalog()
    cat.add_new_halo()
    cat.add_new_halo()
    particles = [Particle(i) for i in range(7)]
    halo_ids = [9, 1, 0, 1, 0, 0, 9]
    cat.reassign_halo_particles(particles, halo_ids, 1, 6)
    assert halo_ids == [9, 0, 0, 0, 1, 1, 9]
    assert [p.id for p in particles] == [0, 2, 4, 5, 1, 3, 6]
    assert (cat.halos[0].p_start, cat.halos[0].num_p) == (1, 3)
    assert (cat.halos[1].p_start, cat.halos[1].num_p) == (4, 2)


def test_reassign_empty_range():
    cat = HaloCatalog()
    with pytest.raises(ValueError):
        cat.reassign_halo_particles([], [], 0, 0)


def _tree():
    cat = HaloCatalog()
    for _ in range(5):
        cat.add_new_halo()
    cat.extra_info[0].child = 1
    cat.extra_info[1].next_cochild = 2
    cat.extra_info[2].child = 3
    return cat


def test_tag_halo_as_in_bounds():
    cat = _tree()
    assert cat.tag_halo_as_in_bounds(0) == 4
    assert all(cat.halos[i].flags & HaloFlag.TAGGED for i in range(4))
    assert not cat.halos[4].flags & HaloFlag.TAGGED
    assert cat.tag_halo_as_in_bounds(0) == 0
    assert cat.tag_halo_as_in_bounds(4) == 1


def test_tag_cycle_detected():
    cat = _tree()
    cat.extra_info[2].next_cochild = 1
    with pytest.raises(ValueError):
        cat.tag_halo_as_in_bounds(0)