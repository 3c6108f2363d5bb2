import pytest

from phasefof.halo import ExtraHaloInfo, Halo, HaloFlag, Particle


def test_flag_values_match_format():
    h = Halo(flags=HaloFlag.GROWING | HaloFlag.TAGGED)
    assert int(h.flags) == 9
    assert HaloFlag.GROWING in h.flags
    assert HaloFlag.DELETE not in h.flags
    h.flags |= HaloFlag.ALWAYS_PRINT
    assert int(h.flags) == 25


def test_flag_removal():
    h = Halo(flags=HaloFlag.GROWING | HaloFlag.TAGGED)
    h.flags &= ~HaloFlag.TAGGED
    assert h.flags == HaloFlag.GROWING


def test_particle_copy_is_independent():
    p = Particle(5, [1, 2, 3, 4, 5, 6])
    q = p.copy()
    q.pos[0] = 100.0
    q.id = 7
    assert p.pos[0] == 1.0
    assert p.id == 5
    assert q.pos[1:] == p.pos[1:]


def test_particle_rejects_wrong_length():
    with pytest.raises(ValueError):
        Particle(1, [0.0, 1.0, 2.0])


def test_halo_vector_sizes():
    h = Halo()
    assert (len(h.pos), len(h.corevel), len(h.bulkvel)) == (6, 3, 3)
    assert (len(h.J), len(h.alt_m), len(h.A), len(h.A2)) == (3, 4, 3, 3)


def test_halo_copy_is_deep():
    h = Halo(id=3, num_p=10)
    h.pos[2] = 4.5
    c = h.copy()
    c.pos[2] = -1.0
    c.alt_m[0] = 9.0
    assert h.pos[2] == 4.5
    assert h.alt_m[0] == 0.0
    assert c.id == h.id and c.num_p == h.num_p


def test_default_halos_do_not_share_lists():
    a, b = Halo(), Halo()
    a.bulkvel[0] = 2.0
    assert b.bulkvel[0] == 0.0


def test_extra_info_defaults_unlinked():
    e = ExtraHaloInfo()
    assert (e.child, e.next_cochild, e.prev_cochild, e.sub_of, e.ph) == (-1,) * 5
    assert e.max_metric == 0.0