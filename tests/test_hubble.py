import pytest

from phasefof.hubble import Cosmology


def test_today_is_unity_for_flat_universe():
    assert Cosmology().hubble_scaling(0.0) == pytest.approx(1.0)


def test_w_eff_today_is_w0():
    c = Cosmology(w0=-0.9, wa=0.3)
    assert c.w_eff(1.0) == -0.9


@pytest.mark.parametrize("a", [0.1, 0.5, 0.9, 2.0])
def test_w_eff_constant_without_wa(a):
    c = Cosmology(w0=-0.8, wa=0.0)
    assert c.w_eff(a) == pytest.approx(-0.8)


def test_w_eff_continuous_near_today():
    c = Cosmology(w0=-1.0, wa=0.5)
    assert c.w_eff(1.0 - 1e-7) == pytest.approx(c.w_eff(1.0), abs=1e-5)


def test_pure_lambda_is_constant():
    c = Cosmology(omega_m=0.0, omega_l=0.64)
    values = {round(c.hubble_scaling(z), 12) for z in (0.0, 1.0, 5.0)}
    assert values == {round(c.hubble_scaling(0.0), 12)}
    assert c.hubble_scaling(3.0) == pytest.approx(0.8)


def test_matter_only_scaling():
    c = Cosmology(omega_m=1.0, omega_l=0.0)
    assert c.hubble_scaling(3.0) == pytest.approx(8.0)


def test_increases_with_redshift():
    c = Cosmology()
    values = [c.hubble_scaling(z) for z in (0.0, 0.5, 1.0, 2.0, 10.0)]
    assert values == sorted(values)
    assert len(set(values)) == len(values)