"""Expansion rate for a cosmology with a time-varying dark-energy equation of state."""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Cosmology:
    """Matter and dark-energy densities plus the w0-wa equation of state."""

    omega_m: float = 0.27
    omega_l: float = 0.73
    w0: float = -1.0
    wa: float = 0.0

    def w_eff(self, a):
        """Effective dark-energy equation of state at scale factor ``a``."""
        if a != 1.0:
            return self.w0 + self.wa - self.wa * (a - 1.0) / math.log(a)
        return self.w0

    def hubble_scaling(self, z):
        """H(z) / H0 at redshift ``z``."""
        z1 = 1.0 + z
        a = 1.0 / z1
        return math.sqrt(
            self.omega_m * z1 ** 3
            + self.omega_l * a ** (-3.0 * (1.0 + self.w_eff(a)))
        )