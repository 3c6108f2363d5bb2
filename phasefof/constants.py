"""Physical constants in the units used by the halo finder, and the package version."""

#: Gravitational constant times (Msun / Mpc), in (km/s)^2.
Gc = 4.30117902e-9

#: Critical density 3H^2 / 8 pi G in (Msun/h) / (Mpc/h)^3.
CRITICAL_DENSITY = 2.77519737e11

#: sqrt(G * (Msun/h) / (Mpc/h)) in km/s.
VMAX_CONST = 6.55833746e-5

#: Ratio Rvmax / Rs for an NFW profile.
RMAX_TO_RS = 2.1626

#: ln(1 + 2.1626) / 2.1626 - 1 / (1 + 2.1626).
RS_CONSTANT = 0.216216595

#: Conversion from (100 km/s/Mpc)^-1 to years.
HUBBLE_TIME_CONVERSION = 9.77813952e9

#: Version string of the halo finder.
VERSION = "0.99.9-RC3+"