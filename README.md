# phasefof

Building blocks for a phase-space friends-of-friends halo finder for
cosmological N-body simulations: halo records, mass definitions, bookkeeping
for halo hierarchies, linking of groups across analysis chunks, an
integer-keyed hash table, and TCP sockets that recover from dropped
connections.

## Modules

- `phasefof.constants` – `Gc`, `CRITICAL_DENSITY`, `VMAX_CONST`, `RMAX_TO_RS`,
  `RS_CONSTANT`, `HUBBLE_TIME_CONVERSION` and the `VERSION` string.
- `phasefof.bitarray.BitArray` – a fixed-size bit set with `set`, `clear`,
  `test`, `clear_all` and `len()`. Indices outside the array raise `IndexError`.
- `phasefof.halo` – the `Particle`, `Halo` and `ExtraHaloInfo` dataclasses and
  the `HaloFlag` flags (`GROWING`, `DELETE`, `POSSIBLE_SWAP`, `TAGGED`,
  `ALWAYS_PRINT`). `Particle.copy()` and `Halo.copy()` return independent copies.
- `phasefof.hubble.Cosmology` – a frozen dataclass with `omega_m`, `omega_l`,
  `w0` and `wa`; `w_eff(a)` gives the effective dark-energy equation of state
  and `hubble_scaling(z)` gives H(z)/H0.
- `phasefof.integrate.adaptive_simpsons(f, a, b, epsilon, max_depth)` –
  adaptive Simpson quadrature with a recursion cap.
- `phasefof.inthash.IntHash` – an open-addressing hash table for signed 64-bit
  keys: `get`, `set`, `delete`, `keys`, `prealloc`, `in`, `len()`, and the
  two-level `get2` / `set2`.
- `phasefof.groupies` – `vir_density`, `calc_mass_definition` and
  `calc_mass_definitions` (definitions such as `vir`, `200c`, `200b`, `m500c`;
  anything not ending in `b` or `c` is treated as `vir`), returning
  `MassThresholds`; `find_median_r` (randomised quickselect);
  `could_be_poisson_or_force_res`; and `HaloCatalog` with `add_new_halo`,
  `reassign_halo_particles` and `tag_halo_as_in_bounds`.
- `phasefof.interleaving` – `BParticle`, `BGroup` and `BGroupLinker` for
  chaining boundary groups from different chunks (`add_group`, `find_group`,
  `find_group_from_id`, `link_groups`, `find_bgroup_sets`, `to_setlist`), plus
  `prune_setlist`, `calc_next_bgroup_chunk` and `check_bgroup_sanity`.
- `phasefof.netsocket` – `connect_to_addr` (with retries and random back-off),
  `listen_at_addr`, `accept_connection`, `send_all`, `recv_exact`, and
  length-prefixed `send_msg` / `recv_msg`; failures raise `NetworkError`, and
  `set_network_io_error_cb` installs a callback run on IO failures.
- `phasefof.address.get_interface_address(ifname)` – the first IPv4 or IPv6
  address of a network interface, or `None`.
- `phasefof.rsocket.RSocketManager` – reliable sockets addressed by integer
  ids: `connect`, `listen`, `accept`, `send`, `send_noconfirm`,
  `send_delayconfirm`, `send_confirm`, `recv`, `recv_msg`, `close`, `fileno`,
  `from_fd`, and `tag` / `clear_tags` / `check_tag` / `select`. Packets carry a
  magic number and a sequence number; broken connections are re-established
  and duplicate packets skipped. Misuse raises `RSocketError`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from phasefof.hubble import Cosmology
from phasefof.groupies import calc_mass_definitions, vir_density
from phasefof.inthash import IntHash

cosmo = Cosmology(omega_m=0.27, omega_l=0.73, w0=-1.0, wa=0.0)
print(cosmo.hubble_scaling(0.0))   # 1.0 for a flat cosmology
print(vir_density(cosmo, 1.0))     # virial overdensity at z=0

masses = calc_mass_definitions(["vir", "200c", "200b"], cosmo, 1.0, 1.0e9)
print(masses.thresholds, masses.min_dens_index)

table = IntHash(seed=1)
table.set(42, "halo")
print(table.get(42))
```

## What this package does not do

It is a set of components, not a complete halo finder. There is no command to
run, no reader for simulation snapshots, no configuration file handling, no
friends-of-friends group building or spatial tree search, no computation of
halo properties, and no catalog output. The socket modules provide transport
only; there is no server or client that coordinates a distributed run.