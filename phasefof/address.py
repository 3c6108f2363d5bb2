"""Look up the numeric address of a network interface."""

import socket
import sys

import psutil


def get_interface_address(ifname):
    """Return the first IPv4 or IPv6 address of interface ``ifname``, or None."""
    try:
        interfaces = psutil.net_if_addrs()
    except OSError:
        interfaces = {}
    for addr in interfaces.get(ifname, ()):
        if addr.family in (socket.AF_INET, socket.AF_INET6) and addr.address:
            print(f"[Note   ] Using {addr.address} for server address on iface {ifname}.",
                  file=sys.stderr)
            return addr.address
    print("[Warning] Unable to get interface addresses; using hostname instead.",
          file=sys.stderr)
    return None