import socket
from collections import namedtuple
from unittest import mock

from phasefof.address import get_interface_address

Addr = namedtuple("Addr", "family address netmask broadcast ptp")

FAKE_INTERFACES = {
    "eth0": [
        Addr(psutil_link := getattr(socket, "AF_PACKET", -1), "00:00:5e:00:53:01",
             None, None, None),
        Addr(socket.AF_INET, "192.0.2.10", "255.255.255.0", None, None),
        Addr(socket.AF_INET6, "2001:db8::10", None, None, None),
    ],
    "v6only": [Addr(socket.AF_INET6, "2001:db8::20", None, None, None)],
    "linkonly": [Addr(psutil_link, "00:00:5e:00:53:02", None, None, None)],
}


def _patched():
    return mock.patch("psutil.net_if_addrs", return_value=FAKE_INTERFACES)


def test_first_inet_address_is_used(capsys):
    with _patched():
        assert get_interface_address("eth0") == "192.0.2.10"
    assert "192.0.2.10" in capsys.readouterr().err


def test_ipv6_address():
    with _patched():
        assert get_interface_address("v6only") == "2001:db8::20"


def test_unknown_interface_returns_none(capsys):
    with _patched():
        assert get_interface_address("nope0") is None
    assert "Unable to get interface addresses" in capsys.readouterr().err


def test_interface_without_ip_returns_none():
    with _patched():
        assert get_interface_address("linkonly") is None