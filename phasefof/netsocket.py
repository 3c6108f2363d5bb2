"""Plain TCP helpers: connecting, listening, and exact-length sends and receives."""

import os
import random
import socket
import struct
import sys
import time

RETRIES = 10
TIMEOUT = 2

_LENGTH = struct.Struct("=q")


class NetworkError(OSError):
    """Raised when a network operation cannot be completed."""


def _default_cb(data):
    exc = sys.exc_info()[1]
    detail = f": {exc}" if exc is not None else ""
    print(f"[Warning] Network IO Failure (PID {os.getpid()}){detail}", file=sys.stderr)


class _ErrorHandler:
    """Holds the callback run when a send or receive fails."""

    def __init__(self):
        self.callback = _default_cb
        self.data = 0

    def __call__(self):
        self.callback(self.data)


_on_io_error = _ErrorHandler()


def set_network_io_error_cb(cb, data):
    """Install ``cb`` to be called with ``data`` on IO failures; return the previous pair."""
    previous = (_on_io_error.callback, _on_io_error.data)
    _on_io_error.callback = cb
    _on_io_error.data = data
    return previous


def random_sleep(timeout_secs):
    """Sleep for a random time of up to ``timeout_secs`` plus one second."""
    seconds = random.randrange(timeout_secs + 1)
    micros = random.randrange(1000000)
    time.sleep(seconds + micros / 1e6)


def _resolve(host, port):
    flags = 0 if host else socket.AI_PASSIVE
    try:
        infos = socket.getaddrinfo(host, port, socket.AF_UNSPEC,
                                   socket.SOCK_STREAM, 0, flags)
    except socket.gaierror as exc:
        raise NetworkError(f"Couldn't open {host}:{port}! (Err: {exc})") from exc
    if not infos:
        raise NetworkError(f"Couldn't open {host}:{port}! (no addresses)")
    return infos[0]


def _new_socket(family, socktype, proto, host, port):
    try:
        return socket.socket(family, socktype, proto)
    except OSError as exc:
        raise NetworkError(
            f"Couldn't open socket for address {host}:{port}! (Err: {exc})") from exc


def connect_to_addr(host, port):
    """Connect to ``host``:``port``, retrying with random back-off; return the socket."""
    family, socktype, proto, _, addr = _resolve(host, port)
    last_error = None
    for attempt in range(RETRIES):
        sock = _new_socket(family, socktype, proto, host, port)
        try:
            sock.connect(addr)
            return sock
        except OSError as exc:
            sock.close()
            last_error = exc
            print(f"[Warning] Connection attempt {attempt + 1} to {host}:{port} failed: {exc}",
                  file=sys.stderr)
            random_sleep(10)
    raise NetworkError(
        f"Failed to connect to {host}:{port}! (Err: {last_error}; "
        "this error may mean that the connection was refused.)")


def listen_at_addr(host, port):
    """Open a listening socket bound to ``host``:``port`` (all interfaces if host is None)."""
    family, socktype, proto, _, addr = _resolve(host, port)
    sock = _new_socket(family, socktype, proto, host, port)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        for action in (lambda: sock.bind(addr), lambda: sock.listen(socket.SOMAXCONN)):
            for _ in range(RETRIES):
                try:
                    action()
                    break
                except OSError as exc:
                    last_error = exc
            else:
                raise NetworkError(f"Couldn't listen at {host}:{port}! (Err: {last_error})")
    except OSError as exc:
        sock.close()
        if isinstance(exc, NetworkError):
            raise
        raise NetworkError(f"Couldn't listen at {host}:{port}! (Err: {exc})") from exc
    return sock


def accept_connection(sock):
    """Accept one connection; return ``(connection, peer_address, peer_port)``."""
    try:
        conn, peer = sock.accept()
    except OSError as exc:
        raise NetworkError(f"Connection accept failed: {exc}") from exc
    return conn, peer[0], peer[1]


def send_all(sock, data):
    """Send every byte of ``data``; return the number sent."""
    view = memoryview(data).cast("B")
    sent = 0
    while sent < len(view):
        try:
            sent += sock.send(view[sent:])
        except OSError as exc:
            _on_io_error()
            raise NetworkError(f"send failed: {exc}") from exc
    return sent


def recv_exact(sock, length):
    """Receive exactly ``length`` bytes."""
    chunks = bytearray()
    while len(chunks) < length:
        try:
            chunk = sock.recv(length - len(chunks))
        except OSError as exc:
            _on_io_error()
            raise NetworkError(f"receive failed: {exc}") from exc
        if not chunk:
            try:
                raise NetworkError("connection closed before all data arrived")
            except NetworkError:
                _on_io_error()
                raise
        chunks += chunk
    return bytes(chunks)


def send_msg(sock, data):
    """Send ``data`` preceded by its length as a native 64-bit integer."""
    send_all(sock, _LENGTH.pack(len(data)))
    return send_all(sock, data)


def recv_msg(sock):
    """Receive a length-prefixed message written by :func:`send_msg`."""
    (length,) = _LENGTH.unpack(recv_exact(sock, _LENGTH.size))
    if length < 0:
        raise NetworkError(f"invalid message length {length}")
    return recv_exact(sock, length)