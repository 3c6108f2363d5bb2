"""Reliable message sockets that survive dropped connections.

Every packet carries the connection's magic number and a sequence number.
A broken connection is re-established transparently, and packets that were
already received are recognised and skipped.
"""

import random
import select as _select
import socket
import struct
import sys
from dataclasses import dataclass
from enum import IntFlag

from .netsocket import (
    RETRIES,
    NetworkError,
    accept_connection,
    connect_to_addr,
    listen_at_addr,
    random_sleep,
    recv_exact,
    send_all,
)

RSOCKET_VERIFY = 0xFADEDACEABEEC0C0

_U64 = struct.Struct("=Q")
_I64 = struct.Struct("=q")
_HEADER = struct.Struct("=qqq")
_INT64_MAX = 2 ** 63 - 1
_DRAIN_CHUNK = 1600


class RSocketError(RuntimeError):
    """Raised when a reliable socket is misused or cannot be recovered."""


class PollType(IntFlag):
    """Conditions that :meth:`RSocketManager.select` can wait for."""

    READ = 1
    WRITE = 2
    ERROR = 4


class _State(IntFlag):
    SERVER = 1
    NEW = 2
    UNUSED = 4
    RECEIVER = 8
    SELECTED = 16
    META_SELECTED = 32
    DELAY_CONFIRM = 64


class _Packet(IntFlag):
    NO_CONFIRM = 1
    DELAY_CONFIRM = 2
    CONFIRM_SENT = 4


@dataclass
class _RSocket:
    sock: object = None
    id: int = 0
    server_id: int = 0
    magic: int = 0
    sseq: int = 0
    rseq: int = 0
    flags: _State = _State(0)
    last_data: bytes = None
    address: str = None
    port: str = None


def _warn(message):
    print(message, file=sys.stderr)


class RSocketManager:
    """Table of reliable sockets, addressed by small integer ids."""

    def __init__(self):
        self._sockets = []
        self._rng = random.Random()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        for rec in self._sockets:
            self.close(rec.id)

    # -- bookkeeping -------------------------------------------------------

    def _verify(self, s):
        if not 0 <= s < len(self._sockets):
            raise RSocketError("Attempted use of invalid socket.")
        rec = self._sockets[s]
        if rec.flags & _State.UNUSED:
            raise RSocketError(
                f"Attempted use of closed socket {s} (flags {int(rec.flags)}).")
        return rec

    def _gen_magic(self):
        while True:
            magic = self._rng.getrandbits(64)
            if magic and all(rec.magic != magic for rec in self._sockets):
                return magic

    def _add(self, rec):
        unused = -1
        for i, existing in enumerate(self._sockets):
            if existing.flags & _State.UNUSED:
                unused = i
            if (rec.magic and existing.magic == rec.magic
                    and existing.flags & _State.RECEIVER):
                if not existing.flags & _State.UNUSED:
                    rec.sseq, rec.rseq = existing.sseq, existing.rseq
                rec.id = i
                self._sockets[i] = rec
                return i
        if unused >= 0:
            rec.id = unused
            self._sockets[unused] = rec
            return unused
        rec.id = len(self._sockets)
        self._sockets.append(rec)
        return rec.id

    # -- connections -------------------------------------------------------

    def _reconnect(self, rec):
        magic = RSOCKET_VERIFY
        for attempt in range(RETRIES):
            if attempt:
                random_sleep(attempt)
                _warn(f"[Network] Reconnect attempt {attempt} to {rec.address}:{rec.port}")
            rec.sock = connect_to_addr(rec.address, rec.port)
            try:
                send_all(rec.sock, _U64.pack(RSOCKET_VERIFY))
                send_all(rec.sock, _U64.pack(rec.magic))
            except NetworkError:
                _warn(f"[Network] Failed to send magic number to {rec.address}:{rec.port} "
                      f"during reconnection attempt {attempt}")
                rec.sock.close()
                continue
            try:
                (magic,) = _U64.unpack(recv_exact(rec.sock, _U64.size))
            except NetworkError:
                _warn(f"[Network] Failed to receive magic number from {rec.address}:{rec.port} "
                      f"during reconnection attempt {attempt}")
                rec.sock.close()
                continue
            break
        else:
            raise RSocketError("Failed reconnection (too many attempts).")
        if not rec.magic:
            rec.magic = magic
        elif rec.magic != magic:
            raise RSocketError("Couldn't reconnect to address!")

    def connect(self, host, port):
        """Open a reliable connection to ``host``:``port`` and return its id."""
        idx = self._add(_RSocket())
        rec = self._sockets[idx]
        rec.address = host
        rec.port = str(port)
        try:
            self._reconnect(rec)
        except Exception:
            rec.flags = _State.UNUSED
            raise
        return idx

    def listen(self, host, port):
        """Open a listening socket at ``host``:``port`` and return its id."""
        sock = listen_at_addr(host, str(port))
        rec = _RSocket(sock=sock, magic=self._gen_magic(), flags=_State.SERVER,
                       address=host, port=str(port))
        return self._add(rec)

    def _accept_one(self, s, desired_magic, justone):
        server = self._verify(s)
        if not server.flags & _State.SERVER:
            raise RSocketError("Not a server socket!")
        while True:
            server = self._verify(s)
            conn, address, port = accept_connection(server.sock)
            try:
                (verify,) = _U64.unpack(recv_exact(conn, _U64.size))
                if verify != RSOCKET_VERIFY:
                    raise NetworkError("bad verification number")
                (incoming,) = _U64.unpack(recv_exact(conn, _U64.size))
            except NetworkError:
                _warn("[Warning] Ignoring non-rsocket client.")
                conn.close()
                if justone:
                    return None
                continue

            rec = _RSocket(sock=conn, server_id=s, magic=incoming,
                           flags=_State.RECEIVER, address=address, port=str(port))
            idx = self._add(rec)
            if not rec.magic:
                rec.magic = self._gen_magic()
            try:
                send_all(conn, _U64.pack(rec.magic))
            except NetworkError:
                pass
            if justone and not incoming:
                rec.flags |= _State.NEW
            if incoming == desired_magic or justone:
                return idx
            if not incoming:
                rec.flags |= _State.NEW

    def accept(self, s):
        """Return the id of a new connection on server socket ``s``, waiting if needed."""
        for rec in self._sockets:
            if rec.flags & _State.NEW:
                rec.flags &= ~_State.NEW
                return rec.id
        return self._accept_one(s, 0, False)

    def _repair(self, s):
        rec = self._verify(s)
        rec.sock.close()
        if rec.flags & _State.RECEIVER:
            s = self._accept_one(rec.server_id, rec.magic, False)
        else:
            self._reconnect(rec)
        return s, self._verify(s)

    def close(self, s):
        """Close socket ``s``; closing an already closed socket does nothing."""
        if not 0 <= s < len(self._sockets):
            raise RSocketError("Attempted closing of invalid socket.")
        rec = self._sockets[s]
        if rec.flags & _State.UNUSED:
            return
        if rec.sock is not None:
            rec.sock.close()
        rec.address = rec.port = None
        rec.flags = _State.UNUSED

    def fileno(self, s):
        """Return the file descriptor underlying socket ``s``."""
        return self._verify(s).sock.fileno()

    def from_fd(self, fd):
        """Return the id of the open socket using descriptor ``fd``, or None."""
        for rec in self._sockets:
            if (not rec.flags & _State.UNUSED and rec.sock is not None
                    and rec.sock.fileno() == fd):
                return rec.id
        return None

    # -- sending -----------------------------------------------------------

    def _try_send(self, rec, header, data, flags):
        try:
            if not flags & _Packet.CONFIRM_SENT:
                send_all(rec.sock, _U64.pack(rec.magic))
                send_all(rec.sock, header)
                send_all(rec.sock, data)
            if flags & (_Packet.NO_CONFIRM | _Packet.DELAY_CONFIRM):
                return True
            (confirm,) = _I64.unpack(recv_exact(rec.sock, _I64.size))
            return confirm == 1
        except NetworkError:
            return False

    def _send(self, s, data, flags):
        data = bytes(data)
        flags = _Packet(flags)
        rec = self._verify(s)
        header = _HEADER.pack(rec.sseq, len(data), int(flags))

        if rec.flags & _State.DELAY_CONFIRM and not flags & _Packet.CONFIRM_SENT:
            raise RSocketError("Programmer broke promise to confirm receipt of packet!")
        if flags & _Packet.CONFIRM_SENT and not rec.flags & _State.DELAY_CONFIRM:
            flags &= ~_Packet.CONFIRM_SENT

        retry = 0
        while True:
            retry += 1
            if self._try_send(rec, header, data, flags):
                if not flags & _Packet.DELAY_CONFIRM:
                    rec.sseq += 1
                    rec.flags &= ~_State.DELAY_CONFIRM
                else:
                    rec.flags |= _State.DELAY_CONFIRM
                break
            flags &= ~_Packet.CONFIRM_SENT
            _warn(f"[Network] Packet send retry count at: {retry}")
            s, rec = self._repair(s)
        rec.last_data = data
        return len(data)

    def send(self, s, data):
        """Send ``data`` and wait for the receiver to confirm it."""
        return self._send(s, data, 0)

    def send_noconfirm(self, s, data):
        """Send ``data`` without asking for a confirmation."""
        return self._send(s, data, _Packet.NO_CONFIRM)

    def send_delayconfirm(self, s, data):
        """Send ``data``; the confirmation must be collected with :meth:`send_confirm`."""
        return self._send(s, data, _Packet.DELAY_CONFIRM)

    def send_confirm(self, s, data):
        """Collect the confirmation for ``data`` sent earlier with :meth:`send_delayconfirm`."""
        return self._send(s, data, _Packet.CONFIRM_SENT)

    # -- receiving ---------------------------------------------------------

    @staticmethod
    def _confirm(rec):
        try:
            send_all(rec.sock, _I64.pack(1))
        except NetworkError:
            pass

    def _try_recv(self, rec, length, alloc):
        while True:
            try:
                (magic,) = _U64.unpack(recv_exact(rec.sock, _U64.size))
                if magic != rec.magic:
                    return None
                seq, plen, pflags = _HEADER.unpack(recv_exact(rec.sock, _HEADER.size))
                if plen < 0:
                    return None
                if seq < rec.rseq and rec.rseq < _INT64_MAX - 10:
                    _warn(f"[Warning] Ignoring duplicate sequence {seq} (seqnow: {rec.rseq})")
                    remaining = plen
                    while remaining > 0:
                        chunk = min(remaining, _DRAIN_CHUNK)
                        recv_exact(rec.sock, chunk)
                        remaining -= chunk
                    if not pflags & _Packet.NO_CONFIRM:
                        self._confirm(rec)
                    continue
                if not alloc and length != plen:
                    raise RSocketError(
                        f"Expected receive length ({length}) != actual receive length ({plen})")
                data = recv_exact(rec.sock, plen)
            except NetworkError:
                return None
            if not pflags & _Packet.NO_CONFIRM:
                self._confirm(rec)
            rec.last_data = data
            rec.rseq = seq + 1
            return data

    def _recv(self, s, length, alloc):
        rec = self._verify(s)
        if not length and not alloc:
            return b""
        if rec.flags & _State.DELAY_CONFIRM:
            raise RSocketError("Programmer broke promise to confirm receipt of packet!")
        retry = 0
        while True:
            retry += 1
            data = self._try_recv(rec, length, alloc)
            if data is not None:
                return data
            _warn(f"[Network] Packet receive retry count at: {retry}")
            s, rec = self._repair(s)

    def recv(self, s, length):
        """Receive one packet that must hold exactly ``length`` bytes."""
        return self._recv(s, length, False)

    def recv_msg(self, s):
        """Receive one packet of any length."""
        return self._recv(s, 0, True)

    # -- selection ---------------------------------------------------------

    def tag(self, s):
        """Mark socket ``s`` to be watched by :meth:`select`."""
        self._verify(s).flags |= _State.SELECTED

    def clear_tags(self):
        """Remove every selection mark."""
        for rec in self._sockets:
            rec.flags &= ~(_State.SELECTED | _State.META_SELECTED)

    def check_tag(self, s):
        """Return True if socket ``s`` is open and marked as selected."""
        if not 0 <= s < len(self._sockets):
            raise RSocketError("Attempted use of invalid socket.")
        rec = self._sockets[s]
        if rec.flags & _State.UNUSED:
            return False
        return bool(rec.flags & _State.SELECTED)

    @staticmethod
    def _has_data(sock):
        try:
            return bool(sock.recv(1, socket.MSG_PEEK))
        except OSError:
            return False

    def select(self, poll_type, timeout=0.0):
        """Wait until tagged sockets are ready and leave only those tagged.

        Returns one more than the highest id that may be tagged, or 0 when a
        connection was accepted on a server socket instead.  A non-positive
        ``timeout`` waits without limit.
        """
        poll_type = PollType(poll_type)
        socks = self._sockets

        if poll_type & PollType.READ:
            for rec in socks:
                if not rec.flags & _State.NEW or rec.flags & _State.UNUSED:
                    continue
                server = socks[rec.server_id]
                if (not server.flags & _State.UNUSED and server.flags & _State.SELECTED
                        and server.flags & _State.SERVER):
                    self.clear_tags()
                    server.flags |= _State.SELECTED
                    return rec.server_id + 1
            for rec in socks:
                if (rec.flags & _State.SELECTED and not rec.flags & _State.UNUSED
                        and rec.flags & _State.RECEIVER
                        and not socks[rec.server_id].flags & _State.UNUSED):
                    socks[rec.server_id].flags |= _State.META_SELECTED

        watched = [rec for rec in socks
                   if rec.flags & (_State.SELECTED | _State.META_SELECTED)
                   and not rec.flags & _State.UNUSED]
        fds = [rec.sock for rec in watched]
        rlist = fds if poll_type & PollType.READ else []
        wlist = fds if poll_type & PollType.WRITE else []
        xlist = fds if poll_type & PollType.ERROR else []
        try:
            readable, writable, errored = _select.select(
                rlist, wlist, xlist, timeout if timeout > 0 else None)
        except (OSError, ValueError) as exc:
            _warn(f"[Warning] Socket poll() failed: {exc}")
            self.clear_tags()
            return 0

        readable = set(readable)
        ready = readable | set(writable) | set(errored)
        max_i = 0
        for rec in watched:
            if rec.sock in ready:
                if rec.flags & _State.SERVER:
                    self._accept_one(rec.id, 0, True)
                    self.clear_tags()
                    return 0
                if rec.sock in readable and not self._has_data(rec.sock):
                    continue
                rec.flags |= _State.SELECTED
                max_i = max(max_i, rec.id)
            else:
                rec.flags &= ~_State.SELECTED
        return max_i + 1