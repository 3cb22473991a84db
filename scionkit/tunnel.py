"""Byte pumping between tunnel endpoints and the SSH channel payloads that set them up.

Covers the one-way copy used for forwarded connections, the log line written
for forwarded TLS sessions, and decoding of the SSH request and channel
payloads (``pty-req``, ``window-change``, ``exec``, ``direct-tcpip`` and
``direct-scionquic``).
"""

from __future__ import annotations

import contextlib
import struct
from datetime import datetime
from typing import Any, NamedTuple

CHUNK_SIZE = 1024
DEFAULT_TERM_WIDTH = 80
DEFAULT_TERM_HEIGHT = 24

_UINT32 = struct.Struct(">I")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


class PtyRequest(NamedTuple):
    """The terminal type and character dimensions of a ``pty-req`` request."""

    term: str
    width: int
    height: int


def transfer(dst: Any, src: Any) -> int:
    """Copy ``src`` into ``dst`` until EOF or an error, then close both.

    ``src`` needs ``read`` (``read1`` is preferred when present) and ``dst``
    needs ``write``; a ``write`` returning None counts as a full write.
    Returns the number of bytes written.
    """
    read = getattr(src, "read1", None) or src.read
    written = 0
    try:
        while True:
            try:
                chunk = read(CHUNK_SIZE)
            except (OSError, ValueError):
                break
            if not chunk:
                break
            try:
                count = dst.write(chunk)
            except (OSError, ValueError):
                break
            if count is None:
                count = len(chunk)
            if count < 0 or count > len(chunk):
                break
            written += count
            if count != len(chunk):
                break
    finally:
        for end in (src, dst):
            with contextlib.suppress(OSError, ValueError):
                end.close()
    return written


def _format_offset(when: datetime) -> str:
    offset = when.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset is not None else 0
    sign = "-" if minutes < 0 else "+"
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}{mins:02d}"


def format_tunnel_log(
    client: Any, dest: str, status: int, when: datetime | None = None
) -> str:
    """Describe a forwarded TLS session in a Common-Log-Format-like line.

    ``status`` reuses HTTP codes with a similar meaning. ``when`` defaults
    to now; a naive time is taken as local time.
    """
    if when is None:
        when = datetime.now().astimezone()
    elif when.tzinfo is None:
        when = when.astimezone()
    stamp = (
        f"{when.day:02d}/{_MONTHS[when.month - 1]}/{when.year:04d}:"
        f"{when.hour:02d}:{when.minute:02d}:{when.second:02d} {_format_offset(when)}"
    )
    return f'{client} - - [{stamp}] "TUNNEL {dest}" {status} -'


def _read_uint32(data: bytes, offset: int) -> tuple[int, int]:
    end = offset + _UINT32.size
    if len(data) < end:
        raise ValueError(f"payload too short: need {end} bytes, have {len(data)}")
    (value,) = _UINT32.unpack_from(data, offset)
    return value, end


def _read_string(data: bytes, offset: int) -> tuple[str, int]:
    length, start = _read_uint32(data, offset)
    end = start + length
    if len(data) < end:
        raise ValueError(f"payload too short: string needs {end} bytes, have {len(data)}")
    return data[start:end].decode("utf-8", errors="surrogateescape"), end


def parse_dims(payload: bytes) -> tuple[int, int]:
    """Read terminal width and height (big-endian uint32 each) from the payload start."""
    data = bytes(payload)
    width, offset = _read_uint32(data, 0)
    height, _ = _read_uint32(data, offset)
    return width, height


def encode_dims(width: int, height: int) -> bytes:
    """Build a ``window-change`` payload: width, height, and zero pixel dimensions."""
    return _UINT32.pack(width) + _UINT32.pack(height) + bytes(8)


def parse_exec_payload(payload: bytes) -> str:
    """Return the command string of an ``exec`` request."""
    command, _ = _read_string(bytes(payload), 0)
    return command


def parse_pty_request(payload: bytes) -> PtyRequest:
    """Return terminal type and dimensions of a ``pty-req`` request."""
    data = bytes(payload)
    term, offset = _read_string(data, 0)
    width, height = parse_dims(data[offset:])
    return PtyRequest(term, width, height)


def parse_tcp_tunnel_data(extra: bytes) -> tuple[str, int]:
    """Return the destination host and port of a ``direct-tcpip`` channel."""
    data = bytes(extra)
    address, offset = _read_string(data, 0)
    port, _ = _read_uint32(data, offset)
    return address, port


def parse_scion_tunnel_data(extra: bytes) -> str:
    """Return the destination address of a ``direct-scionquic`` channel."""
    address, _ = _read_string(bytes(extra), 0)
    return address