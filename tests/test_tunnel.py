import io
import struct
from datetime import datetime, timedelta, timezone

import pytest

from scionkit.tunnel import (
    PtyRequest,
    encode_dims,
    format_tunnel_log,
    parse_dims,
    parse_exec_payload,
    parse_pty_request,
    parse_scion_tunnel_data,
    parse_tcp_tunnel_data,
    transfer,
)


class RecordingSink(io.BytesIO):
    def __init__(self):
        super().__init__()
        self.data = b""
        self.was_closed = False

    def close(self):
        self.data = self.getvalue()
        self.was_closed = True
        super().close()


class ShortWriter:
    def __init__(self):
        self.chunks = []
        self.was_closed = False

    def write(self, chunk):
        self.chunks.append(chunk)
        return len(chunk) - 1

    def close(self):
        self.was_closed = True


class FailingReader:
    def __init__(self):
        self.was_closed = False

    def read(self, size):
        raise OSError("connection reset")

    def close(self):
        self.was_closed = True


def _ssh_string(value: bytes) -> bytes:
    return struct.pack(">I", len(value)) + value


def test_transfer_copies_everything_and_closes():
    payload = bytes(range(256)) * 20
    src = io.BytesIO(payload)
    dst = RecordingSink()
    written = transfer(dst, src)
    assert written == len(payload)
    assert dst.data == payload
    assert dst.was_closed
    assert src.closed


def test_transfer_empty_source():
    dst = RecordingSink()
    assert transfer(dst, io.BytesIO(b"")) == 0
    assert dst.data == b""
    assert dst.was_closed


def test_transfer_stops_on_short_write():
    src = io.BytesIO(b"a" * 3000)
    dst = ShortWriter()
    written = transfer(dst, src)
    assert len(dst.chunks) == 1
    assert written == len(dst.chunks[0]) - 1
    assert dst.was_closed


def test_transfer_read_error_closes_both():
    src = FailingReader()
    dst = RecordingSink()
    assert transfer(dst, src) == 0
    assert src.was_closed
    assert dst.was_closed


def test_format_tunnel_log_fixed_time():
    when = datetime(2021, 3, 4, 5, 6, 7, tzinfo=timezone(timedelta(hours=2)))
    line = format_tunnel_log("10.0.0.1:4000", "example.com", 200, when)
    assert line == '10.0.0.1:4000 - - [04/Mar/2021:05:06:07 +0200] "TUNNEL example.com" 200 -'


def test_format_tunnel_log_negative_offset():
    when = datetime(2021, 12, 31, 23, 59, 59, tzinfo=timezone(timedelta(hours=-7)))
    line = format_tunnel_log("client", "example.org", 502, when)
    assert "[31/Dec/2021:23:59:59 -0700]" in line
    assert line.endswith('"TUNNEL example.org" 502 -')


def test_format_tunnel_log_default_time_shape():
    line = format_tunnel_log("client", "example.net", 503)
    assert line.startswith("client - - [")
    assert line.endswith('] "TUNNEL example.net" 503 -')


def test_encode_dims_wire_bytes():
    assert encode_dims(80, 24) == b"\x00\x00\x00\x50\x00\x00\x00\x18" + bytes(8)


@pytest.mark.parametrize("width,height", [(80, 24), (0, 0), (300, 100), (2**32 - 1, 1)])
def test_dims_round_trip(width, height):
    assert parse_dims(encode_dims(width, height)) == (width, height)


def test_parse_dims_too_short():
    with pytest.raises(ValueError):
        parse_dims(b"\x00\x00\x00\x50\x00")


def test_parse_exec_payload():
    assert parse_exec_payload(_ssh_string(b"ls -l /tmp")) == "ls -l /tmp"


def test_parse_exec_payload_truncated():
    with pytest.raises(ValueError):
        parse_exec_payload(struct.pack(">I", 10) + b"ls")


def test_parse_pty_request():
    payload = _ssh_string(b"xterm") + struct.pack(">IIII", 120, 40, 0, 0) + _ssh_string(b"")
    request = parse_pty_request(payload)
    assert request == PtyRequest("xterm", 120, 40)


def test_parse_pty_request_missing_dims():
    with pytest.raises(ValueError):
        parse_pty_request(_ssh_string(b"xterm") + b"\x00\x00")


def test_parse_tcp_tunnel_data():
    extra = _ssh_string(b"example.com") + struct.pack(">I", 8080) + _ssh_string(b"127.0.0.1")
    assert parse_tcp_tunnel_data(extra) == ("example.com", 8080)


def test_parse_tcp_tunnel_data_missing_port():
    with pytest.raises(ValueError):
        parse_tcp_tunnel_data(_ssh_string(b"example.com"))


def test_parse_scion_tunnel_data():
    address = b"1-ff00:0:110,[127.0.0.1]:80"
    assert parse_scion_tunnel_data(_ssh_string(address)) == address.decode()


def test_parse_scion_tunnel_data_empty():
    with pytest.raises(ValueError):
        parse_scion_tunnel_data(b"")