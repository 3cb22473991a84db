"""Parser and checker for the OpenSSH known_hosts host key database.

Host patterns within one line are separated by ``#`` rather than ``,``,
because SCION addresses contain commas.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
import re
import struct
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple, Protocol

MARKER_CERT = "@cert-authority"
MARKER_REVOKED = "@revoked"
SHA1_HASH_TYPE = "1"

_SEPARATOR = re.compile(r"[\t ]")


@dataclass(frozen=True)
class PublicKey:
    """An SSH public key in wire format, with its algorithm name."""

    key_type: str
    blob: bytes

    @classmethod
    def from_blob(cls, blob: bytes) -> PublicKey:
        """Read the algorithm name from a wire-format key blob."""
        blob = bytes(blob)
        if len(blob) < 4:
            raise ValueError("ssh: short read")
        (length,) = struct.unpack(">I", blob[:4])
        if length == 0 or len(blob) < 4 + length:
            raise ValueError("ssh: short read")
        try:
            key_type = blob[4 : 4 + length].decode("ascii")
        except UnicodeDecodeError as err:
            raise ValueError("ssh: invalid key type") from err
        return cls(key_type, blob)

    def serialize(self) -> str:
        """Return ``<type> <base64 blob>`` as written in known_hosts files."""
        return f"{self.key_type} {base64.b64encode(self.blob).decode('ascii')}"


@dataclass(frozen=True)
class KnownKey:
    """A key declared in a known_hosts file."""

    key: PublicKey
    filename: str
    line: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}: {self.key.serialize()}"


class KnownHostsKeyError(Exception):
    """The key was not found for the host, or a different key is on record.

    An empty ``want`` means the host is unknown; otherwise it holds the keys
    on record and the mismatch may signify an attack.
    """

    def __init__(self, want: list[KnownKey] | None = None) -> None:
        self.want = list(want or [])
        super().__init__(
            "knownhosts: key mismatch" if self.want else "knownhosts: key is unknown"
        )


class RevokedKeyError(Exception):
    """The key has been revoked."""

    def __init__(self, revoked: KnownKey) -> None:
        self.revoked = revoked
        super().__init__("knownhosts: key is revoked")


class _Addr(NamedTuple):
    host: str
    port: str

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class _Matcher(Protocol):
    def match(self, addrs: list[_Addr]) -> bool: ...


def split_host_port(address: str) -> tuple[str, str]:
    """Split ``host:port``, ``[host]:port`` or a SCION ``IA,[IP]:port`` address."""
    close = address.rfind("]")
    if close >= 0:
        rest = address[close + 1 :]
        if not rest.startswith(":"):
            raise ValueError(f"address {address}: missing port in address")
        port = rest[1:]
        if ":" in port:
            raise ValueError(f"address {address}: too many colons in address")
        before = address[:close]
        opening = before.find("[")
        if opening < 0:
            raise ValueError(f"address {address}: missing '['")
        return before[:opening] + before[opening + 1 :], port

    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address}: missing port in address")
    if "[" in address:
        raise ValueError(f"address {address}: missing ']' in address")
    ip_part = host.partition(",")[2] if "," in host else host
    if ":" in ip_part:
        raise ValueError(f"address {address}: too many colons in address")
    return host, port


def wildcard_match(pattern: str, text: str) -> bool:
    """Match ``*`` and ``?`` wildcards; ``*`` has no regard for separators."""
    while True:
        if not pattern:
            return not text
        if not text:
            return False
        if pattern[0] == "*":
            if len(pattern) == 1:
                return True
            return any(wildcard_match(pattern[1:], text[j:]) for j in range(len(text)))
        if pattern[0] != "?" and pattern[0] != text[0]:
            return False
        pattern, text = pattern[1:], text[1:]


@dataclass(frozen=True)
class _HostPattern:
    negate: bool
    addr: _Addr

    def matches(self, other: _Addr) -> bool:
        return wildcard_match(self.addr.host, other.host) and self.addr.port == other.port


@dataclass(frozen=True)
class _HostPatterns:
    patterns: tuple[_HostPattern, ...]

    def match(self, addrs: list[_Addr]) -> bool:
        matched = False
        for pattern in self.patterns:
            for candidate in addrs:
                if not pattern.matches(candidate):
                    continue
                if pattern.negate:
                    return False
                matched = True
        return matched


@dataclass(frozen=True)
class _HashedHost:
    salt: bytes
    digest: bytes

    def match(self, addrs: list[_Addr]) -> bool:
        return any(
            hmac.compare_digest(_hash_host(normalize(str(a)), self.salt), self.digest)
            for a in addrs
        )


@dataclass(frozen=True)
class _KeyDBLine:
    cert: bool
    matcher: _Matcher
    known_key: KnownKey

    def match(self, addrs: list[_Addr]) -> bool:
        return self.matcher.match(addrs)


def _next_word(line: str) -> tuple[str, str]:
    found = _SEPARATOR.search(line)
    if found is None:
        return line, ""
    return line[: found.start()], line[found.start() :].strip()


def _parse_fields(line: str) -> tuple[str, str, PublicKey]:
    marker = ""
    word, rest = _next_word(line)
    if word in (MARKER_CERT, MARKER_REVOKED):
        marker, line = word, rest

    host, line = _next_word(line)
    if not line:
        raise ValueError("knownhosts: missing host pattern")

    _, line = _next_word(line)
    if not line:
        raise ValueError("knownhosts: missing key type pattern")

    key_blob, _ = _next_word(line)
    key = PublicKey.from_blob(base64.b64decode(key_blob, validate=True))
    return marker, host, key


def _new_hostname_matcher(pattern: str) -> _HostPatterns:
    patterns = []
    for part in filter(None, pattern.split("#")):
        negate = part.startswith("!")
        if negate:
            part = part[1:]
        if not part:
            raise ValueError("knownhosts: negation without following hostname")
        try:
            host, port = split_host_port(part)
        except ValueError:
            host, port = part, "22"
        patterns.append(_HostPattern(negate, _Addr(host, port)))
    return _HostPatterns(tuple(patterns))


def _decode_hash(encoded: str) -> tuple[str, bytes, bytes]:
    if not encoded.startswith("|"):
        raise ValueError("knownhosts: hashed host must start with '|'")
    components = encoded.split("|")
    if len(components) != 4:
        raise ValueError(f"knownhosts: got {len(components)} components, want 3")
    salt = base64.b64decode(components[2], validate=True)
    digest = base64.b64decode(components[3], validate=True)
    return components[1], salt, digest


def _encode_hash(hash_type: str, salt: bytes, digest: bytes) -> str:
    return "|".join(
        [
            "",
            hash_type,
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(digest).decode("ascii"),
        ]
    )


def _hash_host(hostname: str, salt: bytes) -> bytes:
    return hmac.new(salt, hostname.encode(), hashlib.sha1).digest()


def _new_hashed_host(encoded: str) -> _HashedHost:
    hash_type, salt, digest = _decode_hash(encoded)
    if hash_type != SHA1_HASH_TYPE:
        raise ValueError(f"knownhosts: got hash type {hash_type}, must be '1'")
    return _HashedHost(salt, digest)


@dataclass
class HostKeyDB:
    """The host keys, certificate authorities and revocations of known_hosts files."""

    _revoked: dict[bytes, KnownKey] = field(default_factory=dict)
    _lines: list[_KeyDBLine] = field(default_factory=list)

    def read(self, lines: Iterable[str], filename: str) -> None:
        """Add the entries in ``lines``, the contents of ``filename``."""
        for number, raw in enumerate(lines, start=1):
            text = raw.strip()
            if not text or text.startswith("#"):
                continue
            try:
                self._add_line(text, filename, number)
            except ValueError as err:
                raise ValueError(f"knownhosts: {filename}:{number}: {err}") from err

    def _add_line(self, line: str, filename: str, number: int) -> None:
        marker, pattern, key = _parse_fields(line)
        known = KnownKey(key, filename, number)
        if marker == MARKER_REVOKED:
            self._revoked[key.blob] = known
            return
        if pattern.startswith("|"):
            matcher: _Matcher = _new_hashed_host(pattern)
        else:
            matcher = _new_hostname_matcher(pattern)
        self._lines.append(_KeyDBLine(marker == MARKER_CERT, matcher, known))

    def is_host_authority(self, remote: PublicKey, address: str) -> bool:
        """Whether ``remote`` is a certificate authority for ``address``."""
        try:
            target = _Addr(*split_host_port(address))
        except ValueError:
            return False
        return any(
            entry.cert and entry.known_key.key == remote and entry.match([target])
            for entry in self._lines
        )

    def is_revoked(self, key: PublicKey) -> bool:
        """Whether ``key`` is marked as revoked."""
        return key.blob in self._revoked

    def check(self, address: str, remote: str, remote_key: PublicKey) -> None:
        """Check ``remote_key`` for the remote address and, if given, the host name.

        Raises RevokedKeyError, KnownHostsKeyError, or ValueError for an
        address that cannot be split.
        """
        revoked = self._revoked.get(remote_key.blob)
        if revoked is not None:
            raise RevokedKeyError(revoked)

        try:
            addrs = [_Addr(*split_host_port(remote))]
        except ValueError as err:
            raise ValueError(f"knownhosts: SplitHostPort({remote}): {err}") from err

        if address:
            try:
                addrs.append(_Addr(*split_host_port(address)))
            except ValueError as err:
                raise ValueError(f"knownhosts: SplitHostPort({address}): {err}") from err

        self._check_addrs(addrs, remote_key)

    def _check_addrs(self, addrs: list[_Addr], remote_key: PublicKey) -> None:
        known_keys: dict[str, KnownKey] = {}
        for entry in self._lines:
            if entry.match(addrs):
                known_keys.setdefault(entry.known_key.key.key_type, entry.known_key)

        want = list(known_keys.values())
        if not known_keys:
            raise KnownHostsKeyError(want)

        known = known_keys.get(remote_key.key_type)
        if known is None or known.key != remote_key:
            raise KnownHostsKeyError(want)


def load_known_hosts(*args: str) -> HostKeyDB:
    """Build a host key database from the given known_hosts files."""
    db = HostKeyDB()
    for filename in args:
        with open(filename, encoding="utf-8") as handle:
            db.read(handle, filename)
    return db


def normalize(address: str) -> str:
    """Put an address in the ``host:port`` form used in known_hosts (port 22 by default)."""
    try:
        host, port = split_host_port(address)
    except ValueError:
        host, port = address, "22"
    return f"{host}:{port}"


def line(address: str, key: PublicKey) -> str:
    """Return a line to append to a known_hosts file."""
    return f"{normalize(address)} {key.serialize()}"


def hash_hostname(hostname: str) -> str:
    """Hash ``hostname`` with a fresh random salt; it is not normalized first."""
    salt = os.urandom(hashlib.sha1().digest_size)
    return _encode_hash(SHA1_HASH_TYPE, salt, _hash_host(hostname, salt))