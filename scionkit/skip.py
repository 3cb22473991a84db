"""Helpers for the SKIP browser proxy.

Covers SCION ISD-AS identifiers, demunging of browser host names, hosts-file
scanning, path usage statistics and conversion of ``showpaths`` output into
path sequence strings.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Iterable, Sequence

_log = logging.getLogger(__name__)

DEFAULT_HOSTS_FILES = ("/etc/hosts", "/etc/scion/hosts")
DEFAULT_STRATEGY = "Shortest Path"

_MUNGED_SCION_ADDR = re.compile(r"^(\d+)-([_\dA-Fa-f]+)-(.*)\Z", re.ASCII)
_DECIMAL = re.compile(r"[0-9]+\Z", re.ASCII)
_HEX = re.compile(r"[0-9A-Fa-f]+\Z", re.ASCII)
_SIGNED_DECIMAL = re.compile(r"[+-]?[0-9]+\Z", re.ASCII)

_MAX_ISD = 0xFFFF
_MAX_BGP_AS = 0xFFFFFFFF
_AS_GROUP_BITS = 16
_AS_GROUP_MAX = 0xFFFF


@dataclass(frozen=True, order=True)
class IA:
    """A SCION ISD-AS identifier."""

    isd: int
    asn: int

    @classmethod
    def parse(cls, text: str) -> IA:
        """Parse ``ISD-AS`` where AS is decimal or three colon-separated hex groups."""
        parts = text.split("-")
        if len(parts) != 2:
            raise ValueError(f"invalid ISD-AS: {text!r}")
        isd_text, as_text = parts
        if not _DECIMAL.match(isd_text) or int(isd_text) > _MAX_ISD:
            raise ValueError(f"invalid ISD in {text!r}: {isd_text!r}")
        return cls(int(isd_text), _parse_as(as_text, text))

    def __str__(self) -> str:
        return f"{self.isd}-{_format_as(self.asn)}"


def _parse_as(as_text: str, whole: str) -> int:
    groups = as_text.split(":")
    if len(groups) == 1:
        if not _DECIMAL.match(as_text) or int(as_text) > _MAX_BGP_AS:
            raise ValueError(f"invalid AS in {whole!r}: {as_text!r}")
        return int(as_text)
    if len(groups) != 3:
        raise ValueError(f"invalid AS in {whole!r}: {as_text!r}")
    value = 0
    for group in groups:
        if not _HEX.match(group) or int(group, 16) > _AS_GROUP_MAX:
            raise ValueError(f"invalid AS in {whole!r}: {as_text!r}")
        value = (value << _AS_GROUP_BITS) | int(group, 16)
    return value


def _format_as(asn: int) -> str:
    if asn <= _MAX_BGP_AS:
        return str(asn)
    return ":".join(
        format((asn >> shift) & _AS_GROUP_MAX, "x") for shift in (32, 16, 0)
    )


@dataclass(frozen=True)
class Step:
    """One hop of a path: an AS with its ingress and egress interface."""

    ia: IA
    ingress: int
    egress: int


@dataclass
class PathUsage:
    """Traffic received over the path used for one domain."""

    domain: str
    path: str
    strategy: str = DEFAULT_STRATEGY
    received: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "Received": self.received,
            "Path": self.path,
            "Strategy": self.strategy,
            "Domain": self.domain,
        }


@dataclass
class PathUsageStats:
    """Path usage per domain; one path is assumed per domain."""

    _data: dict[str, PathUsage] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, domain: str, path: str, strategy: str = DEFAULT_STRATEGY) -> PathUsage:
        """Register ``path`` for ``domain``; an existing entry only gets its path updated."""
        with self._lock:
            usage = self._data.get(domain)
            if usage is None:
                usage = PathUsage(domain=domain, path=path, strategy=strategy)
                self._data[domain] = usage
            else:
                usage.path = path
            return usage

    def add_received(self, domain: str, count: int) -> int | None:
        """Count ``count`` received bytes for ``domain``; unknown domains are ignored.

        Returns the new total, or None when the domain is not tracked.
        """
        with self._lock:
            usage = self._data.get(domain)
            if usage is None:
                return None
            usage.received += count
            return usage.received

    def to_json(self) -> str:
        """Serialize all entries as a compact JSON array."""
        with self._lock:
            entries = [usage.to_dict() for usage in self._data.values()]
        text = json.dumps(entries, separators=(",", ":"), ensure_ascii=False)
        for char, escaped in (
            ("<", "\\u003c"),
            (">", "\\u003e"),
            ("&", "\\u0026"),
            ("\u2028", "\\u2028"),
            ("\u2029", "\\u2029"),
        ):
            text = text.replace(char, escaped)
        return text


def demunge(host: str) -> str:
    """Turn a browser-friendly ``ISD-AS_with_underscores-host`` back into a SCION address."""
    match = _MUNGED_SCION_ADDR.match(host)
    if match is None:
        return host
    isd, asn, rest = match.groups()
    return f"[{isd}-{asn.replace('_', ':')},{rest}]"


def parse_hosts_file(lines: Iterable[str]) -> list[str]:
    """Return the names of all entries whose address looks like a SCION address."""
    hosts: list[str] = []
    for raw in lines:
        content = raw.split("#", 1)[0]
        fields = content.split()
        if fields and "," in fields[0]:
            hosts.extend(fields[1:])
    return hosts


def load_hosts(paths: Sequence[str] = DEFAULT_HOSTS_FILES) -> list[str]:
    """Collect SCION host names from the given hosts files; unreadable files are skipped."""
    hosts: list[str] = []
    for path in paths:
        try:
            with open(path, encoding="utf-8", errors="replace") as handle:
                hosts.extend(parse_hosts_file(handle))
        except OSError:
            continue
    return hosts


def _to_int(text: str) -> int:
    if not _SIGNED_DECIMAL.match(text):
        raise ValueError(f"invalid syntax: {text!r}")
    return int(text)


def _string_to_step(parts: list[str]) -> Step:
    if len(parts) != 3:
        raise ValueError(f"wrong size {len(parts)} != 3")
    ia = IA.parse(parts[1])
    return Step(ia=ia, ingress=_to_int(parts[0]), egress=_to_int(parts[2]))


def parse_show_paths(text: str) -> list[Step]:
    """Parse a ``showpaths`` line such as ``1-ff00:0:1 2>3 1-ff00:0:2``."""
    segments = text.split(">")
    if len(segments) < 2:
        raise ValueError(f"iaInterfaces length {len(segments)} < 2")
    segments[0] = "0 " + segments[0]
    segments[-1] = segments[-1] + " 0"
    steps = [_string_to_step(segment.split(" ")) for segment in segments]
    _log.debug(
        "parsed path: %s",
        ", ".join(f"{s.ia} {s.ingress} {s.egress}" for s in steps),
    )
    return steps


def to_sequence_str(steps: Sequence[Step]) -> str:
    """Render steps as a path sequence of hop predicates."""
    pieces = []
    last = len(steps) - 1
    for index, step in enumerate(steps):
        if index == 0:
            pieces.append(f"{step.ia} #{step.egress}")
        elif index == last:
            pieces.append(f"{step.ia} #{step.ingress}")
        else:
            pieces.append(f"{step.ia} #{step.ingress},{step.egress}")
    return " ".join(pieces)


def parse_show_path_to_seq(text: str) -> str:
    """Convert a ``showpaths`` line straight into a sequence string."""
    return to_sequence_str(parse_show_paths(text))