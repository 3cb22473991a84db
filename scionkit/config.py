"""Option files for the SSH client and server: parsing, validation and defaults.

A configuration object is a dataclass whose fields carry a ``regex`` metadata
key, the pattern a value must match before it is accepted. The name used in
configuration files is the field name in CamelCase (``host_address`` is
``HostAddress``) unless the field's metadata gives an explicit ``option``.
String fields are replaced when set; list fields get the value appended.
"""

from __future__ import annotations

import dataclasses
import logging
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

_log = logging.getLogger(__name__)

_LINE_RE = re.compile(r"(.*?)\s*[\s=]\s*(.*)", re.ASCII)
_PORT_REGEX = r"0*([0-5]?\d{0,4}|6([0-4]\d{3}|5([0-4]\d{2}|5([0-2]\d|3[0-5]))))"
_YES_NO = "(yes|no)"
_YES = "yes"


class ConfigError(ValueError):
    """Raised when an option is unknown or its value is not acceptable."""


def _option(regex: str, default: Any) -> Any:
    metadata = {"regex": regex}
    if isinstance(default, list):
        initial = list(default)
        return field(default_factory=lambda: list(initial), metadata=metadata)
    return field(default=default, metadata=metadata)


def _option_name(candidate: dataclasses.Field) -> str:
    explicit = candidate.metadata.get("option")
    if explicit:
        return explicit
    return "".join(part[:1].upper() + part[1:] for part in candidate.name.split("_"))


@dataclass
class ClientConfig:
    """Configuration of the SSH client, with its default values."""

    user: str = _option(".*", "")
    host_address: str = _option(r"([-.\da-zA-Z]+)|(\d+-[\d:A-Fa-f]+,\[[^\]]+\])", "")
    port: str = _option(_PORT_REGEX, "22")
    password_authentication: str = _option(_YES_NO, _YES)
    pubkey_authentication: str = _option(_YES_NO, _YES)
    strict_host_key_checking: str = _option("(yes|no|ask)", "ask")
    identity_file: list[str] = _option(
        ".*",
        [
            "~/.ssh/id_ed25519",
            "~/.ssh/id_ecdsa",
            "~/.ssh/id_dsa",
            "~/.ssh/id_rsa",
            "~/.ssh/identity",
        ],
    )
    local_forward: str = _option(".*", "")
    remote_forward: str = _option(".*", "")
    user_known_hosts_file: str = _option(".*", "~/.ssh/known_hosts")
    proxy_command: str = _option(".*", "")


@dataclass
class ServerConfig:
    """Configuration of the SSH server, with its default values."""

    authorized_keys_file: str = _option(".*", ".ssh/authorized_keys")
    port: str = _option(_PORT_REGEX, "22")
    password_authentication: str = _option(_YES_NO, _YES)
    pubkey_authentication: str = _option(_YES_NO, _YES)
    host_key: str = _option(".*", "/etc/ssh/ssh_host_key")
    max_auth_tries: str = _option(r"[1-9]\d*", "")


def to_config_string(value: Any) -> str:
    """Render a value the way configuration files spell it (booleans as yes/no)."""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def _find_field(conf: Any, name: str) -> dataclasses.Field:
    if not dataclasses.is_dataclass(conf) or isinstance(conf, type):
        raise ConfigError(f"unknown config option: {name}")
    for candidate in dataclasses.fields(conf):
        if _option_name(candidate) == name:
            return candidate
    raise ConfigError(f"unknown config option: {name}")


def set_option(conf: Any, name: str, value: Any) -> None:
    """Set option ``name`` on ``conf`` after checking it against the option's pattern."""
    text = to_config_string(value)
    target = _find_field(conf, name)

    regex = target.metadata.get("regex", "")
    shown = f"^{regex}$"
    if re.search(f"^{regex}\\Z", text, re.ASCII) is None:
        raise ConfigError(f"value for option {name} doesn't fit regex {shown}: {text}")

    stripped = text.strip()
    current = getattr(conf, target.name)
    if isinstance(current, list):
        setattr(conf, target.name, [*current, stripped])
    elif isinstance(current, str):
        setattr(conf, target.name, stripped)
    else:
        raise ConfigError(f"can't parse config value for option {name}: {text}")


def set_if_not(conf: Any, name: str, value: Any, not_value: Any) -> bool:
    """Set the option unless ``value`` reads the same as ``not_value``.

    Returns True when the option was left alone, False when it was set.
    """
    if to_config_string(value) == to_config_string(not_value):
        return True
    set_option(conf, name, value)
    return False


def update_from_string(conf: Any, option: str) -> None:
    """Apply one ``Name value`` or ``Name=value`` line to ``conf``."""
    match = _LINE_RE.search(option)
    if match is None:
        raise ConfigError(f"can't parse config file line: {option}")
    set_option(conf, match.group(1), match.group(2))


def update_from_reader(conf: Any, reader: Iterable[str]) -> None:
    """Apply every line of ``reader``, skipping comments and blank lines.

    Lines are applied last to first, so the first occurrence of an option wins
    for plain options. Bad lines are logged and skipped.
    """
    lines = [text for raw in reader if (text := raw.strip()) and not text.startswith("#")]
    for text in reversed(lines):
        try:
            update_from_string(conf, text)
        except ConfigError as err:
            _log.warning("Error while updating config: %s", err)


def update_from_file(conf: Any, path: str | Path) -> None:
    """Apply the contents of the file at ``path``; a missing file raises OSError."""
    with open(path, encoding="utf-8") as handle:
        update_from_reader(conf, handle)


def parse_path(pth: str) -> str:
    """Expand a leading ``~`` or ``~/`` to the current user's home directory."""
    try:
        home = str(Path.home())
    except (RuntimeError, KeyError):
        home = "/"

    if pth == "~":
        return posixpath.normpath(home)
    if pth.startswith("~/"):
        return posixpath.normpath(posixpath.join(home, pth[2:]))
    return pth