import base64
import struct

import pytest

from scionkit.knownhosts import (
    HostKeyDB,
    KnownHostsKeyError,
    KnownKey,
    PublicKey,
    RevokedKeyError,
    hash_hostname,
    line,
    load_known_hosts,
    normalize,
    split_host_port,
    wildcard_match,
)


def make_key(key_type="ssh-ed25519", fill=b"\x01"):
    name = key_type.encode()
    material = fill * 32
    blob = struct.pack(">I", len(name)) + name + struct.pack(">I", len(material)) + material
    return PublicKey.from_blob(blob)


def entry(pattern, key, marker=""):
    text = f"{pattern} {key.serialize()}"
    return f"{marker} {text}" if marker else text


def db_of(*lines):
    db = HostKeyDB()
    db.read(lines, "known_hosts")
    return db


KEY = make_key()
OTHER = make_key(fill=b"\x02")


def test_public_key_round_trip():
    assert KEY.key_type == "ssh-ed25519"
    key_type, encoded = KEY.serialize().split(" ")
    assert key_type == KEY.key_type
    assert PublicKey.from_blob(base64.b64decode(encoded)) == KEY


@pytest.mark.parametrize("blob", [b"\x00\x00", b"\x00\x00\x00\x10abc", b"\x00\x00\x00\x00"])
def test_public_key_malformed(blob):
    with pytest.raises(ValueError):
        PublicKey.from_blob(blob)


@pytest.mark.parametrize(
    "pattern,text,expected",
    [
        ("*.example.com", "host.example.com", True),
        ("*.example.com", "example.org", False),
        ("h?st", "host", True),
        ("h?st", "hst", False),
        ("abc", "abc", True),
        ("abc", "abd", False),
        ("*", "anything", True),
        ("a*", "a", False),
        ("*", "", False),
    ],
)
def test_wildcard_match(pattern, text, expected):
    assert wildcard_match(pattern, text) is expected


@pytest.mark.parametrize(
    "address,expected",
    [
        ("example.com:22", ("example.com", "22")),
        ("[::1]:22", ("::1", "22")),
        ("1-ff00:0:110,[127.0.0.1]:22", ("1-ff00:0:110,127.0.0.1", "22")),
        ("1-ff00:0:110,127.0.0.1:22", ("1-ff00:0:110,127.0.0.1", "22")),
    ],
)
def test_split_host_port(address, expected):
    assert split_host_port(address) == expected


@pytest.mark.parametrize("address", ["example.com", "a:b:c", "[::1]", "[::1]x:22"])
def test_split_host_port_errors(address):
    with pytest.raises(ValueError):
        split_host_port(address)


def test_normalize_and_line():
    assert normalize("example.com") == "example.com:22"
    assert normalize("example.com:2222") == "example.com:2222"
    assert line("example.com", KEY) == "example.com:22 " + KEY.serialize()


def test_known_key_str():
    known = KnownKey(KEY, "known_hosts", 1)
    assert str(known) == "known_hosts:1: " + KEY.serialize()


def test_check_known_and_mismatch():
    db = db_of(entry("example.com", KEY))
    assert db.check("", "example.com:22", KEY) is None
    with pytest.raises(KnownHostsKeyError) as info:
        db.check("", "example.com:22", OTHER)
    assert str(info.value) == "knownhosts: key mismatch"
    assert [k.key for k in info.value.want] == [KEY]
    assert info.value.want[0].filename == "known_hosts"
    assert info.value.want[0].line == 1


def test_check_unknown_host():
    db = db_of(entry("example.com", KEY))
    with pytest.raises(KnownHostsKeyError) as info:
        db.check("", "other.example.com:22", KEY)
    assert info.value.want == []
    assert str(info.value) == "knownhosts: key is unknown"


def test_check_port_must_match():
    db = db_of(entry("example.com", KEY))
    with pytest.raises(KnownHostsKeyError) as info:
        db.check("", "example.com:2222", KEY)
    assert info.value.want == []


def test_different_key_type_is_mismatch():
    db = db_of(entry("example.com", KEY))
    with pytest.raises(KnownHostsKeyError) as info:
        db.check("", "example.com:22", make_key("ssh-rsa"))
    assert len(info.value.want) == 1


def test_check_via_host_name():
    db = db_of(entry("example.com", KEY))
    db.check("example.com:22", "10.0.0.1:22", KEY)
    with pytest.raises(KnownHostsKeyError):
        db.check("", "10.0.0.1:22", KEY)


def test_revoked():
    db = db_of(entry("*", KEY, "@revoked"), entry("example.com", OTHER))
    assert db.is_revoked(KEY)
    assert not db.is_revoked(OTHER)
    with pytest.raises(RevokedKeyError) as info:
        db.check("", "example.com:22", KEY)
    assert info.value.revoked.key == KEY
    assert str(info.value) == "knownhosts: key is revoked"


def test_negated_pattern():
    db = db_of(entry("*.example.com#!bad.example.com", KEY))
    db.check("", "good.example.com:22", KEY)
    with pytest.raises(KnownHostsKeyError) as info:
        db.check("", "bad.example.com:22", KEY)
    assert info.value.want == []


def test_cert_authority():
    db = db_of(entry("*.example.com", KEY, "@cert-authority"))
    assert db.is_host_authority(KEY, "host.example.com:22")
    assert not db.is_host_authority(OTHER, "host.example.com:22")
    assert not db.is_host_authority(KEY, "host.example.org:22")
    assert not db.is_host_authority(KEY, "no-port")


def test_scion_address_round_trip():
    remote = "1-ff00:0:110,[127.0.0.1]:22"
    db = db_of(line(remote, KEY))
    db.check("", remote, KEY)
    with pytest.raises(KnownHostsKeyError):
        db.check("", remote, OTHER)


def test_hashed_host_round_trip():
    hashed = hash_hostname("example.com:22")
    assert hashed.startswith("|1|")
    assert hashed != hash_hostname("example.com:22")
    db = db_of(entry(hashed, KEY))
    db.check("", "example.com:22", KEY)
    with pytest.raises(KnownHostsKeyError):
        db.check("", "other.example.com:22", KEY)


def test_bad_hash_type():
    hashed = hash_hostname("example.com:22").replace("|1|", "|2|", 1)
    with pytest.raises(ValueError, match="hash type"):
        db_of(entry(hashed, KEY))


def test_bad_hash_components():
    with pytest.raises(ValueError, match="components"):
        db_of(entry("|1|abc", KEY))


def test_missing_host_pattern():
    with pytest.raises(ValueError, match="missing host pattern") as info:
        db_of("example.com")
    assert "known_hosts:1" in str(info.value)


def test_missing_key_type():
    with pytest.raises(ValueError, match="missing key type pattern"):
        db_of("example.com ssh-ed25519")


def test_negation_without_host():
    with pytest.raises(ValueError, match="negation without following hostname"):
        db_of(entry("!", KEY))


def test_comments_and_blank_lines_skipped():
    db = db_of("# comment", "", entry("example.com", KEY))
    with pytest.raises(KnownHostsKeyError) as info:
        db.check("", "example.com:22", OTHER)
    assert info.value.want[0].line == 3


def test_load_known_hosts(tmp_path):
    path = tmp_path / "known_hosts"
    path.write_text(line("example.com", KEY) + "\n", encoding="utf-8")
    db = load_known_hosts(str(path))
    db.check("", "example.com:22", KEY)
    with pytest.raises(KnownHostsKeyError) as info:
        db.check("", "example.com:22", OTHER)
    assert info.value.want[0].filename == str(path)


def test_load_known_hosts_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_known_hosts(str(tmp_path / "missing"))