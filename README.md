# scionkit

scionkit is a set of helpers for networking tools that run over SCION. It
covers SSH-style configuration, known_hosts checking, path selectors,
browser-proxy helpers, sensor readings and the decoding of tunnel and SSH
channel payloads. It uses only the standard library and needs Python 3.10
or later.

## Installation

```
pip install scionkit
```

The `test` extra installs pytest, which the test suite needs.

## Modules

### `scionkit.config`: SSH-style configuration

`ClientConfig` and `ServerConfig` are dataclasses that start out holding
their default values. For example, `ClientConfig().port` is `"22"` and
`ClientConfig().strict_host_key_checking` is `"ask"`.

Configuration files use CamelCase names for options. The field `port` is
the option `Port`, and `identity_file` is `IdentityFile`. Every option has
a pattern, and a value must match it before it is accepted. Setting a
string option replaces its value. Setting a list option, such as
`IdentityFile`, appends to it.

- `set_option(conf, name, value)` sets one option. `to_config_string`
  turns the value into text first, so booleans become `yes` or `no`.
- `set_if_not(conf, name, value, not_value)` leaves the option alone and
  returns `True` when `value` reads the same as `not_value`. Otherwise it
  sets the option and returns `False`.
- `update_from_string(conf, line)` applies one `Name value` or
  `Name=value` line.
- `update_from_reader(conf, lines)` applies an iterable of lines and skips
  blank lines and `#` comments. Lines are applied from last to first, so
  for a plain option the first occurrence in the file wins. A bad line is
  logged as a warning and skipped.
- `update_from_file(conf, path)` does the same for a file. A missing file
  raises `OSError`.
- `parse_path(path)` expands a leading `~` or `~/` to the home directory.

An unknown option name or a value that does not match the option's
pattern raises `ConfigError`, which is a subclass of `ValueError`.

```python
from scionkit.config import ClientConfig, ConfigError, set_option, update_from_string

conf = ClientConfig()
update_from_string(conf, "Port 2222")
assert conf.port == "2222"

try:
    set_option(conf, "Port", 70000)
except ConfigError:
    pass
```

### `scionkit.knownhosts`: the known_hosts database

`load_known_hosts(*paths)` reads known_hosts files into a `HostKeyDB`. To
build a database from lines in memory, call `HostKeyDB().read(lines,
filename)`. A malformed line raises `ValueError`, and the message names the
file and the line number.

Within one line, host patterns are separated by `#` instead of `,`,
because SCION addresses such as `1-ff00:0:110,[10.0.0.1]:22` contain
commas. The file may also contain:

- Hashed hosts (`|1|salt|hash`).
- `@cert-authority` markers.
- `@revoked` markers.
- `!` negations.
- `*` and `?` wildcards.

A pattern without a port means port 22.

`HostKeyDB.check(address, remote, remote_key)` looks up a `PublicKey`
under the remote address, and also under `address` when that is not empty:

- An unknown host raises `KnownHostsKeyError` with an empty `want`.
- A different key on record raises `KnownHostsKeyError` that lists the
  expected `KnownKey` entries in `want`.
- A revoked key raises `RevokedKeyError`.
- An address that cannot be split raises `ValueError`.

`is_host_authority(key, address)` tells whether a key is a certificate
authority for an address. `is_revoked(key)` tells whether a key is revoked.

Other helpers:

- `PublicKey.from_blob(blob)` reads the key type from an SSH wire-format
  blob.
- `PublicKey.serialize()` gives the `type base64` form.
- `split_host_port`, `wildcard_match` and `normalize` handle addresses and
  patterns.
- `line(address, key)` builds a line to append to a known_hosts file.
- `hash_hostname(hostname)` hashes a name with a random salt.

### `scionkit.skip`: browser proxy helpers

- `demunge(host)` turns a browser-friendly host name back into a SCION
  address. For example, `1-ffaa_0_1-10.0.0.1` becomes
  `[1-ffaa:0:1,10.0.0.1]`. Other names are returned unchanged.
- `parse_hosts_file(lines)` returns the names of hosts-file entries whose
  address contains a comma.
- `load_hosts(paths)` does the same for files. By default it reads
  `/etc/hosts` and `/etc/scion/hosts`, and it skips any file it cannot
  read.
- `IA.parse(text)` parses an ISD-AS identifier such as `19-ffaa:1:f5c`.
- `parse_show_paths(text)` reads a path written like
  `1-ff00:0:1 2>3 1-ff00:0:2` into a list of `Step` objects.
- `to_sequence_str(steps)` and `parse_show_path_to_seq(text)` render the
  path as a sequence of hop predicates, such as `1-ff00:0:1 #2
  1-ff00:0:2 #3`. Malformed input raises `ValueError`.
- `PathUsageStats` keeps one `PathUsage` for each domain:
  - `record(domain, path, strategy)` adds an entry or updates its path.
  - `add_received(domain, count)` adds to the received byte count.
  - `to_json()` serializes all entries as a JSON array with the keys
    `Received`, `Path`, `Strategy` and `Domain`.

### `scionkit.selectors`: path selectors

`selector_by_name(name)` accepts the names in `AVAILABLE_PATH_SELECTORS`
and returns a selector or `None`:

| Name | Result |
| --- | --- |
| `"default"` | `None` |
| `"round-robin"` | a `RoundRobinSelector` |
| `"random"` | a `RandomSelector` |

Any other name raises `SelectorError`.

Both selectors have the methods `initialize(local, remote, paths)`,
`refresh(paths)`, `path()`, `path_down(fingerprint, interface)` and
`close()`:

- `RoundRobinSelector` hands out the paths in turn. It starts again at the
  first path after `refresh`.
- `RandomSelector` picks a path at random. It accepts an optional
  `random.Random` instance.
- `path()` returns `None` when there are no paths, including after
  `close()`.
- `path_down` only records the fingerprint in `reported_down`. The path
  keeps being used.

### `scionkit.sensor`: sensor readings

`SensorData` keeps the last `Sensor: value` line seen for each sensor and
the last `Time: ...` timestamp. Pass lines in one at a time with
`feed_line`, or several at once with `feed`. `response()` returns the
timestamp line followed by one line for each sensor.

### `scionkit.tunnel`: forwarding and SSH channel payloads

- `transfer(dst, src)` copies `src` into `dst` in chunks of 1024 bytes.
  It stops at end of input, at an error or at a short write. It then
  closes both ends and returns the number of bytes written.
- `format_tunnel_log(client, dest, status, when=None)` builds a log line
  for a forwarded session in a format similar to the Common Log Format.
- `parse_dims(payload)` reads a terminal width and height.
  `encode_dims(width, height)` builds a `window-change` payload.
- `parse_pty_request(payload)` returns a `PtyRequest`, which holds the
  terminal type, width and height.
- `parse_exec_payload(payload)` returns the command of an `exec` request.
- `parse_tcp_tunnel_data(extra)` returns the `(host, port)` of a
  `direct-tcpip` channel.
- `parse_scion_tunnel_data(extra)` returns the address of a
  `direct-scionquic` channel.

If a payload is too short, the function reading it raises `ValueError`.

## What this package does not do

scionkit provides no commands and opens no network connections. It has no
SCION or QUIC transport and no address resolution. It has no SSH client or
server: no authentication, no terminal handling and no running of
commands. It has no HTTP proxy, gateway or sensor server.

The modules above cover the parsing, checking and bookkeeping parts of
such tools. The sockets, the protocol handling and the command-line front
ends have to come from elsewhere.