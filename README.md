# emitterkit

Building blocks for a publish/subscribe message broker, usable on their own.
Only the standard library is required.

## What is in the package

- `emitterkit.crdt.value`: `Value`, a last-write-wins entry made of an add time,
  a delete time and a payload, encoded as two big-endian 64-bit times followed by
  the payload. `now()` returns the current time in Unix nanoseconds and
  `set_clock(clock)` replaces the clock (`None` restores wall time), returning the
  previous one; useful in tests.
- `emitterkit.crdt.volatile`: `Volatile`, an in-memory last-write-wins set with a
  bias for additions. It has `add`, `delete`, `has`, `get`, `range(prefix,
  tombstones)`, `count`, and `merge(other)`, which merges `other` in and leaves only
  the delta in `other`. `encode()` and `Volatile.decode(data)` give a compact
  binary form.
- `emitterkit.crdt.durable`: `Durable`, the same set stored in SQLite, either in a
  file or in memory (the default). Removed entries expire after six hours.
  `range` yields entries in key order, `to_dict()` returns every entry, `encode()`
  writes at most 50000 entries sampled at random and sorted by key, and `close()`
  closes the store. It can also be used as a context manager. A `Durable` can
  merge a `Volatile` only.
- `emitterkit.crdt.factory`: `new_map(durable, path)` creates a `Durable` or a
  `Volatile`.
- `emitterkit.binary`: `encode_uvarint`, `encode_bytes` and a `Reader` with
  `read_byte`, `read_uvarint` and `read_bytes`.
- `emitterkit.events`: the replicated events `Subscription`, `Ban` and
  `Connection`, each with a binary `key()` and `val()` and a `decode` class
  method, and the `EventType` enumeration.
- `emitterkit.state`: `State`, which holds one set per event type. Given a
  directory it is durable and keeps bans in `ban.db` there (`":memory:"` keeps
  them in memory). It has `add`, `delete`, `has`, `merge` (returns the other
  state reduced to the delta, or `None` when nothing changed), the iterators
  `subscriptions()`, `subscriptions_of(peer)` and `connections_of(peer)`,
  `encode()` to a zlib-compressed byte string and `State.decode(data)`, which
  always yields a volatile state.
- `emitterkit.errors`: `EmitterError` with an HTTP-like `status`, a `message`
  and a `request` id, plus `copy()`, `for_request(request_id)`, `to_dict()`,
  `new_error(message)` and predefined errors such as `ERR_BAD_REQUEST` and
  `ERR_UNAUTHORIZED`.
- `emitterkit.config`: `Config` with `ClusterConfig`, `LimitConfig`,
  `TLSConfig` and `ProviderConfig`; `max_message_bytes()` (capped at 64 KiB),
  `addr()`, `certificate()` (an SSL context built from certificate and key
  files), `to_dict()` and `from_dict()`. `parse_address(text, default_port)`
  accepts IP literals, an empty host and the words `private`, `external`,
  `public`, `loopback` and `localhost`. `new_default()` returns the default
  configuration and `read_or_create(filename)` reads a JSON file or writes the
  defaults to it when it is missing.
- `emitterkit.timer`: `repeat(interval, action)` runs the action at once and then
  every `interval` seconds (a number or a `timedelta`) on a background thread.
  Exceptions from the action are logged. It returns a function that stops the
  repetition.

## Installation

```
pip install emitterkit
```

## Example

```python
from emitterkit.crdt.volatile import Volatile

local, remote = Volatile(), Volatile()
local.add("a", b"payload")
remote.delete("a")

local.merge(remote)      # remote now holds only the delta
print(local.has("a"))    # False: the removal is newer than the addition
```

```python
from emitterkit.events import Subscription
from emitterkit.state import State

state = State()
sub = Subscription(peer=1, conn=2, ssid=[1, 2], user="alice", channel=b"a/b/")
state.add(sub)

copy = State.decode(state.encode())
for event, value in copy.subscriptions():
    print(event.channel, value.add_time)
```

## Command line

```
emitterkit version
```

prints `emitter version 0, commit untracked`.

## What the package does not do

There is no broker here: no network listener, no MQTT or WebSocket handling, no
cluster gossip transport, no key generation and no message storage. The package
provides the state, events, errors and configuration such a broker would use;
`version` is the only command.