"""An in-memory last-write-wins map."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Callable, Iterator, Mapping, Optional, Tuple, Union

from emitterkit.binary import Reader, encode_bytes, encode_uvarint
from emitterkit.crdt.value import Value, now

Key = Union[bytes, str]


def _to_key(item: Key) -> bytes:
    return item.encode("utf-8") if isinstance(item, str) else bytes(item)


class Volatile:
    """A last-write-wins set with a bias for additions, held in memory."""

    def __init__(self, items: Optional[Mapping[Key, Value]] = None) -> None:
        self._lock = threading.Lock()
        self._data: dict = {_to_key(k): replace(v) for k, v in (items or {}).items()}

    def _fetch(self, key: bytes) -> Value:
        found = self._data.get(key)
        return replace(found) if found is not None else Value()

    def _store(self, key: bytes, value: Value) -> None:
        self._data[key] = value

    def add(self, item: Key, value: Optional[bytes]) -> None:
        """Mark the item as added now, with the given payload."""
        key = _to_key(item)
        with self._lock:
            current, stamp = self._fetch(key), now()
            if current.add_time < stamp:
                current.add_time = stamp
                current.payload = bytes(value or b"")
                self._data[key] = current

    def delete(self, item: Key) -> None:
        """Mark the item as removed now."""
        key = _to_key(item)
        with self._lock:
            current, stamp = self._fetch(key), now()
            if current.del_time < stamp:
                current.del_time = stamp
                self._data[key] = current

    def has(self, item: Key) -> bool:
        """True if the item is currently present."""
        with self._lock:
            return self._fetch(_to_key(item)).is_added()

    def get(self, item: Key) -> Value:
        """Return the item's value, or a zero value if it is unknown."""
        with self._lock:
            return self._fetch(_to_key(item))

    def _apply_to(self, fetch: Callable[[bytes], Value], store: Callable[[bytes, Value], None]) -> None:
        """Merge this set into a target and reduce this set to the delta."""
        with self._lock:
            for key, remote in list(self._data.items()):
                local = fetch(key)

                if local.add_time < remote.add_time:
                    local.add_time = remote.add_time
                else:
                    remote.add_time = 0

                if local.del_time < remote.del_time:
                    local.del_time = remote.del_time
                else:
                    remote.del_time = 0

                if remote.is_zero():
                    del self._data[key]
                else:
                    local.payload = remote.payload
                    store(key, local)

    def merge(self, other: "Volatile") -> None:
        """Merge another set into this one, leaving only the delta in ``other``."""
        if not isinstance(other, Volatile):
            raise TypeError("only a Volatile set can be merged")
        if other is self:
            return
        with self._lock:
            other._apply_to(self._fetch, self._store)

    def range(self, prefix: Optional[Key] = None, tombstones: bool = False) -> Iterator[Tuple[bytes, Value]]:
        """Iterate over entries whose key starts with ``prefix``.

        Removed entries are included only when ``tombstones`` is true.
        """
        wanted = b"" if prefix is None else _to_key(prefix)
        with self._lock:
            snapshot = [
                (k, replace(v))
                for k, v in self._data.items()
                if k.startswith(wanted) and (tombstones or v.is_added())
            ]
        return iter(snapshot)

    def count(self) -> int:
        """Number of entries, removed ones included."""
        with self._lock:
            return len(self._data)

    def encode(self) -> bytes:
        """Serialise the set as a count followed by key/value byte strings."""
        with self._lock:
            parts = [encode_uvarint(len(self._data))]
            for key, value in self._data.items():
                parts.append(encode_bytes(key))
                parts.append(encode_bytes(value.encode()))
        return b"".join(parts)

    @classmethod
    def decode(cls, data: Union[bytes, Reader]) -> "Volatile":
        """Decode a set from bytes or from a reader positioned at one.

        A truncated entry list ends decoding without an error.
        """
        reader = data if isinstance(data, Reader) else Reader(data)
        out = cls()
        size = reader.read_uvarint()
        for _ in range(size):
            try:
                key = reader.read_bytes()
                raw = reader.read_bytes()
            except EOFError:
                break
            out._data[key] = Value.decode(raw)
        return out