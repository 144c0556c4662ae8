"""A last-write-wins map persisted in SQLite."""

from __future__ import annotations

import os
import random
import sqlite3
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Mapping, Optional, Tuple, Union

from emitterkit.binary import Reader, encode_bytes, encode_uvarint
from emitterkit.crdt.value import Value, now
from emitterkit.crdt.volatile import Volatile

Key = Union[bytes, str]

_TOMBSTONE_TTL = 6 * 60 * 60  # removed entries expire after six hours
_RESERVOIR_SIZE = 50000


def _to_key(item: Key) -> bytes:
    return item.encode("utf-8") if isinstance(item, str) else bytes(item)


class Durable:
    """A last-write-wins set with a bias for additions, stored on disk or in memory."""

    def __init__(self, path: Union[str, "os.PathLike[str]"] = "", items: Optional[Mapping[Key, Value]] = None) -> None:
        location = os.fspath(path) if path else ":memory:"
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(location, check_same_thread=False, isolation_level=None)
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS entries (key BLOB PRIMARY KEY, val BLOB NOT NULL, expires REAL)"
        )
        for key, value in (items or {}).items():
            with self._transaction():
                self._store(_to_key(key), value)

    def __enter__(self) -> "Durable":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def _fetch(self, key: bytes) -> Value:
        row = self._conn.execute(
            "SELECT val FROM entries WHERE key = ? AND (expires IS NULL OR expires > ?)",
            (key, time.time()),
        ).fetchone()
        return Value.decode(row[0]) if row else Value()

    def _store(self, key: bytes, value: Value) -> None:
        expires = time.time() + _TOMBSTONE_TTL if value.is_removed() else None
        self._conn.execute(
            "INSERT OR REPLACE INTO entries (key, val, expires) VALUES (?, ?, ?)",
            (key, value.encode(), expires),
        )

    def _rows(self) -> list:
        with self._lock:
            return self._conn.execute(
                "SELECT key, val FROM entries WHERE expires IS NULL OR expires > ? ORDER BY key",
                (time.time(),),
            ).fetchall()

    def add(self, item: Key, value: Optional[bytes]) -> None:
        """Mark the item as added now, with the given payload."""
        key = _to_key(item)
        with self._transaction():
            current, stamp = self._fetch(key), now()
            if current.add_time < stamp:
                current.add_time = stamp
                current.payload = bytes(value or b"")
                self._store(key, current)

    def delete(self, item: Key) -> None:
        """Mark the item as removed now."""
        key = _to_key(item)
        with self._transaction():
            current, stamp = self._fetch(key), now()
            if current.del_time < stamp:
                current.del_time = stamp
                self._store(key, current)

    def has(self, item: Key) -> bool:
        """True if the item is currently present."""
        return self.get(item).is_added()

    def get(self, item: Key) -> Value:
        """Return the item's value, or a zero value if it is unknown."""
        with self._lock:
            return self._fetch(_to_key(item))

    def merge(self, other: Volatile) -> None:
        """Merge a volatile set into this one, leaving only the delta in ``other``."""
        if not isinstance(other, Volatile):
            raise TypeError("only a Volatile set can be merged")
        with self._transaction():
            other._apply_to(self._fetch, self._store)

    def range(self, prefix: Optional[Key] = None, tombstones: bool = False) -> Iterator[Tuple[bytes, Value]]:
        """Iterate in key order over entries whose key starts with ``prefix``.

        Removed entries are included only when ``tombstones`` is true.
        """
        wanted = b"" if prefix is None else _to_key(prefix)
        selected = []
        for key, raw in self._rows():
            key = bytes(key)
            if not key.startswith(wanted):
                continue
            value = Value.decode(raw)
            if tombstones or value.is_added():
                selected.append((key, value))
        return iter(selected)

    def count(self) -> int:
        """Number of entries, removed ones included."""
        return sum(1 for _ in self.range(None, True))

    def to_dict(self) -> dict:
        """Return all entries, removed ones included, keyed by their bytes."""
        return dict(self.range(None, True))

    def encode(self) -> bytes:
        """Serialise a sample of at most 50000 entries, sorted by key."""
        entries: list = []
        seen = 0
        for key, raw in self._rows():
            seen += 1
            entry = (bytes(key), bytes(raw))
            if seen <= _RESERVOIR_SIZE:
                entries.append(entry)
                continue
            slot = random.randrange(seen)
            if slot < _RESERVOIR_SIZE:
                entries[slot] = entry

        entries.sort(key=lambda e: e[0])
        parts = [encode_uvarint(len(entries))]
        for key, raw in entries:
            parts.append(encode_bytes(key))
            parts.append(encode_bytes(raw))
        return b"".join(parts)

    @classmethod
    def decode(cls, data: Union[bytes, Reader]) -> "Durable":
        """Decode into a new in-memory set; a truncated entry list ends decoding."""
        reader = data if isinstance(data, Reader) else Reader(data)
        out = cls()
        size = reader.read_uvarint()
        with out._transaction():
            for _ in range(size):
                try:
                    key = reader.read_bytes()
                    raw = reader.read_bytes()
                except EOFError:
                    break
                Value.decode(raw)
                out._conn.execute(
                    "INSERT OR REPLACE INTO entries (key, val, expires) VALUES (?, ?, NULL)",
                    (key, raw),
                )
        return out

    def close(self) -> None:
        """Close the underlying store."""
        with self._lock:
            self._conn.close()