"""Cluster-wide replicated state made of last-write-wins subsets."""

from __future__ import annotations

import os
import zlib
from typing import Iterator, Tuple, Union

from emitterkit.binary import Reader, encode_uvarint
from emitterkit.crdt.factory import new_map
from emitterkit.crdt.value import Value
from emitterkit.crdt.volatile import Volatile
from emitterkit.events import Ban, Connection, EventType, Subscription

Event = Union[Subscription, Ban, Connection]


def _file_of(directory: str, name: str) -> str:
    if directory == ":memory:":
        return directory
    return os.path.join(directory, name)


def _prefix_of(peer: int) -> bytes:
    return int(peer).to_bytes(8, "big")


class State:
    """Globally synchronised state, durable when a directory is given."""

    def __init__(self, directory: Union[str, "os.PathLike[str]"] = "") -> None:
        directory = os.fspath(directory)
        self.durable = directory != ""
        self._subsets = {
            EventType.SUBSCRIPTION: new_map(self.durable, ""),
            EventType.BAN: new_map(self.durable, _file_of(directory, "ban.db")),
            EventType.CONNECTION: new_map(self.durable, ""),
        }

    def __enter__(self) -> "State":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @classmethod
    def decode(cls, data: bytes) -> "State":
        """Decode a state produced by :meth:`encode`; the result is always volatile."""
        try:
            raw = zlib.decompress(data)
        except zlib.error as exc:
            raise ValueError(f"unable to decompress state: {exc}") from exc

        out = cls()
        reader = Reader(raw)
        try:
            for _ in range(reader.read_uvarint()):
                kind = EventType(reader.read_byte())
                out._subsets[kind] = Volatile.decode(reader)
        except EOFError as exc:
            raise ValueError("truncated state") from exc
        return out

    def encode(self) -> bytes:
        """Serialise the complete state into a compressed byte string."""
        parts = [encode_uvarint(len(self._subsets))]
        for kind in sorted(self._subsets):
            parts.append(bytes([kind]))
            parts.append(self._subsets[kind].encode())
        return zlib.compress(b"".join(parts))

    def merge(self, other: "State") -> "State | None":
        """Merge another state in; return it reduced to the delta, or None if nothing changed."""
        count = 0
        for kind, subset in self._subsets.items():
            theirs = other._subsets[kind]
            subset.merge(theirs)
            count += theirs.count()
        return other if count else None

    def add(self, event: Event) -> None:
        """Record the event as added."""
        self._subsets[event.event_type].add(event.key(), event.val())

    def delete(self, event: Event) -> None:
        """Record the event as removed."""
        self._subsets[event.event_type].delete(event.key())

    def has(self, event: Event) -> bool:
        """True if the event is currently present."""
        return self._subsets[event.event_type].has(event.key())

    def subscriptions(self) -> Iterator[Tuple[Subscription, Value]]:
        """Iterate over every subscription, removed ones included, with its value."""
        for key, value in self._subsets[EventType.SUBSCRIPTION].range(None, True):
            try:
                event = Subscription.decode(key, value.payload)
            except ValueError:
                continue
            yield event, value

    def subscriptions_of(self, peer: int) -> Iterator[Subscription]:
        """Iterate over the live subscriptions of one peer."""
        subset = self._subsets[EventType.SUBSCRIPTION]
        for key, value in subset.range(_prefix_of(peer), False):
            try:
                yield Subscription.decode(key, value.payload)
            except ValueError:
                continue

    def connections_of(self, peer: int) -> Iterator[Connection]:
        """Iterate over the live connections of one peer."""
        subset = self._subsets[EventType.CONNECTION]
        for key, value in subset.range(_prefix_of(peer), False):
            try:
                yield Connection.decode(key, value.payload)
            except ValueError:
                continue

    def close(self) -> None:
        """Close every subset that holds resources."""
        for subset in self._subsets.values():
            close = getattr(subset, "close", None)
            if close is not None:
                close()