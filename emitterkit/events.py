"""Replicated cluster events and their binary key/value encoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Optional, Tuple

from emitterkit.binary import Reader, encode_bytes

_ID_HEADER = struct.Struct(">QQ")


class EventType(IntEnum):
    """The kind of a replicated event; each kind lives in its own subset."""

    SUBSCRIPTION = 0
    BAN = 1
    CONNECTION = 2


def _id_prefix(peer: int, conn: int) -> bytes:
    try:
        return _ID_HEADER.pack(peer, conn)
    except struct.error as exc:
        raise ValueError("peer and connection ids must fit in 64 bits") from exc


def _split_key(key: bytes) -> Tuple[int, int, bytes]:
    key = bytes(key)
    if len(key) < _ID_HEADER.size:
        raise ValueError("event key is shorter than its 16-byte header")
    peer, conn = _ID_HEADER.unpack_from(key)
    return peer, conn, key[_ID_HEADER.size:]


def _bool_byte(reader: Reader) -> bool:
    return reader.read_byte() != 0


@dataclass
class Subscription:
    """A subscription of a connection on a peer to a channel."""

    event_type: ClassVar[EventType] = EventType.SUBSCRIPTION

    peer: int = 0
    conn: int = 0
    ssid: Tuple[int, ...] = ()
    user: str = ""
    channel: bytes = b""

    def __post_init__(self) -> None:
        self.ssid = tuple(self.ssid)
        self.channel = bytes(self.channel or b"")

    def key(self) -> bytes:
        """Peer and connection ids followed by every part of the SSID, big-endian."""
        try:
            parts = struct.pack(f">{len(self.ssid)}I", *self.ssid)
        except struct.error as exc:
            raise ValueError("ssid parts must fit in 32 bits") from exc
        return _id_prefix(self.peer, self.conn) + parts

    def val(self) -> bytes:
        """The user name and channel as length-prefixed byte strings."""
        return encode_bytes(self.user.encode("utf-8")) + encode_bytes(self.channel)

    @classmethod
    def decode(cls, key: bytes, value: Optional[bytes]) -> "Subscription":
        """Rebuild a subscription from its key and value."""
        peer, conn, rest = _split_key(key)
        count = len(rest) // 4
        ssid = struct.unpack(f">{count}I", rest[: count * 4])
        user, channel = "", b""
        if value:
            reader = Reader(value)
            try:
                user = reader.read_bytes().decode("utf-8")
                channel = reader.read_bytes()
            except EOFError as exc:
                raise ValueError("truncated subscription value") from exc
        return cls(peer=peer, conn=conn, ssid=ssid, user=user, channel=channel)


@dataclass(frozen=True)
class Ban:
    """A banned security key."""

    event_type: ClassVar[EventType] = EventType.BAN
    _payload: ClassVar[Optional[bytes]] = None

    name: str

    def key(self) -> bytes:
        """The banned key itself."""
        return self.name.encode("utf-8")

    def val(self) -> Optional[bytes]:
        """The payload of a ban, which is always absent."""
        return self._payload

    @classmethod
    def decode(cls, key: bytes) -> "Ban":
        """Rebuild a ban from its key."""
        return cls(bytes(key).decode("utf-8"))


@dataclass
class Connection:
    """A client connection on a peer, with its last-will settings."""

    event_type: ClassVar[EventType] = EventType.CONNECTION

    peer: int = 0
    conn: int = 0
    will_flag: bool = False
    will_retain: bool = False
    will_qos: int = 0
    will_topic: bytes = b""
    will_message: bytes = b""
    client_id: bytes = b""
    username: bytes = b""

    def __post_init__(self) -> None:
        self.will_topic = bytes(self.will_topic or b"")
        self.will_message = bytes(self.will_message or b"")
        self.client_id = bytes(self.client_id or b"")
        self.username = bytes(self.username or b"")

    def key(self) -> bytes:
        """Peer and connection ids, big-endian."""
        return _id_prefix(self.peer, self.conn)

    def val(self) -> bytes:
        """Flags and QoS as single bytes, then the byte fields length-prefixed."""
        head = bytes([int(self.will_flag), int(self.will_retain), self.will_qos])
        return head + b"".join(
            encode_bytes(part)
            for part in (self.will_topic, self.will_message, self.client_id, self.username)
        )

    @classmethod
    def decode(cls, key: bytes, value: Optional[bytes]) -> "Connection":
        """Rebuild a connection from its key and value."""
        peer, conn, _ = _split_key(key)
        out = cls(peer=peer, conn=conn)
        if value:
            reader = Reader(value)
            try:
                out.will_flag = _bool_byte(reader)
                out.will_retain = _bool_byte(reader)
                out.will_qos = reader.read_byte()
                out.will_topic = reader.read_bytes()
                out.will_message = reader.read_bytes()
                out.client_id = reader.read_bytes()
                out.username = reader.read_bytes()
            except EOFError as exc:
                raise ValueError("truncated connection value") from exc
        return out