"""Timestamped values of the last-write-wins maps and their clock."""

from __future__ import annotations

import struct
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

_HEADER = struct.Struct(">qq")

Clock = Callable[[], int]

_clock_lock = threading.Lock()
_clock: Clock = time.time_ns


def now() -> int:
    """Return the current time in Unix nanoseconds from the active clock."""
    with _clock_lock:
        clock = _clock
    return clock()


def set_clock(clock: Optional[Clock]) -> Clock:
    """Replace the clock (``None`` restores wall time) and return the previous one."""
    global _clock
    with _clock_lock:
        previous = _clock
        _clock = time.time_ns if clock is None else clock
    return previous


@dataclass
class Value:
    """An add time, a delete time and a payload."""

    add_time: int = 0
    del_time: int = 0
    payload: bytes = b""

    def __post_init__(self) -> None:
        self.payload = bytes(self.payload or b"")

    def is_zero(self) -> bool:
        """True when neither time is set."""
        return self.add_time == 0 and self.del_time == 0

    def is_added(self) -> bool:
        """True when the entry was added and not removed afterwards."""
        return self.add_time != 0 and self.add_time >= self.del_time

    def is_removed(self) -> bool:
        """True when the entry was removed after it was added."""
        return self.add_time < self.del_time

    def encode(self) -> bytes:
        """Encode as two big-endian 64-bit times followed by the payload."""
        return _HEADER.pack(self.add_time, self.del_time) + self.payload

    @classmethod
    def decode(cls, data: bytes) -> "Value":
        """Decode a value produced by :meth:`encode`."""
        data = bytes(data)
        if len(data) < _HEADER.size:
            raise ValueError("encoded value is shorter than its 16-byte header")
        add_time, del_time = _HEADER.unpack_from(data)
        return cls(add_time, del_time, data[_HEADER.size:])