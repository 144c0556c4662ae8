"""Variable-length integer and length-prefixed byte encoding."""

from __future__ import annotations

_MAX_VARINT_LEN = 10


def encode_uvarint(value: int) -> bytes:
    """Encode a non-negative integer as an unsigned LEB128 varint."""
    if value < 0:
        raise ValueError("uvarint cannot encode a negative value")
    if value >= 1 << 64:
        raise ValueError("uvarint value does not fit in 64 bits")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_bytes(data: bytes) -> bytes:
    """Encode bytes prefixed with their length as a uvarint."""
    data = bytes(data)
    return encode_uvarint(len(data)) + data


class Reader:
    """Sequential reader over an encoded byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def read_byte(self) -> int:
        """Read a single byte; raises EOFError at the end of the data."""
        if self._pos >= len(self._data):
            raise EOFError("unexpected end of data")
        value = self._data[self._pos]
        self._pos += 1
        return value

    def read_uvarint(self) -> int:
        """Read an unsigned varint; raises ValueError if it overflows 64 bits."""
        result = 0
        shift = 0
        for index in range(_MAX_VARINT_LEN):
            byte = self.read_byte()
            if byte < 0x80:
                if index == _MAX_VARINT_LEN - 1 and byte > 1:
                    raise ValueError("uvarint overflows 64 bits")
                return result | (byte << shift)
            result |= (byte & 0x7F) << shift
            shift += 7
        raise ValueError("uvarint overflows 64 bits")

    def read_bytes(self) -> bytes:
        """Read a length-prefixed byte string."""
        size = self.read_uvarint()
        end = self._pos + size
        if end > len(self._data):
            raise EOFError("unexpected end of data")
        value = self._data[self._pos:end]
        self._pos = end
        return value