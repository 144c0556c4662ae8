import pytest

from emitterkit.binary import Reader, encode_bytes, encode_uvarint


def test_small_uvarint_is_single_byte():
    assert encode_uvarint(1) == b"\x01"
    assert encode_uvarint(127) == b"\x7f"


def test_multi_byte_uvarint():
    assert encode_uvarint(128) == b"\x80\x01"
    assert encode_uvarint(300) == b"\xac\x02"


def test_encode_bytes_prefix():
    assert encode_bytes(b"A") == b"\x01A"


def test_reader_on_known_stream():
    reader = Reader(b"\x01\x01A")
    assert reader.read_uvarint() == 1
    assert reader.read_bytes() == b"A"
    with pytest.raises(EOFError):
        reader.read_byte()


@pytest.mark.parametrize("value", [0, 1, 127, 128, 255, 16383, 16384, 2**32, 2**63, 2**64 - 1])
def test_uvarint_round_trip(value):
    encoded = encode_uvarint(value)
    reader = Reader(encoded)
    assert reader.read_uvarint() == value
    with pytest.raises(EOFError):
        reader.read_byte()


@pytest.mark.parametrize("payload", [b"", b"x", b"hello world", bytes(range(256)) * 3])
def test_bytes_round_trip(payload):
    reader = Reader(encode_bytes(payload) + encode_bytes(payload[::-1]))
    assert reader.read_bytes() == payload
    assert reader.read_bytes() == payload[::-1]


def test_negative_uvarint_rejected():
    with pytest.raises(ValueError):
        encode_uvarint(-1)


def test_too_large_uvarint_rejected():
    with pytest.raises(ValueError):
        encode_uvarint(2**64)


def test_truncated_uvarint():
    encoded = encode_uvarint(2**40)
    with pytest.raises(EOFError):
        Reader(encoded[:-1]).read_uvarint()


def test_truncated_bytes():
    encoded = encode_bytes(b"hello")
    with pytest.raises(EOFError):
        Reader(encoded[:-1]).read_bytes()


def test_overflowing_uvarint():
    with pytest.raises(ValueError):
        Reader(b"\xff" * 11).read_uvarint()


def test_read_byte_sequence():
    reader = Reader(b"abc")
    assert [reader.read_byte() for _ in range(3)] == list(b"abc")