import threading

import pytest

from emitterkit.binary import encode_bytes, encode_uvarint
from emitterkit.crdt.durable import Durable
from emitterkit.crdt.value import Value, set_clock
from emitterkit.crdt.volatile import Volatile


@pytest.fixture
def freeze():
    original = set_clock(None)

    def _set(t):
        set_clock(lambda: t)

    yield _set
    set_clock(original)


def T(key, add, delete, payload=""):
    return key, Value(add, delete, payload.encode())


def durable_of(*entries):
    return Durable("", dict(entries))


def volatile_of(*entries):
    return Volatile(dict(entries))


def equal_sets(expected, current):
    for key, value in expected.range(None, True):
        assert current.get(key) == value


ADD_REMOVE_CASES = [
    ([T("A", 10, 0, "A1")], [T("A", 20, 0, "A2")], [T("A", 20, 0, "A2")]),
    ([T("A", 10, 0, "A1")], [T("A", 10, 20, "A1")], [T("A", 0, 20, "A1")]),
    ([T("A", 10, 0, "A1")], [T("A", 20, 0, "A2")], [T("A", 20, 0, "A2"), T("A", 15, 0, "A3")]),
    ([T("A", 10, 0, "A1")], [T("A", 10, 20, "A1")], [T("A", 0, 20), T("A", 0, 15)]),
]


@pytest.mark.parametrize("initial, expected, actions", ADD_REMOVE_CASES)
def test_add_remove(freeze, initial, expected, actions):
    with durable_of(*initial) as current, durable_of(*expected) as wanted:
        for key, value in actions:
            if value.is_added():
                freeze(value.add_time)
                current.add(key, value.payload)
            if value.is_removed():
                freeze(value.del_time)
                current.delete(key)
            equal_sets(wanted, current)
            assert wanted.count() == current.count()


MERGE_CASES = [
    (
        [T("A", 10, 0, "A1"), T("B", 20, 0, "B1")],
        [T("A", 0, 20, "A2"), T("B", 0, 20, "B2")],
        [T("A", 10, 20, "A2"), T("B", 20, 20, "B2")],
        [T("A", 0, 20, "A2"), T("B", 0, 20, "B2")],
        ["B"],
        ["A"],
    ),
    (
        [T("A", 10, 0, "A1"), T("B", 20, 0, "B1")],
        [T("A", 0, 20), T("B", 10, 0, "B2")],
        [T("A", 10, 20), T("B", 20, 0, "B1")],
        [T("A", 0, 20)],
        ["B"],
        ["A"],
    ),
    (
        [T("A", 30, 0, "A1"), T("B", 20, 0, "B1")],
        [T("A", 20, 0, "A2"), T("B", 10, 0, "B2")],
        [T("A", 30, 0, "A1"), T("B", 20, 0, "B1")],
        [],
        ["A", "B"],
        [],
    ),
    (
        [T("A", 10, 0, "A1"), T("B", 0, 20)],
        [T("C", 10, 0, "C1"), T("D", 0, 20)],
        [T("A", 10, 0, "A1"), T("B", 0, 20), T("C", 10, 0, "C1"), T("D", 0, 20)],
        [T("C", 10, 0, "C1"), T("D", 0, 20)],
        ["A", "C"],
        ["B", "D"],
    ),
    (
        [T("A", 10, 0, "A1"), T("B", 30, 0, "B1")],
        [T("A", 20, 0, "A2"), T("B", 20, 0, "B2")],
        [T("A", 20, 0, "A2"), T("B", 30, 0, "B1")],
        [T("A", 20, 0, "A2")],
        ["A", "B"],
        [],
    ),
    (
        [T("A", 0, 10), T("B", 0, 30)],
        [T("A", 0, 20), T("B", 0, 20)],
        [T("A", 0, 20), T("B", 0, 30)],
        [T("A", 0, 20)],
        [],
        ["A", "B"],
    ),
]


@pytest.mark.parametrize("lww1, lww2, expected, delta, valid, invalid", MERGE_CASES)
def test_merge_volatile_into_durable(lww1, lww2, expected, delta, valid, invalid):
    with durable_of(*lww1) as left, durable_of(*expected) as wanted:
        right = volatile_of(*lww2)
        left.merge(right)
        equal_sets(wanted, left)
        equal_sets(volatile_of(*delta), right)
        assert right.count() == len(delta)
        for key in valid:
            assert left.has(key), f"expected merged set to contain {key}"
        for key in invalid:
            assert not left.has(key), f"expected merged set to NOT contain {key}"


def test_range():
    state = Durable(
        "",
        {
            "AC": Value(60, 50),
            "AB": Value(60, 50),
            "AA": Value(10, 50),
            "BA": Value(60, 50),
            "BB": Value(60, 50),
            "BC": Value(60, 50),
        },
    )
    with state:
        assert len(list(state.range(b"A", False))) == 2
        assert len(list(state.range(None, False))) == 5
        keys = [k for k, _ in state.range(None, True)]
        assert keys == sorted(keys)
        assert state.count() == 6


def test_marshal(freeze):
    freeze(10)
    with durable_of(T("A", 10, 50)) as state:
        enc = state.encode()
        assert enc == bytes(
            [0x1, 0x1, 0x41, 0x10, 0x0, 0x0, 0x0, 0x0, 0x0, 0x0, 0x0, 0xA,
             0x0, 0x0, 0x0, 0x0, 0x0, 0x0, 0x0, 0x32]
        )
        with Durable.decode(enc) as dec:
            assert dec.to_dict() == state.to_dict()
            assert dec.get("A").add_time == 10


def test_decode_truncated_entries_stops():
    data = encode_uvarint(2) + encode_bytes(b"A") + encode_bytes(Value(5, 0).encode()) + encode_bytes(b"B")
    with Durable.decode(data) as dec:
        assert dec.count() == 1
        assert dec.has("A")


def test_decode_empty_raises():
    with pytest.raises(EOFError):
        Durable.decode(b"")


def test_persists_to_file(tmp_path, freeze):
    path = tmp_path / "ban.db"
    freeze(100)
    store = Durable(path)
    store.add("k", b"v")
    store.close()
    with Durable(str(path)) as reopened:
        assert reopened.has("k")
        assert reopened.get("k") == Value(100, 0, b"v")


def test_get_unknown_is_zero():
    with Durable() as store:
        assert store.get("missing") == Value()
        assert not store.has("missing")


def test_merge_requires_volatile():
    with Durable() as left, Durable() as right:
        with pytest.raises(TypeError):
            left.merge(right)


def test_removed_entry_kept_as_tombstone(freeze):
    with Durable() as store:
        freeze(5)
        store.add("x", b"p")
        freeze(6)
        store.delete("x")
        assert not store.has("x")
        assert store.to_dict() == {b"x": Value(5, 6, b"p")}
        assert list(store.range(None, False)) == []