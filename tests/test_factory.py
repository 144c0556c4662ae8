from emitterkit.crdt.durable import Durable
from emitterkit.crdt.factory import new_map
from emitterkit.crdt.value import Value, set_clock
from emitterkit.crdt.volatile import Volatile


def test_new_durable_in_memory():
    previous = set_clock(lambda: 10)
    try:
        store = new_map(True, "")
        assert isinstance(store, Durable)
        store.add("A", b"x")
        assert store.get("A") == Value(10, 0, b"x")
        store.close()
    finally:
        set_clock(previous)


def test_new_volatile():
    store = new_map(False, "")
    assert isinstance(store, Volatile)
    store.add("A", None)
    assert store.has("A")
    assert store.count() == 1


def test_durable_uses_path(tmp_path):
    path = tmp_path / "state.db"
    store = new_map(True, str(path))
    store.add("k", b"v")
    store.close()
    assert path.exists()
    with Durable(path) as reopened:
        assert reopened.has("k")


def test_volatile_ignores_path(tmp_path):
    path = tmp_path / "unused.db"
    store = new_map(False, str(path))
    store.add("k", b"v")
    assert store.has("k")
    assert not path.exists()