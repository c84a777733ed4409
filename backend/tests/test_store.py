import pytest

from thekitchen.errors import StaleVersion
from thekitchen.storage.store import InMemoryStore


def test_first_write_expects_version_zero():
    store = InMemoryStore()
    store.update_if_version("room", "ABCD", 0, {"version": 1, "phase": "lobby"})
    assert store.find("room", "ABCD") == {"version": 1, "phase": "lobby"}


def test_stale_write_is_rejected():
    store = InMemoryStore()
    store.update_if_version("room", "ABCD", 0, {"version": 1})
    store.update_if_version("room", "ABCD", 1, {"version": 2})

    with pytest.raises(StaleVersion) as exc:
        store.update_if_version("room", "ABCD", 1, {"version": 3})

    assert exc.value.to_payload()["code"] == "INTERNAL_ERROR"
    assert store.find("room", "ABCD") == {"version": 2}


def test_records_are_copied():
    store = InMemoryStore()
    record = {"version": 1, "players": ["a"]}
    store.save("room", "ABCD", record)
    record["players"].append("b")

    found = store.find("room", "ABCD")
    found["players"].append("c")

    assert store.find("room", "ABCD")["players"] == ["a"]


def test_delete_and_all():
    store = InMemoryStore()
    store.save("room", "ABCD", {"version": 1})
    store.save("room", "WXYZ", {"version": 1})
    store.save("other", "ABCD", {"version": 1})

    assert len(store.all("room")) == 2
    assert store.delete("room", "ABCD") is True
    assert store.delete("room", "ABCD") is False
    assert store.find("room", "ABCD") is None
