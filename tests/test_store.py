# =============================================================================
# Message Store Tests
# =============================================================================

from zeroterm.core.message import Message
from zeroterm.core.store import MessageStore


def msg(id: str) -> Message:
    return Message(id=id, sender=f"{id}@example.com")


def test_load_keeps_order():
    store = MessageStore([msg("3"), msg("1"), msg("2")])
    assert [m.id for m in store.all()] == ["3", "1", "2"]
    assert len(store) == 3
    assert "1" in store


def test_load_replaces_everything():
    store = MessageStore([msg("1"), msg("2")])
    store.load([msg("9")])
    assert [m.id for m in store] == ["9"]


def test_duplicate_ids_keep_first(caplog):
    first = Message(id="1", sender="first@example.com")
    second = Message(id="1", sender="second@example.com")
    store = MessageStore([first, second])
    assert len(store) == 1
    assert store.get("1").sender == "first@example.com"
    assert "Duplicate message id" in caplog.text


def test_remove_returns_removed_ids():
    store = MessageStore([msg("1"), msg("2"), msg("3")])
    removed = store.remove({"1", "3", "unknown"})
    assert removed == {"1", "3"}
    assert [m.id for m in store] == ["2"]


def test_generation_changes_on_mutation():
    store = MessageStore([msg("1")])
    generation = store.generation
    store.remove({"nope"})
    assert store.generation == generation
    store.remove({"1"})
    assert store.generation == generation + 1
