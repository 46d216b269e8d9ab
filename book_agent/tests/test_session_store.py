import tempfile
import time
from pathlib import Path

from book_agent.domain.models import DEFAULT_THREAD_TITLE
from book_agent.infrastructure.storage.json_store import JsonKeyValueStore
from book_agent.infrastructure.storage.memory_store import MemoryKeyValueStore
from book_agent.infrastructure.storage.session_store import MESSAGES_KEY_PREFIX, THREAD_MAP_KEY, SessionStore


def test_update_thread_creates_with_default_title():
    sessions = SessionStore(MemoryKeyValueStore())
    info = sessions.update_thread("t1", None, "qwen-max", "Book A")
    assert info.title == DEFAULT_THREAD_TITLE
    assert info.model_id == "qwen-max"
    assert info.book_name == "Book A"
    assert info.updated_at > 0


def test_update_thread_merges_only_non_null_fields():
    sessions = SessionStore(MemoryKeyValueStore())
    before = sessions.update_thread("t1", "Dialectics", "m1", "Book A")
    after = sessions.update_thread("t1", None, "m2", None)
    assert after.title == "Dialectics"
    assert after.book_name == "Book A"
    assert after.model_id == "m2"
    assert after.updated_at > before.updated_at


def test_updated_at_never_decreases(monkeypatch):
    sessions = SessionStore(MemoryKeyValueStore())
    first = sessions.update_thread("t1")
    # 时钟回拨
    monkeypatch.setattr(time, "time", lambda: 0.0)
    second = sessions.update_thread("t1", title="x")
    assert second.updated_at > first.updated_at


def test_get_all_threads_sorted_by_updated_at_desc():
    sessions = SessionStore(MemoryKeyValueStore())
    for tid in ["a", "b", "c"]:
        sessions.update_thread(tid)
    sessions.update_thread("a")
    ids = [t.id for t in sessions.get_all_threads()]
    assert ids == ["a", "c", "b"]


def test_add_message_appends_and_bumps_thread():
    sessions = SessionStore(MemoryKeyValueStore())
    sessions.update_thread("t1", "Title", "m1", "Book")
    before = sessions.get_thread("t1")
    sessions.add_message("t1", "user", "q")
    sessions.add_message("t1", "assistant", "a")
    msgs = sessions.get_messages("t1")
    assert [(m.role, m.content) for m in msgs] == [("user", "q"), ("assistant", "a")]
    after = sessions.get_thread("t1")
    assert after.updated_at > before.updated_at
    assert (after.title, after.model_id, after.book_name) == ("Title", "m1", "Book")


def test_delete_thread_keeps_message_history():
    store = MemoryKeyValueStore()
    sessions = SessionStore(store)
    sessions.add_message("t1", "user", "q")
    sessions.delete_thread("t1")
    assert sessions.get_thread("t1") is None
    assert store.map_get(THREAD_MAP_KEY, "t1") is None
    assert len(store.list_items(MESSAGES_KEY_PREFIX + "t1")) == 1
    assert [m.content for m in sessions.get_messages("t1")] == ["q"]


def test_session_store_on_json_files():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        sessions = SessionStore(JsonKeyValueStore(root=root))
        sessions.add_message("t1", "user", "What is dialectics?")
        reopened = SessionStore(JsonKeyValueStore(root=root))
        assert reopened.get_thread("t1").title == DEFAULT_THREAD_TITLE
        assert reopened.get_messages("t1")[0].content == "What is dialectics?"
