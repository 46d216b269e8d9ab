import tempfile
from pathlib import Path

import pytest

from book_agent.domain.exceptions import PersistenceError
from book_agent.infrastructure.storage.json_store import JsonKeyValueStore
from book_agent.infrastructure.storage.memory_store import MemoryKeyValueStore


def test_json_store_map_roundtrip():
    with tempfile.TemporaryDirectory() as d:
        store = JsonKeyValueStore(root=Path(d) / ".storage")
        assert store.map_get("book-agent:threads:v2", "t1") is None
        store.map_put("book-agent:threads:v2", "t1", {"id": "t1", "title": "读书"})
        store.map_put("book-agent:threads:v2", "t2", {"id": "t2", "title": "x"})
        assert store.map_get("book-agent:threads:v2", "t1") == {"id": "t1", "title": "读书"}
        assert {v["id"] for v in store.map_values("book-agent:threads:v2")} == {"t1", "t2"}

        store.map_remove("book-agent:threads:v2", "t1")
        store.map_remove("book-agent:threads:v2", "missing")
        assert [v["id"] for v in store.map_values("book-agent:threads:v2")] == ["t2"]


def test_json_store_list_keeps_append_order():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonKeyValueStore(root=root)
        for i in range(5):
            store.list_append("book-agent:messages:t1", {"i": i})
        # 新实例读取同一目录
        reopened = JsonKeyValueStore(root=root)
        assert [v["i"] for v in reopened.list_items("book-agent:messages:t1")] == [0, 1, 2, 3, 4]
        assert reopened.list_items("book-agent:messages:other") == []


def test_json_store_corrupt_map_entry_raises_persistence_error():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonKeyValueStore(root=root)
        store.map_put("threads", "t1", {"id": "t1"})
        path = next((root / "maps" / "threads").glob("*.json"))
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceError):
            store.map_get("threads", "t1")


def test_memory_store_returns_copies():
    store = MemoryKeyValueStore()
    value = {"id": "t1", "title": "a"}
    store.map_put("threads", "t1", value)
    value["title"] = "changed"
    fetched = store.map_get("threads", "t1")
    assert fetched["title"] == "a"
    fetched["title"] = "changed again"
    assert store.map_get("threads", "t1")["title"] == "a"

    store.list_append("msgs", {"n": 1})
    store.list_append("msgs", {"n": 2})
    assert store.list_items("msgs") == [{"n": 1}, {"n": 2}]
