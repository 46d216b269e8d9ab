import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from uuid import uuid4

from book_agent.config.settings import settings
from book_agent.domain.exceptions import PersistenceError
from book_agent.domain.store import KeyValueStore


class JsonKeyValueStore(KeyValueStore):
    """基于本地 JSON 文件的键值存储。

    目录结构::

        <root>/maps/<name>/<key>.json    每个 Map 条目一个文件，原子替换写入
        <root>/lists/<name>.jsonl        每个 List 一个文件，逐行追加
    """

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._maps_root = self._root / "maps"
        self._lists_root = self._root / "lists"
        self._maps_root.mkdir(parents=True, exist_ok=True)
        self._lists_root.mkdir(parents=True, exist_ok=True)

    def map_get(self, name: str, key: str) -> Optional[Dict[str, Any]]:
        path = self._map_dir(name) / f"{_safe(key)}.json"
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(code="STORE_READ_ERROR", message=str(e)) from e

    def map_put(self, name: str, key: str, value: Dict[str, Any]) -> None:
        mdir = self._map_dir(name)
        path = mdir / f"{_safe(key)}.json"
        tmp_path = mdir / f"{_safe(key)}.{uuid4().hex}.json.tmp"
        try:
            mdir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(code="STORE_WRITE_ERROR", message=str(e)) from e

    def map_remove(self, name: str, key: str) -> None:
        path = self._map_dir(name) / f"{_safe(key)}.json"
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(code="STORE_DELETE_ERROR", message=str(e)) from e

    def map_values(self, name: str) -> List[Dict[str, Any]]:
        mdir = self._map_dir(name)
        items: List[Dict[str, Any]] = []
        if not mdir.exists():
            return items
        for path in sorted(mdir.glob("*.json")):
            try:
                items.append(json.loads(path.read_text(encoding="utf-8")))
            except FileNotFoundError:
                # 并发删除
                continue
            except (OSError, json.JSONDecodeError) as e:
                raise PersistenceError(code="STORE_READ_ERROR", message=f"{path.name}: {e}") from e
        return items

    def list_append(self, name: str, value: Dict[str, Any]) -> None:
        path = self._lists_root / f"{_safe(name)}.jsonl"
        try:
            line = json.dumps(value, ensure_ascii=False)
            with path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            raise PersistenceError(code="STORE_WRITE_ERROR", message=str(e)) from e

    def list_items(self, name: str) -> List[Dict[str, Any]]:
        path = self._lists_root / f"{_safe(name)}.jsonl"
        if not path.exists():
            return []
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise PersistenceError(code="STORE_READ_ERROR", message=str(e)) from e
        items: List[Dict[str, Any]] = []
        for line in lines:
            if not line.strip():
                continue
            try:
                items.append(json.loads(line))
            except json.JSONDecodeError:
                # 半行写入（进程中断）直接跳过
                continue
        return items

    def _map_dir(self, name: str) -> Path:
        return self._maps_root / _safe(name)


def _safe(name: str) -> str:
    return quote(name, safe="")
