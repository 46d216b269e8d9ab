"""进程内键值存储，用于测试和无需持久化的本地运行。"""

import copy
import threading
from typing import Any, Dict, List, Optional

from book_agent.domain.store import KeyValueStore


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self) -> None:
        self._maps: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lists: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def map_get(self, name: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._maps.get(name, {}).get(key)
            return copy.deepcopy(value) if value is not None else None

    def map_put(self, name: str, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._maps.setdefault(name, {})[key] = copy.deepcopy(value)

    def map_remove(self, name: str, key: str) -> None:
        with self._lock:
            self._maps.get(name, {}).pop(key, None)

    def map_values(self, name: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(v) for v in self._maps.get(name, {}).values()]

    def list_append(self, name: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._lists.setdefault(name, []).append(copy.deepcopy(value))

    def list_items(self, name: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(v) for v in self._lists.get(name, [])]
