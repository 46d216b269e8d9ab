from typing import Any, Dict, List, Optional, Protocol


class KeyValueStore(Protocol):
    """外部键值存储能力：按名称区分的 Map 与有序 List。

    单个键上的操作由存储自身保证串行，调用方不再额外加锁。
    """

    def map_get(self, name: str, key: str) -> Optional[Dict[str, Any]]:
        ...

    def map_put(self, name: str, key: str, value: Dict[str, Any]) -> None:
        ...

    def map_remove(self, name: str, key: str) -> None:
        ...

    def map_values(self, name: str) -> List[Dict[str, Any]]:
        ...

    def list_append(self, name: str, value: Dict[str, Any]) -> None:
        ...

    def list_items(self, name: str) -> List[Dict[str, Any]]:
        ...
