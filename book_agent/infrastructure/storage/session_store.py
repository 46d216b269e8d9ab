"""会话存储。

基于 KeyValueStore 保存两类数据：

- 会话元数据：一个 Map（THREAD_MAP_KEY），键为 thread id。
- 消息历史：每个会话一个有序 List（MESSAGES_KEY_PREFIX + thread id）。

add_message 先追加消息再刷新元数据，两步之间不做事务保证，
同一会话的并发写入按最后写入者为准。
"""

import threading
import time
from typing import List, Optional

from book_agent.domain.models import DEFAULT_THREAD_TITLE, ChatRecord, Role, ThreadInfo
from book_agent.domain.store import KeyValueStore
from book_agent.infrastructure.logging.logger import logger


THREAD_MAP_KEY = "book-agent:threads:v2"
MESSAGES_KEY_PREFIX = "book-agent:messages:"


def _now_ms() -> int:
    return int(time.time() * 1000)


class SessionStore:
    def __init__(self, store: KeyValueStore):
        self._store = store
        self._clock_lock = threading.Lock()
        self._last_ts = 0

    def get_all_threads(self) -> List[ThreadInfo]:
        """返回全部会话，按 updated_at 倒序。"""

        threads = [ThreadInfo.from_dict(d) for d in self._store.map_values(THREAD_MAP_KEY)]
        threads.sort(key=lambda t: t.updated_at, reverse=True)
        logger.info("Loaded threads", extra={"extra": {"count": len(threads)}})
        return threads

    def get_thread(self, thread_id: str) -> Optional[ThreadInfo]:
        data = self._store.map_get(THREAD_MAP_KEY, thread_id)
        return ThreadInfo.from_dict(data) if data else None

    def update_thread(
        self,
        thread_id: str,
        title: Optional[str] = None,
        model_id: Optional[str] = None,
        book_name: Optional[str] = None,
    ) -> ThreadInfo:
        """新建或合并更新会话元数据，只覆盖非 None 字段，updated_at 总是刷新。"""

        info = self.get_thread(thread_id)
        if info is None:
            info = ThreadInfo(
                id=thread_id,
                title=title if title is not None else DEFAULT_THREAD_TITLE,
                updated_at=self._next_ts(0),
                model_id=model_id,
                book_name=book_name,
            )
            logger.info("Created new thread", extra={"extra": {"thread_id": thread_id}})
        else:
            if title is not None:
                info.title = title
            if model_id is not None:
                info.model_id = model_id
            if book_name is not None:
                info.book_name = book_name
            info.updated_at = self._next_ts(info.updated_at)
            logger.info("Updated thread", extra={"extra": {"thread_id": thread_id}})
        self._store.map_put(THREAD_MAP_KEY, thread_id, info.to_dict())
        return info

    def delete_thread(self, thread_id: str) -> None:
        # 只删除元数据，消息历史保留在原 key 下
        self._store.map_remove(THREAD_MAP_KEY, thread_id)
        logger.info("Deleted thread", extra={"extra": {"thread_id": thread_id}})

    def add_message(self, thread_id: str, role: Role, content: str) -> ChatRecord:
        record = ChatRecord(role=role, content=content, timestamp=_now_ms())
        self._store.list_append(MESSAGES_KEY_PREFIX + thread_id, record.to_dict())
        self.update_thread(thread_id)
        return record

    def get_messages(self, thread_id: str) -> List[ChatRecord]:
        return [ChatRecord.from_dict(d) for d in self._store.list_items(MESSAGES_KEY_PREFIX + thread_id)]

    def _next_ts(self, previous: int) -> int:
        """生成不小于上一次取值的时间戳，避免同一毫秒内多次更新时顺序丢失。"""

        with self._clock_lock:
            ts = max(_now_ms(), previous + 1, self._last_ts + 1)
            self._last_ts = ts
            return ts
