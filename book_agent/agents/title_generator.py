"""会话标题生成。

新会话的第一条问题到达后，在后台任务里调用一次轻量模型生成短标题。
标题生成与主问答流完全解耦：失败只记日志，不重试，也不影响调用方。
"""

import asyncio
from typing import Callable, Optional, Set

from book_agent.domain.models import DEFAULT_THREAD_TITLE
from book_agent.infrastructure.logging.logger import logger
from book_agent.infrastructure.storage.session_store import SessionStore
from book_agent.providers.base import BackendClient


TITLE_PROMPT = (
    "Generate a very short title (at most 10 characters) for the following content. "
    "Reply with the title text only:\n{question}"
)
_QUOTE_CHARS = "\"'“”‘’《》「」"


def clean_title(raw: str) -> str:
    """去掉引号与首尾空白。"""

    text = raw or ""
    for ch in _QUOTE_CHARS:
        text = text.replace(ch, "")
    return text.strip()


class TitleGenerator:
    def __init__(self, sessions: SessionStore, client_factory: Callable[[], BackendClient]):
        """
        Args:
            sessions: 会话存储。
            client_factory: 返回用于生成标题的客户端（通常是默认模型），在后台任务中调用。
        """
        self._sessions = sessions
        self._client_factory = client_factory
        self._tasks: Set[asyncio.Task] = set()

    def needs_title(self, thread_id: str) -> bool:
        info = self._sessions.get_thread(thread_id)
        return info is None or not info.title or info.title == DEFAULT_THREAD_TITLE

    def schedule(self, thread_id: str, question: str, model_id: str) -> Optional[asyncio.Task]:
        """在当前事件循环中派生后台任务，立即返回。"""

        if not self.needs_title(thread_id):
            return None
        task = asyncio.get_running_loop().create_task(
            self.generate(thread_id, question, model_id),
            name=f"title-{thread_id}",
        )
        # 持有引用，防止任务在完成前被回收
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def generate(self, thread_id: str, question: str, model_id: str) -> Optional[str]:
        if not self.needs_title(thread_id):
            return None
        client = self._client_factory()
        raw = await client.complete(TITLE_PROMPT.format(question=question))
        title = clean_title(raw)
        if not title:
            return None
        # 生成期间标题可能已被其他请求设置
        if not self.needs_title(thread_id):
            return None
        self._sessions.update_thread(thread_id, title, model_id, None)
        logger.info("Generated thread title", extra={"extra": {"thread_id": thread_id, "title": title}})
        return title

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Failed to generate title",
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={"extra": {"task": task.get_name(), "error": str(exc)}},
            )

    async def drain(self) -> None:
        """等待所有进行中的标题任务结束，用于关闭与测试。"""

        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
