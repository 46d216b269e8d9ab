"""流式问答编排核心模块。

一次 execute_query 调用对应一次后端调用，前后做会话记账：

1. 读取最近的历史消息作为上下文，记录用户消息并刷新会话元数据（同步，先于任何后端调用）。
2. 派生后台标题生成任务。
3. 解析后端客户端、构造 prompt。
4. 先推送 START，再把后端增量映射为 PROGRESS。
5. 整个后端阶段受固定超时约束，超时取消调用。
6. 正常结束时把 PROGRESS 拼接结果作为 assistant 消息落库。

任何失败都会被翻译成唯一一个终止 ERROR 事件，不向调用方抛出。
"""

import asyncio
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence
from uuid import uuid4

from book_agent.agents.errors import translate_error
from book_agent.agents.title_generator import TitleGenerator
from book_agent.config.settings import settings
from book_agent.domain.exceptions import PersistenceError
from book_agent.domain.models import BackendOutput, ChatRecord, ResponseEvent
from book_agent.infrastructure.logging.logger import logger
from book_agent.infrastructure.storage.session_store import SessionStore
from book_agent.providers.registry import BackendRegistry


DEFAULT_MODE = "interpret"


async def _next_output(stream: AsyncIterator[BackendOutput]) -> BackendOutput:
    return await stream.__anext__()


def build_prompt(question: str, book_name: Optional[str], mode: Optional[str]) -> str:
    """根据模式和书名构造发给后端的用户消息。"""

    has_book = bool(book_name and book_name.strip())
    if mode == "chat":
        if has_book:
            return f"About {book_name}: {question}"
        return question
    if has_book:
        return f"Please interpret the following passage from {book_name}:\n\n{question}"
    return f"Please interpret the following passage:\n\n{question}"


def build_start_message(book_name: Optional[str], model_id: str, mode: Optional[str]) -> str:
    label = "Answering" if mode == "chat" else "Interpreting"
    book_info = f" [{book_name}]" if book_name and book_name.strip() else ""
    return f"{label}{book_info}... (model: {model_id})"


class StreamingOrchestrator:
    def __init__(
        self,
        registry: BackendRegistry,
        sessions: SessionStore,
        title_generator: Optional[TitleGenerator] = None,
        timeout: Optional[float] = None,
        system_prompt: Optional[str] = None,
        max_context_messages: Optional[int] = None,
    ):
        self._registry = registry
        self._sessions = sessions
        self._title_generator = title_generator
        self._timeout = timeout if timeout is not None else settings.query_timeout
        self._system_prompt = system_prompt
        self._max_context = (
            max_context_messages if max_context_messages is not None else settings.max_context_messages
        )

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def execute_query(
        self,
        question: str,
        book_name: Optional[str],
        thread_id: str,
        model_id: str,
        mode: Optional[str] = DEFAULT_MODE,
    ) -> AsyncIterator[ResponseEvent]:
        """执行一次问答，产出事件序列。

        序列以 START 开始，随后是若干 PROGRESS，最后要么自然结束，
        要么以一个 ERROR 事件结束。序列只能消费一次。
        """

        mode = mode or DEFAULT_MODE
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "thread_id": thread_id,
            "model": model_id,
            "mode": mode,
        }

        # 1. 历史上下文、用户消息与会话元数据
        history = self._load_history(thread_id, log_ctx)
        try:
            self._sessions.add_message(thread_id, "user", question)
            self._sessions.update_thread(thread_id, None, model_id, book_name)
        except PersistenceError as e:
            self._log(logging.WARNING, "Failed to record user message", log_ctx, error=e.message)

        # 2. 标题生成（后台）
        if self._title_generator is not None:
            try:
                self._title_generator.schedule(thread_id, question, model_id)
            except PersistenceError as e:
                self._log(logging.WARNING, "Failed to schedule title generation", log_ctx, error=e.message)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout

        yield ResponseEvent.start(build_start_message(book_name, model_id, mode))

        pieces: List[str] = []
        try:
            prompt = build_prompt(question, book_name, mode)
            async with aclosing(self._stream_backend(prompt, history, model_id, deadline, log_ctx)) as outputs:
                async for text in outputs:
                    pieces.append(text)
                    yield ResponseEvent.progress(text)
        except Exception as exc:
            self._log(
                logging.ERROR,
                "Query failed",
                log_ctx,
                error=str(exc) or type(exc).__name__,
                error_type=type(exc).__name__,
                received_chars=sum(len(p) for p in pieces),
            )
            yield ResponseEvent.error(translate_error(exc))
            return

        content = "".join(pieces)
        if content:
            try:
                self._sessions.add_message(thread_id, "assistant", content)
            except PersistenceError as e:
                self._log(logging.WARNING, "Failed to store assistant message", log_ctx, error=e.message)
        self._log(logging.INFO, "Query completed", log_ctx, chars=len(content), chunks=len(pieces))

    async def _stream_backend(
        self,
        prompt: str,
        history: Sequence[ChatRecord],
        model_id: str,
        deadline: float,
        log_ctx: Dict[str, Any],
    ) -> AsyncIterator[str]:
        """调用后端流式接口，产出需要转发的文本。

        增量文本全部转发；完整消息只在尚未出现任何增量时转发，否则丢弃，
        避免调用方重复渲染同一段内容。
        """

        loop = asyncio.get_running_loop()
        client = self._registry.resolve(model_id)
        self._log(logging.INFO, "Calling backend (stream)", log_ctx, provider=client.name, history=len(history))
        stream = client.stream(prompt, self._system_prompt, history)
        seen_delta = False
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise asyncio.TimeoutError(f"query exceeded {self._timeout}s")
                try:
                    output = await asyncio.wait_for(_next_output(stream), timeout=remaining)
                except StopAsyncIteration:
                    break
                if output.is_delta:
                    if output.delta:
                        seen_delta = True
                        yield output.delta
                elif output.final_message:
                    if seen_delta:
                        self._log(logging.DEBUG, "Discarded final message after deltas", log_ctx)
                        continue
                    yield output.final_message
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _load_history(self, thread_id: str, log_ctx: Dict[str, Any]) -> List[ChatRecord]:
        """返回本次提问之前最近的 max_context_messages 条消息。"""

        if self._max_context <= 0:
            return []
        try:
            records = self._sessions.get_messages(thread_id)
        except PersistenceError as e:
            self._log(logging.WARNING, "Failed to load history", log_ctx, error=e.message)
            return []
        if len(records) > self._max_context:
            self._log(
                logging.INFO,
                "Truncated context",
                log_ctx,
                max_context=self._max_context,
                trimmed=len(records) - self._max_context,
            )
            records = records[-self._max_context:]
        return records

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
