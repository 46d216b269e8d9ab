"""对外 API 服务模块。

提供简化的函数接口供传输层（HTTP/SSE 等）调用：补全请求默认值、
列出模型与会话、删除会话、读取历史消息。
"""

from typing import Any, AsyncIterator, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from book_agent.agents.orchestrator import DEFAULT_MODE, StreamingOrchestrator
from book_agent.agents.title_generator import TitleGenerator
from book_agent.config.settings import settings
from book_agent.domain.models import ModelDescriptor, ResponseEvent
from book_agent.infrastructure.logging.logger import logger
from book_agent.infrastructure.storage.json_store import JsonKeyValueStore
from book_agent.infrastructure.storage.session_store import SessionStore
from book_agent.prompts import load_system_prompt
from book_agent.providers import create_registry


# 约 10K-13K tokens，加上系统提示词后总输入控制在 32K 以内
MAX_QUESTION_LENGTH = 20000
TRUNCATED_SUFFIX = "...(content truncated)"


class QueryRequest(BaseModel):
    """问答请求。"""

    question: str = Field(..., description="用户的问题/原文内容")
    book_name: Optional[str] = Field(default=None, description="书籍名称（可选）")
    thread_id: Optional[str] = Field(default=None, description="会话ID，不提供时自动生成")
    model_id: Optional[str] = Field(default=None, description="模型ID，不提供时使用默认模型")
    mode: Optional[str] = Field(default=None, description="interpret=解读模式，chat=问答模式")

    @field_validator("book_name", "thread_id", "model_id", "mode")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v


_orchestrator: Optional[StreamingOrchestrator] = None


def get_default_orchestrator() -> StreamingOrchestrator:
    """获取默认的编排器实例（单例）。"""
    global _orchestrator
    if _orchestrator is None:
        registry = create_registry(settings)
        sessions = SessionStore(JsonKeyValueStore(root=settings.storage_root))
        titles = TitleGenerator(sessions, lambda: registry.resolve(settings.default_model))
        _orchestrator = StreamingOrchestrator(
            registry=registry,
            sessions=sessions,
            title_generator=titles,
            timeout=settings.query_timeout,
            system_prompt=load_system_prompt(settings.prompt_locale),
        )
    return _orchestrator


def prepare_question(question: str) -> str:
    """截断过长输入。"""

    if len(question) > MAX_QUESTION_LENGTH:
        logger.warning(
            "Question too long, truncated",
            extra={"extra": {"length": len(question), "limit": MAX_QUESTION_LENGTH}},
        )
        return question[:MAX_QUESTION_LENGTH] + TRUNCATED_SUFFIX
    return question


def ask(
    request: QueryRequest,
    orchestrator: Optional[StreamingOrchestrator] = None,
) -> AsyncIterator[ResponseEvent]:
    """运行一次流式问答。

    Args:
        request: 问答请求，缺省字段按配置补全
        orchestrator: 编排器（可选，默认使用单例）

    Returns:
        ResponseEvent 异步序列，首个事件总是 START
    """
    orch = orchestrator or get_default_orchestrator()
    return orch.execute_query(
        question=prepare_question(request.question),
        book_name=request.book_name,
        thread_id=request.thread_id or str(uuid4()),
        model_id=request.model_id or settings.default_model,
        mode=request.mode or DEFAULT_MODE,
    )


def list_models() -> Dict[str, Any]:
    """返回可用模型列表与默认模型。"""

    models = [ModelDescriptor(id=m.id, display_name=m.name or m.id, description=m.description) for m in settings.models]
    return {"models": [m.to_dict() for m in models], "defaultModel": settings.default_model}


def list_threads(orchestrator: Optional[StreamingOrchestrator] = None) -> List[Dict[str, Any]]:
    """列出所有会话，最近更新的在前。"""

    orch = orchestrator or get_default_orchestrator()
    return [t.to_dict() for t in orch.sessions.get_all_threads()]


def delete_thread(thread_id: str, orchestrator: Optional[StreamingOrchestrator] = None) -> None:
    orch = orchestrator or get_default_orchestrator()
    orch.sessions.delete_thread(thread_id)


def get_thread_messages(thread_id: str, orchestrator: Optional[StreamingOrchestrator] = None) -> List[Dict[str, Any]]:
    """获取会话的所有消息。

    Args:
        thread_id: 会话ID

    Returns:
        消息列表，按追加顺序
    """
    orch = orchestrator or get_default_orchestrator()
    return [m.to_dict() for m in orch.sessions.get_messages(thread_id)]
