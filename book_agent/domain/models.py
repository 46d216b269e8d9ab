"""统一的领域数据模型。

本模块定义了编排层、Provider 适配层与会话存储之间共享的标准数据结构：

- ModelDescriptor: 配置中声明的可用模型。
- BackendOutput: 后端一次流式输出，要么是增量文本，要么是完整消息。
- ThreadInfo / ChatRecord: 会话元数据与单条消息。
- ResponseEvent: 编排层推送给调用方的事件。

所有 Provider 适配器（如 DashScopeClient）都必须只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional


# 会话中持久化的消息角色
Role = Literal["user", "assistant"]

DEFAULT_THREAD_TITLE = "New Chat"


@dataclass(frozen=True)
class ModelDescriptor:
    """配置中声明的一个可用模型，加载后不可变。"""

    id: str
    display_name: str
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.display_name, "description": self.description}


@dataclass(frozen=True)
class BackendOutput:
    """后端一次输出。

    - delta: 增量文本片段（流式过程中的一部分回答）。
    - final_message: 完整回答文本（部分后端在流结束时回显全文）。

    两者互斥，使用 of_delta / of_final 构造。
    """

    delta: Optional[str] = None
    final_message: Optional[str] = None

    @classmethod
    def of_delta(cls, text: str) -> "BackendOutput":
        return cls(delta=text)

    @classmethod
    def of_final(cls, text: str) -> "BackendOutput":
        return cls(final_message=text)

    @property
    def is_delta(self) -> bool:
        return self.delta is not None


@dataclass
class ThreadInfo:
    """会话元数据。

    updated_at 为毫秒级时间戳，单个会话生命周期内单调不减。
    """

    id: str
    title: str
    updated_at: int
    model_id: Optional[str] = None
    book_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThreadInfo":
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            updated_at=int(data.get("updated_at", 0)),
            model_id=data.get("model_id"),
            book_name=data.get("book_name"),
        )


@dataclass(frozen=True)
class ChatRecord:
    """会话中的一条消息，追加后不可修改。"""

    role: Role
    content: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatRecord":
        return cls(role=data["role"], content=data.get("content") or "", timestamp=int(data.get("timestamp", 0)))


class EventStatus(str, Enum):
    START = "START"
    PROGRESS = "PROGRESS"
    RESULT = "RESULT"
    ERROR = "ERROR"
    DEBUG = "DEBUG"


@dataclass(frozen=True)
class ResponseEvent:
    """编排层推送的单个事件，只有 PROGRESS 内容会被聚合落库。"""

    status: EventStatus
    content: str

    @classmethod
    def start(cls, content: str) -> "ResponseEvent":
        return cls(EventStatus.START, content)

    @classmethod
    def progress(cls, content: str) -> "ResponseEvent":
        return cls(EventStatus.PROGRESS, content)

    @classmethod
    def error(cls, content: str) -> "ResponseEvent":
        return cls(EventStatus.ERROR, content)

    def to_dict(self) -> Dict[str, str]:
        return {"status": self.status.value, "content": self.content}
