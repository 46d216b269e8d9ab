"""Provider 抽象接口。

编排层不直接依赖具体厂商的 HTTP SDK，而是依赖这里的两个协议：

- BackendClient: 绑定到某个模型的客户端，给定 prompt 产出增量文本或完整消息。
- BackendProvider: 判断自己能否服务某个 model id，并为其创建 BackendClient。

这样可以在不改编排代码的前提下接入更多厂商。
"""

import sys
from typing import AsyncIterator, Optional, Protocol, Sequence

from book_agent.domain.models import BackendOutput, ChatRecord


# 兜底 Provider 使用的优先级，数值越小优先级越高
CATCH_ALL_PRIORITY = sys.maxsize


class BackendClient(Protocol):
    """LLM 后端客户端协议。

    - name: Provider 名称，用于日志。
    - model_id: 该客户端绑定的模型 ID。
    - stream(prompt, system_prompt, history): 流式调用，逐个产出 BackendOutput；
      history 为同一会话中此前的消息，按时间顺序排在本次 prompt 之前。
    - complete(prompt): 非流式调用，返回完整回答文本。
    """

    name: str
    model_id: str

    def stream(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        history: Optional[Sequence[ChatRecord]] = None,
    ) -> AsyncIterator[BackendOutput]:
        ...

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        ...


class BackendProvider(Protocol):
    name: str
    priority: int

    def supports(self, model_id: str) -> bool:
        ...

    def create(self, model_id: str) -> BackendClient:
        ...
