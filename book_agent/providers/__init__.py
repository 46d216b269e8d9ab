"""LLM Provider 集成层。

该包下的模块负责：
- 定义 BackendClient / BackendProvider 抽象接口 (base)。
- 按优先级路由并缓存客户端 (registry)。
- 提供各厂商的具体实现 (dashscope_client、openai_client)。
"""

from typing import List

from book_agent.config.settings import settings
from book_agent.providers.base import BackendClient, BackendProvider
from book_agent.providers.dashscope_client import DashScopeProvider
from book_agent.providers.openai_client import OpenAIProvider
from book_agent.providers.registry import BackendRegistry


def default_providers(cfg=None) -> List[BackendProvider]:
    """按配置创建内置 Provider 列表。"""

    cfg = cfg or settings
    return [OpenAIProvider(cfg), DashScopeProvider(cfg)]


def create_registry(cfg=None) -> BackendRegistry:
    return BackendRegistry(default_providers(cfg))


__all__ = ["BackendClient", "BackendProvider", "BackendRegistry", "create_registry", "default_providers"]
