"""BackendClient 注册中心。

统一管理所有 BackendProvider，根据 model id 路由到对应的 Provider，
并按 model id 缓存已创建的客户端：

- Provider 按 priority 升序排列，第一个 supports() 为真的 Provider 负责创建。
- 必须且只能有一个兜底 Provider 持有最大优先级值，保证任意 model id 都能路由。
- 同一 model id 只创建一个客户端，并发首次访问时由锁保证。
"""

import threading
from typing import Dict, Iterable, List, Optional

from book_agent.domain.exceptions import ConfigurationError
from book_agent.infrastructure.logging.logger import logger
from book_agent.providers.base import CATCH_ALL_PRIORITY, BackendClient, BackendProvider


class BackendRegistry:
    def __init__(self, providers: Iterable[BackendProvider]):
        self._providers: List[BackendProvider] = sorted(providers, key=lambda p: p.priority)
        catch_all = [p for p in self._providers if p.priority == CATCH_ALL_PRIORITY]
        if len(catch_all) != 1:
            raise ConfigurationError(
                code="INVALID_PROVIDERS",
                message=f"Exactly one catch-all provider is required, got {len(catch_all)}",
            )
        self._cache: Dict[str, BackendClient] = {}
        self._lock = threading.Lock()

    @property
    def providers(self) -> List[BackendProvider]:
        return list(self._providers)

    def resolve(self, model_id: str) -> BackendClient:
        """获取指定模型的客户端，带缓存。"""

        if not model_id:
            raise ConfigurationError(code="INVALID_MODEL", message="model id must not be empty")
        client = self._cache.get(model_id)
        if client is not None:
            return client
        with self._lock:
            client = self._cache.get(model_id)
            if client is None:
                client = self._create(model_id)
                self._cache[model_id] = client
        return client

    def invalidate(self, model_id: Optional[str] = None) -> None:
        """清除单个或全部缓存的客户端。"""

        with self._lock:
            if model_id is None:
                self._cache.clear()
            else:
                self._cache.pop(model_id, None)

    def _create(self, model_id: str) -> BackendClient:
        for provider in self._providers:
            if provider.supports(model_id):
                client = provider.create(model_id)
                logger.info(
                    "Created backend client",
                    extra={"extra": {"model": model_id, "provider": provider.name}},
                )
                return client
        raise ConfigurationError(code="NO_PROVIDER", message=f"No backend provider found for model: {model_id}")
