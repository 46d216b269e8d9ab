"""DashScope（阿里云百炼）Provider 适配器。

通过 DashScope 的 OpenAI 兼容模式调用：
- URL: {base_url}/chat/completions，默认 https://dashscope.aliyuncs.com/compatible-mode/v1
- 认证: Authorization: Bearer <api_key>

DashScope 是兜底 Provider：优先级最低，支持任意 model id，
保证其他 Provider 都不认领的模型也能路由成功。
"""

from book_agent.config.settings import settings
from book_agent.domain.exceptions import ConfigurationError
from book_agent.providers.base import CATCH_ALL_PRIORITY
from book_agent.providers.openai_compat import OpenAICompatibleClient


class DashScopeClient(OpenAICompatibleClient):
    name = "dashscope"


class DashScopeProvider:
    """DashScope Provider，作为兜底支持所有模型。"""

    name = "dashscope"
    priority = CATCH_ALL_PRIORITY

    def __init__(self, cfg=settings):
        self._settings = cfg

    def supports(self, model_id: str) -> bool:
        return True

    def create(self, model_id: str) -> DashScopeClient:
        api_key = getattr(self._settings, "dashscope_api_key", None)
        if not api_key:
            raise ConfigurationError(
                code="MISSING_API_KEY",
                message="DashScope API key is not configured, set DASHSCOPE_API_KEY or AI_DASHSCOPE_API_KEY",
                provider=self.name,
            )
        return DashScopeClient(
            model_id=model_id,
            api_key=api_key,
            base_url=self._settings.dashscope_base_url,
            http_timeout=self._settings.http_timeout,
            temperature=getattr(self._settings, "temperature", 0.7),
        )
