"""OpenAI Provider 适配器。

只认领 OpenAI 自家模型（gpt-*/o1/o3/o4 前缀），其余模型交给兜底 Provider。
未配置 OPENAI_API_KEY 时不认领任何模型，对应请求会落到 DashScope。

支持通过 openai_proxy_url 走 HTTP 或 SOCKS5 代理。
"""

from book_agent.config.settings import settings
from book_agent.domain.exceptions import ConfigurationError
from book_agent.infrastructure.logging.logger import logger
from book_agent.providers.openai_compat import OpenAICompatibleClient


MODEL_PREFIXES = ("gpt-", "o1", "o3", "o4")


class OpenAIClient(OpenAICompatibleClient):
    name = "openai"


class OpenAIProvider:
    name = "openai"
    priority = 0

    def __init__(self, cfg=settings):
        self._settings = cfg
        if getattr(cfg, "openai_api_key", None):
            logger.info(
                "OpenAI provider initialized",
                extra={"extra": {
                    "base_url": cfg.openai_base_url,
                    "proxy": bool(getattr(cfg, "openai_proxy_url", None)),
                }},
            )
        else:
            logger.warning("OpenAI API key not configured, OpenAI models will be unavailable")

    def supports(self, model_id: str) -> bool:
        if not model_id or not getattr(self._settings, "openai_api_key", None):
            return False
        return model_id.lower().startswith(MODEL_PREFIXES)

    def create(self, model_id: str) -> OpenAIClient:
        api_key = getattr(self._settings, "openai_api_key", None)
        if not api_key:
            raise ConfigurationError(
                code="MISSING_API_KEY",
                message="OpenAI API is not configured, set OPENAI_API_KEY",
                provider=self.name,
            )
        return OpenAIClient(
            model_id=model_id,
            api_key=api_key,
            base_url=self._settings.openai_base_url,
            http_timeout=self._settings.http_timeout,
            temperature=getattr(self._settings, "temperature", 0.7),
            proxy=getattr(self._settings, "openai_proxy_url", None),
        )
