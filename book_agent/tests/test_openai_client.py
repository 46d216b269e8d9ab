import asyncio

import pytest

from book_agent.domain.exceptions import ConfigurationError
from book_agent.providers.openai_client import OpenAIClient, OpenAIProvider


class SettingsStub:
    openai_api_key = "sk-openai-test"
    openai_base_url = "https://api.openai.com/v1"
    openai_proxy_url = None
    http_timeout = 1.0
    temperature = 0.7


def test_openai_provider_supports_prefixes():
    provider = OpenAIProvider(SettingsStub())
    assert provider.supports("gpt-4o")
    assert provider.supports("GPT-4o-mini")
    assert provider.supports("o1-preview")
    assert provider.supports("o3-mini")
    assert provider.supports("o4-mini")
    assert not provider.supports("qwen-max")
    assert not provider.supports("")


def test_openai_provider_without_key_claims_nothing():
    class NoKey(SettingsStub):
        openai_api_key = None

    provider = OpenAIProvider(NoKey())
    assert not provider.supports("gpt-4o")
    with pytest.raises(ConfigurationError):
        provider.create("gpt-4o")


def test_openai_client_uses_proxy(monkeypatch):
    class WithProxy(SettingsStub):
        openai_proxy_url = "socks5://127.0.0.1:1080"

    captured = {}

    class Resp:
        status_code = 200
        text = ""

        def json(self):
            return {"choices": [{"message": {"role": "assistant", "content": "ok"}}]}

    class Client:
        def __init__(self, *a, **kw):
            captured.update(kw)

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def post(self, url, json=None, headers=None):
            captured["url"] = url
            return Resp()

    monkeypatch.setattr("httpx.AsyncClient", Client)
    client = OpenAIProvider(WithProxy()).create("gpt-4o")
    assert isinstance(client, OpenAIClient)
    assert client.model_id == "gpt-4o"
    assert asyncio.run(client.complete("hi")) == "ok"
    assert captured["proxy"] == "socks5://127.0.0.1:1080"
    assert captured["url"] == "https://api.openai.com/v1/chat/completions"
