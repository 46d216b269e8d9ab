import pydantic
import pytest

from book_agent.config.settings import Settings


def test_settings_defaults():
    s = Settings(_env_file=None)
    assert s.query_timeout == 180.0
    assert s.temperature == 0.7
    assert s.default_model
    assert any(m.id == s.default_model for m in s.models)


def test_settings_rejects_short_api_key():
    with pytest.raises(pydantic.ValidationError):
        Settings(_env_file=None, dashscope_api_key="short")


def test_settings_proxy_scheme_validation():
    assert Settings(_env_file=None, openai_proxy_url="socks5://127.0.0.1:1080").openai_proxy_url
    assert Settings(_env_file=None, openai_proxy_url="  ").openai_proxy_url is None
    with pytest.raises(pydantic.ValidationError):
        Settings(_env_file=None, openai_proxy_url="ftp://proxy:21")


def test_settings_reads_alternative_dashscope_env(monkeypatch):
    monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)
    monkeypatch.setenv("AI_DASHSCOPE_API_KEY", "sk-from-alt-env")
    assert Settings(_env_file=None).dashscope_api_key == "sk-from-alt-env"
