"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。

config.yaml 示例::

    default_model: qwen-max
    models:
      - id: qwen-max
        name: 通义千问 Max
        description: 解读长文本效果最好
      - id: gpt-4o
        name: GPT-4o
        description: OpenAI 旗舰模型
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("BOOK_AGENT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class ModelInfo(BaseModel):
    """可用模型条目（对应 config.yaml 中 models 列表的一项）。"""

    id: str
    name: str = ""
    description: str = ""


def _default_models() -> List[ModelInfo]:
    return [
        ModelInfo(id="qwen-max", name="Qwen Max", description="DashScope flagship model"),
        ModelInfo(id="qwen-plus", name="Qwen Plus", description="Balanced speed and quality"),
    ]


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 模型相关配置 ----
    default_model: str = Field(default="qwen-max", description="未指定 modelId 时使用的模型")
    models: List[ModelInfo] = Field(default_factory=_default_models, description="可用模型列表")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="生成温度")

    # DashScope（阿里云百炼，OpenAI 兼容模式）
    dashscope_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("dashscope_api_key", "ai_dashscope_api_key"),
        description="DashScope API 密钥，也可使用 AI_DASHSCOPE_API_KEY",
    )
    dashscope_base_url: str = Field(
        default="https://dashscope.aliyuncs.com/compatible-mode/v1",
        description="DashScope OpenAI 兼容接口基础URL",
    )

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI API 基础URL")
    openai_proxy_url: Optional[str] = Field(
        default=None,
        description="OpenAI 请求代理，例如 http://127.0.0.1:7890 或 socks5://127.0.0.1:1080",
    )

    # ---- 运行时 ----
    query_timeout: float = Field(default=180.0, gt=0, description="单次问答整体超时时间（秒）")
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 读写超时时间（秒）")
    max_context_messages: int = Field(default=20, ge=0, le=100, description="随请求发送的历史消息数上限")
    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    prompt_locale: str = Field(default="zh", description="系统提示词语言")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("dashscope_api_key", "openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("openai_proxy_url")
    @classmethod
    def validate_proxy_url(cls, v: Optional[str]) -> Optional[str]:
        if not v or not v.strip():
            return None
        scheme = v.split("://", 1)[0].lower()
        if scheme not in {"http", "https", "socks5", "socks5h"}:
            raise ValueError(f"Unsupported proxy scheme: {scheme!r}")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
