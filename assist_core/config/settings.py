"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("ASSIST_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
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


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(
        default="ollama",
        description="默认使用的 Provider 名称，例如 ollama、glm、kimi",
    )
    default_model: str = Field(
        default="assistant-chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="生成温度")

    ollama_base_url: str = Field(default="http://localhost:11434/v1", description="Ollama OpenAI 兼容接口地址")
    kimi_api_key: Optional[str] = Field(default=None, description="Kimi API 密钥")
    kimi_base_url: str = Field(default="https://api.moonshot.cn/v1", description="Kimi API 基础URL")
    glm_api_key: Optional[str] = Field(default=None, description="GLM API 密钥")
    glm_base_url: str = Field(
        default="https://open.bigmodel.cn/api/paas/v4",
        description="GLM API 基础URL",
    )
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 存储与日志 ----
    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    max_context_messages: int = Field(default=20, ge=1, le=100, description="发给模型的最大历史消息数")

    # ---- 检索 ----
    kb_file: str = Field(default="service-kb.json", description="客服知识库 JSON 文件")
    kb_top_k: int = Field(default=3, ge=1, le=50, description="知识库检索返回的片段数")
    kb_categories: List[str] = Field(default_factory=lambda: ["service"], description="走知识库检索的会话类型")
    document_categories: List[str] = Field(default_factory=lambda: ["pdf"], description="走文档片段检索的会话类型")
    snippet_window: int = Field(default=600, ge=1, description="命中点前后窗口字符数")
    snippet_max_snippets: int = Field(default=6, ge=1, description="最多截取的片段数")
    snippet_max_total_chars: int = Field(default=2800, ge=1, description="最终上下文最大字符数")
    snippet_head_fallback_chars: int = Field(default=2500, ge=1, description="无关键词时截取开头的字符数")

    # ---- 意图 ----
    booking_phrases: List[str] = Field(
        default_factory=lambda: ["预约", "试听", "报名", "约课"],
        description="触发预约直出回复的关键词",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("kimi_api_key", "glm_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("booking_phrases")
    @classmethod
    def validate_booking_phrases(cls, v: List[str]) -> List[str]:
        return [p for p in v if p and p.strip()]

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
