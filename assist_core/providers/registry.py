"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "assistant-chat"。
- provider_model：厂商实际提供的模型 ID，例如 "glm-4.6"。

上层只关心逻辑名，具体用哪个底层模型由这里集中配置，便于后续升级或切换。"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。

    api_key_setting / base_url_setting 为 Settings 上的字段名；
    api_key_setting 为 None 表示无需鉴权（本地 Ollama）。
    """

    name: str
    base_url: str
    models: Dict[str, ModelConfig]
    base_url_setting: str
    api_key_setting: Optional[str] = None


OLLAMA_CONFIG = ProviderConfig(
    name="ollama",
    base_url="http://localhost:11434/v1",
    models={
        "assistant-chat": ModelConfig(
            logical_name="assistant-chat",
            provider_model="qwen2.5:7b",
            max_tokens=4096,
            default_temperature=0.7,
        )
    },
    base_url_setting="ollama_base_url",
)

KIMI_CONFIG = ProviderConfig(
    name="kimi",
    base_url="https://api.moonshot.cn/v1",
    models={
        "assistant-chat": ModelConfig(
            logical_name="assistant-chat",
            provider_model="kimi-k2-turbo-preview",
            max_tokens=8192,
            default_temperature=0.7,
        )
    },
    base_url_setting="kimi_base_url",
    api_key_setting="kimi_api_key",
)

GLM_CONFIG = ProviderConfig(
    name="glm",
    base_url="https://open.bigmodel.cn/api/paas/v4",
    models={
        "assistant-chat": ModelConfig(
            logical_name="assistant-chat",
            provider_model="glm-4.6",
            max_tokens=8192,
            default_temperature=0.7,
        )
    },
    base_url_setting="glm_base_url",
    api_key_setting="glm_api_key",
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "ollama": OLLAMA_CONFIG,
    "kimi": KIMI_CONFIG,
    "glm": GLM_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
