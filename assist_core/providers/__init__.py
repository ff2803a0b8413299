"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供 OpenAI 兼容接口的流式实现 (openai_compat)，覆盖 ollama、glm、kimi。
"""

from typing import Optional

from assist_core.config.settings import settings
from assist_core.domain.exceptions import ValidationError
from assist_core.providers.base import ProviderClient
from assist_core.providers.openai_compat import OpenAICompatClient
from assist_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = (name or getattr(settings, "default_provider", "ollama")).lower()
    try:
        config = get_provider_config(provider_name)
    except KeyError as e:
        raise ValidationError(code="UNKNOWN_PROVIDER", message=str(e))
    return OpenAICompatClient(settings, config)

