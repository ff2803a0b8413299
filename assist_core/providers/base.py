"""Provider 抽象接口。

上层 AssistantEngine 不直接依赖具体厂商的 HTTP 接口，而是依赖此协议：
生成模型被视为“给定请求、逐块产出文本”的黑盒。
"""

from typing import Iterable, Protocol

from assist_core.domain.models import ChatRequest


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - chat_stream(req): 执行一次流式对话调用，惰性地逐块产出文本增量。
    """

    name: str

    def chat_stream(self, req: ChatRequest) -> Iterable[str]:
        ...
