"""OpenAI 兼容接口的流式 Provider 适配器。

Ollama、Moonshot/Kimi、BigModel/GLM 都提供 /chat/completions 兼容接口，
差异只在 base_url、鉴权和模型名，由 ProviderConfig 描述。

本模块负责：

1. 接收统一的 ChatRequest，转换为兼容接口的请求 JSON（stream=true）。
2. 逐行解析 SSE 响应（data: {...}），产出 choices[0].delta.content 文本增量。
3. 把网络/限流/服务端错误包装为统一的业务异常。
"""

import json
from typing import Any, Dict, Iterator, Optional

import httpx

from assist_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from assist_core.domain.models import ChatMessage, ChatRequest
from assist_core.providers.registry import ModelConfig, ProviderConfig


class OpenAICompatClient:
    """兼容接口客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - chat_stream: 对外统一调用入口，返回文本增量迭代器。
    """

    def __init__(self, settings, config: ProviderConfig):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = settings
        self._config = config
        self.name = config.name

    def chat_stream(self, req: ChatRequest) -> Iterator[str]:
        """校验配置后返回惰性迭代器；HTTP 请求在首次迭代时才发出。"""

        api_key = self._api_key()
        if self._config.api_key_setting and not api_key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(
                code="MISSING_API_KEY",
                message=f"{self._config.api_key_setting.upper()} not set",
            )
        try:
            model_cfg = self._config.models[req.model]
        except KeyError:
            raise ValidationError(code="UNKNOWN_MODEL", message=f"Unknown model: {req.model!r}")
        payload = self._build_payload(req, model_cfg)
        return self._iter_stream(payload, api_key)

    def _iter_stream(self, payload: Dict[str, Any], api_key: Optional[str]) -> Iterator[str]:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    f"{self._base_url()}/chat/completions",
                    json=payload,
                    headers=headers,
                ) as resp:
                    if resp.status_code == 429:
                        # 限流错误交给上层做重试/退避
                        raise RateLimitError(code="RATE_LIMIT", message=f"{self.name} rate limit")
                    if resp.status_code >= 400:
                        resp.read()
                        raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
                    for line in resp.iter_lines():
                        text = self._parse_stream_line(line)
                        if text:
                            yield text
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时、流中断等
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        """将 ChatRequest 转成兼容接口所需的请求 JSON。"""

        return {
            "model": model_cfg.provider_model,
            "messages": [self._message_to_payload(m) for m in req.messages],
            "temperature": req.temperature or model_cfg.default_temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "top_p": req.top_p,
            "stream": True,
        }

    @staticmethod
    def _parse_stream_line(line: str) -> str:
        """解析流式响应中的单行，返回文本增量（无内容时返回空串）。"""

        if not line:
            return ""
        data_str = line
        if data_str.startswith("data:"):
            data_str = data_str[5:]
        data_str = data_str.strip()
        if not data_str or data_str == "[DONE]":
            return ""
        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            return ""
        choices = data.get("choices") or []
        if not choices:
            return ""
        delta = choices[0].get("delta") or {}
        return delta.get("content") or ""

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        return {"role": message.role, "content": message.content}

    def _api_key(self) -> Optional[str]:
        if not self._config.api_key_setting:
            return None
        return getattr(self._settings, self._config.api_key_setting, None)

    def _base_url(self) -> str:
        base = getattr(self._settings, self._config.base_url_setting, None) or self._config.base_url
        return base.rstrip("/")
