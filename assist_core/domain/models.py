"""统一的领域数据模型。

本模块定义检索与对话流程之间共享的标准数据结构：

- KnowledgeItem / ScoredItem: 客服知识库条目及其一次检索中的得分。
- ConversationKey: (category, conversation_id)，所有会话级状态的分区键。
- Message: 历史记录中的一条消息（user/assistant）。
- Document: 某个会话上传的文档全文。
- ChatMessage / ChatRequest: 发给底层 LLM Provider 的请求结构。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Literal, NamedTuple, Optional


# 历史记录中的消息角色
Role = Literal["user", "assistant"]

# 发给 Provider 的消息角色（与 OpenAI 兼容接口的 role 字段对应）
ChatRole = Literal["system", "user", "assistant"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_ts(value: Any) -> datetime:
    if not value:
        return _utcnow()
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class KnowledgeItem:
    """一条客服知识库条目，加载后不可变。

    - title: 标题，命中 +3。
    - content: 具体答案/说明，命中 +1。
    - tags: 关键词标签，问题中包含任一标签即 +4。
    """

    id: str
    title: str
    content: str
    tags: FrozenSet[str] = frozenset()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeItem":
        raw_tags = data.get("tags") or ()
        if isinstance(raw_tags, str):
            raw_tags = (raw_tags,)
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            content=data.get("content") or data.get("body") or "",
            tags=_as_tags(raw_tags),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "tags": sorted(self.tags),
        }


def _as_tags(values: Iterable[Any]) -> FrozenSet[str]:
    return frozenset(v for v in values if isinstance(v, str))


@dataclass(frozen=True)
class ScoredItem:
    """一次检索中某个条目的得分，不持久化。"""

    item: KnowledgeItem
    score: int


class ConversationKey(NamedTuple):
    """会话分区键：不同 key 之间的状态互不可见。"""

    category: str
    conversation_id: str


@dataclass
class Message:
    """历史记录中的一条消息，按到达顺序追加。"""

    role: Role
    content: str
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "created_at": format_ts(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            role=data["role"],
            content=data.get("content") or "",
            created_at=parse_ts(data.get("created_at")),
        )


@dataclass
class Document:
    """会话关联的文档全文。每个会话至多一份，重新上传即覆盖。"""

    conversation_id: str
    text: str
    file_name: str = "document.pdf"
    uploaded_at: datetime = field(default_factory=_utcnow)


@dataclass
class ChatMessage:
    """发给 Provider 的一条消息。"""

    role: ChatRole
    content: str


@dataclass
class ChatRequest:
    """一次完整的流式对话请求。

    Provider 适配层负责把本结构转换成各家 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "ollama"
    model: str  # 逻辑模型名，如 "assistant-chat"
    messages: List[ChatMessage]
    temperature: float = 0.7
    top_p: float = 0.95
    max_tokens: Optional[int] = None
