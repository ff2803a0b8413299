"""存储协议。

核心逻辑只依赖这里的 Protocol，不关心数据放在内存还是磁盘：

- KeyedStore: 按 (category, conversation_id) 分区的只追加消息日志。
- DocumentStore: 每个会话至多一份的文档全文。
- KnowledgeSource: 客服知识库条目来源。

load_all / flush 由外层进程在启动与退出时调用，核心流程从不调用。
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence

from .models import ConversationKey, Document, KnowledgeItem, Message


class KeyedStore(Protocol):
    def append(self, key: ConversationKey, message: Message) -> None:
        ...

    def list(self, key: ConversationKey) -> List[Message]:
        ...

    def touch(self, key: ConversationKey) -> None:
        """登记会话（无消息时也出现在会话列表中）。"""
        ...

    def conversation_ids(self, category: str) -> List[str]:
        ...

    def snapshot(self) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
        ...

    def load_all(self) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
        ...

    def flush(self, snapshot: Optional[Dict[str, Dict[str, List[Dict[str, Any]]]]] = None) -> None:
        ...


class DocumentStore(Protocol):
    def save(self, document: Document) -> None:
        ...

    def find(self, conversation_id: str) -> Optional[Document]:
        ...

    def document_text(self, conversation_id: str) -> Optional[str]:
        ...

    def load_all(self) -> Dict[str, Dict[str, Any]]:
        ...

    def flush(self, snapshot: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        ...


class KnowledgeSource(Protocol):
    def all_items(self) -> Sequence[KnowledgeItem]:
        ...
