import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from assist_core.domain.models import ConversationKey, Document, Message, format_ts, parse_ts
from assist_core.domain.stores import DocumentStore, KeyedStore

Snapshot = Dict[str, Dict[str, List[Dict[str, Any]]]]
DocumentSnapshot = Dict[str, Dict[str, Any]]


@dataclass
class _Bucket:
    lock: threading.Lock = field(default_factory=threading.Lock)
    messages: List[Message] = field(default_factory=list)


class InMemoryKeyedStore(KeyedStore):
    """按会话 key 分区的内存消息日志。

    每个 key 一把锁，同一会话的追加串行执行，不同会话互不阻塞。
    新 key 只在 _guard 下创建，因此快照时可以安全遍历。
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._buckets: Dict[ConversationKey, _Bucket] = {}

    def append(self, key: ConversationKey, message: Message) -> None:
        bucket = self._bucket(key)
        with bucket.lock:
            bucket.messages.append(message)

    def list(self, key: ConversationKey) -> List[Message]:
        with self._guard:
            bucket = self._buckets.get(ConversationKey(*key))
        if bucket is None:
            return []
        with bucket.lock:
            return list(bucket.messages)

    def touch(self, key: ConversationKey) -> None:
        self._bucket(key)

    def conversation_ids(self, category: str) -> List[str]:
        with self._guard:
            return [k.conversation_id for k in self._buckets if k.category == category]

    def snapshot(self) -> Snapshot:
        with self._guard:
            items: List[Tuple[ConversationKey, _Bucket]] = list(self._buckets.items())
        data: Snapshot = {}
        for key, bucket in items:
            with bucket.lock:
                msgs = [m.to_dict() for m in bucket.messages]
            data.setdefault(key.category, {})[key.conversation_id] = msgs
        return data

    def load_all(self) -> Snapshot:
        return self.snapshot()

    def flush(self, snapshot: Optional[Snapshot] = None) -> None:
        return None

    def _bucket(self, key: ConversationKey) -> _Bucket:
        key = ConversationKey(*key)
        with self._guard:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._buckets[key] = _Bucket()
            return bucket

    def _install(self, snapshot: Snapshot) -> None:
        buckets: Dict[ConversationKey, _Bucket] = {}
        for category, convs in (snapshot or {}).items():
            for conversation_id, msgs in (convs or {}).items():
                bucket = _Bucket()
                bucket.messages = [Message.from_dict(m) for m in msgs or []]
                buckets[ConversationKey(category, conversation_id)] = bucket
        with self._guard:
            self._buckets = buckets


class InMemoryDocumentStore(DocumentStore):
    """chat_id -> Document。保存即覆盖旧文档。"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._docs: Dict[str, Document] = {}

    def save(self, document: Document) -> None:
        with self._lock:
            self._docs[document.conversation_id] = document

    def find(self, conversation_id: str) -> Optional[Document]:
        with self._lock:
            return self._docs.get(conversation_id)

    def document_text(self, conversation_id: str) -> Optional[str]:
        doc = self.find(conversation_id)
        return doc.text if doc else None

    def exists(self, conversation_id: str) -> bool:
        with self._lock:
            return conversation_id in self._docs

    def snapshot(self) -> DocumentSnapshot:
        with self._lock:
            docs = list(self._docs.values())
        return {
            d.conversation_id: {
                "file_name": d.file_name,
                "text": d.text,
                "uploaded_at": format_ts(d.uploaded_at),
            }
            for d in docs
        }

    def load_all(self) -> DocumentSnapshot:
        return self.snapshot()

    def flush(self, snapshot: Optional[DocumentSnapshot] = None) -> None:
        return None

    def _install(self, snapshot: DocumentSnapshot) -> None:
        docs = {
            cid: Document(
                conversation_id=cid,
                text=m.get("text") or "",
                file_name=m.get("file_name") or "document.pdf",
                uploaded_at=parse_ts(m.get("uploaded_at")),
            )
            for cid, m in (snapshot or {}).items()
        }
        with self._lock:
            self._docs = docs
