import json
import tempfile
from pathlib import Path

import pytest

from assist_core.domain.exceptions import StoreError
from assist_core.domain.models import ConversationKey, Document, Message
from assist_core.infrastructure.storage.json_store import JsonDocumentStore, JsonKeyedStore


def test_json_keyed_store_flush_and_reload():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonKeyedStore(root=root)
        key = ConversationKey("service", "c1")
        store.append(key, Message(role="user", content="我想预约"))
        store.append(key, Message(role="assistant", content="已为你创建预约请求"))
        store.touch(ConversationKey("pdf", "p1"))
        store.flush()

        raw = json.loads(store.path.read_text(encoding="utf-8"))
        assert raw["service"]["c1"][0]["content"] == "我想预约"
        assert raw["pdf"]["p1"] == []

        restored = JsonKeyedStore(root=root)
        snap = restored.load_all()
        assert sorted(snap) == ["pdf", "service"]
        assert [m.content for m in restored.list(key)] == ["我想预约", "已为你创建预约请求"]
        assert restored.conversation_ids("pdf") == ["p1"]


def test_json_keyed_store_missing_file_is_empty():
    with tempfile.TemporaryDirectory() as d:
        store = JsonKeyedStore(root=Path(d))
        assert store.load_all() == {}
        assert store.list(ConversationKey("service", "c1")) == []


def test_json_keyed_store_corrupt_file_raises_store_error():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        (root / "messages-store.json").write_text("{not json", encoding="utf-8")
        store = JsonKeyedStore(root=root)
        with pytest.raises(StoreError) as exc_info:
            store.load_all()
        assert exc_info.value.code == "STORE_READ_ERROR"


def test_flush_explicit_snapshot():
    with tempfile.TemporaryDirectory() as d:
        store = JsonKeyedStore(root=Path(d))
        snapshot = {"service": {"c9": [{"role": "user", "content": "hi", "created_at": "2026-01-01T00:00:00Z"}]}}
        store.flush(snapshot)
        restored = JsonKeyedStore(root=Path(d))
        restored.load_all()
        msgs = restored.list(ConversationKey("service", "c9"))
        assert msgs[0].content == "hi"
        assert msgs[0].created_at.year == 2026


def test_json_document_store_roundtrip():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        docs = JsonDocumentStore(root=root)
        docs.save(Document(conversation_id="p1", text="第一章 退款规则", file_name="手册.pdf"))
        docs.flush()

        restored = JsonDocumentStore(root=root)
        restored.load_all()
        doc = restored.find("p1")
        assert doc is not None
        assert doc.text == "第一章 退款规则"
        assert doc.file_name == "手册.pdf"
