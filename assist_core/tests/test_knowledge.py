import json
import tempfile
from pathlib import Path

from assist_core.domain.models import KnowledgeItem
from assist_core.retrieval.knowledge import DEFAULT_ITEMS, KnowledgeIndex, load_knowledge_index


def test_missing_file_uses_defaults():
    with tempfile.TemporaryDirectory() as d:
        index = load_knowledge_index(Path(d) / "nope.json")
    assert [i.id for i in index] == ["kb-001", "kb-002", "kb-003"]
    assert index.all_items() == DEFAULT_ITEMS


def test_loads_items_from_file_and_skips_malformed():
    data = [
        {"id": "faq-1", "title": "发票", "content": "可开具电子发票", "tags": ["发票", "报销", 3]},
        {"title": "no id"},
        "garbage",
        {"id": "faq-2", "title": "上课时间", "body": "晚上 19:30", "tags": "时间"},
    ]
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "kb.json"
        path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        index = load_knowledge_index(path)

    assert len(index) == 2
    assert index.get("faq-1").tags == frozenset({"发票", "报销"})
    assert index.get("faq-2").content == "晚上 19:30"
    assert index.get("faq-2").tags == frozenset({"时间"})


def test_invalid_json_falls_back_to_defaults():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "kb.json"
        path.write_text('{"id": "x"}', encoding="utf-8")
        index = load_knowledge_index(path)
    assert len(index) == len(DEFAULT_ITEMS)


def test_duplicate_ids_keep_first():
    index = KnowledgeIndex(
        [
            KnowledgeItem(id="a", title="first", content=""),
            KnowledgeItem(id="a", title="second", content=""),
            KnowledgeItem(id="b", title="other", content=""),
        ]
    )
    assert [i.title for i in index] == ["first", "other"]
    assert index.get("missing") is None
