"""客服知识库的加载与只读索引。

优先读取 settings.kb_file（JSON 数组），文件不存在或解析失败时
使用内置的几条默认条目。加载完成后索引只读，检索时无需加锁。
"""

import json
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple

from assist_core.config.settings import settings
from assist_core.domain.models import KnowledgeItem
from assist_core.domain.stores import KnowledgeSource
from assist_core.infrastructure.logging.logger import logger


DEFAULT_ITEMS: Tuple[KnowledgeItem, ...] = (
    KnowledgeItem(
        id="kb-001",
        title="课程咨询：Java",
        content=(
            "Java就业班包含：JavaSE、Spring、SpringBoot、MyBatis、微服务、项目实战、面试辅导等。\n"
            "适合零基础/转行/提升。可提供试听与学习计划建议。\n"
        ),
        tags=frozenset({"java", "课程", "就业", "学习路线"}),
    ),
    KnowledgeItem(
        id="kb-002",
        title="预约试听",
        content="你可以告诉我：意向课程、城市/线上、方便的时间段、联系方式（可选），我会为你生成预约编号。\n",
        tags=frozenset({"预约", "试听", "报名", "咨询"}),
    ),
    KnowledgeItem(
        id="kb-003",
        title="售后/退款",
        content="售后问题请提供：订单号/手机号/购买渠道，我们将协助处理。\n",
        tags=frozenset({"售后", "退款", "订单"}),
    ),
)


class KnowledgeIndex(KnowledgeSource):
    """有序、只读的知识条目集合。id 重复时保留第一条。"""

    def __init__(self, items: Iterable[KnowledgeItem]):
        seen: set[str] = set()
        kept: List[KnowledgeItem] = []
        for item in items:
            if item.id in seen:
                logger.warning("Duplicate knowledge item skipped", extra={"extra": {"item_id": item.id}})
                continue
            seen.add(item.id)
            kept.append(item)
        self._items: Tuple[KnowledgeItem, ...] = tuple(kept)

    def all_items(self) -> Sequence[KnowledgeItem]:
        return self._items

    def get(self, item_id: str) -> Optional[KnowledgeItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[KnowledgeItem]:
        return iter(self._items)


def _parse_items(data: Any) -> List[KnowledgeItem]:
    if not isinstance(data, list):
        raise ValueError("knowledge file must contain a JSON array")
    items: List[KnowledgeItem] = []
    for raw in data:
        if not isinstance(raw, dict) or raw.get("id") is None:
            logger.warning("Malformed knowledge item skipped", extra={"extra": {"raw": str(raw)[:200]}})
            continue
        items.append(KnowledgeItem.from_dict(raw))
    return items


def load_knowledge_index(path: str | Path | None = None) -> KnowledgeIndex:
    """从 JSON 文件加载知识库；失败时回退到默认条目。"""

    kb_path = Path(path or settings.kb_file)
    try:
        if kb_path.exists():
            items = _parse_items(json.loads(kb_path.read_text(encoding="utf-8")))
            index = KnowledgeIndex(items)
            logger.info("Loaded service KB", extra={"extra": {"path": str(kb_path), "items": len(index)}})
            return index
    except (OSError, ValueError) as e:
        logger.warning(
            "Failed to load service KB, fallback to defaults",
            extra={"extra": {"path": str(kb_path), "error": str(e)}},
        )

    index = KnowledgeIndex(DEFAULT_ITEMS)
    logger.info(
        "Initialized service KB with default items",
        extra={"extra": {"items": len(index), "override_file": str(kb_path)}},
    )
    return index
