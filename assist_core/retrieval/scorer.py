"""关键词打分。

固定权重：标题包含问题 +3，正文包含问题 +1，问题包含某个标签 +4（每个标签单独计分）。
匹配一律小写、按子串进行，不做分词。得分为 0 的条目不返回。
"""

from typing import Any, Iterable, List, Optional

from assist_core.domain.models import KnowledgeItem, ScoredItem

TITLE_WEIGHT = 3
CONTENT_WEIGHT = 1
TAG_WEIGHT = 4


def _lower(value: Any) -> Optional[str]:
    return value.lower() if isinstance(value, str) else None


class RelevanceScorer:
    def score(self, query: Optional[str], items: Iterable[KnowledgeItem]) -> List[ScoredItem]:
        """按得分降序返回命中的条目；同分保持原有顺序。"""

        if not query or not query.strip():
            return []
        q = query.lower()

        scored: List[ScoredItem] = []
        for item in items:
            s = self.score_item(q, item)
            if s > 0:
                scored.append(ScoredItem(item=item, score=s))
        # sorted 是稳定排序，同分条目保持索引顺序
        return sorted(scored, key=lambda x: x.score, reverse=True)

    @staticmethod
    def score_item(q: str, item: KnowledgeItem) -> int:
        """q 需已小写。字段缺失或类型不对时跳过该字段。

        空白标签不计分：按字面子串语义 "" 包含于任何问题，会让空标签白拿 +4，这里不采用。
        """

        s = 0
        title = _lower(getattr(item, "title", None))
        if title is not None and q in title:
            s += TITLE_WEIGHT
        content = _lower(getattr(item, "content", None))
        if content is not None and q in content:
            s += CONTENT_WEIGHT

        tags = getattr(item, "tags", None)
        if isinstance(tags, (set, frozenset, list, tuple)):
            for tag in tags:
                t = _lower(tag)
                if not t or not t.strip():
                    continue
                if t in q:
                    s += TAG_WEIGHT
        return s
