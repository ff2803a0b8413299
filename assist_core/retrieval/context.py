from typing import Sequence, Union

from assist_core.domain.models import KnowledgeItem, ScoredItem

NO_CONTEXT_SENTINEL = "（未检索到相关知识库片段）"
BLOCK_SEPARATOR = "\n\n---\n\n"


class ContextAssembler:
    """把检索结果拼成可直接放进 system prompt 的【知识片段】文本。"""

    def assemble(self, items: Sequence[Union[ScoredItem, KnowledgeItem]]) -> str:
        if not items:
            return NO_CONTEXT_SENTINEL
        parts = []
        for i, entry in enumerate(items, start=1):
            item = entry.item if isinstance(entry, ScoredItem) else entry
            parts.append(
                f"【知识片段 {i}】{item.title or ''}\n\n{item.content or ''}{BLOCK_SEPARATOR}"
            )
        return "".join(parts)
