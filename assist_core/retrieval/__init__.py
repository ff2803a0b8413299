"""关键词检索层。

- knowledge: 客服知识库的只读索引与加载。
- scorer: 基于标题/正文/标签命中的打分排序。
- context: 把检索结果渲染为【知识片段】上下文。
- snippets: 从文档全文中截取关键词窗口片段。
"""

from .context import NO_CONTEXT_SENTINEL, ContextAssembler
from .knowledge import KnowledgeIndex, load_knowledge_index
from .scorer import RelevanceScorer
from .snippets import EMPTY_DOCUMENT_SENTINEL, SnippetExtractor

__all__ = [
    "NO_CONTEXT_SENTINEL",
    "EMPTY_DOCUMENT_SENTINEL",
    "ContextAssembler",
    "KnowledgeIndex",
    "RelevanceScorer",
    "SnippetExtractor",
    "load_knowledge_index",
]
