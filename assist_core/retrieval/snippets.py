"""文档片段抽取。

没有向量库时的极简“检索”：从文档全文里截取包含问题关键词的若干窗口片段，
最终拼接结果不超过 max_total_chars。
"""

import re
import string
from typing import List, Optional

from assist_core.config.settings import settings

EMPTY_DOCUMENT_SENTINEL = "（文档文本为空或解析失败）"
SNIPPET_SEPARATOR = "\n\n---\n\n"
SUMMARY_SEPARATOR = "\n...\n"
SUMMARY_PART_CHARS = 900
MIN_KEYWORD_LEN = 2

_PUNCT_RE = re.compile("[" + re.escape(string.punctuation + "，。！？、；：“”‘’（）()[]{}<>") + "]")


def clip(text: Optional[str], start: int, max_len: int) -> str:
    """截取 text[start:start+max_len]；start 越界时返回空串。"""

    if not text or start < 0 or start >= len(text):
        return ""
    end = min(len(text), start + max_len)
    return text[start:end]


def extract_keywords(query: Optional[str]) -> List[str]:
    """标点替换为空格后按空白切分，保留长度 >= 2 的小写词，按首次出现去重。"""

    cleaned = _PUNCT_RE.sub(" ", query or "")
    keywords: List[str] = []
    for token in cleaned.split():
        if len(token) < MIN_KEYWORD_LEN:
            continue
        token = token.lower()
        if token not in keywords:
            keywords.append(token)
    return keywords


class SnippetExtractor:
    def __init__(
        self,
        window_size: Optional[int] = None,
        max_snippets: Optional[int] = None,
        max_total_chars: Optional[int] = None,
        head_fallback_chars: Optional[int] = None,
    ):
        self.window_size = window_size if window_size is not None else settings.snippet_window
        self.max_snippets = max_snippets if max_snippets is not None else settings.snippet_max_snippets
        self.max_total_chars = max_total_chars if max_total_chars is not None else settings.snippet_max_total_chars
        self.head_fallback_chars = (
            head_fallback_chars if head_fallback_chars is not None else settings.snippet_head_fallback_chars
        )

    def extract(self, document: Optional[str], query: Optional[str]) -> str:
        if not document or not document.strip():
            return EMPTY_DOCUMENT_SENTINEL

        keywords = extract_keywords(query)
        # 没关键词：给开头一段
        if not keywords:
            return clip(document, 0, min(self.head_fallback_chars, self.max_total_chars))

        snippets: List[str] = []
        for kw in keywords:
            m = re.search(re.escape(kw), document, re.IGNORECASE)
            if m is None:
                continue
            idx = m.start()
            start = max(0, idx - self.window_size)
            end = min(len(document), idx + self.window_size)
            snippets.append(document[start:end].strip())
            if len(snippets) >= self.max_snippets:
                break

        if snippets:
            merged = SNIPPET_SEPARATOR.join(snippets)
        else:
            merged = self._summary(document)
        return clip(merged, 0, self.max_total_chars)

    @staticmethod
    def _summary(document: str) -> str:
        """找不到关键词时用开头 + 中间 + 结尾拼一份摘要。"""

        n = len(document)
        head = clip(document, 0, SUMMARY_PART_CHARS)
        middle = clip(document, max(0, n // 2 - SUMMARY_PART_CHARS // 2), SUMMARY_PART_CHARS)
        tail = clip(document, max(0, n - SUMMARY_PART_CHARS), SUMMARY_PART_CHARS)
        return SUMMARY_SEPARATOR.join([head, middle, tail])
