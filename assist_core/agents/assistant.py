"""对话引擎核心模块。

把检索、提示词组装、Provider 流式调用与历史落库串起来：

- 知识库类会话（如 service）：关键词打分 -> top-K -> 【知识片段】上下文；
  预约类问题直接生成带预约编号的回复，不调用模型。
- 文档类会话（如 pdf）：从已上传文档全文中截取关键词窗口作为上下文。

模型输出经 ResponseTee 分流：一路实时交付给调用方，一路在流正常结束后
聚合全文写入历史（role=assistant）。
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Literal, Optional, Tuple
from uuid import uuid4

from assist_core.agents import intent
from assist_core.config.settings import settings
from assist_core.domain.exceptions import InputError, NotFoundError, ValidationError
from assist_core.domain.models import ChatMessage, ChatRequest, ConversationKey, Document, Message
from assist_core.domain.stores import DocumentStore, KeyedStore, KnowledgeSource
from assist_core.infrastructure.logging.logger import logger
from assist_core.prompts import load_system_prompt
from assist_core.providers.base import ProviderClient
from assist_core.retrieval.context import ContextAssembler
from assist_core.retrieval.scorer import RelevanceScorer
from assist_core.retrieval.snippets import SnippetExtractor
from assist_core.streaming.tee import ResponseTee, TeeStream

CategoryKind = Literal["kb", "document"]


@dataclass
class AssistantConfig:
    provider: str
    model: str = "assistant-chat"
    temperature: float = 0.7
    kb_top_k: int = 3
    max_context_messages: int = 20
    kb_categories: Tuple[str, ...] = ("service",)
    document_categories: Tuple[str, ...] = ("pdf",)
    booking_phrases: Tuple[str, ...] = field(default_factory=lambda: tuple(settings.booking_phrases))

    @classmethod
    def from_settings(cls, provider: Optional[str] = None) -> "AssistantConfig":
        return cls(
            provider=provider or settings.default_provider,
            model=settings.default_model,
            temperature=settings.temperature,
            kb_top_k=settings.kb_top_k,
            max_context_messages=settings.max_context_messages,
            kb_categories=tuple(settings.kb_categories),
            document_categories=tuple(settings.document_categories),
            booking_phrases=tuple(settings.booking_phrases),
        )


class AssistantEngine:
    def __init__(
        self,
        history: KeyedStore,
        documents: DocumentStore,
        knowledge: KnowledgeSource,
        provider_client: ProviderClient,
        config: Optional[AssistantConfig] = None,
        scorer: Optional[RelevanceScorer] = None,
        assembler: Optional[ContextAssembler] = None,
        extractor: Optional[SnippetExtractor] = None,
        tee: Optional[ResponseTee] = None,
    ):
        self._history = history
        self._documents = documents
        self._knowledge = knowledge
        self._provider_client = provider_client
        self._config = config or AssistantConfig(provider=getattr(provider_client, "name", "ollama"))
        self._scorer = scorer or RelevanceScorer()
        self._assembler = assembler or ContextAssembler()
        self._extractor = extractor or SnippetExtractor()
        self._tee = tee or ResponseTee()

    @property
    def config(self) -> AssistantConfig:
        return self._config

    def category_kind(self, category: str) -> CategoryKind:
        if category in self._config.kb_categories:
            return "kb"
        if category in self._config.document_categories:
            return "document"
        raise ValidationError(code="UNKNOWN_CATEGORY", message=f"Unknown category: {category!r}")

    # ----------------- 核心对外接口 -----------------

    def retrieve_and_assemble_context(self, category: str, conversation_id: str, prompt: Optional[str]) -> str:
        """按会话类型检索并返回可直接放进提示词的上下文文本。

        问题为空时返回占位字符串而不是抛错；文档类会话没有文档时抛 NotFoundError。
        """

        kind = self.category_kind(category)
        log_ctx = {"category": category, "conversation_id": conversation_id}

        if kind == "kb":
            scored = self._scorer.score(prompt, self._knowledge.all_items())
            top = scored[: self._config.kb_top_k]
            self._log(
                logging.INFO,
                "Retrieved knowledge items",
                log_ctx,
                matched=len(scored),
                item_ids=[s.item.id for s in top],
            )
            return self._assembler.assemble(top)

        text = self._documents.document_text(conversation_id)
        if text is None:
            raise NotFoundError(
                code="DOCUMENT_NOT_FOUND",
                message=f"Please upload PDF first. chatId={conversation_id}",
                **log_ctx,
            )
        context = self._extractor.extract(text, prompt)
        self._log(logging.INFO, "Extracted document snippets", log_ctx, doc_chars=len(text), context_chars=len(context))
        return context

    def stream_and_persist(self, category: str, conversation_id: str, token_stream: Iterable[str]) -> TeeStream:
        """包装生成流：实时交付，正常结束后把全文以 assistant 身份写入历史。"""

        key = ConversationKey(category, conversation_id)
        log_ctx = {"category": category, "conversation_id": conversation_id, "stream_id": f"s-{uuid4().hex}"}
        start_time = time.time()

        def _persist(full_text: str) -> None:
            self._history.append(key, Message(role="assistant", content=full_text))
            self._log(
                logging.INFO,
                "Stored assistant message",
                log_ctx,
                chars=len(full_text),
                elapsed_seconds=round(time.time() - start_time, 2),
            )

        return self._tee.tee(token_stream, _persist, log_ctx)

    def try_intent_shortcut(self, prompt: Optional[str]) -> Optional[str]:
        return intent.try_intent_shortcut(prompt, phrases=self._config.booking_phrases)

    # ----------------- 完整对话流程 -----------------

    def chat_stream(self, category: str, conversation_id: str, prompt: str) -> Iterator[str]:
        """处理一轮对话，返回文本块迭代器。

        用户消息在调用模型之前写入历史；预约意图直接以单块回复返回。
        """

        self._require_conversation_id(conversation_id)
        kind = self.category_kind(category)
        key = ConversationKey(category, conversation_id)
        log_ctx: Dict[str, Any] = {"category": category, "conversation_id": conversation_id}

        document: Optional[Document] = None
        if kind == "document":
            document = self._documents.find(conversation_id)
            if document is None:
                raise NotFoundError(
                    code="DOCUMENT_NOT_FOUND",
                    message=f"Please upload PDF first. chatId={conversation_id}",
                    **log_ctx,
                )

        self._history.touch(key)
        self._history.append(key, Message(role="user", content=prompt))
        self._log(logging.INFO, "Stored user message", log_ctx, chars=len(prompt or ""))

        if kind == "kb":
            reply = self.try_intent_shortcut(prompt)
            if reply is not None:
                self._history.append(key, Message(role="assistant", content=reply))
                self._log(logging.INFO, "Booking intent shortcut", log_ctx)
                return iter([reply])

        context = self.retrieve_and_assemble_context(category, conversation_id, prompt)
        system_prompt = self._system_prompt(category, kind, context, document)

        chat_messages = [ChatMessage(role="system", content=system_prompt)]
        for m in self._history.list(key)[-self._config.max_context_messages:]:
            chat_messages.append(ChatMessage(role=m.role, content=m.content))
        req = ChatRequest(
            provider=self._config.provider,
            model=self._config.model,
            messages=chat_messages,
            temperature=self._config.temperature,
        )
        self._log(
            logging.INFO,
            "Calling provider (stream)",
            log_ctx,
            provider=self._config.provider,
            model=self._config.model,
            message_count=len(chat_messages),
        )
        stream = self._provider_client.chat_stream(req)
        return self.stream_and_persist(category, conversation_id, stream)

    def upload_document(
        self,
        conversation_id: str,
        text: Optional[str],
        file_name: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Document:
        """保存（覆盖）会话的文档全文，并登记到文档类会话列表。"""

        self._require_conversation_id(conversation_id)
        category = category or self._config.document_categories[0]
        if self.category_kind(category) != "document":
            raise ValidationError(code="NOT_DOCUMENT_CATEGORY", message=f"{category!r} does not accept documents")
        cleaned = (text or "").replace("\u0000", "").strip()
        doc = Document(conversation_id=conversation_id, text=cleaned, file_name=file_name or "document.pdf")
        self._documents.save(doc)
        self._history.touch(ConversationKey(category, conversation_id))
        self._log(
            logging.INFO,
            "Stored document",
            {"category": category, "conversation_id": conversation_id},
            file_name=doc.file_name,
            text_length=len(cleaned),
        )
        return doc

    def history(self, category: str, conversation_id: str) -> List[Message]:
        return self._history.list(ConversationKey(category, conversation_id))

    def conversation_ids(self, category: str) -> List[str]:
        return self._history.conversation_ids(category)

    @staticmethod
    def _require_conversation_id(conversation_id: Optional[str]) -> None:
        if not conversation_id or not conversation_id.strip():
            raise InputError(code="MISSING_CHAT_ID", message="chatId must not be blank")

    def _system_prompt(self, category: str, kind: CategoryKind, context: str, document: Optional[Document]) -> str:
        fallback = "service" if kind == "kb" else "pdf"
        template = load_system_prompt(category, fallback=fallback)
        file_name = document.file_name if document else ""
        return template.format(context=context, file_name=file_name)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
