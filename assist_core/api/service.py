"""对外 API 服务模块。

提供简化的函数接口供上层应用（HTTP 路由、CLI 等）调用，
并负责存储的启动加载 / 退出落盘。
"""

from typing import Any, Dict, Iterator, Optional

from assist_core.agents.assistant import AssistantConfig, AssistantEngine
from assist_core.config.settings import settings
from assist_core.domain.exceptions import BusinessError, StoreError
from assist_core.domain.stores import DocumentStore, KeyedStore
from assist_core.infrastructure.logging.logger import logger
from assist_core.infrastructure.storage.json_store import JsonDocumentStore, JsonKeyedStore
from assist_core.providers import create_provider
from assist_core.retrieval.knowledge import load_knowledge_index


_history: Optional[KeyedStore] = None
_documents: Optional[DocumentStore] = None
_engine: Optional[AssistantEngine] = None


def get_default_engine() -> AssistantEngine:
    """获取默认的 AssistantEngine 实例（单例）。"""
    global _history, _documents, _engine
    if _history is None:
        _history = JsonKeyedStore(root=settings.storage_root)
    if _documents is None:
        _documents = JsonDocumentStore(root=settings.storage_root)
    if _engine is None:
        _engine = AssistantEngine(
            history=_history,
            documents=_documents,
            knowledge=load_knowledge_index(settings.kb_file),
            provider_client=create_provider(),
            config=AssistantConfig.from_settings(),
        )
    return _engine


def startup() -> None:
    """进程启动时调用：从磁盘恢复历史与文档。读取失败不影响启动。"""
    get_default_engine()
    for store in (_history, _documents):
        if store is None:
            continue
        try:
            store.load_all()
        except StoreError as e:
            logger.error("Failed to load store", extra={"extra": {"code": e.code, "error": e.message, **e.extra}})


def shutdown() -> None:
    """进程退出时调用：把历史与文档落盘。"""
    for store in (_history, _documents):
        if store is None:
            continue
        try:
            store.flush()
        except StoreError as e:
            logger.error("Failed to persist store", extra={"extra": {"code": e.code, "error": e.message, **e.extra}})


def chat(category: str, chat_id: str, prompt: str) -> Iterator[str]:
    """发起一轮流式对话，返回文本块迭代器。

    Args:
        category: 会话类型，如 "service"、"pdf"
        chat_id: 会话ID
        prompt: 用户输入

    Raises:
        NotFoundError: 文档类会话尚未上传文档
        ValidationError: 未知会话类型或 Provider 配置缺失
    """
    try:
        return get_default_engine().chat_stream(category, chat_id, prompt)
    except BusinessError as e:
        logger.error(f"Chat failed: {e}", extra={"extra": {
            "category": category,
            "conversation_id": chat_id,
            "code": e.code,
        }})
        raise


def upload_document(chat_id: str, text: str, file_name: Optional[str] = None) -> Dict[str, Any]:
    """保存会话文档的全文（二进制解析由调用方完成）。

    Returns:
        包含 chatId、fileName、textLength 的字典
    """
    doc = get_default_engine().upload_document(chat_id, text, file_name)
    return {
        "chatId": doc.conversation_id,
        "fileName": doc.file_name,
        "textLength": len(doc.text),
    }


def list_conversations(category: str) -> list[str]:
    """列出某类会话的所有 chatId。"""
    return get_default_engine().conversation_ids(category)


def get_history(category: str, chat_id: str) -> list[Dict[str, Any]]:
    """获取会话的所有消息。

    Returns:
        消息列表，每项包含 role, content, created_at
    """
    return [m.to_dict() for m in get_default_engine().history(category, chat_id)]
