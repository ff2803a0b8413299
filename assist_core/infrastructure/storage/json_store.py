import json
import os
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from assist_core.config.settings import settings
from assist_core.domain.exceptions import StoreError
from assist_core.infrastructure.logging.logger import logger
from assist_core.infrastructure.storage.memory_store import (
    DocumentSnapshot,
    InMemoryDocumentStore,
    InMemoryKeyedStore,
    Snapshot,
)

MESSAGES_FILE = "messages-store.json"
DOCUMENTS_FILE = "pdf-assets.json"


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise StoreError(code="STORE_READ_ERROR", message=str(e), path=str(path))


def _write_json(path: Path, obj: Any) -> None:
    tmp_path = path.parent / f"{path.stem}.{uuid4().hex}.json.tmp"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(obj, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError as e:
        raise StoreError(code="STORE_WRITE_ERROR", message=str(e), path=str(path))


class JsonKeyedStore(InMemoryKeyedStore):
    """内存消息日志 + 启动加载 / 退出落盘到 messages-store.json。

    文件结构：category -> conversation_id -> [message]。
    """

    def __init__(self, root: str | Path | None = None):
        super().__init__()
        self._root = Path(root or settings.storage_root).resolve()
        self._path = self._root / MESSAGES_FILE

    @property
    def path(self) -> Path:
        return self._path

    def load_all(self) -> Snapshot:
        if not self._path.exists():
            return self.snapshot()
        data = _read_json(self._path)
        if not isinstance(data, dict):
            raise StoreError(code="STORE_READ_ERROR", message="messages store is not a mapping", path=str(self._path))
        self._install(data)
        snap = self.snapshot()
        logger.info(
            "Loaded chat messages",
            extra={"extra": {"path": str(self._path), "categories": sorted(snap)}},
        )
        return snap

    def flush(self, snapshot: Optional[Snapshot] = None) -> None:
        data = self.snapshot() if snapshot is None else snapshot
        _write_json(self._path, data)
        logger.info("Persisted chat messages", extra={"extra": {"path": str(self._path)}})


class JsonDocumentStore(InMemoryDocumentStore):
    """内存文档表 + 启动加载 / 退出落盘到 pdf-assets.json。"""

    def __init__(self, root: str | Path | None = None):
        super().__init__()
        self._root = Path(root or settings.storage_root).resolve()
        self._path = self._root / DOCUMENTS_FILE

    @property
    def path(self) -> Path:
        return self._path

    def load_all(self) -> DocumentSnapshot:
        if not self._path.exists():
            return self.snapshot()
        data = _read_json(self._path)
        if not isinstance(data, dict):
            raise StoreError(code="STORE_READ_ERROR", message="document store is not a mapping", path=str(self._path))
        self._install(data)
        snap = self.snapshot()
        logger.info("Loaded documents", extra={"extra": {"path": str(self._path), "count": len(snap)}})
        return snap

    def flush(self, snapshot: Optional[DocumentSnapshot] = None) -> None:
        data = self.snapshot() if snapshot is None else snapshot
        _write_json(self._path, data)
        logger.info("Persisted documents", extra={"extra": {"path": str(self._path), "count": len(data)}})
