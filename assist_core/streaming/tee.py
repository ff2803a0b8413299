"""把一条生成流拆成“实时交付”与“聚合落库”两路。

一个 producer 线程只读取一次源流，把每个 chunk 同时放进两个无界队列：

- delivery 队列由调用方迭代 TeeStream 消费；
- aggregate 队列由 aggregator 线程消费，源流正常结束后把全文交给 on_complete。

两个队列都不设上限，落库再慢也不会拖慢交付。

取消策略：调用方提前停止迭代（调用 close()，或不再取下一个 chunk）时，
producer 继续把源流读完，聚合照常进行；第一次 next() 之前就 close() 也会
启动 producer。只有源流正常结束才会调用 on_complete，且只调用一次。
源流抛错时交付端收到 UpstreamStreamError，on_complete 不会被调用。
"""

import logging
import queue
import threading
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from assist_core.domain.exceptions import UpstreamStreamError
from assist_core.infrastructure.logging.logger import logger


class TeeState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS = {
    TeeState.IDLE: {TeeState.STREAMING},
    TeeState.STREAMING: {TeeState.COMPLETED, TeeState.FAILED},
}

_DONE = object()


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


class TeeStream:
    """对外的交付流。首次迭代时才开始读取源流。"""

    def __init__(
        self,
        source: Iterable[str],
        on_complete: Callable[[str], None],
        log_ctx: Optional[Dict[str, Any]] = None,
    ):
        self._source = source
        self._on_complete = on_complete
        self._log_ctx = dict(log_ctx or {})
        self._delivery: "queue.Queue[Any]" = queue.Queue()
        self._aggregate: "queue.Queue[Any]" = queue.Queue()
        self._lock = threading.RLock()
        self._state = TeeState.IDLE
        self._detached = threading.Event()
        self._delivery_done = False
        self._producer: Optional[threading.Thread] = None
        self._aggregator: Optional[threading.Thread] = None

    @property
    def state(self) -> TeeState:
        with self._lock:
            return self._state

    @property
    def detached(self) -> bool:
        return self._detached.is_set()

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        if self._delivery_done:
            raise StopIteration
        self.start()
        item = self._delivery.get()
        if item is _DONE:
            self.close()
            raise StopIteration
        if isinstance(item, _Failure):
            self.close()
            err = item.error
            raise UpstreamStreamError(
                code="UPSTREAM_STREAM_ERROR",
                message=str(err) or type(err).__name__,
                **self._log_ctx,
            ) from err
        return item

    def start(self) -> None:
        """Idle -> Streaming，启动 producer 与 aggregator。重复调用无副作用。"""

        with self._lock:
            if self._state is not TeeState.IDLE:
                return
            self._transition(TeeState.STREAMING)
            self._aggregator = threading.Thread(target=self._run_aggregator, name="tee-aggregator", daemon=True)
            self._producer = threading.Thread(target=self._run_producer, name="tee-producer", daemon=True)
            self._aggregator.start()
            self._producer.start()

    def close(self) -> None:
        """交付端放弃消费；聚合端不受影响。

        尚未开始时也会启动 producer，保证源流被读完、回复照常落库。
        """

        self._delivery_done = True
        self._detached.set()
        self.start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """等待聚合端结束（含 on_complete 调用），返回是否已结束。"""

        aggregator = self._aggregator
        if aggregator is None:
            return False
        aggregator.join(timeout)
        return not aggregator.is_alive()

    def _transition(self, new_state: TeeState) -> None:
        with self._lock:
            allowed = _TRANSITIONS.get(self._state, set())
            if new_state not in allowed:
                raise RuntimeError(f"Illegal tee transition {self._state.value} -> {new_state.value}")
            self._state = new_state

    def _run_producer(self) -> None:
        count = 0
        try:
            for chunk in self._source:
                if chunk is None:
                    continue
                count += 1
                self._aggregate.put(chunk)
                if not self._detached.is_set():
                    self._delivery.put(chunk)
        except BaseException as e:
            # 包括 SystemExit 等，交付端与聚合端都必须收到终止标记
            self._transition(TeeState.FAILED)
            self._log(logging.ERROR, "Upstream stream failed", chunks=count, error=str(e))
            failure = _Failure(e)
            self._aggregate.put(failure)
            self._delivery.put(failure)
            return
        self._transition(TeeState.COMPLETED)
        self._aggregate.put(_DONE)
        self._delivery.put(_DONE)
        if self._detached.is_set():
            self._log(logging.INFO, "Stream completed after consumer detached", chunks=count)

    def _run_aggregator(self) -> None:
        parts: List[str] = []
        while True:
            item = self._aggregate.get()
            if item is _DONE:
                break
            if isinstance(item, _Failure):
                return
            parts.append(item)
        full_text = "".join(parts)
        try:
            self._on_complete(full_text)
        except Exception as e:
            self._log(logging.ERROR, "Persist callback failed", error=str(e), chars=len(full_text))

    def _log(self, level: int, message: str, **fields: Any) -> None:
        payload = dict(self._log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


class ResponseTee:
    """tee(source, on_complete) -> TeeStream。"""

    def tee(
        self,
        source: Iterable[str],
        on_complete: Callable[[str], None],
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> TeeStream:
        return TeeStream(source, on_complete, log_ctx)
