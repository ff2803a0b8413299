import threading

import pytest

from assist_core.domain.exceptions import UpstreamStreamError
from assist_core.streaming.tee import ResponseTee, TeeState


class Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, text):
        self.calls.append(text)


def test_chunks_delivered_in_order_and_aggregated_once():
    rec = Recorder()
    stream = ResponseTee().tee(iter(["a", "b", "c"]), rec)
    assert stream.state is TeeState.IDLE

    assert list(stream) == ["a", "b", "c"]
    assert stream.wait(timeout=5)
    assert rec.calls == ["abc"]
    assert stream.state is TeeState.COMPLETED

    # 再次迭代不会重复交付或重复落库
    assert list(stream) == []
    assert rec.calls == ["abc"]


def test_source_not_consumed_until_iterated():
    pulled = []

    def source():
        pulled.append(True)
        yield "x"

    rec = Recorder()
    stream = ResponseTee().tee(source(), rec)
    assert pulled == []
    assert stream.wait(timeout=0.1) is False
    assert list(stream) == ["x"]
    assert stream.wait(timeout=5)
    assert rec.calls == ["x"]


def test_upstream_error_forwarded_and_suppresses_complete():
    def source():
        yield "a"
        raise RuntimeError("model crashed")

    rec = Recorder()
    stream = ResponseTee().tee(source(), rec, {"conversation_id": "c1"})
    received = []
    with pytest.raises(UpstreamStreamError) as exc_info:
        for chunk in stream:
            received.append(chunk)

    assert received == ["a"]
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert exc_info.value.code == "UPSTREAM_STREAM_ERROR"
    assert stream.wait(timeout=5)
    assert rec.calls == []
    assert stream.state is TeeState.FAILED


def test_slow_persistence_does_not_block_delivery():
    release = threading.Event()
    done = []

    def slow_persist(text):
        release.wait(5)
        done.append(text)

    stream = ResponseTee().tee(iter(["你", "好"]), slow_persist)
    assert list(stream) == ["你", "好"]
    assert done == []
    release.set()
    assert stream.wait(timeout=5)
    assert done == ["你好"]


def test_consumer_detach_lets_aggregation_finish():
    gate = threading.Event()

    def source():
        yield "a"
        gate.wait(5)
        yield "b"
        yield "c"

    rec = Recorder()
    stream = ResponseTee().tee(source(), rec)
    it = iter(stream)
    assert next(it) == "a"
    it.close()
    assert stream.detached
    gate.set()

    assert stream.wait(timeout=5)
    assert rec.calls == ["abc"]
    assert stream.state is TeeState.COMPLETED


def test_detach_then_failure_never_completes():
    gate = threading.Event()

    def source():
        yield "a"
        gate.wait(5)
        raise ConnectionError("dropped")

    rec = Recorder()
    stream = ResponseTee().tee(source(), rec)
    it = iter(stream)
    assert next(it) == "a"
    stream.close()
    gate.set()
    assert stream.wait(timeout=5)
    assert rec.calls == []
    assert stream.state is TeeState.FAILED


def test_persist_failure_does_not_break_delivery():
    def broken_persist(text):
        raise OSError("disk full")

    stream = ResponseTee().tee(iter(["x", "y"]), broken_persist)
    assert list(stream) == ["x", "y"]
    assert stream.wait(timeout=5)
    assert stream.state is TeeState.COMPLETED


def test_empty_source_completes_with_empty_text():
    rec = Recorder()
    stream = ResponseTee().tee(iter([]), rec)
    assert list(stream) == []
    assert stream.wait(timeout=5)
    assert rec.calls == [""]


def test_no_transition_out_of_terminal_state():
    stream = ResponseTee().tee(iter(["a"]), Recorder())
    list(stream)
    stream.wait(timeout=5)
    with pytest.raises(RuntimeError):
        stream._transition(TeeState.STREAMING)
    assert stream.state is TeeState.COMPLETED


def test_stream_is_an_iterator():
    rec = Recorder()
    stream = ResponseTee().tee(iter(["a", "b"]), rec)
    assert iter(stream) is stream
    assert next(stream) == "a"
    assert next(stream) == "b"
    with pytest.raises(StopIteration):
        next(stream)
    assert stream.wait(timeout=5)
    assert rec.calls == ["ab"]


def test_close_before_iteration_still_persists():
    rec = Recorder()
    stream = ResponseTee().tee(iter(["a", "b"]), rec)
    stream.close()
    assert stream.detached
    assert stream.wait(timeout=5)
    assert rec.calls == ["ab"]
    assert stream.state is TeeState.COMPLETED
    assert list(stream) == []


def test_system_exit_in_source_still_terminates_delivery():
    def source():
        yield "a"
        raise SystemExit("worker stopped")

    rec = Recorder()
    stream = ResponseTee().tee(source(), rec)
    assert next(stream) == "a"
    with pytest.raises(UpstreamStreamError) as exc_info:
        next(stream)
    assert isinstance(exc_info.value.__cause__, SystemExit)
    assert stream.wait(timeout=5)
    assert rec.calls == []
    assert stream.state is TeeState.FAILED
