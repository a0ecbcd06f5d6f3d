"""Tests for the timeout-bounded translation adapter."""

from __future__ import annotations

import asyncio
import logging
import threading

import pytest

from mermaid_bridge.contracts.common import ErrorCode, TextPosition, TranslationError
from mermaid_bridge.engine.translate import (
    SettleOnce,
    extract_position,
    normalize_translation_error,
    translate_with_timeout,
)

from conftest import SAMPLE_XML, answer_from_thread, answer_with, fail_with, never_answer


class HostError(Exception):
    def __init__(self, message, **fields):
        super().__init__(message)
        self.message = message
        for key, value in fields.items():
            setattr(self, key, value)


@pytest.mark.asyncio
async def test_success_returns_text_unchanged():
    assert await translate_with_timeout(answer_with(SAMPLE_XML), "graph TD", 1000) == SAMPLE_XML


@pytest.mark.asyncio
async def test_success_from_another_thread():
    assert await translate_with_timeout(answer_from_thread(SAMPLE_XML), "graph TD", 1000) == SAMPLE_XML


@pytest.mark.asyncio
async def test_passes_payload_and_options():
    seen = []

    def translate(payload, options, on_success, on_failure):
        seen.append((payload, options))
        on_success("<x/>")

    await translate_with_timeout(translate, "graph LR", 1000, options={"theme": "dark"})
    assert seen == [("graph LR", {"theme": "dark"})]


@pytest.mark.asyncio
async def test_failure_defaults_to_parse_error():
    with pytest.raises(TranslationError) as exc_info:
        await translate_with_timeout(fail_with(Exception("Syntax error at line 1")), "bad", 1000)
    err = exc_info.value
    assert err.code == ErrorCode.PARSE_ERROR.value
    assert err.message == "Syntax error at line 1"
    assert err.position == TextPosition(line=1)
    assert isinstance(err.details, Exception)


@pytest.mark.asyncio
async def test_failure_keeps_host_code():
    with pytest.raises(TranslationError) as exc_info:
        await translate_with_timeout(
            fail_with(HostError("Diagram type not supported", code="UNSUPPORTED_TYPE")), "pie", 1000
        )
    assert exc_info.value.code == "UNSUPPORTED_TYPE"


@pytest.mark.asyncio
async def test_timeout():
    with pytest.raises(TranslationError) as exc_info:
        await translate_with_timeout(never_answer, "graph TD", 100)
    err = exc_info.value
    assert err.code == ErrorCode.TIMEOUT.value
    assert err.timeout == 100
    assert err.message == "translation timed out after 100ms"


@pytest.mark.asyncio
async def test_late_callbacks_after_timeout_are_ignored(log, caplog, monkeypatch):
    caplog.set_level(logging.DEBUG, logger="mermaid_bridge")
    callbacks = {}
    loop = asyncio.get_running_loop()
    scheduled = []
    real_call_soon_threadsafe = loop.call_soon_threadsafe

    def recording_call_soon_threadsafe(callback, *args, **kwargs):
        scheduled.append(args)
        return real_call_soon_threadsafe(callback, *args, **kwargs)

    monkeypatch.setattr(loop, "call_soon_threadsafe", recording_call_soon_threadsafe)

    def translate(payload, options, on_success, on_failure):
        callbacks["success"] = on_success
        callbacks["failure"] = on_failure

    with pytest.raises(TranslationError) as exc_info:
        await translate_with_timeout(translate, "graph TD", 20, log=log)
    assert exc_info.value.code == ErrorCode.TIMEOUT.value
    delivered = len(scheduled)
    assert delivered == 1

    callbacks["success"]("<late/>")
    callbacks["failure"](Exception("late"))
    await asyncio.sleep(0)

    assert len(scheduled) == delivered
    messages = [r.getMessage() for r in caplog.records]
    assert any("Ignoring success callback after translation already settled" in m for m in messages)
    assert any("Ignoring failure callback after translation already settled" in m for m in messages)


@pytest.mark.asyncio
async def test_only_first_callback_counts():
    def translate(payload, options, on_success, on_failure):
        on_success("<first/>")
        on_failure(Exception("second"))
        on_success("<third/>")

    assert await translate_with_timeout(translate, "graph TD", 1000) == "<first/>"


@pytest.mark.asyncio
async def test_synchronous_raise_is_parse_error():
    def translate(payload, options, on_success, on_failure):
        raise RuntimeError("parser crashed")

    with pytest.raises(TranslationError) as exc_info:
        await translate_with_timeout(translate, "graph TD", 1000)
    assert exc_info.value.code == ErrorCode.PARSE_ERROR.value
    assert "parser crashed" in exc_info.value.message


@pytest.mark.asyncio
async def test_missing_capability_is_parse_error():
    with pytest.raises(TranslationError) as exc_info:
        await translate_with_timeout(None, "graph TD", 1000)
    assert exc_info.value.code == ErrorCode.PARSE_ERROR.value


@pytest.mark.asyncio
async def test_cancellation_discards_later_callbacks(log, caplog):
    caplog.set_level(logging.DEBUG, logger="mermaid_bridge")
    callbacks = {}

    def translate(payload, options, on_success, on_failure):
        callbacks["success"] = on_success

    task = asyncio.ensure_future(translate_with_timeout(translate, "graph TD", 1000, log=log))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    callbacks["success"]("<late/>")
    await asyncio.sleep(0)
    assert any(
        "Ignoring success callback after translation already settled" in r.getMessage() for r in caplog.records
    )


def test_settle_once_has_one_winner_across_threads():
    settle = SettleOnce()
    wins = []
    barrier = threading.Barrier(8)

    def contender():
        barrier.wait()
        if settle.claim():
            wins.append(1)

    threads = [threading.Thread(target=contender) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert wins == [1]
    assert settle.settled


class TestNormalizeError:
    def test_explicit_fields_win_over_message(self):
        err = normalize_translation_error(HostError("problem on line 9", line=3, column=4))
        assert err.position == TextPosition(line=3, column=4)

    def test_message_patterns(self):
        assert extract_position(None, "Parse error on line 2 at 15") == TextPosition(line=2, column=15)
        assert extract_position(None, "Unexpected token at position 42") == TextPosition(position=42)
        assert extract_position(None, "LINE 7") == TextPosition(line=7)

    def test_no_position(self):
        assert normalize_translation_error("something went wrong").position is None

    def test_mapping_error(self):
        err = normalize_translation_error({"message": "bad arrow", "code": "PARSE_ERROR", "line": 5})
        assert err.code == "PARSE_ERROR"
        assert err.message == "bad arrow"
        assert err.position == TextPosition(line=5)

    def test_empty_error_gets_message(self):
        assert normalize_translation_error(None).message
        assert normalize_translation_error({}).code == ErrorCode.PARSE_ERROR.value

    def test_to_dict(self):
        err = TranslationError.timed_out(250)
        assert err.to_dict() == {"code": "TIMEOUT", "message": "translation timed out after 250ms", "timeout": 250}
