"""Unit tests for retry/failure bookkeeping."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from ddlrelay.relay import MAX_ERROR_MESSAGE_LENGTH, RetryTracker, fetch_batch, normalize_error_message


@pytest.mark.asyncio
@pytest.mark.parametrize("max_retries", [1, 3, 5])
async def test_record_failure_is_monotonic_until_excluded(
    source_pool, seed_events, make_row, source_rows, max_retries: int
) -> None:
    [event_id] = await seed_events(source_pool, make_row("orders"))
    tracker = RetryTracker()

    for k in range(1, max_retries + 1):
        assert [e.id for e in await fetch_batch(source_pool, 50, max_retries)] == [event_id]
        assert await tracker.record_failure(source_pool, event_id, RuntimeError(f"attempt {k}")) is True
        row = (await source_rows(source_pool))[event_id]
        assert row["retry_count"] == k
        assert row["processed"] is False
        assert row["error_message"] == f"attempt {k}"

    assert await fetch_batch(source_pool, 50, max_retries) == []
    row = (await source_rows(source_pool))[event_id]
    assert row["retry_count"] == max_retries
    assert row["processed"] is False


@pytest.mark.asyncio
async def test_record_failure_ignores_processed_rows(source_pool, seed_events, make_row, source_rows) -> None:
    [event_id] = await seed_events(source_pool, make_row("orders", processed=True))
    assert await RetryTracker().record_failure(source_pool, event_id, "late failure") is False
    assert (await source_rows(source_pool))[event_id]["retry_count"] == 0


@pytest.mark.asyncio
async def test_record_failure_counts_from_null_retry_count(source_pool, seed_events, make_row, source_rows) -> None:
    [event_id] = await seed_events(source_pool, make_row("orders", retry_count=None))
    assert await RetryTracker().record_failure(source_pool, event_id, RuntimeError("central down")) is True
    row = (await source_rows(source_pool))[event_id]
    assert row["retry_count"] == 1
    assert row["error_message"] == "central down"


def test_normalize_error_message_collapses_whitespace_and_falls_back_to_type() -> None:
    assert normalize_error_message(ValueError("bad\n\n  value\t here")) == "bad value here"
    assert normalize_error_message(TimeoutError()) == "TimeoutError"
    assert normalize_error_message("") == "unknown error"


def test_normalize_error_message_truncates() -> None:
    message = normalize_error_message("x" * 5000)
    assert len(message) == MAX_ERROR_MESSAGE_LENGTH
    assert message.endswith("...")


@given(st.text(max_size=6000))
@settings(max_examples=100, deadline=None)
def test_normalized_messages_are_bounded_single_line(raw: str) -> None:
    message = normalize_error_message(raw)
    assert 0 < len(message) <= MAX_ERROR_MESSAGE_LENGTH
    assert "\n" not in message
