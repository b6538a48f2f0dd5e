"""Relay core: fetch, relay, retry bookkeeping and polling."""

from ddlrelay.relay.errors import ProcessingError
from ddlrelay.relay.events import ChangeEvent, RelayedEvent, utcnow
from ddlrelay.relay.fetch import (
    SELF_TEST_OBJECT_PREFIX,
    build_exhausted_statement,
    build_fetch_statement,
    fetch_batch,
    fetch_exhausted,
    is_self_test_object,
)
from ddlrelay.relay.pipeline import RelayPipeline, RelayResult
from ddlrelay.relay.scheduler import CycleReport, PollingScheduler
from ddlrelay.relay.tracker import MAX_ERROR_MESSAGE_LENGTH, RetryTracker, normalize_error_message

__all__ = [
    "ChangeEvent",
    "CycleReport",
    "MAX_ERROR_MESSAGE_LENGTH",
    "PollingScheduler",
    "ProcessingError",
    "RelayPipeline",
    "RelayResult",
    "RelayedEvent",
    "RetryTracker",
    "SELF_TEST_OBJECT_PREFIX",
    "build_exhausted_statement",
    "build_fetch_statement",
    "fetch_batch",
    "fetch_exhausted",
    "is_self_test_object",
    "normalize_error_message",
    "utcnow",
]
