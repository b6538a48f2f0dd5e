"""Relay-level exceptions."""

from __future__ import annotations


class ProcessingError(Exception):
    """A relay step failed for one event; recorded by the retry tracker."""

    def __init__(self, store: str, event_id: int, step: str, message: str) -> None:
        self.store = store
        self.event_id = event_id
        self.step = step
        super().__init__(f"{step} failed for event {event_id} on store '{store}': {message}")
