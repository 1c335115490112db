"""Delivery states and retry policy for queued ingest messages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Final


class MessageState(StrEnum):
    """Where a single delivery stands in the consumer's state machine."""

    RECEIVED = "received"
    PARSING = "parsing"
    PERSISTED = "persisted"
    FAILED = "failed"
    RETRY_SCHEDULED = "retry_scheduled"
    DEAD_LETTERED = "dead_lettered"

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]

    def can_transition_to(self, target: MessageState) -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: Final[dict[MessageState, frozenset[MessageState]]] = {
    MessageState.RECEIVED: frozenset({MessageState.PARSING}),
    MessageState.PARSING: frozenset({MessageState.PERSISTED, MessageState.FAILED}),
    MessageState.FAILED: frozenset({MessageState.RETRY_SCHEDULED, MessageState.DEAD_LETTERED}),
    MessageState.PERSISTED: frozenset(),
    MessageState.RETRY_SCHEDULED: frozenset(),
    MessageState.DEAD_LETTERED: frozenset(),
}


class RetryMode(StrEnum):
    """What a failed delivery under the retry limit does to the queued message.

    ``VISIBILITY`` hides the message for the backoff delay so the queue hands it
    out again later. ``DISCARD`` only logs the delay and deletes the message.
    """

    VISIBILITY = "visibility"
    DISCARD = "discard"


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_seconds: int = 30
    max_delay_seconds: int = 900
    mode: RetryMode = RetryMode.VISIBILITY

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("retry delays must satisfy 0 <= base <= max")

    def should_dead_letter(self, delivery_count: int) -> bool:
        return delivery_count >= self.max_retries

    def backoff_delay(self, delivery_count: int) -> int:
        """Exponential backoff in seconds, capped at ``max_delay_seconds``."""

        exponent = min(max(delivery_count, 0), 32)
        return min(self.base_delay_seconds * 2**exponent, self.max_delay_seconds)
