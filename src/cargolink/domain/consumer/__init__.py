"""Queue consumer state machine."""

from __future__ import annotations

from .consumer import IngestConsumer, MessageProcessor, MessageResult, PollResult
from .retry import MessageState, RetryMode, RetryPolicy

__all__ = [
    "IngestConsumer",
    "MessageProcessor",
    "MessageResult",
    "MessageState",
    "PollResult",
    "RetryMode",
    "RetryPolicy",
]
