"""Ports for the durable ingest queue."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from cargolink.domain.ingestion.message import IngestMessage


class QueueError(RuntimeError):
    """Raised when the queue infrastructure is unavailable or rejects a call."""


@dataclass(frozen=True, slots=True)
class ReceivedMessage:
    """A message handed out by the queue, with its delivery bookkeeping."""

    message_id: str
    receipt_handle: str
    body: str
    receive_count: int = 0


@runtime_checkable
class MessageQueue(Protocol):
    def receive(self, *, max_messages: int, wait_seconds: int) -> list[ReceivedMessage]: ...

    def delete(self, receipt_handle: str) -> None: ...

    def change_visibility(self, receipt_handle: str, timeout_seconds: int) -> None: ...

    def send(self, body: str) -> str: ...


@runtime_checkable
class EventBus(Protocol):
    """Publishes raw ingest payloads for asynchronous processing."""

    def publish_ingest(
        self, tenant_id: str, idempotency_key: str | None, raw_payload: str
    ) -> str: ...


@runtime_checkable
class IngestMessageCodec(Protocol):
    """Translates queue bodies into ingest messages and failures into dead letters."""

    def decode(self, body: str) -> IngestMessage: ...

    def encode_dead_letter(self, body: str, error: str | None, failed_at: datetime) -> str: ...
