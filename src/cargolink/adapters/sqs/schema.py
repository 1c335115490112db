"""Pydantic models describing the ingest queue payloads."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _none_to_empty(value: object) -> object:
    return [] if value is None else value


class QueueBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class IngestQueueMessage(QueueBaseModel):
    """Envelope published to the ingest queue."""

    message_id: str = Field(alias="messageId")
    tenant_id: str = Field(alias="tenantId", min_length=1)
    idempotency_key: str | None = Field(default=None, alias="idempotencyKey")
    raw_payload: str = Field(alias="rawPayload")
    timestamp: datetime

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class InvoicePayload(QueueBaseModel):
    invoice: str


class OrderPayload(QueueBaseModel):
    purchase: str
    invoices: list[InvoicePayload] = Field(default_factory=list["InvoicePayload"])

    _normalize_invoices = field_validator("invoices", mode="before")(_none_to_empty)


class ContainerPayload(QueueBaseModel):
    container: str


class IngestPayload(QueueBaseModel):
    """Raw notification body: what one upstream message says about a shipment."""

    booking: str | None = None
    orders: list[OrderPayload] = Field(default_factory=list["OrderPayload"])
    containers: list[ContainerPayload] = Field(default_factory=list["ContainerPayload"])

    _normalize_lists = field_validator("orders", "containers", mode="before")(_none_to_empty)


class DeadLetterRecord(QueueBaseModel):
    """Body sent to the dead-letter queue; keeps the original message verbatim."""

    original_message: str = Field(alias="originalMessage")
    error: str | None = None
    timestamp: int

    @classmethod
    def for_failure(cls, body: str, error: str | None, failed_at: datetime) -> DeadLetterRecord:
        return cls(
            original_message=body,
            error=error,
            timestamp=int(failed_at.timestamp() * 1000),
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
