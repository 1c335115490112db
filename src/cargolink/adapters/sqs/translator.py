"""Translate queue payloads into domain ingest messages."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cargolink.domain.errors import MessageParseError
from cargolink.domain.ingestion import (
    BookingData,
    ContainerData,
    IngestMessage,
    InvoiceData,
    OrderData,
)
from cargolink.domain.model import BookingRef, ContainerRef, InvoiceRef, PurchaseRef

from .schema import DeadLetterRecord, IngestPayload, IngestQueueMessage

if TYPE_CHECKING:
    from datetime import datetime

log = getLogger(__name__)


def to_ingest_message(tenant_id: str, payload: IngestPayload) -> IngestMessage:
    """Validate every reference in ``payload`` and build the domain message."""

    return IngestMessage(
        tenant_id=tenant_id,
        booking=BookingData(BookingRef(payload.booking)) if payload.booking is not None else None,
        orders=tuple(
            OrderData(
                purchase_ref=PurchaseRef(order.purchase),
                invoices=tuple(InvoiceData(InvoiceRef(item.invoice)) for item in order.invoices),
            )
            for order in payload.orders
        ),
        containers=tuple(
            ContainerData(ContainerRef(item.container)) for item in payload.containers
        ),
    )


def parse_envelope(body: str) -> IngestQueueMessage:
    try:
        return IngestQueueMessage.model_validate_json(body)
    except ValidationError as exc:
        raise MessageParseError(f"Invalid ingest envelope: {exc}", cause=exc) from exc


def parse_raw_payload(tenant_id: str, raw_payload: str) -> IngestMessage:
    """Parse the JSON body of an upstream notification for ``tenant_id``."""

    try:
        payload = IngestPayload.model_validate_json(raw_payload)
    except ValidationError as exc:
        raise MessageParseError(f"Invalid ingest payload: {exc}", cause=exc) from exc
    return to_ingest_message(tenant_id, payload)


def decode_queue_message(body: str) -> tuple[IngestQueueMessage, IngestMessage]:
    envelope = parse_envelope(body)
    log.debug(
        f"Decoding ingest message {envelope.message_id} for tenant {envelope.tenant_id}"
    )
    return envelope, parse_raw_payload(envelope.tenant_id, envelope.raw_payload)


class JsonIngestCodec:
    """JSON envelope codec used by the ingest consumer."""

    def decode(self, body: str) -> IngestMessage:
        _, message = decode_queue_message(body)
        return message

    def encode_dead_letter(self, body: str, error: str | None, failed_at: datetime) -> str:
        return DeadLetterRecord.for_failure(body, error, failed_at).to_json()


if TYPE_CHECKING:
    from cargolink.domain.ports.messaging import IngestMessageCodec

    _codec_check: IngestMessageCodec = JsonIngestCodec()
