from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from cargolink.adapters.sqs import (
    JsonIngestCodec,
    decode_queue_message,
    parse_envelope,
    parse_raw_payload,
)
from cargolink.domain.errors import InvalidReferenceError, MessageParseError
from cargolink.domain.model import ContainerRef, InvoiceRef, PurchaseRef
from tests.helpers.queues import make_envelope, make_payload


def test_parse_raw_payload_builds_domain_message() -> None:
    message = parse_raw_payload(
        "tenant-a",
        make_payload(
            booking="BK-1",
            orders={"PO-1": ["INV-1"]},
            containers=["MSCU1234567", "MSCU7654321"],
        ),
    )

    assert message.tenant_id == "tenant-a"
    assert message.booking_ref is not None
    assert message.booking_ref.value == "BK-1"
    assert message.orders[0].purchase_ref == PurchaseRef("PO-1")
    assert message.orders[0].invoices[0].invoice_ref == InvoiceRef("INV-1")
    assert [item.container_ref for item in message.containers] == [
        ContainerRef("MSCU1234567"),
        ContainerRef("MSCU7654321"),
    ]


def test_parse_raw_payload_without_booking() -> None:
    message = parse_raw_payload("tenant-a", make_payload(orders=["PO-1"]))

    assert message.booking is None
    assert message.containers == ()


def test_parse_raw_payload_rejects_invalid_json() -> None:
    with pytest.raises(MessageParseError) as exc:
        parse_raw_payload("tenant-a", "{not json")

    assert exc.value.cause is not None


def test_parse_raw_payload_rejects_missing_purchase() -> None:
    with pytest.raises(MessageParseError, match="Invalid ingest payload"):
        parse_raw_payload("tenant-a", json.dumps({"orders": [{"invoices": []}]}))


def test_parse_raw_payload_rejects_invalid_container() -> None:
    with pytest.raises(InvalidReferenceError, match="INVALID"):
        parse_raw_payload("tenant-a", make_payload(containers=["INVALID"]))


@pytest.mark.parametrize("booking", ["", "   "])
def test_parse_raw_payload_rejects_blank_booking(booking: str) -> None:
    raw = json.dumps({"booking": booking, "orders": [{"purchase": "PO-1"}]})

    with pytest.raises(InvalidReferenceError, match="booking reference"):
        parse_raw_payload("tenant-a", raw)


def test_parse_envelope_rejects_blank_tenant() -> None:
    with pytest.raises(MessageParseError, match="Invalid ingest envelope"):
        parse_envelope(make_envelope("", make_payload()))


def test_decode_queue_message_returns_envelope_and_message() -> None:
    envelope, message = decode_queue_message(
        make_envelope("tenant-b", make_payload(orders=["PO-9"]), idempotency_key="key-1")
    )

    assert envelope.idempotency_key == "key-1"
    assert message.tenant_id == "tenant-b"


def test_codec_decodes_and_encodes_dead_letters() -> None:
    codec = JsonIngestCodec()
    body = make_envelope("tenant-a", make_payload(orders=["PO-1"]))

    assert codec.decode(body).orders[0].purchase_ref == PurchaseRef("PO-1")

    record = json.loads(
        codec.encode_dead_letter(body, "boom", datetime(2025, 1, 1, tzinfo=UTC))
    )
    assert record["originalMessage"] == body
    assert record["error"] == "boom"
    assert record["timestamp"] == 1735689600000
