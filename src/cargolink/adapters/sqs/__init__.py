"""SQS adapter package for cargolink."""

from __future__ import annotations

from .client import SqsEventBus, SqsMessageQueue, build_sqs_client
from .schema import DeadLetterRecord, IngestPayload, IngestQueueMessage
from .translator import (
    JsonIngestCodec,
    decode_queue_message,
    parse_envelope,
    parse_raw_payload,
    to_ingest_message,
)

__all__ = [
    "DeadLetterRecord",
    "IngestPayload",
    "IngestQueueMessage",
    "JsonIngestCodec",
    "SqsEventBus",
    "SqsMessageQueue",
    "build_sqs_client",
    "decode_queue_message",
    "parse_envelope",
    "parse_raw_payload",
    "to_ingest_message",
]
