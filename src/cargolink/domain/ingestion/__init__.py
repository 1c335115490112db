"""Progressive linking engine."""

from __future__ import annotations

from .linking import (
    deduplicate_links,
    link_all_to_all,
    plan_intra_message_links,
    plan_reconciliation_links,
)
from .message import BookingData, ContainerData, IngestMessage, InvoiceData, OrderData
from .service import IngestOutcome, process_ingest_message

__all__ = [
    "BookingData",
    "ContainerData",
    "IngestMessage",
    "IngestOutcome",
    "InvoiceData",
    "OrderData",
    "deduplicate_links",
    "link_all_to_all",
    "plan_intra_message_links",
    "plan_reconciliation_links",
    "process_ingest_message",
]
