"""Public domain model surface."""

from __future__ import annotations

from cargolink.domain.model.entities import (
    DEFAULT_CREATED_BY,
    Booking,
    Container,
    Invoice,
    Order,
    OrderContainerLink,
    TenantEntity,
    TenantId,
    new_id,
    utc_now,
)
from cargolink.domain.model.enums import (
    LinkingReason,
    LinkUpdatePolicy,
    confidence_for,
    normalize_confidence,
)
from cargolink.domain.model.references import BookingRef, ContainerRef, InvoiceRef, PurchaseRef

__all__ = [  # noqa: RUF022
    # entities
    "Booking",
    "Container",
    "Invoice",
    "Order",
    "OrderContainerLink",
    "TenantEntity",
    "TenantId",
    "DEFAULT_CREATED_BY",
    "new_id",
    "utc_now",
    # enums
    "LinkingReason",
    "LinkUpdatePolicy",
    "confidence_for",
    "normalize_confidence",
    # references
    "BookingRef",
    "ContainerRef",
    "InvoiceRef",
    "PurchaseRef",
]
