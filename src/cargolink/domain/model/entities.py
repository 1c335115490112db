"""Tenant-scoped logistics entities.

Entities are plain dataclasses; the SQLAlchemy adapter maps them imperatively.
Natural keys are stored as validated strings (see ``references``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from cargolink.domain.model.enums import LinkUpdatePolicy, LinkingReason, normalize_confidence

if TYPE_CHECKING:
    from cargolink.domain.model.references import (
        BookingRef,
        ContainerRef,
        InvoiceRef,
        PurchaseRef,
    )

type TenantId = str

DEFAULT_CREATED_BY = "system"


def new_id() -> UUID:
    return uuid4()


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False, kw_only=True)
class TenantEntity:
    """Identity plus tenant ownership and audit timestamps."""

    id: UUID = field(default_factory=new_id)
    tenant_id: TenantId
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def touch(self, at: datetime | None = None) -> None:
        self.updated_at = at or utc_now()

    def belongs_to(self, tenant_id: TenantId) -> bool:
        return self.tenant_id == tenant_id


@dataclass(eq=False, kw_only=True)
class Booking(TenantEntity):
    booking_ref: str

    @classmethod
    def create(cls, tenant_id: TenantId, booking_ref: BookingRef) -> Booking:
        return cls(tenant_id=tenant_id, booking_ref=booking_ref.value)


@dataclass(eq=False, kw_only=True)
class _BookedEntity(TenantEntity):
    booking_ref: str | None = None

    def adopt_booking(self, booking_ref: BookingRef | None) -> bool:
        """Point the entity at a booking; ``None`` keeps the stored one.

        Returns whether anything changed.
        """

        if booking_ref is None or booking_ref.value == self.booking_ref:
            return False
        self.booking_ref = booking_ref.value
        self.touch()
        return True


@dataclass(eq=False, kw_only=True)
class Order(_BookedEntity):
    purchase_ref: str

    @classmethod
    def create(
        cls,
        tenant_id: TenantId,
        purchase_ref: PurchaseRef,
        booking_ref: BookingRef | None = None,
    ) -> Order:
        return cls(
            tenant_id=tenant_id,
            purchase_ref=purchase_ref.value,
            booking_ref=booking_ref.value if booking_ref else None,
        )


@dataclass(eq=False, kw_only=True)
class Container(_BookedEntity):
    container_ref: str

    @classmethod
    def create(
        cls,
        tenant_id: TenantId,
        container_ref: ContainerRef,
        booking_ref: BookingRef | None = None,
    ) -> Container:
        return cls(
            tenant_id=tenant_id,
            container_ref=container_ref.value,
            booking_ref=booking_ref.value if booking_ref else None,
        )


@dataclass(eq=False, kw_only=True)
class Invoice(TenantEntity):
    invoice_ref: str
    purchase_ref: str

    @classmethod
    def create(
        cls, tenant_id: TenantId, invoice_ref: InvoiceRef, purchase_ref: PurchaseRef
    ) -> Invoice:
        return cls(
            tenant_id=tenant_id,
            invoice_ref=invoice_ref.value,
            purchase_ref=purchase_ref.value,
        )

    def repoint(self, purchase_ref: PurchaseRef) -> bool:
        if purchase_ref.value == self.purchase_ref:
            return False
        self.purchase_ref = purchase_ref.value
        self.touch()
        return True


@dataclass(eq=False, kw_only=True)
class OrderContainerLink:
    """Many-to-many association between an order and a container."""

    id: UUID = field(default_factory=new_id)
    tenant_id: TenantId
    order_id: UUID
    container_id: UUID
    linking_reason: LinkingReason
    confidence_score: Decimal
    linked_at: datetime = field(default_factory=utc_now)
    created_by: str = DEFAULT_CREATED_BY

    def __post_init__(self) -> None:
        self.confidence_score = normalize_confidence(self.confidence_score)

    @property
    def pair(self) -> tuple[UUID, UUID]:
        return (self.order_id, self.container_id)

    def reassert(
        self,
        reason: LinkingReason,
        confidence: Decimal,
        policy: LinkUpdatePolicy = LinkUpdatePolicy.LAST_WRITE_WINS,
    ) -> bool:
        """Apply a repeated link request; returns whether the stored values changed."""

        score = normalize_confidence(confidence)
        if policy is LinkUpdatePolicy.HIGHEST_CONFIDENCE and score < self.confidence_score:
            return False
        if reason == self.linking_reason and score == self.confidence_score:
            return False
        self.linking_reason = reason
        self.confidence_score = score
        return True
