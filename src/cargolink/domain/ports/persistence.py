"""Ports for persisting tenant-scoped entities and their links."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cargolink.domain.model import (
    Booking,
    BookingRef,
    Container,
    ContainerRef,
    Invoice,
    InvoiceRef,
    LinkingReason,
    Order,
    OrderContainerLink,
    PurchaseRef,
    TenantId,
    confidence_for,
    normalize_confidence,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from decimal import Decimal
    from uuid import UUID


@dataclass(frozen=True, slots=True)
class OrderUpsert:
    purchase_ref: PurchaseRef
    booking_ref: BookingRef | None = None


@dataclass(frozen=True, slots=True)
class ContainerUpsert:
    container_ref: ContainerRef
    booking_ref: BookingRef | None = None


@dataclass(frozen=True, slots=True)
class InvoiceUpsert:
    invoice_ref: InvoiceRef
    purchase_ref: PurchaseRef


@dataclass(frozen=True, slots=True)
class LinkRequest:
    order_id: UUID
    container_id: UUID
    reason: LinkingReason
    confidence: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", normalize_confidence(self.confidence))

    @classmethod
    def for_reason(cls, order_id: UUID, container_id: UUID, reason: LinkingReason) -> LinkRequest:
        return cls(order_id, container_id, reason, confidence_for(reason))

    @property
    def pair(self) -> tuple[UUID, UUID]:
        return (self.order_id, self.container_id)


@runtime_checkable
class TenantScopedRepository[TEntity](Protocol):
    """Read contract shared by every tenant-scoped store."""

    def find_all(self, tenant_id: TenantId) -> list[TEntity]: ...


@runtime_checkable
class BookingRepository(TenantScopedRepository[Booking], Protocol):
    def upsert(self, tenant_id: TenantId, booking_ref: BookingRef) -> Booking: ...

    def find_by_booking_ref(
        self, tenant_id: TenantId, booking_ref: BookingRef
    ) -> Booking | None: ...


@runtime_checkable
class OrderRepository(TenantScopedRepository[Order], Protocol):
    def upsert(
        self,
        tenant_id: TenantId,
        purchase_ref: PurchaseRef,
        booking_ref: BookingRef | None = None,
    ) -> Order: ...

    def batch_upsert(self, tenant_id: TenantId, requests: Sequence[OrderUpsert]) -> list[Order]: ...

    def find_by_purchase_ref(
        self, tenant_id: TenantId, purchase_ref: PurchaseRef
    ) -> Order | None: ...

    def find_by_booking_ref(self, tenant_id: TenantId, booking_ref: BookingRef) -> list[Order]: ...


@runtime_checkable
class ContainerRepository(TenantScopedRepository[Container], Protocol):
    def upsert(
        self,
        tenant_id: TenantId,
        container_ref: ContainerRef,
        booking_ref: BookingRef | None = None,
    ) -> Container: ...

    def batch_upsert(
        self, tenant_id: TenantId, requests: Sequence[ContainerUpsert]
    ) -> list[Container]: ...

    def find_by_container_ref(
        self, tenant_id: TenantId, container_ref: ContainerRef
    ) -> Container | None: ...

    def find_by_booking_ref(
        self, tenant_id: TenantId, booking_ref: BookingRef
    ) -> list[Container]: ...


@runtime_checkable
class InvoiceRepository(TenantScopedRepository[Invoice], Protocol):
    def upsert(
        self, tenant_id: TenantId, invoice_ref: InvoiceRef, purchase_ref: PurchaseRef
    ) -> Invoice: ...

    def batch_upsert(
        self, tenant_id: TenantId, requests: Sequence[InvoiceUpsert]
    ) -> list[Invoice]: ...

    def find_by_invoice_ref(
        self, tenant_id: TenantId, invoice_ref: InvoiceRef
    ) -> Invoice | None: ...

    def find_by_purchase_ref(
        self, tenant_id: TenantId, purchase_ref: PurchaseRef
    ) -> list[Invoice]: ...


@runtime_checkable
class OrderContainerRepository(Protocol):
    """Persistence contract for order/container links."""

    def link(
        self,
        tenant_id: TenantId,
        order_id: UUID,
        container_id: UUID,
        reason: LinkingReason,
        confidence: Decimal,
    ) -> OrderContainerLink: ...

    def batch_link(
        self, tenant_id: TenantId, requests: Sequence[LinkRequest]
    ) -> list[OrderContainerLink]: ...

    def containers_for_order(self, tenant_id: TenantId, order_id: UUID) -> list[Container]: ...

    def orders_for_container(self, tenant_id: TenantId, container_id: UUID) -> list[Order]: ...

    def containers_for_purchase_ref(
        self, tenant_id: TenantId, purchase_ref: PurchaseRef
    ) -> list[Container]: ...

    def orders_for_container_ref(
        self, tenant_id: TenantId, container_ref: ContainerRef
    ) -> list[Order]: ...

    def unlink(self, tenant_id: TenantId, order_id: UUID, container_id: UUID) -> bool: ...

    def find_link(
        self, tenant_id: TenantId, order_id: UUID, container_id: UUID
    ) -> OrderContainerLink | None: ...

    def all_links(self, tenant_id: TenantId) -> list[OrderContainerLink]: ...
