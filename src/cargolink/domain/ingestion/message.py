"""Typed ingest messages.

A message carries everything one upstream notification said about a shipment.
All references are value objects, so building a message validates it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cargolink.domain.errors import InvalidReferenceError
from cargolink.domain.model import BookingRef, ContainerRef, InvoiceRef, PurchaseRef, TenantId

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True, slots=True)
class BookingData:
    booking_ref: BookingRef


@dataclass(frozen=True, slots=True)
class InvoiceData:
    invoice_ref: InvoiceRef


@dataclass(frozen=True, slots=True)
class OrderData:
    purchase_ref: PurchaseRef
    invoices: tuple[InvoiceData, ...] = ()


@dataclass(frozen=True, slots=True)
class ContainerData:
    container_ref: ContainerRef


@dataclass(frozen=True, slots=True)
class IngestMessage:
    tenant_id: TenantId
    booking: BookingData | None = None
    orders: tuple[OrderData, ...] = field(default_factory=tuple)
    containers: tuple[ContainerData, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.tenant_id, str) or not self.tenant_id.strip():
            raise InvalidReferenceError("tenant id", self.tenant_id, "must not be blank")

    @property
    def booking_ref(self) -> BookingRef | None:
        return self.booking.booking_ref if self.booking else None

    @property
    def invoice_count(self) -> int:
        return sum(len(order.invoices) for order in self.orders)

    @classmethod
    def from_refs(
        cls,
        tenant_id: TenantId,
        *,
        booking: str | None = None,
        orders: Mapping[str, Iterable[str]] | Iterable[str] = (),
        containers: Iterable[str] = (),
    ) -> IngestMessage:
        """Build a message from raw reference strings, validating each one.

        ``orders`` is either a mapping of purchase reference to invoice
        references or a plain iterable of purchase references.
        """

        if isinstance(orders, Mapping):
            order_items: list[tuple[str, Iterable[str]]] = list(orders.items())
        else:
            order_items = [(purchase, ()) for purchase in orders]

        return cls(
            tenant_id=tenant_id,
            booking=BookingData(BookingRef(booking)) if booking is not None else None,
            orders=tuple(
                OrderData(
                    purchase_ref=PurchaseRef(purchase),
                    invoices=tuple(InvoiceData(InvoiceRef(invoice)) for invoice in invoices),
                )
                for purchase, invoices in order_items
            ),
            containers=tuple(ContainerData(ContainerRef(container)) for container in containers),
        )
