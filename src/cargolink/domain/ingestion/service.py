"""Progressive linking engine: persist a message, then link what belongs together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cargolink.domain.ingestion.linking import (
    deduplicate_links,
    plan_intra_message_links,
    plan_reconciliation_links,
)
from cargolink.domain.ports.persistence import ContainerUpsert, InvoiceUpsert, OrderUpsert

if TYPE_CHECKING:
    from cargolink.domain.ingestion.message import IngestMessage
    from cargolink.domain.model import Container, Order, TenantId
    from cargolink.domain.ports import IngestRepositories, IngestUnitOfWorkFactory

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IngestOutcome:
    """Counters describing what one processed message did."""

    tenant_id: TenantId
    booking_ref: str | None
    orders_upserted: int
    containers_upserted: int
    invoices_upserted: int
    links_requested: int
    links_written: int


@dataclass(frozen=True, slots=True)
class _Persisted:
    orders: list[Order]
    containers: list[Container]
    invoice_count: int


def _persist(message: IngestMessage, repositories: IngestRepositories) -> _Persisted:
    tenant_id = message.tenant_id
    booking_ref = message.booking_ref

    if booking_ref is not None:
        repositories.bookings.upsert(tenant_id, booking_ref)

    orders = repositories.orders.batch_upsert(
        tenant_id,
        [OrderUpsert(order.purchase_ref, booking_ref) for order in message.orders],
    )
    invoices = repositories.invoices.batch_upsert(
        tenant_id,
        [
            InvoiceUpsert(invoice.invoice_ref, order.purchase_ref)
            for order in message.orders
            for invoice in order.invoices
        ],
    )
    containers = repositories.containers.batch_upsert(
        tenant_id,
        [ContainerUpsert(container.container_ref, booking_ref) for container in message.containers],
    )
    return _Persisted(orders=orders, containers=containers, invoice_count=len(invoices))


def process_ingest_message(
    message: IngestMessage,
    unit_of_work_factory: IngestUnitOfWorkFactory,
) -> IngestOutcome:
    """Upsert every entity in ``message`` and link orders to containers.

    Persisted entities are committed before linking starts, so a failure while
    linking never loses the upserts. Linking runs in two passes:

    * intra-message: orders and containers that arrived together are linked
      (``BOOKING_MATCH`` when the message names a booking, otherwise
      ``SYSTEM_MIGRATION``);
    * reconciliation: when a booking is present, everything the tenant has
      stored under that booking is linked, which picks up entities delivered
      by earlier messages.
    """

    tenant_id = message.tenant_id
    booking_ref = message.booking_ref

    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        persisted = _persist(message, repositories)
        uow.commit()

        requests = plan_intra_message_links(booking_ref, persisted.orders, persisted.containers)
        if booking_ref is not None:
            existing_orders = repositories.orders.find_by_booking_ref(tenant_id, booking_ref)
            existing_containers = repositories.containers.find_by_booking_ref(
                tenant_id, booking_ref
            )
            if existing_orders and existing_containers:
                log.info(
                    "Reconciling booking %s: %d orders x %d containers",
                    booking_ref,
                    len(existing_orders),
                    len(existing_containers),
                )
            requests += plan_reconciliation_links(existing_orders, existing_containers)

        requests = deduplicate_links(requests)
        linked = repositories.links.batch_link(tenant_id, requests) if requests else []
        uow.commit()

    outcome = IngestOutcome(
        tenant_id=tenant_id,
        booking_ref=booking_ref.value if booking_ref else None,
        orders_upserted=len(persisted.orders),
        containers_upserted=len(persisted.containers),
        invoices_upserted=persisted.invoice_count,
        links_requested=len(requests),
        links_written=len(linked),
    )
    log.info(
        f"Ingested message for tenant {tenant_id}: {outcome.orders_upserted} orders, "
        f"{outcome.containers_upserted} containers, {outcome.invoices_upserted} invoices, "
        f"{outcome.links_written}/{outcome.links_requested} links"
    )
    return outcome
