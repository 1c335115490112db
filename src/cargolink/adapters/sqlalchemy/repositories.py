"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import logging
from itertools import batched
from typing import TYPE_CHECKING, cast

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from cargolink.adapters.sqlalchemy.mappings import (
    booking_table,
    container_table,
    invoice_table,
    order_container_table,
    order_table,
)
from cargolink.config.queue import LINK_CHUNK_SIZE, UPSERT_CHUNK_SIZE
from cargolink.domain.errors import TenantIsolationError
from cargolink.domain.model import (
    Booking,
    Container,
    Invoice,
    LinkUpdatePolicy,
    Order,
    OrderContainerLink,
    TenantEntity,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from decimal import Decimal
    from uuid import UUID

    from sqlalchemy import Table
    from sqlalchemy.orm import Session

    from cargolink.domain.model import (
        BookingRef,
        ContainerRef,
        InvoiceRef,
        LinkingReason,
        PurchaseRef,
        TenantId,
    )
    from cargolink.domain.ports import ContainerUpsert, InvoiceUpsert, LinkRequest, OrderUpsert

log = logging.getLogger(__name__)


class SqlAlchemyUpsertRepository[TEntity: TenantEntity]:
    """Shared insert-or-update machinery for entities keyed by a natural reference."""

    def __init__(
        self,
        session: Session,
        entity_cls: type[TEntity],
        table: Table,
        key_column: str,
        *,
        chunk_size: int = UPSERT_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.session = session
        self._entity_cls = entity_cls
        self._table = table
        self._key_column = key_column
        self._chunk_size = chunk_size

    def find_all(self, tenant_id: TenantId) -> list[TEntity]:
        stmt = (
            select(self._entity_cls)
            .where(self._table.c.tenant_id == tenant_id)
            .order_by(self._table.c.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def _find_by_key(self, tenant_id: TenantId, key: str) -> TEntity | None:
        stmt = (
            select(self._entity_cls)
            .where(self._table.c.tenant_id == tenant_id)
            .where(self._table.c[self._key_column] == key)
        )
        return self.session.scalars(stmt).one_or_none()

    def _find_by_booking(self, tenant_id: TenantId, booking_ref: BookingRef) -> list[TEntity]:
        stmt = (
            select(self._entity_cls)
            .where(self._table.c.tenant_id == tenant_id)
            .where(self._table.c.booking_ref == booking_ref.value)
            .order_by(self._table.c.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def _get_or_insert(
        self, tenant_id: TenantId, key: str, factory: Callable[[], TEntity]
    ) -> tuple[TEntity, bool]:
        """Return the stored entity for ``key`` or insert a new one.

        The boolean tells whether a row was inserted. Losing an insert race to a
        concurrent writer is not an error: the winner's row is returned.
        """

        existing = self._find_by_key(tenant_id, key)
        if existing is not None:
            return existing, False

        entity = factory()
        try:
            with self.session.begin_nested():
                self.session.add(entity)
                self.session.flush()
        except IntegrityError:
            winner = self._find_by_key(tenant_id, key)
            if winner is None:
                raise
            log.debug(
                "Insert race on %s %r for tenant %s; using stored row",
                self._table.name,
                key,
                tenant_id,
            )
            return winner, False
        return entity, True

    def _upsert_in_chunks[TRequest](
        self,
        requests: Sequence[TRequest],
        upsert_one: Callable[[TRequest], TEntity],
    ) -> list[TEntity]:
        results: list[TEntity] = []
        for chunk in batched(requests, self._chunk_size):
            with self.session.begin_nested():
                upserted = [upsert_one(request) for request in chunk]
                self.session.flush()
            results.extend(upserted)
        if requests:
            log.debug("Upserted %d %s rows", len(results), self._table.name)
        return results


class SqlAlchemyBookingRepository(SqlAlchemyUpsertRepository[Booking]):
    def __init__(self, session: Session, *, chunk_size: int = UPSERT_CHUNK_SIZE) -> None:
        super().__init__(session, Booking, booking_table, "booking_ref", chunk_size=chunk_size)

    def upsert(self, tenant_id: TenantId, booking_ref: BookingRef) -> Booking:
        booking, created = self._get_or_insert(
            tenant_id,
            booking_ref.value,
            lambda: Booking.create(tenant_id, booking_ref),
        )
        if not created:
            booking.touch()
        return booking

    def find_by_booking_ref(self, tenant_id: TenantId, booking_ref: BookingRef) -> Booking | None:
        return self._find_by_key(tenant_id, booking_ref.value)


class SqlAlchemyOrderRepository(SqlAlchemyUpsertRepository[Order]):
    def __init__(self, session: Session, *, chunk_size: int = UPSERT_CHUNK_SIZE) -> None:
        super().__init__(session, Order, order_table, "purchase_ref", chunk_size=chunk_size)

    def upsert(
        self,
        tenant_id: TenantId,
        purchase_ref: PurchaseRef,
        booking_ref: BookingRef | None = None,
    ) -> Order:
        order, _ = self._get_or_insert(
            tenant_id,
            purchase_ref.value,
            lambda: Order.create(tenant_id, purchase_ref, booking_ref),
        )
        order.adopt_booking(booking_ref)
        return order

    def batch_upsert(self, tenant_id: TenantId, requests: Sequence[OrderUpsert]) -> list[Order]:
        return self._upsert_in_chunks(
            requests,
            lambda request: self.upsert(tenant_id, request.purchase_ref, request.booking_ref),
        )

    def find_by_purchase_ref(self, tenant_id: TenantId, purchase_ref: PurchaseRef) -> Order | None:
        return self._find_by_key(tenant_id, purchase_ref.value)

    def find_by_booking_ref(self, tenant_id: TenantId, booking_ref: BookingRef) -> list[Order]:
        return self._find_by_booking(tenant_id, booking_ref)


class SqlAlchemyContainerRepository(SqlAlchemyUpsertRepository[Container]):
    def __init__(self, session: Session, *, chunk_size: int = UPSERT_CHUNK_SIZE) -> None:
        super().__init__(
            session, Container, container_table, "container_ref", chunk_size=chunk_size
        )

    def upsert(
        self,
        tenant_id: TenantId,
        container_ref: ContainerRef,
        booking_ref: BookingRef | None = None,
    ) -> Container:
        container, _ = self._get_or_insert(
            tenant_id,
            container_ref.value,
            lambda: Container.create(tenant_id, container_ref, booking_ref),
        )
        container.adopt_booking(booking_ref)
        return container

    def batch_upsert(
        self, tenant_id: TenantId, requests: Sequence[ContainerUpsert]
    ) -> list[Container]:
        return self._upsert_in_chunks(
            requests,
            lambda request: self.upsert(tenant_id, request.container_ref, request.booking_ref),
        )

    def find_by_container_ref(
        self, tenant_id: TenantId, container_ref: ContainerRef
    ) -> Container | None:
        return self._find_by_key(tenant_id, container_ref.value)

    def find_by_booking_ref(self, tenant_id: TenantId, booking_ref: BookingRef) -> list[Container]:
        return self._find_by_booking(tenant_id, booking_ref)


class SqlAlchemyInvoiceRepository(SqlAlchemyUpsertRepository[Invoice]):
    def __init__(self, session: Session, *, chunk_size: int = UPSERT_CHUNK_SIZE) -> None:
        super().__init__(session, Invoice, invoice_table, "invoice_ref", chunk_size=chunk_size)

    def upsert(
        self, tenant_id: TenantId, invoice_ref: InvoiceRef, purchase_ref: PurchaseRef
    ) -> Invoice:
        invoice, _ = self._get_or_insert(
            tenant_id,
            invoice_ref.value,
            lambda: Invoice.create(tenant_id, invoice_ref, purchase_ref),
        )
        invoice.repoint(purchase_ref)
        return invoice

    def batch_upsert(
        self, tenant_id: TenantId, requests: Sequence[InvoiceUpsert]
    ) -> list[Invoice]:
        return self._upsert_in_chunks(
            requests,
            lambda request: self.upsert(tenant_id, request.invoice_ref, request.purchase_ref),
        )

    def find_by_invoice_ref(self, tenant_id: TenantId, invoice_ref: InvoiceRef) -> Invoice | None:
        return self._find_by_key(tenant_id, invoice_ref.value)

    def find_by_purchase_ref(self, tenant_id: TenantId, purchase_ref: PurchaseRef) -> list[Invoice]:
        stmt = (
            select(Invoice)
            .where(invoice_table.c.tenant_id == tenant_id)
            .where(invoice_table.c.purchase_ref == purchase_ref.value)
            .order_by(invoice_table.c.created_at.desc())
        )
        return list(self.session.scalars(stmt))


class SqlAlchemyOrderContainerRepository:
    """Link store: idempotent, tenant-checked order/container associations."""

    def __init__(
        self,
        session: Session,
        *,
        policy: LinkUpdatePolicy = LinkUpdatePolicy.LAST_WRITE_WINS,
        chunk_size: int = LINK_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.session = session
        self._policy = policy
        self._chunk_size = chunk_size

    def link(
        self,
        tenant_id: TenantId,
        order_id: UUID,
        container_id: UUID,
        reason: LinkingReason,
        confidence: Decimal,
    ) -> OrderContainerLink:
        self._validate_tenant_ownership(tenant_id, order_id, container_id)

        existing = self.find_link(tenant_id, order_id, container_id)
        if existing is not None:
            existing.reassert(reason, confidence, self._policy)
            return existing

        link = OrderContainerLink(
            tenant_id=tenant_id,
            order_id=order_id,
            container_id=container_id,
            linking_reason=reason,
            confidence_score=confidence,
        )
        try:
            with self.session.begin_nested():
                self.session.add(link)
                self.session.flush()
        except IntegrityError:
            existing = self.find_link(tenant_id, order_id, container_id)
            if existing is None:
                raise
            log.debug(
                "Link between order %s and container %s already exists", order_id, container_id
            )
            existing.reassert(reason, confidence, self._policy)
            return existing
        return link

    def batch_link(
        self, tenant_id: TenantId, requests: Sequence[LinkRequest]
    ) -> list[OrderContainerLink]:
        results: list[OrderContainerLink] = []
        for chunk in batched(requests, self._chunk_size):
            try:
                with self.session.begin_nested():
                    linked = [self._link_request(tenant_id, request) for request in chunk]
                    self.session.flush()
            except (IntegrityError, TenantIsolationError, ValueError) as exc:
                log.warning(
                    "Batch link of %d pairs failed for tenant %s (%s); linking pairs one by one",
                    len(chunk),
                    tenant_id,
                    exc,
                )
                linked = self._link_individually(tenant_id, chunk)
            results.extend(linked)

        if requests:
            log.debug(
                "Batch processed %d link requests, linked %d pairs for tenant %s",
                len(requests),
                len(results),
                tenant_id,
            )
        return results

    def containers_for_order(self, tenant_id: TenantId, order_id: UUID) -> list[Container]:
        stmt = (
            select(Container)
            .join(
                order_container_table,
                order_container_table.c.container_id == container_table.c.id,
            )
            .where(order_container_table.c.tenant_id == tenant_id)
            .where(container_table.c.tenant_id == tenant_id)
            .where(order_container_table.c.order_id == order_id)
            .order_by(order_container_table.c.linked_at.desc())
        )
        return list(self.session.scalars(stmt))

    def orders_for_container(self, tenant_id: TenantId, container_id: UUID) -> list[Order]:
        stmt = (
            select(Order)
            .join(order_container_table, order_container_table.c.order_id == order_table.c.id)
            .where(order_container_table.c.tenant_id == tenant_id)
            .where(order_table.c.tenant_id == tenant_id)
            .where(order_container_table.c.container_id == container_id)
            .order_by(order_container_table.c.linked_at.desc())
        )
        return list(self.session.scalars(stmt))

    def containers_for_purchase_ref(
        self, tenant_id: TenantId, purchase_ref: PurchaseRef
    ) -> list[Container]:
        stmt = (
            select(Container)
            .join(
                order_container_table,
                order_container_table.c.container_id == container_table.c.id,
            )
            .join(order_table, order_table.c.id == order_container_table.c.order_id)
            .where(order_container_table.c.tenant_id == tenant_id)
            .where(order_table.c.tenant_id == tenant_id)
            .where(order_table.c.purchase_ref == purchase_ref.value)
            .order_by(order_container_table.c.linked_at.desc())
        )
        return list(self.session.scalars(stmt))

    def orders_for_container_ref(
        self, tenant_id: TenantId, container_ref: ContainerRef
    ) -> list[Order]:
        stmt = (
            select(Order)
            .join(order_container_table, order_container_table.c.order_id == order_table.c.id)
            .join(container_table, container_table.c.id == order_container_table.c.container_id)
            .where(order_container_table.c.tenant_id == tenant_id)
            .where(container_table.c.tenant_id == tenant_id)
            .where(container_table.c.container_ref == container_ref.value)
            .order_by(order_container_table.c.linked_at.desc())
        )
        return list(self.session.scalars(stmt))

    def unlink(self, tenant_id: TenantId, order_id: UUID, container_id: UUID) -> bool:
        link = self.find_link(tenant_id, order_id, container_id)
        if link is None:
            return False
        self.session.delete(link)
        self.session.flush()
        return True

    def find_link(
        self, tenant_id: TenantId, order_id: UUID, container_id: UUID
    ) -> OrderContainerLink | None:
        stmt = (
            select(OrderContainerLink)
            .where(order_container_table.c.tenant_id == tenant_id)
            .where(order_container_table.c.order_id == order_id)
            .where(order_container_table.c.container_id == container_id)
        )
        return self.session.scalars(stmt).one_or_none()

    def all_links(self, tenant_id: TenantId) -> list[OrderContainerLink]:
        stmt = (
            select(OrderContainerLink)
            .where(order_container_table.c.tenant_id == tenant_id)
            .order_by(order_container_table.c.linked_at.desc())
        )
        return list(self.session.scalars(stmt))

    def _link_request(self, tenant_id: TenantId, request: LinkRequest) -> OrderContainerLink:
        return self.link(
            tenant_id, request.order_id, request.container_id, request.reason, request.confidence
        )

    def _link_individually(
        self, tenant_id: TenantId, requests: Sequence[LinkRequest]
    ) -> list[OrderContainerLink]:
        linked: list[OrderContainerLink] = []
        for request in requests:
            try:
                with self.session.begin_nested():
                    link = self._link_request(tenant_id, request)
                    self.session.flush()
            except IntegrityError:
                log.debug(
                    "Relationship already exists between order %s and container %s",
                    request.order_id,
                    request.container_id,
                )
                continue
            except TenantIsolationError as exc:
                log.warning(
                    "Security validation failed for order %s and container %s: %s",
                    request.order_id,
                    request.container_id,
                    exc,
                )
                continue
            except ValueError as exc:
                log.warning(
                    "Validation failed for order %s and container %s: %s",
                    request.order_id,
                    request.container_id,
                    exc,
                )
                continue
            linked.append(link)
        return linked

    def _validate_tenant_ownership(
        self, tenant_id: TenantId, order_id: UUID, container_id: UUID
    ) -> None:
        if not self._owned_by(order_table, order_id, tenant_id):
            raise TenantIsolationError(f"Order {order_id} does not belong to tenant {tenant_id}")
        if not self._owned_by(container_table, container_id, tenant_id):
            raise TenantIsolationError(
                f"Container {container_id} does not belong to tenant {tenant_id}"
            )

    def _owned_by(self, table: Table, entity_id: UUID, tenant_id: TenantId) -> bool:
        stmt = (
            select(func.count())
            .select_from(table)
            .where(table.c.id == entity_id)
            .where(table.c.tenant_id == tenant_id)
        )
        return cast("int", self.session.execute(stmt).scalar_one()) > 0


if TYPE_CHECKING:
    from cargolink.domain.ports.persistence import (
        BookingRepository,
        ContainerRepository,
        InvoiceRepository,
        OrderContainerRepository,
        OrderRepository,
    )

    _session_stub = cast("Session", object())
    _booking_repo: BookingRepository = SqlAlchemyBookingRepository(_session_stub)
    _order_repo: OrderRepository = SqlAlchemyOrderRepository(_session_stub)
    _container_repo: ContainerRepository = SqlAlchemyContainerRepository(_session_stub)
    _invoice_repo: InvoiceRepository = SqlAlchemyInvoiceRepository(_session_stub)
    _link_repo: OrderContainerRepository = SqlAlchemyOrderContainerRepository(_session_stub)
