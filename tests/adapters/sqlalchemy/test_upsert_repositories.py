from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select

from cargolink.adapters.sqlalchemy import (
    SqlAlchemyBookingRepository,
    SqlAlchemyContainerRepository,
    SqlAlchemyInvoiceRepository,
    SqlAlchemyOrderRepository,
)
from cargolink.adapters.sqlalchemy.mappings import container_table, order_table
from cargolink.domain.model import BookingRef, ContainerRef, InvoiceRef, Order, PurchaseRef
from cargolink.domain.ports import ContainerUpsert, InvoiceUpsert, OrderUpsert

if TYPE_CHECKING:
    from sqlalchemy import Table
    from sqlalchemy.orm import Session


def _count(session: Session, table: Table) -> int:
    return session.execute(select(func.count()).select_from(table)).scalar_one()


def test_order_upsert_is_idempotent(sqlite_session: Session) -> None:
    repository = SqlAlchemyOrderRepository(sqlite_session)

    first = repository.upsert("tenant-a", PurchaseRef("PO-1"), BookingRef("BK-1"))
    second = repository.upsert("tenant-a", PurchaseRef("PO-1"), BookingRef("BK-1"))
    sqlite_session.commit()

    assert first.id == second.id
    assert _count(sqlite_session, order_table) == 1


def test_order_upsert_without_booking_keeps_existing(sqlite_session: Session) -> None:
    repository = SqlAlchemyOrderRepository(sqlite_session)
    repository.upsert("tenant-a", PurchaseRef("PO-1"), BookingRef("BK-1"))

    order = repository.upsert("tenant-a", PurchaseRef("PO-1"))
    sqlite_session.commit()

    assert order.booking_ref == "BK-1"


def test_order_upsert_with_new_booking_overwrites(sqlite_session: Session) -> None:
    repository = SqlAlchemyOrderRepository(sqlite_session)
    repository.upsert("tenant-a", PurchaseRef("PO-1"), BookingRef("BK-1"))

    repository.upsert("tenant-a", PurchaseRef("PO-1"), BookingRef("BK-2"))
    sqlite_session.commit()

    stored = repository.find_by_purchase_ref("tenant-a", PurchaseRef("PO-1"))
    assert stored is not None
    assert stored.booking_ref == "BK-2"


def test_same_reference_is_distinct_per_tenant(sqlite_session: Session) -> None:
    repository = SqlAlchemyContainerRepository(sqlite_session)

    first = repository.upsert("tenant-a", ContainerRef("MSCU1234567"))
    second = repository.upsert("tenant-b", ContainerRef("MSCU1234567"))
    sqlite_session.commit()

    assert first.id != second.id
    assert _count(sqlite_session, container_table) == 2
    assert [c.id for c in repository.find_all("tenant-a")] == [first.id]


def test_batch_upsert_spans_chunks(sqlite_session: Session) -> None:
    repository = SqlAlchemyContainerRepository(sqlite_session, chunk_size=2)
    refs = ["MSCU0000001", "MSCU0000002", "MSCU0000003", "MSCU0000004", "MSCU0000005"]

    containers = repository.batch_upsert(
        "tenant-a", [ContainerUpsert(ContainerRef(ref), BookingRef("BK-1")) for ref in refs]
    )
    sqlite_session.commit()

    assert [container.container_ref for container in containers] == refs
    assert len(repository.find_by_booking_ref("tenant-a", BookingRef("BK-1"))) == 5


def test_batch_upsert_repeats_collapse(sqlite_session: Session) -> None:
    repository = SqlAlchemyOrderRepository(sqlite_session)

    orders = repository.batch_upsert(
        "tenant-a", [OrderUpsert(PurchaseRef("PO-1")), OrderUpsert(PurchaseRef("PO-1"))]
    )
    sqlite_session.commit()

    assert orders[0] is orders[1]
    assert _count(sqlite_session, order_table) == 1


def test_find_by_booking_ref_is_tenant_scoped(sqlite_session: Session) -> None:
    repository = SqlAlchemyOrderRepository(sqlite_session)
    repository.upsert("tenant-a", PurchaseRef("PO-1"), BookingRef("BK-1"))
    repository.upsert("tenant-b", PurchaseRef("PO-2"), BookingRef("BK-1"))
    sqlite_session.commit()

    found = repository.find_by_booking_ref("tenant-a", BookingRef("BK-1"))

    assert [order.purchase_ref for order in found] == ["PO-1"]


def test_booking_upsert_touches_existing(sqlite_session: Session) -> None:
    repository = SqlAlchemyBookingRepository(sqlite_session)
    first = repository.upsert("tenant-a", BookingRef("BK-1"))
    created_at = first.created_at

    second = repository.upsert("tenant-a", BookingRef("BK-1"))
    sqlite_session.commit()

    assert second.id == first.id
    assert second.created_at == created_at
    assert repository.find_by_booking_ref("tenant-a", BookingRef("BK-1")) is not None
    assert repository.find_by_booking_ref("tenant-b", BookingRef("BK-1")) is None


def test_invoice_upsert_repoints_to_latest_order(sqlite_session: Session) -> None:
    repository = SqlAlchemyInvoiceRepository(sqlite_session)
    repository.batch_upsert("tenant-a", [InvoiceUpsert(InvoiceRef("INV-1"), PurchaseRef("PO-1"))])

    repository.upsert("tenant-a", InvoiceRef("INV-1"), PurchaseRef("PO-2"))
    sqlite_session.commit()

    assert repository.find_by_purchase_ref("tenant-a", PurchaseRef("PO-1")) == []
    stored = repository.find_by_invoice_ref("tenant-a", InvoiceRef("INV-1"))
    assert stored is not None
    assert stored.purchase_ref == "PO-2"


def test_insert_race_returns_winning_row(
    sqlite_session: Session, monkeypatch: pytest.MonkeyPatch
) -> None:
    repository = SqlAlchemyOrderRepository(sqlite_session)
    winner = repository.upsert("tenant-a", PurchaseRef("PO-1"))
    sqlite_session.commit()

    real_find = SqlAlchemyOrderRepository._find_by_key  # noqa: SLF001
    calls: list[str] = []

    def stale_find(self: SqlAlchemyOrderRepository, tenant_id: str, key: str) -> Order | None:
        calls.append(key)
        # first lookup misses, as if the competing insert had not committed yet
        if len(calls) == 1:
            return None
        return real_find(self, tenant_id, key)

    monkeypatch.setattr(SqlAlchemyOrderRepository, "_find_by_key", stale_find)

    result = repository.upsert("tenant-a", PurchaseRef("PO-1"), BookingRef("BK-9"))
    sqlite_session.commit()

    assert result.id == winner.id
    assert result.booking_ref == "BK-9"
    assert _count(sqlite_session, order_table) == 1


def test_chunk_size_must_be_positive(sqlite_session: Session) -> None:
    with pytest.raises(ValueError, match="chunk_size"):
        SqlAlchemyOrderRepository(sqlite_session, chunk_size=0)
