from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
from sqlalchemy import inspect, insert, select, text
from sqlalchemy.dialects import sqlite
from sqlalchemy.exc import IntegrityError

from cargolink.adapters.sqlalchemy import create_all_tables, start_mappers
from cargolink.adapters.sqlalchemy.mappings import (
    HundredthsDecimal,
    order_container_table,
)
from cargolink.domain.model import (
    Container,
    ContainerRef,
    LinkingReason,
    Order,
    OrderContainerLink,
    PurchaseRef,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session


def test_start_mappers_is_idempotent() -> None:
    # First invocation happens in the sqlite_engine fixture; calling again should be harmless.
    start_mappers()
    start_mappers()


def test_create_all_tables_registers_core_tables(sqlite_engine: Engine) -> None:
    create_all_tables(sqlite_engine)
    table_names = set(inspect(sqlite_engine).get_table_names())

    assert {"booking", "purchase_order", "container", "invoice", "order_container"} <= table_names


def test_natural_keys_are_unique_per_tenant(sqlite_engine: Engine) -> None:
    unique_columns = {
        tuple(constraint["column_names"])
        for constraint in inspect(sqlite_engine).get_unique_constraints("purchase_order")
    }

    assert ("tenant_id", "purchase_ref") in unique_columns


def test_link_round_trip_preserves_reason_and_confidence(sqlite_session: Session) -> None:
    order = Order.create("tenant-a", PurchaseRef("PO-1"))
    container = Container.create("tenant-a", ContainerRef("MSCU1234567"))
    link = OrderContainerLink(
        tenant_id="tenant-a",
        order_id=order.id,
        container_id=container.id,
        linking_reason=LinkingReason.SYSTEM_MIGRATION,
        confidence_score=Decimal("0.35"),
    )
    sqlite_session.add_all([order, container])
    sqlite_session.flush()
    sqlite_session.add(link)
    sqlite_session.commit()

    raw = sqlite_session.execute(
        select(order_container_table.c.linking_reason, order_container_table.c.confidence_score)
    ).one()
    assert raw.linking_reason is LinkingReason.SYSTEM_MIGRATION
    stored_value = sqlite_session.execute(
        text("SELECT linking_reason, confidence_score FROM order_container")
    ).one()
    assert tuple(stored_value) == ("system_migration", 35)

    sqlite_session.expire_all()
    reloaded = sqlite_session.get(OrderContainerLink, link.id)
    assert reloaded is not None
    assert reloaded.confidence_score == Decimal("0.35")
    assert reloaded.linked_at.tzinfo is not None


def test_link_requires_existing_order(sqlite_session: Session) -> None:
    stmt = insert(order_container_table).values(
        id=uuid4(),
        tenant_id="tenant-a",
        order_id=uuid4(),
        container_id=uuid4(),
        linking_reason=LinkingReason.MANUAL,
        confidence_score=Decimal("0.95"),
        linked_at=datetime.now(UTC),
        created_by="system",
    )

    with pytest.raises(IntegrityError):
        sqlite_session.execute(stmt)


def test_hundredths_decimal_conversion() -> None:
    column_type = HundredthsDecimal()
    dialect = sqlite.dialect()

    assert column_type.process_bind_param(Decimal("0.70"), dialect) == 70
    assert column_type.process_result_value(35, dialect) == Decimal("0.35")
    assert column_type.process_bind_param(None, dialect) is None
