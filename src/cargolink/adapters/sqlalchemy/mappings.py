"""SQLAlchemy mapping metadata for the cargolink domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from cargolink.domain.model import (
    DEFAULT_CREATED_BY,
    Booking,
    Container,
    Invoice,
    LinkingReason,
    Order,
    OrderContainerLink,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class HundredthsDecimal(TypeDecorator[Decimal]):
    """Two-place decimal stored as an integer number of hundredths."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: Dialect) -> int | None:
        _ = dialect
        if value is None:
            return None
        return int((Decimal(value) * 100).to_integral_value())

    def process_result_value(self, value: int | None, dialect: Dialect) -> Decimal | None:
        _ = dialect
        if value is None:
            return None
        return (Decimal(value) / 100).quantize(Decimal("0.01"))


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _audit_columns() -> tuple[Column[datetime], Column[datetime]]:
    return (
        Column("created_at", UTCDateTime(), nullable=False),
        Column("updated_at", UTCDateTime(), nullable=False),
    )


booking_table = Table(
    "booking",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_id", String(255), nullable=False),
    Column("booking_ref", String(255), nullable=False),
    *_audit_columns(),
    UniqueConstraint("tenant_id", "booking_ref"),
)

order_table = Table(
    "purchase_order",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_id", String(255), nullable=False),
    Column("purchase_ref", String(255), nullable=False),
    Column("booking_ref", String(255), nullable=True),
    *_audit_columns(),
    UniqueConstraint("tenant_id", "purchase_ref"),
    Index("ix_purchase_order_tenant_booking", "tenant_id", "booking_ref"),
)

container_table = Table(
    "container",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_id", String(255), nullable=False),
    Column("container_ref", String(11), nullable=False),
    Column("booking_ref", String(255), nullable=True),
    *_audit_columns(),
    UniqueConstraint("tenant_id", "container_ref"),
    Index("ix_container_tenant_booking", "tenant_id", "booking_ref"),
)

invoice_table = Table(
    "invoice",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_id", String(255), nullable=False),
    Column("invoice_ref", String(255), nullable=False),
    Column("purchase_ref", String(255), nullable=False),
    *_audit_columns(),
    UniqueConstraint("tenant_id", "invoice_ref"),
    Index("ix_invoice_tenant_purchase", "tenant_id", "purchase_ref"),
)

order_container_table = Table(
    "order_container",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tenant_id", String(255), nullable=False),
    Column(
        "order_id",
        UUIDColumnType,
        ForeignKey("purchase_order.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "container_id",
        UUIDColumnType,
        ForeignKey("container.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "linking_reason",
        Enum(LinkingReason, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    ),
    Column("confidence_score", HundredthsDecimal(), nullable=False),
    Column("linked_at", UTCDateTime(), nullable=False),
    Column("created_by", String(255), nullable=False, default=DEFAULT_CREATED_BY),
    UniqueConstraint("tenant_id", "order_id", "container_id"),
    CheckConstraint(
        "confidence_score >= 0 AND confidence_score <= 100", name="confidence_range"
    ),
    Index("ix_order_container_tenant_order", "tenant_id", "order_id"),
    Index("ix_order_container_tenant_container", "tenant_id", "container_id"),
)


@cache
def start_mappers() -> orm.registry:
    """Map domain dataclasses onto their tables (idempotent)."""

    mapper_registry.map_imperatively(Booking, booking_table)
    mapper_registry.map_imperatively(Order, order_table)
    mapper_registry.map_imperatively(Container, container_table)
    mapper_registry.map_imperatively(Invoice, invoice_table)
    mapper_registry.map_imperatively(OrderContainerLink, order_container_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
