"""Domain port definitions for adapters."""

from __future__ import annotations

from .messaging import (
    EventBus,
    IngestMessageCodec,
    MessageQueue,
    QueueError,
    ReceivedMessage,
)
from .persistence import (
    BookingRepository,
    ContainerRepository,
    ContainerUpsert,
    InvoiceRepository,
    InvoiceUpsert,
    LinkRequest,
    OrderContainerRepository,
    OrderRepository,
    OrderUpsert,
    TenantScopedRepository,
)
from .unit_of_work import (
    IngestRepositories,
    IngestUnitOfWork,
    IngestUnitOfWorkFactory,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "BookingRepository",
    "ContainerRepository",
    "ContainerUpsert",
    "EventBus",
    "IngestMessageCodec",
    "IngestRepositories",
    "IngestUnitOfWork",
    "IngestUnitOfWorkFactory",
    "InvoiceRepository",
    "InvoiceUpsert",
    "LinkRequest",
    "MessageQueue",
    "OrderContainerRepository",
    "OrderRepository",
    "OrderUpsert",
    "QueueError",
    "ReceivedMessage",
    "RepositoryCollection",
    "TenantScopedRepository",
    "UnitOfWork",
]
