"""Link planning for the progressive linking engine.

Planning is pure: it turns upserted orders and containers into link requests.
Executing those requests is the link store's job.
"""

from __future__ import annotations

from itertools import product
from typing import TYPE_CHECKING

from cargolink.domain.model import LinkingReason
from cargolink.domain.ports.persistence import LinkRequest

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from cargolink.domain.model import BookingRef, Container, Order


def link_all_to_all(
    orders: Sequence[Order],
    containers: Sequence[Container],
    reason: LinkingReason,
) -> list[LinkRequest]:
    """Cartesian product of orders and containers under one reason."""

    if not orders or not containers:
        return []
    return [
        LinkRequest.for_reason(order.id, container.id, reason)
        for order, container in product(orders, containers)
    ]


def _eligible_for_booking[TBooked: (Order, Container)](
    entities: Sequence[TBooked], booking_ref: BookingRef
) -> list[TBooked]:
    return [
        entity
        for entity in entities
        if entity.booking_ref is None or entity.booking_ref == booking_ref.value
    ]


def plan_intra_message_links(
    booking_ref: BookingRef | None,
    orders: Sequence[Order],
    containers: Sequence[Container],
) -> list[LinkRequest]:
    """Links between the orders and containers that arrived in the same message."""

    if not orders or not containers:
        return []
    if booking_ref is None:
        return link_all_to_all(orders, containers, LinkingReason.SYSTEM_MIGRATION)
    return link_all_to_all(
        _eligible_for_booking(orders, booking_ref),
        _eligible_for_booking(containers, booking_ref),
        LinkingReason.BOOKING_MATCH,
    )


def plan_reconciliation_links(
    orders: Sequence[Order],
    containers: Sequence[Container],
) -> list[LinkRequest]:
    """Links between everything the tenant has stored under one booking."""

    return link_all_to_all(orders, containers, LinkingReason.BOOKING_MATCH)


def deduplicate_links(requests: Iterable[LinkRequest]) -> list[LinkRequest]:
    """Keep the first request per (order, container) pair, preserving order."""

    seen: set[tuple[UUID, UUID]] = set()
    unique: list[LinkRequest] = []
    for request in requests:
        if request.pair in seen:
            continue
        seen.add(request.pair)
        unique.append(request)
    return unique
