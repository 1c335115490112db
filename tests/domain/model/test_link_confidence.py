from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from cargolink.domain.model import (
    LinkingReason,
    LinkUpdatePolicy,
    OrderContainerLink,
    confidence_for,
    normalize_confidence,
)


@pytest.mark.parametrize(
    ("reason", "expected"),
    [
        (LinkingReason.BOOKING_MATCH, Decimal("1.00")),
        (LinkingReason.MANUAL, Decimal("0.95")),
        (LinkingReason.AI_INFERENCE, Decimal("0.70")),
        (LinkingReason.TEMPORAL_CORRELATION, Decimal("0.60")),
        (LinkingReason.SYSTEM_MIGRATION, Decimal("0.35")),
    ],
)
def test_confidence_for_each_reason(reason: LinkingReason, expected: Decimal) -> None:
    assert confidence_for(reason) == expected
    assert reason.confidence == expected


def test_every_reason_has_a_confidence() -> None:
    for reason in LinkingReason:
        assert Decimal("0") <= confidence_for(reason) <= Decimal("1")


def test_normalize_confidence_quantizes() -> None:
    assert normalize_confidence(0.7) == Decimal("0.70")
    assert normalize_confidence("0.355") == Decimal("0.36")


@pytest.mark.parametrize("value", ["-0.01", "1.01", 2])
def test_normalize_confidence_rejects_out_of_range(value: str | int) -> None:
    with pytest.raises(ValueError, match="between 0.00 and 1.00"):
        normalize_confidence(value)


def _link(reason: LinkingReason) -> OrderContainerLink:
    return OrderContainerLink(
        tenant_id="tenant-a",
        order_id=uuid4(),
        container_id=uuid4(),
        linking_reason=reason,
        confidence_score=confidence_for(reason),
    )


def test_reassert_last_write_wins_overwrites() -> None:
    link = _link(LinkingReason.BOOKING_MATCH)
    linked_at = link.linked_at

    changed = link.reassert(LinkingReason.SYSTEM_MIGRATION, Decimal("0.35"))

    assert changed is True
    assert link.linking_reason is LinkingReason.SYSTEM_MIGRATION
    assert link.confidence_score == Decimal("0.35")
    assert link.linked_at == linked_at


def test_reassert_highest_confidence_keeps_stronger_link() -> None:
    link = _link(LinkingReason.BOOKING_MATCH)

    changed = link.reassert(
        LinkingReason.SYSTEM_MIGRATION, Decimal("0.35"), LinkUpdatePolicy.HIGHEST_CONFIDENCE
    )

    assert changed is False
    assert link.linking_reason is LinkingReason.BOOKING_MATCH
    assert link.confidence_score == Decimal("1.00")


def test_reassert_highest_confidence_upgrades_weaker_link() -> None:
    link = _link(LinkingReason.SYSTEM_MIGRATION)

    changed = link.reassert(
        LinkingReason.BOOKING_MATCH, Decimal("1.00"), LinkUpdatePolicy.HIGHEST_CONFIDENCE
    )

    assert changed is True
    assert link.linking_reason is LinkingReason.BOOKING_MATCH


def test_reassert_same_values_is_noop() -> None:
    link = _link(LinkingReason.MANUAL)

    assert link.reassert(LinkingReason.MANUAL, Decimal("0.95")) is False


def test_link_normalizes_confidence_on_creation() -> None:
    link = OrderContainerLink(
        tenant_id="tenant-a",
        order_id=uuid4(),
        container_id=uuid4(),
        linking_reason=LinkingReason.MANUAL,
        confidence_score=Decimal("0.9"),
    )

    assert link.confidence_score == Decimal("0.90")
    assert link.created_by == "system"
