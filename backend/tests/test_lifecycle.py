"""Unit tests for estimate identity, status and revisions."""
from datetime import datetime, timezone

import pytest

from buildconsole.schemas.entities import (
    DiscountType,
    Estimate,
    EstimateLineItem,
    EstimateStatus,
    TaxMode,
)
from buildconsole.schemas.requests import EstimateDraft
from buildconsole.services import lifecycle

NOW = datetime(2026, 3, 14, 9, 30, 0, 123000, tzinfo=timezone.utc)


def _draft(**kw) -> EstimateDraft:
    data = dict(
        customer_name="Ravi Patel",
        phone_number="9876543210",
        site_address="Plot 12, Alkapuri",
        items=[EstimateLineItem(item_id="i1", item_name="Brick Work", lh="10", wd="5", rate=100, gst_rate=18)],
        discount_value=500,
    )
    data.update(kw)
    return EstimateDraft(**data)


@pytest.fixture
def original() -> Estimate:
    return lifecycle.build_estimate(_draft(), now=NOW)


class TestBuildEstimate:
    def test_new_estimate_identity(self, original):
        assert original.version == 1
        assert original.parent_id is None
        assert original.status == EstimateStatus.PENDING
        assert original.date == "14/03/2026"
        assert original.created_at == "2026-03-14T09:30:00.123Z"
        assert original.estimate_number == f"EST-{str(lifecycle.millis(NOW))[-6:]}"

    def test_totals_are_derived(self, original):
        assert original.items[0].total == 5000
        assert original.sub_total == 5000
        assert original.gst_extra == pytest.approx(900)
        assert original.discount == 500
        assert original.total_amount == pytest.approx(5400)

    def test_manual_tax_stored_as_effective_tax(self):
        estimate = lifecycle.build_estimate(
            _draft(gst_calculation_mode=TaxMode.MANUAL, gst_extra=250), now=NOW
        )
        assert estimate.gst_extra == 250
        assert estimate.total_amount == pytest.approx(4750)

    def test_edit_keeps_identity(self, original):
        converted = lifecycle.set_status(original, EstimateStatus.CONVERTED)
        edited = lifecycle.build_estimate(
            _draft(id=original.id, discount_value=10, discount_type=DiscountType.PERCENT),
            existing=converted,
        )
        assert edited.id == original.id
        assert edited.estimate_number == original.estimate_number
        assert edited.created_at == original.created_at
        assert edited.status == EstimateStatus.CONVERTED
        assert edited.discount == pytest.approx(500)

    def test_number_prefix(self):
        estimate = lifecycle.build_estimate(_draft(), now=NOW, number_prefix="QT")
        assert estimate.estimate_number.startswith("QT-")

    def test_draft_id_used_when_new(self):
        estimate = lifecycle.build_estimate(_draft(id="est-fixed"), now=NOW)
        assert estimate.id == "est-fixed"


class TestStatus:
    @pytest.mark.parametrize("start", list(EstimateStatus))
    @pytest.mark.parametrize("target", list(EstimateStatus))
    def test_any_status_reachable(self, original, start, target):
        estimate = lifecycle.set_status(original, start)
        assert lifecycle.set_status(estimate, target).status == target

    def test_accepts_string(self, original):
        assert lifecycle.set_status(original, "Rejected").status == EstimateStatus.REJECTED

    def test_does_not_mutate(self, original):
        lifecycle.set_status(original, EstimateStatus.REJECTED)
        assert original.status == EstimateStatus.PENDING


class TestRevise:
    def test_first_revision(self, original):
        original = original.model_copy(update={"estimate_number": "EST-123456"})
        draft = lifecycle.revise(original, now=NOW)
        assert draft.estimate_number == "EST-123456-R2"
        assert draft.version == 2
        assert draft.parent_id == original.id
        assert draft.id != original.id
        assert draft.status == EstimateStatus.PENDING

    def test_chain_points_at_original(self, original):
        second = lifecycle.revise(original)
        third = lifecycle.revise(second)
        assert third.version == 3
        assert third.parent_id == original.id
        assert third.estimate_number == original.estimate_number + "-R3"

    def test_status_reset(self, original):
        rejected = lifecycle.set_status(original, EstimateStatus.REJECTED)
        assert lifecycle.revise(rejected).status == EstimateStatus.PENDING

    def test_lines_are_copied(self, original):
        draft = lifecycle.revise(original)
        assert draft.items == original.items
        assert draft.items[0] is not original.items[0]

    def test_explicit_id(self, original):
        assert lifecycle.revise(original, new_id="est-r2").id == "est-r2"


class TestGenerateId:
    def test_unique(self):
        assert len({lifecycle.generate_id() for _ in range(100)}) == 100
