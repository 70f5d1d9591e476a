"""Unit tests for line and estimate pricing."""
import pytest

from buildconsole.schemas.entities import DiscountType, EstimateLineItem, Item, TaxMode
from buildconsole.services import pricing


def _line(**kw) -> EstimateLineItem:
    defaults = dict(item_id="i1", item_name="Brick Work", unit="Sqft")
    defaults.update(kw)
    return pricing.recompute_line(EstimateLineItem(**defaults))


class TestRecomputeLine:
    def test_dimensions_drive_volume(self):
        line = _line(lh="10", wd="5", rate=100, qty=1, gst_rate=18)
        assert line.volume == 50
        assert line.total == 5000
        assert line.gst_amount == pytest.approx(900)

    def test_volume_rounded_to_two_decimals(self):
        line = _line(lh="3.333", wd="3", rate=1, qty=1)
        assert line.volume == 10.0

    def test_dash_dimension_keeps_manual_volume(self):
        line = _line(lh="-", wd="5", volume=7, rate=10, qty=2)
        assert line.volume == 7
        assert line.total == 140

    def test_non_numeric_dimension_keeps_volume(self):
        line = _line(lh="ten", wd="5", volume=3, rate=10, qty=1)
        assert line.volume == 3
        assert line.total == 30

    def test_zero_tax_rate(self):
        line = _line(lh="10", wd="30", rate=10, qty=1, gst_rate=0)
        assert line.total == 3000
        assert line.gst_amount == 0

    def test_original_line_not_mutated(self):
        raw = EstimateLineItem(item_id="i1", lh="2", wd="2", rate=10)
        pricing.recompute_line(raw)
        assert raw.volume == 1.0
        assert raw.total == 0.0

    def test_update_line_rederives(self):
        line = _line(lh="10", wd="5", rate=100, qty=1, gst_rate=18)
        edited = pricing.update_line(line, qty=2)
        assert edited.total == 10000
        assert edited.gst_amount == pytest.approx(1800)

    def test_line_from_item(self):
        item = Item(id="i9", name="Tiles", unit="Box", sale_rate=450, gst_rate=28)
        line = pricing.line_from_item(item)
        assert line.item_id == "i9"
        assert (line.lh, line.wd) == ("-", "-")
        assert line.volume == 1
        assert line.total == 450
        assert line.gst_amount == pytest.approx(126)


class TestParseDimension:
    @pytest.mark.parametrize("text,expected", [("10", 10.0), (" 12.5 ", 12.5), ("0", 0.0)])
    def test_numbers(self, text, expected):
        assert pricing.parse_dimension(text) == expected

    @pytest.mark.parametrize("text", ["-", "", None, "abc", "nan", "inf"])
    def test_unparseable(self, text):
        assert pricing.parse_dimension(text) is None


class TestPrice:
    @pytest.fixture
    def lines(self):
        return [
            _line(lh="10", wd="5", rate=100, qty=1, gst_rate=18),
            _line(item_id="i2", lh="10", wd="30", rate=10, qty=1, gst_rate=0),
        ]

    def test_auto_mode_with_amount_discount(self, lines):
        summary = pricing.price(lines, TaxMode.AUTO, 0, 500, DiscountType.AMOUNT)
        assert summary.subtotal == 8000
        assert summary.effective_tax == pytest.approx(900)
        assert summary.discount_amount == 500
        assert summary.grand_total == pytest.approx(8400)

    def test_manual_mode_uses_entered_tax(self, lines):
        summary = pricing.price(lines, TaxMode.MANUAL, 1000, 500, DiscountType.AMOUNT)
        assert summary.auto_tax == pytest.approx(900)
        assert summary.effective_tax == 1000
        assert summary.grand_total == pytest.approx(8500)

    def test_percent_discount(self, lines):
        summary = pricing.price(lines, TaxMode.AUTO, 0, 10, DiscountType.PERCENT)
        assert summary.discount_amount == pytest.approx(800)
        assert summary.grand_total == pytest.approx(8100)

    def test_repeat_pricing_is_identical(self, lines):
        first = pricing.price(lines, TaxMode.AUTO, 0, 500, "amount")
        second = pricing.price(lines, TaxMode.AUTO, 0, 500, "amount")
        assert first == second

    def test_mode_round_trip_restores_auto_tax(self, lines):
        auto = pricing.price(lines, TaxMode.AUTO)
        pricing.price(lines, TaxMode.MANUAL, 1234)
        back = pricing.price(lines, TaxMode.AUTO, 1234)
        assert back.effective_tax == auto.effective_tax

    def test_negative_total_not_clamped(self, lines):
        summary = pricing.price(lines, TaxMode.AUTO, 0, 20000, DiscountType.AMOUNT)
        assert summary.grand_total == pytest.approx(-11100)

    def test_non_numeric_modifiers_count_as_zero(self, lines):
        summary = pricing.price(lines, "manual", "lots", "some", "amount")
        assert summary.effective_tax == 0
        assert summary.discount_amount == 0
        assert summary.grand_total == 8000

    def test_empty_estimate(self):
        summary = pricing.price([])
        assert summary.subtotal == 0
        assert summary.grand_total == 0

    def test_tax_breakdown_grouped_by_rate(self, lines):
        breakdown = pricing.tax_breakdown(lines + [_line(item_id="i3", volume=1, rate=100, gst_rate=18)])
        assert breakdown[18] == pytest.approx(918)
        assert breakdown[0] == 0
