import pytest

from optirx.models.schema import ContactLensItem, LineItem
from optirx.services.billing import (
    ESTIMATE_GROSS,
    ESTIMATE_NET,
    add_line_item,
    apply_global_discount,
    apply_item_discount,
    delete_line_item,
    renumber_items,
    summarize_payment,
    total_advance,
    update_line_item,
)


def order_items():
    items = add_line_item([], "Frame", 100)
    return add_line_item(items, "Lens", 150, qty=2)


class TestGlobalDiscount:

    def test_percentage_is_proportional(self):
        outcome = apply_global_discount(order_items(), "10", "percentage")
        assert outcome.applied
        assert [i.discount_amount for i in outcome.items] == [10.0, 30.0]
        assert sum(i.amount for i in outcome.items) == pytest.approx(360.0)
        assert outcome.payment_estimate == 360.0
        assert outcome.discount_amount == 40.0
        assert outcome.message == "Successfully applied 10% discount"

    def test_item_percent_matches_bill_percent(self):
        outcome = apply_global_discount(order_items(), 10, "percentage")
        assert [i.discount_percent for i in outcome.items] == [10.0, 10.0]

    def test_fixed_is_capped_at_total(self):
        items = add_line_item([], "Frame", 400)
        outcome = apply_global_discount(items, 500, "fixed")
        assert outcome.items[0].discount_amount == 400.0
        assert outcome.items[0].amount == 0.0
        assert outcome.discount_amount == 400.0
        assert outcome.payment_estimate == 0.0

    def test_fixed_rounds_to_cents(self):
        items = add_line_item(add_line_item(add_line_item([], "A", 100), "B", 100), "C", 100)
        outcome = apply_global_discount(items, 100, "fixed")
        assert [i.discount_amount for i in outcome.items] == [33.33, 33.33, 33.33]

    @pytest.mark.parametrize("value", ["0", "-5", "abc", "", None])
    def test_invalid_value_rejected(self, value):
        items = order_items()
        outcome = apply_global_discount(items, value, "percentage")
        assert not outcome.applied
        assert outcome.message == "Please enter a valid discount value (greater than 0)"
        assert outcome.items == items

    def test_no_items_rejected(self):
        outcome = apply_global_discount([], 10, "percentage")
        assert not outcome.applied
        assert outcome.message == "No items to apply discount to"

    @pytest.mark.parametrize("discount_type", ["percent", "", "FIXED"])
    def test_unknown_type_rejected(self, discount_type):
        items = order_items()
        outcome = apply_global_discount(items, 10, discount_type)
        assert not outcome.applied
        assert outcome.message == f"Unknown discount type '{discount_type}'"
        assert outcome.items == items
        assert outcome.discount_amount == 0.0

    def test_zero_total_item_gets_no_discount(self):
        items = add_line_item(add_line_item([], "Case", 0), "Frame", 100)
        outcome = apply_global_discount(items, 10, "fixed")
        assert outcome.items[0].discount_amount == 0.0
        assert outcome.items[0].discount_percent == 0.0
        assert outcome.items[1].discount_amount == 10.0

    def test_contact_lens_items_keep_their_type(self):
        items = add_line_item([], "Monthly", 1200, item_cls=ContactLensItem, bc="8.6", side="Right")
        outcome = apply_global_discount(items, 10, "percentage")
        assert isinstance(outcome.items[0], ContactLensItem)
        assert outcome.items[0].bc == "8.6"
        assert outcome.model_dump(by_alias=True)["items"][0]["bc"] == "8.6"


class TestItemDiscount:

    def test_percent_sets_amount(self):
        items = apply_item_discount(order_items(), 1, "25", "percentage")
        assert items[1].discount_amount == 75.0
        assert items[1].amount == 225.0
        assert items[0].discount_amount == 0.0

    def test_percent_clamped(self):
        items = apply_item_discount(order_items(), 0, 150, "percentage")
        assert items[0].discount_percent == 100.0
        assert items[0].discount_amount == 100.0
        assert items[0].amount == 0.0

    def test_amount_sets_percent(self):
        items = apply_item_discount(order_items(), 1, 60, "fixed")
        assert items[1].discount_percent == 20.0
        assert items[1].amount == 240.0

    def test_amount_clamped(self):
        items = apply_item_discount(order_items(), 0, 500, "fixed")
        assert items[0].discount_amount == 100.0
        items = apply_item_discount(order_items(), 0, -5, "fixed")
        assert items[0].discount_amount == 0.0

    def test_zero_total_is_noop(self):
        items = add_line_item([], "Case", 0)
        assert apply_item_discount(items, 0, 10, "percentage") == items

    def test_bad_index(self):
        items = order_items()
        assert apply_item_discount(items, 5, 10, "percentage") == items

    def test_unknown_type_leaves_items(self):
        items = order_items()
        assert apply_item_discount(items, 0, 10, "percent") == items


class TestLineItems:

    def test_add_numbers_items(self):
        items = order_items()
        assert [i.si for i in items] == [1, 2]
        assert items[1].amount == 300.0
        assert items[1].unit == "PCS"

    def test_update_keeps_discount_capped(self):
        items = apply_item_discount(order_items(), 0, 50, "fixed")
        items = update_line_item(items, 0, rate=30)
        assert items[0].discount_amount == 30.0
        assert items[0].discount_percent == 100.0
        assert items[0].amount == 0.0

    def test_update_qty(self):
        items = apply_item_discount(order_items(), 0, 10, "fixed")
        items = update_line_item(items, 0, qty=3)
        assert items[0].discount_amount == 10.0
        assert items[0].amount == 290.0

    def test_delete_renumbers(self):
        items = add_line_item(order_items(), "Case", 50)
        items = delete_line_item(items, 0)
        assert [(i.si, i.item_name) for i in items] == [(1, "Lens"), (2, "Case")]

    def test_renumber(self):
        items = [LineItem(si=7, item_name="A"), LineItem(si=3, item_name="B")]
        assert [i.si for i in renumber_items(items)] == [1, 2]


class TestPaymentSummary:

    def setup_method(self):
        """Order card after a 10% bill discount: totals [100, 300], discounts [10, 30]."""
        self.items = apply_global_discount(order_items(), 10, "percentage").items

    def test_gross_policy(self):
        summary = summarize_payment(self.items, "100", ESTIMATE_GROSS)
        assert summary.payment_estimate == 400.0
        assert summary.sch_amt == 40.0
        assert summary.balance == 260.0

    def test_net_policy(self):
        summary = summarize_payment(self.items, 100, ESTIMATE_NET)
        assert summary.payment_estimate == 360.0
        assert summary.balance == 260.0

    def test_unknown_policy_falls_back(self):
        assert summarize_payment(order_items(), 0, "weird").policy == ESTIMATE_GROSS

    def test_total_advance(self):
        assert total_advance("100", "50.5", "", None) == 150.5
        assert total_advance() == 0.0
