from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from billing_core.services.totals import (LineItemData, clean_line_items,
                                          compute_totals, money_display,
                                          to_decimal, to_storage,
                                          validate_percent)


def D(value):
    return Decimal(value)


class ComputeTotalsTests(SimpleTestCase):
    def setUp(self):
        self.items = [
            LineItemData("Labour", D("2"), D("50")),
            LineItemData("Parts", D("1"), D("25")),
        ]

    def test_discount_then_tax(self):
        totals = compute_totals(self.items, "10", "11.5")
        self.assertEqual(totals.subtotal, D("125"))
        self.assertEqual(totals.discount_amount, D("12.5"))
        self.assertEqual(totals.taxable_base, D("112.5"))
        self.assertEqual(totals.tax_amount, D("12.9375"))
        # full precision is kept, rounding only on display
        self.assertEqual(totals.total, D("125.4375"))
        self.assertEqual(money_display(totals.total), D("125.44"))

    def test_same_input_same_output(self):
        first = compute_totals(self.items, 10, "11.5")
        second = compute_totals(list(self.items), 10, "11.5")
        self.assertEqual(first, second)

    def test_non_billable_items_are_ignored(self):
        items = self.items + [
            LineItemData("Free", D("3"), D("0")),
            LineItemData("Nothing", D("0"), D("40")),
        ]
        self.assertEqual(compute_totals(items, 0, 0).subtotal, D("125"))

    def test_no_items_gives_zero(self):
        totals = compute_totals([], 0, 16)
        self.assertEqual(totals.total, D("0"))

    def test_full_discount(self):
        totals = compute_totals(self.items, 100, 16)
        self.assertEqual(totals.taxable_base, D("0"))
        self.assertEqual(totals.total, D("0"))

    def test_money_display_rounds_half_up(self):
        self.assertEqual(money_display(D("2.005")), D("2.01"))
        self.assertEqual(money_display(D("2.004")), D("2.00"))


class CleanLineItemsTests(SimpleTestCase):
    def test_placeholder_rows_are_dropped(self):
        items = clean_line_items([
            {"description": "Install", "quantity": "2", "unit_price": "10"},
            {"description": "", "quantity": "1", "unit_price": "5"},
            {"description": "Blank qty", "quantity": "", "unit_price": "5"},
            {"description": "Zero price", "quantity": 1, "unit_price": 0},
        ])
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].total, D("20"))

    def test_accepts_unit_price_alias(self):
        items = clean_line_items(
            [{"description": "Cable", "quantity": 3, "unitPrice": "1.10"}])
        self.assertEqual(items[0].unit_price, D("1.10"))
        self.assertEqual(items[0].total, D("3.30"))

    def test_negative_values_raise(self):
        with self.assertRaises(ValidationError):
            clean_line_items(
                [{"description": "Refund", "quantity": 1, "unit_price": "-5"}])
        with self.assertRaises(ValidationError):
            clean_line_items(
                [{"description": "Refund", "quantity": "-1", "unit_price": 5}])

    def test_non_numeric_raises(self):
        with self.assertRaises(ValidationError):
            clean_line_items(
                [{"description": "Cable", "quantity": "two", "unit_price": 5}])

    def test_only_placeholders_raises(self):
        with self.assertRaises(ValidationError):
            clean_line_items([{"description": "", "quantity": 0}])
        with self.assertRaises(ValidationError):
            clean_line_items([])

    def test_items_must_be_a_list(self):
        with self.assertRaises(ValidationError):
            clean_line_items({"description": "x", "quantity": 1,
                              "unit_price": 1})

    def test_values_beyond_column_size_raise(self):
        for row in (
            {"description": "Bulk", "quantity": "1e20", "unit_price": "1e10"},
            {"description": "Bulk", "quantity": "12345678901", "unit_price": 1},
            {"description": "Bulk", "quantity": 1, "unit_price": "1e15"},
            {"description": "Bulk", "quantity": "1.00001", "unit_price": 1},
            # each value fits, the product does not
            {"description": "Bulk", "quantity": "9999999999",
             "unit_price": "99999999999999"},
        ):
            with self.assertRaises(ValidationError):
                clean_line_items([row])

    def test_trailing_zeros_fit_the_column(self):
        items = clean_line_items(
            [{"description": "Cable", "quantity": "1.50000", "unit_price": 2}])
        self.assertEqual(items[0].quantity, D("1.5"))
        self.assertEqual(items[0].quantity.as_tuple().exponent, -4)


class PercentAndDecimalTests(SimpleTestCase):
    def test_percent_bounds(self):
        self.assertEqual(validate_percent(""), D("0"))
        self.assertEqual(validate_percent("100"), D("100"))
        for bad in ("-1", "100.01", "abc"):
            with self.assertRaises(ValidationError):
                validate_percent(bad)

    def test_float_input_is_parsed_from_text(self):
        self.assertEqual(to_decimal(0.1), D("0.1"))

    def test_missing_value_raises(self):
        with self.assertRaises(ValidationError):
            to_decimal(None, "Amount")
        with self.assertRaises(ValidationError):
            to_decimal("NaN", "Amount")

    def test_storage_rejects_overflowing_amounts(self):
        self.assertEqual(to_storage(D("1.123456789")), D("1.12345679"))
        with self.assertRaises(ValidationError):
            to_storage(D("1e20") * D("1e10"))
        with self.assertRaises(ValidationError):
            to_storage(D("12345678901234567"))
