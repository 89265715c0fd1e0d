"""
Totals calculator for quotes and invoices.

Pure functions only: no model imports, no database access, so models can
call it from ``recalc_totals()`` and tests can exercise it without a
database.

    subtotal      = Σ quantity × unit_price   (items with both > 0)
    discount      = subtotal × discount% / 100
    taxable_base  = subtotal − discount
    tax           = taxable_base × tax% / 100
    total         = taxable_base + tax

Amounts keep full Decimal precision. Rounding to cents only happens in
``money_display()``.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, List, NamedTuple

from django.core.exceptions import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
# Matches the 8 decimal places of the money columns
STORAGE_EXP = Decimal("0.00000001")

# (max_digits, decimal_places) of the line and money columns
QUANTITY_DIGITS = (14, 4)
UNIT_PRICE_DIGITS = (18, 4)
MONEY_DIGITS = (24, 8)


class LineItemData(NamedTuple):
    description: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price


class Totals(NamedTuple):
    subtotal: Decimal
    discount_amount: Decimal
    taxable_base: Decimal
    tax_amount: Decimal
    total: Decimal


def to_decimal(value, label="value") -> Decimal:
    """Parse numbers coming from JSON / forms without going through float."""
    if isinstance(value, Decimal):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{label} is required")
    try:
        # str() first so 0.1 stays 0.1 instead of its binary approximation
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{label} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{label} must be a number")
    return result


def validate_percent(value, label="percent") -> Decimal:
    """Reject percentages outside [0, 100]; the calculator doesn't clamp."""
    if value is None or value == "":
        return ZERO
    pct = to_decimal(value, label)
    if pct < ZERO or pct > HUNDRED:
        raise ValidationError(f"{label} must be between 0 and 100")
    return pct


def is_billable(item: LineItemData) -> bool:
    return item.quantity > ZERO and item.unit_price > ZERO


def compute_totals(items: Iterable[LineItemData], discount_percent,
                   tax_rate_percent) -> Totals:
    discount_percent = to_decimal(discount_percent, "discount")
    tax_rate_percent = to_decimal(tax_rate_percent, "tax rate")

    subtotal = sum((i.total for i in items if is_billable(i)), ZERO)
    discount_amount = subtotal * discount_percent / HUNDRED
    taxable_base = subtotal - discount_amount
    tax_amount = taxable_base * tax_rate_percent / HUNDRED
    total = taxable_base + tax_amount
    return Totals(subtotal, discount_amount, taxable_base, tax_amount, total)


def _raw(row, key, alt=None):
    if isinstance(row, dict):
        if key in row:
            return row[key]
        return row.get(alt) if alt else None
    return getattr(row, key, None)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def check_digits(value: Decimal, limits, label="value") -> Decimal:
    """
    Reject values the column can't hold, else return the value at the
    column's scale.

    ``limits`` is the column's ``(max_digits, decimal_places)``. Trailing
    zeros don't count, so ``"1.50000"`` fits a 4-place column.
    """
    max_digits, places = limits
    if value.is_zero():
        return value
    normalized = value.normalize()
    whole = max(normalized.adjusted() + 1, 0)
    if whole > max_digits - places:
        raise ValidationError(
            f"{label} is too large (at most {max_digits - places} digits "
            f"before the decimal point)")
    if -normalized.as_tuple().exponent > places:
        raise ValidationError(
            f"{label} allows at most {places} decimal places")
    return value.quantize(Decimal(1).scaleb(-places))


def clean_line_items(raw_items) -> List[LineItemData]:
    """
    Turn submitted rows (dicts or LineItemData) into billable items.

    Placeholder rows (no description, or quantity / price left empty or 0)
    are dropped the way the editor drops unfinished rows. Negative or
    non-numeric values are malformed input and raise. A document must keep
    at least one billable row.
    """
    if raw_items is None:
        raw_items = []
    if isinstance(raw_items, (str, bytes, dict)):
        raise ValidationError("Items must be a list")

    items = []
    for position, row in enumerate(raw_items, start=1):
        description = _raw(row, "description")
        raw_qty = _raw(row, "quantity")
        raw_price = _raw(row, "unit_price", "unitPrice")

        quantity = ZERO if _is_blank(raw_qty) else to_decimal(
            raw_qty, f"Item {position} quantity")
        unit_price = ZERO if _is_blank(raw_price) else to_decimal(
            raw_price, f"Item {position} unit price")

        if quantity < ZERO:
            raise ValidationError(
                f"Item {position} quantity must be greater than 0")
        if unit_price < ZERO:
            raise ValidationError(
                f"Item {position} unit price must be greater than 0")

        description = (description or "").strip()
        if not description or quantity == ZERO or unit_price == ZERO:
            continue
        quantity = check_digits(
            quantity, QUANTITY_DIGITS, f"Item {position} quantity")
        unit_price = check_digits(
            unit_price, UNIT_PRICE_DIGITS, f"Item {position} unit price")
        # the line total lands in a money column too
        try:
            to_storage(quantity * unit_price)
        except ValidationError:
            raise ValidationError(f"Item {position} total is too large")
        items.append(LineItemData(description, quantity, unit_price))

    if not items:
        raise ValidationError(
            "At least one line item with quantity and unit price "
            "greater than 0 is required")
    return items


def to_storage(value: Decimal) -> Decimal:
    """Fit a computed amount into the money columns."""
    try:
        stored = Decimal(value).quantize(STORAGE_EXP, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the decimal context can quantize
        raise ValidationError("Amount is too large")
    return check_digits(stored, MONEY_DIGITS, "Amount")


def money_display(value) -> Decimal:
    """Presentation rounding (2 places, half up)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
