# billing/calculation.py
"""
Document totals.

All amounts are ``Decimal`` rounded half-up to two places at every step, so
a document re-computed from the same inputs always carries identical values.

    subtotal        Σ quantity × unit price     (or the deal's manual value)
    item_discount   Σ line discounts
    total_discount  item_discount + global_discount
    after_discount  subtotal - total_discount   (never clamped at zero)
    vat_amount      after_discount × vat_rate / 100
    grand_total     after_discount + vat_amount
    wht_amount      after_discount × wht_rate / 100   (pre-VAT base)
    net_total       grand_total - wht_amount
"""
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

CENT = Decimal("0.01")
DECIMAL_ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

DEFAULT_VAT_RATE = Decimal("7")
DEFAULT_WHT_RATE = Decimal("0")


def to_decimal(value) -> Decimal:
    """
    Coerce int / float / str / Decimal / None into a Decimal.
    Floats go through str() so 0.1 stays 0.1.
    """
    if value is None or value == "":
        return DECIMAL_ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    quantity: int
    unit_price: Decimal
    line_discount: Decimal = DECIMAL_ZERO

    @property
    def gross(self) -> Decimal:
        return money(to_decimal(self.quantity) * to_decimal(self.unit_price))

    @property
    def amount(self) -> Decimal:
        return money(self.gross - to_decimal(self.line_discount))


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    item_discount: Decimal
    global_discount: Decimal
    total_discount: Decimal
    after_discount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    grand_total: Decimal
    wht_rate: Decimal
    wht_amount: Decimal
    net_total: Decimal

    def as_model_fields(self) -> dict:
        """
        Column name → value, matching the totals columns on Invoice.
        """
        return asdict(self)


def compute_totals(
    items: Iterable[LineItem],
    global_discount=DECIMAL_ZERO,
    vat_rate=DEFAULT_VAT_RATE,
    wht_rate=DEFAULT_WHT_RATE,
    manual_subtotal: Optional[Decimal] = None,
) -> DocumentTotals:
    """
    Derive document totals from line items and rate parameters.

    With no items, ``manual_subtotal`` (a deal typed in without line items)
    becomes the subtotal. Pure: no I/O, never raises for numeric input.
    """
    items = list(items or [])

    if items:
        subtotal = sum((item.gross for item in items), DECIMAL_ZERO)
        item_discount = sum((to_decimal(item.line_discount) for item in items), DECIMAL_ZERO)
    elif manual_subtotal is not None:
        subtotal = to_decimal(manual_subtotal)
        item_discount = DECIMAL_ZERO
    else:
        subtotal = DECIMAL_ZERO
        item_discount = DECIMAL_ZERO

    subtotal = money(subtotal)
    item_discount = money(item_discount)
    global_discount = money(global_discount)
    vat_rate = money(vat_rate)
    wht_rate = money(wht_rate)

    total_discount = money(item_discount + global_discount)
    after_discount = money(subtotal - total_discount)

    vat_amount = money(after_discount * vat_rate / HUNDRED)
    grand_total = money(after_discount + vat_amount)

    wht_amount = money(after_discount * wht_rate / HUNDRED)
    net_total = money(grand_total - wht_amount)

    return DocumentTotals(
        subtotal=subtotal,
        item_discount=item_discount,
        global_discount=global_discount,
        total_discount=total_discount,
        after_discount=after_discount,
        vat_rate=vat_rate,
        vat_amount=vat_amount,
        grand_total=grand_total,
        wht_rate=wht_rate,
        wht_amount=wht_amount,
        net_total=net_total,
    )
