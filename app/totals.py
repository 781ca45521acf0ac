from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, NamedTuple, Tuple, Any

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")


class InvoiceTotals(NamedTuple):
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def to_decimal(value: Any) -> Decimal:
    """Converts user-supplied numbers to Decimal; None, blanks and garbage become 0."""
    try:
        result = Decimal(str(value if value is not None else "0") or "0")
    except (InvalidOperation, ValueError):
        return Decimal("0")
    # NaN / Infinity never make it into money math
    return result if result.is_finite() else Decimal("0")


def _money(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    return _money(to_decimal(quantity) * to_decimal(unit_price))


def calculate_totals(items: Iterable[Tuple[Any, Any]], tax_percent: Any = 0) -> InvoiceTotals:
    """
    Aggregates (quantity, unit_price) pairs into subtotal, tax amount and total.
    tax_amount = subtotal * tax_percent / 100 and total = subtotal + tax_amount,
    all rounded half-up to cents. Tax percent is not clamped.
    """
    subtotal = Decimal("0")
    for quantity, unit_price in items:
        subtotal += to_decimal(quantity) * to_decimal(unit_price)

    subtotal = _money(subtotal)
    tax_amount = _money(subtotal * to_decimal(tax_percent) / HUNDRED)
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)
