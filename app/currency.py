from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

DEFAULT_CURRENCY = "USD"
TWO_PLACES = Decimal("0.01")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "RUB": "₽",
    "AMD": "֏",
}

SUPPORTED_CURRENCIES = tuple(CURRENCY_SYMBOLS)


def normalize_currency_code(currency_code: str | None) -> str:
    """Returns a supported ISO code, falling back to USD for unknown or empty input."""
    code = (currency_code or "").strip().upper()
    return code if code in CURRENCY_SYMBOLS else DEFAULT_CURRENCY


def currency_symbol(currency_code: str | None) -> str:
    return CURRENCY_SYMBOLS[normalize_currency_code(currency_code)]


def _plain_amount(amount) -> str:
    try:
        return f"{float(amount):.2f}"
    except (TypeError, ValueError):
        return "0.00"


def format_currency(amount, currency_code: str | None = DEFAULT_CURRENCY, symbol: str | None = None) -> str:
    """
    Formats an amount as symbol + grouped integer part + two decimals, e.g. "$1,234.50".
    `symbol` replaces the currency's own sign, e.g. "RUB " where "₽" cannot be drawn.
    Amounts that cannot be expressed as money (NaN, infinity, garbage) come back
    as a plain fixed-point string without a symbol.
    """
    if symbol is None:
        symbol = currency_symbol(currency_code)
    try:
        value = Decimal(str(amount)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return _plain_amount(amount)
    if not value.is_finite():
        return _plain_amount(amount)

    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
