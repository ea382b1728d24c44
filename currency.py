import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from babel import UnknownLocaleError
from babel.numbers import format_currency as _babel_format_currency


def _finite_or_zero(amount) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def to_minor_units(amount) -> int:
    """Rupees (or any major unit) to paise, rounded half-up."""
    value = _finite_or_zero(amount)
    try:
        minor = (Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return 0
    return int(minor)


def to_major_units(minor: int) -> float:
    return minor / 100


def format_currency(amount, locale: str = "en_IN", currency: str = "INR") -> str:
    """Locale-aware money string; an unknown locale gets plain ``INR 1,234.50``."""
    value = _finite_or_zero(amount)
    try:
        return _babel_format_currency(
            value,
            currency,
            locale=locale.replace("-", "_"),
            format_type="standard",
        )
    except (UnknownLocaleError, ValueError):
        return f"{currency} {value:,.2f}"
