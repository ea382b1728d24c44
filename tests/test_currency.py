import math

import pytest

from currency import format_currency, to_major_units, to_minor_units


def test_to_minor_units_rounds_to_nearest_paisa():
    assert to_minor_units(12.34) == 1234
    assert to_minor_units(0.1 + 0.2) == 30
    assert to_minor_units(19.999) == 2000
    assert to_minor_units(1000) == 100000


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf, None, "abc"])
def test_to_minor_units_treats_unusable_input_as_zero(value):
    assert to_minor_units(value) == 0


def test_to_major_units_divides_by_hundred():
    assert to_major_units(1234) == 12.34
    assert to_major_units(0) == 0


@pytest.mark.parametrize("amount", [0, 0.01, 1, 5.5, 12.34, 99.99, 1234567.89])
def test_minor_major_are_inverse_at_two_decimals(amount):
    assert to_major_units(to_minor_units(amount)) == round(amount, 2)


def test_format_currency_uses_indian_grouping_by_default():
    assert format_currency(1234.5) == "₹1,234.50"
    assert format_currency(100000) == "₹1,00,000.00"


def test_format_currency_accepts_bcp47_locale():
    assert format_currency(10, "en-US", "USD") == "$10.00"


def test_format_currency_treats_non_finite_as_zero():
    assert format_currency(math.nan) == "₹0.00"
    assert format_currency(math.inf) == "₹0.00"


def test_format_currency_unknown_locale_falls_back_to_plain_digits():
    assert format_currency(1234.5, "zz_ZZ") == "INR 1,234.50"
    assert format_currency(7, "qq-QQ", "USD") == "USD 7.00"
