from __future__ import annotations

from decimal import Decimal

import pytest

from gami_vaults.core.utils.normalize import (
    calculate_percentage_change,
    is_address,
    is_valid_decimal_string,
    normalize_to_string,
    safe_parse_int,
    safe_parse_number,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, "0"),
        (True, "0"),
        ("12.50", "12.50"),
        ("1e5", "0"),
        ("abc", "0"),
        ("", "0"),
        (42, "42"),
        (0.05, "0.05"),
        (2.0, "2"),
        (float("nan"), "0"),
        (float("inf"), "0"),
        (float("-inf"), "0"),
        (Decimal("1.2300"), "1.23"),
        (Decimal("NaN"), "0"),
    ],
)
def test_normalize_to_string(value, expected):
    assert normalize_to_string(value) == expected


def test_normalize_float_never_uses_exponent():
    assert normalize_to_string(1e-7) == "0.0000001"
    assert normalize_to_string(1e21) == "1000000000000000000000"


def test_normalize_fixed_point_int():
    assert normalize_to_string(1_500_000, decimals=6) == "1.5"
    assert normalize_to_string(10**18, decimals=18) == "1"


def test_normalize_large_uint256_is_exact():
    raw = 2**256 - 1
    text = normalize_to_string(raw, decimals=18)
    whole, frac = text.split(".")
    assert int(whole + frac.ljust(18, "0")) == raw


def test_is_valid_decimal_string():
    assert is_valid_decimal_string("0")
    assert is_valid_decimal_string("10.25")
    assert not is_valid_decimal_string("-1")
    assert not is_valid_decimal_string(".5")
    assert not is_valid_decimal_string("1.")
    assert not is_valid_decimal_string(5)


def test_is_address():
    assert is_address("0x" + "ab" * 20)
    assert not is_address("0x" + "ab" * 19)
    assert not is_address("upusdc-vault")
    assert not is_address(None)


def test_safe_parse_number():
    assert safe_parse_number("1.5") == 1.5
    assert safe_parse_number("nope") == 0.0
    assert safe_parse_number(None) == 0.0
    assert safe_parse_number(float("nan")) == 0.0
    assert safe_parse_number("Infinity") == 0.0
    assert safe_parse_number(3) == 3.0


def test_safe_parse_int():
    assert safe_parse_int("123") == 123
    assert safe_parse_int("12.3") == 0
    assert safe_parse_int(None) == 0
    assert safe_parse_int(7) == 7


def test_calculate_percentage_change():
    assert calculate_percentage_change("100", "110") == "10.00"
    assert calculate_percentage_change("100", "50") == "-50.00"
    assert calculate_percentage_change("0", "5") == "100"
    assert calculate_percentage_change("0", "0") == "0"
