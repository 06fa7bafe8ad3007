import pytest

from errors import InvalidAmount
from money import format_amount, parse_amount, percent_of


@pytest.mark.parametrize(
    "text, cents",
    [
        ("12.5", 1250),
        ("12,5", 1250),
        ("12.50", 1250),
        (" 7 ", 700),
        ("0,05", 5),
        ("5.", 500),
        ("1000000", 100_000_000),
        ("+5", 500),
        (" +0,99", 99),
        ("92233720368547758.07", 2**63 - 1),
    ],
)
def test_parse_amount_accepts_unsigned_decimals(text: str, cents: int) -> None:
    assert parse_amount(text) == cents


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "-5",
        "1.2.3",
        "1,2.3",
        "1.234",
        "abc",
        "1.a",
        ".5",
        "++5",
        "+",
        "+-5",
        "92233720368547758.08",
        "99999999999999999999",
    ],
)
def test_parse_amount_rejects_malformed_input(text: str) -> None:
    with pytest.raises(InvalidAmount):
        parse_amount(text)


def test_invalid_amount_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_amount("12.345")


def test_format_amount_pads_and_signs() -> None:
    assert format_amount(0) == "0.00"
    assert format_amount(5) == "0.05"
    assert format_amount(1250) == "12.50"
    assert format_amount(-150) == "-1.50"
    assert format_amount(-5) == "-0.05"


def test_parse_then_format_keeps_value() -> None:
    for text, shown in [("12.5", "12.50"), ("3", "3.00"), ("0,99", "0.99")]:
        assert format_amount(parse_amount(text)) == shown


def test_percent_of_rounds_half_up_and_guards_zero() -> None:
    assert percent_of(500, 0) == 0
    assert percent_of(0, 0) == 0
    assert percent_of(1, 200) == 1
    assert percent_of(1, 3) == 33
    assert percent_of(2, 3) == 67
    assert percent_of(1500, 1000) == 150
