from decimal import Decimal

import pytest

from giving.checkout import amount
from giving.checkout.errors import InvalidAmount


@pytest.mark.parametrize("raw, expected", [
    ("25", Decimal("25")),
    ("$25.00", Decimal("25.00")),
    ("$1,250.50", Decimal("1250.50")),
    (" 10.5 USD", Decimal("10.5")),
    ("1.2.3", Decimal("1.2")),
    (".75", Decimal(".75")),
    (10.1, Decimal("10.1")),
])
def test_parse_amount_strips_currency_text(raw, expected):
    assert amount.parse_amount(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    (1e-05, Decimal("0.00001")),
    (1e16, Decimal("1E+16")),
    (Decimal("1E+2"), Decimal("100")),
    (25, Decimal("25")),
    (Decimal("10.50"), Decimal("10.50")),
])
def test_parse_amount_numbers_are_not_stripped_as_text(raw, expected):
    assert amount.parse_amount(raw) == expected


@pytest.mark.parametrize("raw", [1e-05, Decimal("1E-3"), -25, 0])
def test_validate_rejects_small_numbers_in_any_notation(raw):
    with pytest.raises(InvalidAmount):
        amount.validate(raw)


def test_scientific_notation_total():
    assert amount.to_cents(amount.validate(Decimal("1E+2"))) == 10000


@pytest.mark.parametrize("raw", ["", None, "abc", ".", "$", float("nan"), float("inf"), Decimal("NaN"), True])
def test_parse_amount_unusable_input(raw):
    assert amount.parse_amount(raw) is None


@pytest.mark.parametrize("raw", ["0", "0.99", "abc", "", ".5", float("inf")])
def test_validate_rejects_below_minimum_or_unparseable(raw):
    with pytest.raises(InvalidAmount) as exc:
        amount.validate(raw)
    assert exc.value.code == "invalid_amount"
    assert amount.is_valid(raw) is False


def test_validate_accepts_minimum():
    assert amount.validate("1.00") == Decimal("1.00")
    assert amount.is_valid("$1") is True


def test_to_cents_rounds_half_up():
    assert amount.to_cents(Decimal("10.005")) == 1001
    assert amount.to_cents(Decimal("10.004")) == 1000
    assert amount.to_cents("25") == 2500


@pytest.mark.parametrize("base, fee", [
    ("10.00", 59),
    ("25.00", 103),
    ("50.00", 175),
    ("100.00", 320),
    ("1.00", 33),
])
def test_compute_fee_documented_formula(base, fee):
    assert amount.compute_fee(Decimal(base)) == fee


def test_compute_total_without_fees_is_base():
    total = amount.compute_total(Decimal("25.00"), cover_fees=False)
    assert total.base_cents == 2500
    assert total.fee_cents == 0
    assert total.total_cents == 2500


def test_compute_total_with_fees():
    # 25 * 0.029 + 0.30 = 1.025 -> 103 centimes
    total = amount.compute_total(Decimal("25.00"), cover_fees=True)
    assert total.fee_cents == 103
    assert total.total_cents == 2603

    total = amount.compute_total(Decimal("10.00"), cover_fees=True)
    assert (total.fee_cents, total.total_cents) == (59, 1059)


def test_format_usd():
    assert amount.format_usd(2603) == "$26.03"
    assert amount.format_usd(102550) == "$1,025.50"
    assert amount.format_usd(5) == "$0.05"
