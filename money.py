import re
from decimal import ROUND_HALF_UP, Decimal

from errors import InvalidAmount

_DIGITS = re.compile(r"[0-9]+")
_FRACTION = re.compile(r"[0-9]{0,2}")

# amounts are stored in a signed 64-bit INTEGER column
MAX_CENTS = 2**63 - 1


def parse_amount(value: str) -> int:
    """Parse a user-entered amount like ``12,5`` or ``12.50`` into cents.

    Amounts are unsigned magnitudes: a leading minus is rejected, as are
    more than one decimal separator and more than two fractional digits.
    A single leading plus is accepted.
    """
    clean = (value or "").strip()
    if not clean:
        raise InvalidAmount("Amount is required")
    if clean.startswith("-"):
        raise InvalidAmount("Amount must not be negative")
    parts = clean.removeprefix("+").replace(",", ".").split(".")
    if len(parts) > 2:
        raise InvalidAmount("Amount has more than one decimal separator")
    whole = parts[0]
    fraction = parts[1] if len(parts) == 2 else ""
    if not _DIGITS.fullmatch(whole):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if not _FRACTION.fullmatch(fraction):
        raise InvalidAmount("Amount allows at most two decimal places")
    cents = int(whole) * 100 + int(fraction.ljust(2, "0"))
    if cents > MAX_CENTS:
        raise InvalidAmount("Amount is too large")
    return cents


def format_amount(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"


def percent_of(part: int, total: int) -> int:
    if total == 0:
        return 0
    ratio = Decimal(part) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
