from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union


def to_cents(value: Union[Decimal, int, float, str]) -> int:
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    return cents / 100


def percentage(part_cents: int, whole_cents: int) -> float:
    """Share of ``part_cents`` in ``whole_cents`` as a percentage, rounded to 2 places."""
    if whole_cents <= 0:
        return 0.0
    return round(part_cents / whole_cents * 100, 2)
