from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
# Amount columns are Numeric(12, 2).
MAX_ABS_CENTS = 10**12


def IsFiniteNumber(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return False


def RoundCents(value: Decimal | float | int) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def DollarsToCents(value: Decimal | float | int) -> int:
    return RoundCents(Decimal(str(value)) * 100)


def IsCentsInRange(value: int) -> bool:
    return abs(value) < MAX_ABS_CENTS


def CentsToDollars(value: int) -> Decimal:
    return (Decimal(int(value)) / Decimal(100)).quantize(CENT)


def CentsToAmount(value: int) -> float:
    return float(CentsToDollars(value))
