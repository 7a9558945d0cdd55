"""Fixed-point helpers for values persisted or sent to the venue (8 decimals)."""
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

EIGHT_PLACES = Decimal("0.00000001")
MIN_PRICE = 0.00000001


def round8(value: float) -> float:
    return float(Decimal(str(value)).quantize(EIGHT_PLACES, rounding=ROUND_HALF_UP))


def format8(value: float, round_down: bool = False) -> str:
    """Render a quantity/price as the plain decimal string the venue expects."""
    rounding = ROUND_DOWN if round_down else ROUND_HALF_UP
    return format(Decimal(str(value)).quantize(EIGHT_PLACES, rounding=rounding), "f")
