"""Fixed-point money helpers.

All arithmetic runs on ``Decimal`` at full precision; only published fields
are quantized to two places, rounding half-up.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

MoneyLike = Union[Decimal, int, str]


def quantize(value: Decimal) -> Decimal:
    """Round a decimal to cents, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_money(value: MoneyLike) -> Decimal:
    """Convert a wire or config value into a Decimal.

    Floats are refused: a binary float has already lost the cents.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"money must be a decimal string or int, got {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"not a decimal amount: {value!r}") from e
    else:
        raise TypeError(f"money must be a decimal string or int, got {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"not a finite amount: {value!r}")
    return result


def format_money(value: Decimal) -> str:
    """Render a decimal the way the wire carries it: two places, no exponent."""
    return f"{quantize(value):f}"
