"""Integer fixed-point helpers (RAY math and decimal rescaling).

Mirrors the WadRayMath library used by Aave: products and quotients are
rounded half-up so that repeated scale/unscale cycles stay within one unit.
"""

from decimal import Decimal

from src.data.constants import HALF_RAY, RAY


def ray_mul(a: int, b: int) -> int:
    """Multiply two RAY values, rounding half-up."""
    if a == 0 or b == 0:
        return 0
    return (a * b + HALF_RAY) // RAY


def ray_div(a: int, b: int) -> int:
    """Divide two RAY values, rounding half-up."""
    if b == 0:
        raise ZeroDivisionError("ray_div by zero")
    return (a * RAY + b // 2) // b


def rescale(amount: int, from_decimals: int, to_decimals: int) -> int:
    """Move an integer amount between decimal precisions (floors when shrinking)."""
    if from_decimals == to_decimals:
        return amount
    if to_decimals > from_decimals:
        return amount * 10 ** (to_decimals - from_decimals)
    return amount // 10 ** (from_decimals - to_decimals)


def to_ray(value: float) -> int:
    """Convert a decimal fraction (e.g. 1.5 for 150%) to RAY.

    Goes through the shortest string representation so that values like 0.05
    map to exactly ``5 * 10**25`` instead of the nearest binary float.
    """
    return int(Decimal(str(value)) * RAY)


def from_ray(value: int) -> float:
    """Convert a RAY value to a float (display only)."""
    return value / float(RAY)
