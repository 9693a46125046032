"""Lossless conversion between human decimal strings and integer token units.

Amounts are scaled by shifting digits in their string form, so values with
18 or more decimals never lose precision to binary floating point.
"""

import re
from typing import Optional

_DECIMAL_RE = re.compile(r"^([0-9]*)(?:\.([0-9]*))?$")


def parse_amount(value: Optional[str], decimals: int) -> Optional[int]:
    """
    Parse a human-readable decimal string into smallest token units.

    Args:
        value: Decimal string such as "1.5" or ".25"
        decimals: Token decimals (18 for DG/ETH, 6 for USDC)

    Returns:
        Integer amount, or None if the string is malformed or carries more
        fractional digits than the token supports
    """
    if value is None or decimals < 0:
        return None

    text = value.strip()
    match = _DECIMAL_RE.match(text)
    if not match:
        return None

    whole, fraction = match.group(1), match.group(2) or ""
    if not whole and not fraction:
        return None
    if len(fraction) > decimals:
        return None

    digits = (whole or "0") + fraction.ljust(decimals, "0")
    return int(digits)


def _split(amount: int, decimals: int) -> tuple:
    if amount < 0:
        raise ValueError("amount must be non-negative")
    digits = str(amount).rjust(decimals + 1, "0")
    if decimals == 0:
        return digits, ""
    return digits[:-decimals], digits[-decimals:]


def format_amount(amount: int, decimals: int, display_decimals: int = 4) -> str:
    """Render an amount truncated (never rounded up) to ``display_decimals``."""
    whole, fraction = _split(amount, decimals)
    fraction = fraction[:display_decimals].rstrip("0")
    return f"{whole}.{fraction}" if fraction else whole


def format_amount_for_input(amount: int, decimals: int) -> str:
    """Render an amount at full precision for round-tripping into an input."""
    whole, fraction = _split(amount, decimals)
    fraction = fraction.rstrip("0")
    return f"{whole}.{fraction}" if fraction else whole
