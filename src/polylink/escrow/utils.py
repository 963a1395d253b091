"""USDC amounts, basis points and escrow constants."""

from decimal import ROUND_DOWN, Decimal
from typing import Union

from .types import FeeSplit

USDC_POLYGON = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
ESCROW_CONTRACT_POLYGON = "0x989876083eD929BE583b8138e40D469ea3E53a37"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

USDC_DECIMALS = 6
BPS_DENOMINATOR = 10_000

_USDC_UNIT = Decimal(10) ** USDC_DECIMALS


def format_usdc(amount: int) -> str:
    """Render base units as a plain decimal string, e.g. 1_500_000 -> "1.5"."""
    return f"{(Decimal(amount) / _USDC_UNIT).normalize():f}"


def parse_usdc(amount: Union[int, float, str, Decimal]) -> int:
    """Convert a human amount to USDC base units, rounding down.

    Floats go through ``str`` first so 0.01 becomes 10_000 rather than 9_999.
    """
    value = Decimal(str(amount)) * _USDC_UNIT
    return int(value.to_integral_value(rounding=ROUND_DOWN))


def format_bps(bps: int) -> str:
    return f"{bps / 100}%"


def calculate_fee(order_size: int, fee_bps: int) -> int:
    """Calculate fee amount from order size and basis points.

    Args:
        order_size: Amount in USDC base units
        fee_bps: Fee in basis points (25 = 0.25%)

    Returns:
        Fee in USDC base units, rounded down

    Raises:
        ValueError: If fee_bps is negative
    """
    if fee_bps < 0:
        raise ValueError(f"Invalid fee_bps: {fee_bps}")
    return (order_size * fee_bps) // BPS_DENOMINATOR


def calculate_fee_split(amount: int, dome_fee_bps: int, affiliate_fee_bps: int = 0) -> FeeSplit:
    """Split a fee between Dome and an affiliate.

    Each share is taken from the same base amount and rounded down on its
    own, so the total can be one unit below ``calculate_fee`` of the summed
    rates.
    """
    return FeeSplit(
        dome_amount=calculate_fee(amount, dome_fee_bps),
        affiliate_amount=calculate_fee(amount, affiliate_fee_bps),
    )


def calculate_order_size_usdc(size: float, price: float) -> int:
    """USDC notional of ``size`` shares at ``price``, in base units.

    This is what a BUY pays and what a SELL receives.
    """
    return parse_usdc(Decimal(str(size)) * Decimal(str(price)))
