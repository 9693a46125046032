"""Protocol fee and vendor swap estimates in exact integer arithmetic."""

from dataclasses import dataclass

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class FeeBreakdown:
    fee: int
    net: int


@dataclass(frozen=True)
class BuyEstimate:
    """Spend base token, receive swap token."""
    fee: int
    net_base: int
    out_swap: int


@dataclass(frozen=True)
class SellEstimate:
    """Spend swap token, receive base token."""
    fee: int
    net_swap: int
    out_base: int


def _check_inputs(amount: int, fee_bps: int) -> None:
    if amount < 0:
        raise ValueError("amount must be non-negative")
    if not 0 <= fee_bps <= BPS_DENOMINATOR:
        raise ValueError(f"fee basis points must be between 0 and {BPS_DENOMINATOR}")


def calculate_fee(amount: int, fee_bps: int) -> FeeBreakdown:
    """
    Split an amount into protocol fee and net.

    Args:
        amount: Amount in smallest token units
        fee_bps: Fee in basis points (100 = 1%)

    Returns:
        FeeBreakdown where fee = floor(amount * fee_bps / 10000)
    """
    _check_inputs(amount, fee_bps)
    fee = amount * fee_bps // BPS_DENOMINATOR
    return FeeBreakdown(fee=fee, net=amount - fee)


def estimate_buy(amount_in: int, fee_bps: int, rate: int) -> BuyEstimate:
    if rate <= 0:
        raise ValueError("rate must be positive")
    breakdown = calculate_fee(amount_in, fee_bps)
    return BuyEstimate(
        fee=breakdown.fee,
        net_base=breakdown.net,
        out_swap=breakdown.net * rate,
    )


def estimate_sell(amount_in: int, fee_bps: int, rate: int) -> SellEstimate:
    # Rate is an integer divisor; callers scale it to the token decimals.
    if rate <= 0:
        raise ValueError("rate must be positive")
    breakdown = calculate_fee(amount_in, fee_bps)
    return SellEstimate(
        fee=breakdown.fee,
        net_swap=breakdown.net,
        out_base=breakdown.net // rate,
    )
