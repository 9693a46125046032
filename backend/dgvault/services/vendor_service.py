"""Buy/sell quotes for the token vendor from user-entered amounts."""

import logging
from dataclasses import dataclass
from enum import Enum

from dgvault.config import settings
from dgvault.core.amounts import format_amount, format_amount_for_input, parse_amount
from dgvault.core.errors import InvalidRequest
from dgvault.core.fees import estimate_buy, estimate_sell

logger = logging.getLogger(__name__)


class QuoteDirection(str, Enum):
    BUY = "buy"  # base token in, swap token out
    SELL = "sell"  # swap token in, base token out


@dataclass(frozen=True)
class VendorQuote:
    direction: QuoteDirection
    amount_in: int
    fee: int
    amount_out: int
    fee_bps: int
    decimals_in: int
    decimals_out: int

    def to_dict(self) -> dict:
        return {
            "success": True,
            "direction": self.direction.value,
            "amountIn": format_amount_for_input(self.amount_in, self.decimals_in),
            "amountInRaw": str(self.amount_in),
            "fee": format_amount(self.fee, self.decimals_in),
            "feeRaw": str(self.fee),
            "amountOut": format_amount(self.amount_out, self.decimals_out),
            "amountOutRaw": str(self.amount_out),
            "feeBps": self.fee_bps,
            "exchangeRate": settings.VENDOR_EXCHANGE_RATE,
        }


def _rescale(amount: int, from_decimals: int, to_decimals: int) -> int:
    if to_decimals >= from_decimals:
        return amount * 10 ** (to_decimals - from_decimals)
    return amount // 10 ** (from_decimals - to_decimals)


class VendorQuoteService:
    """Quotes vendor trades using the configured fees, rate and minimums."""

    def __init__(self):
        self.buy_fee_bps = settings.VENDOR_BUY_FEE_BPS
        self.sell_fee_bps = settings.VENDOR_SELL_FEE_BPS
        self.rate = settings.VENDOR_EXCHANGE_RATE
        self.base_decimals = settings.VENDOR_BASE_TOKEN_DECIMALS
        self.swap_decimals = settings.VENDOR_SWAP_TOKEN_DECIMALS

    def _parse(self, value: str, decimals: int, minimum: str) -> int:
        amount = parse_amount(value, decimals)
        if amount is None:
            raise InvalidRequest(f"Invalid amount: {value!r}")
        if amount == 0:
            raise InvalidRequest("Amount must be greater than 0")

        min_amount = parse_amount(minimum, decimals) or 0
        if amount < min_amount:
            raise InvalidRequest(f"Minimum amount is {minimum}")
        return amount

    def quote(self, direction: QuoteDirection, amount: str) -> VendorQuote:
        """
        Quote a trade for a human-readable input amount.

        Args:
            direction: buy (base in) or sell (swap token in)
            amount: Decimal string as typed by the user

        Returns:
            VendorQuote in smallest units of the input and output tokens

        Raises:
            InvalidRequest: On malformed, zero or below-minimum input
        """
        if direction is QuoteDirection.BUY:
            amount_in = self._parse(amount, self.base_decimals, settings.VENDOR_MIN_BUY_AMOUNT)
            estimate = estimate_buy(amount_in, self.buy_fee_bps, self.rate)
            quote = VendorQuote(
                direction=direction,
                amount_in=amount_in,
                fee=estimate.fee,
                amount_out=_rescale(estimate.out_swap, self.base_decimals, self.swap_decimals),
                fee_bps=self.buy_fee_bps,
                decimals_in=self.base_decimals,
                decimals_out=self.swap_decimals,
            )
        else:
            amount_in = self._parse(amount, self.swap_decimals, settings.VENDOR_MIN_SELL_AMOUNT)
            estimate = estimate_sell(amount_in, self.sell_fee_bps, self.rate)
            quote = VendorQuote(
                direction=direction,
                amount_in=amount_in,
                fee=estimate.fee,
                amount_out=_rescale(estimate.out_base, self.swap_decimals, self.base_decimals),
                fee_bps=self.sell_fee_bps,
                decimals_in=self.swap_decimals,
                decimals_out=self.base_decimals,
            )

        logger.debug(f"Vendor {direction.value} quote: {amount} -> {quote.amount_out} raw")
        return quote


vendor_quote_service = VendorQuoteService()
