"""DG token transfers and reads against the server wallet's chain client."""

import logging
from dataclasses import dataclass
from typing import Optional

from dgvault.config import settings
from dgvault.core.abis import ERC20_ABI, PUBLIC_LOCK_ABI
from dgvault.services.chain_service import ChainClient

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    success: bool
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    error: Optional[str] = None


async def transfer_dg_tokens(
    chain: Optional[ChainClient],
    recipient_address: str,
    amount: int,
    token_address: str,
) -> TransferResult:
    """
    Transfer DG from the server wallet and wait for confirmations.

    Never raises: failures are reported in the result so the caller can
    record them against the withdrawal.

    Args:
        chain: Chain client holding the server wallet
        recipient_address: Wallet receiving the tokens
        amount: Amount in wei
        token_address: DG token contract for the target chain

    Returns:
        TransferResult with the transaction hash on success
    """
    if chain is None:
        return TransferResult(success=False, error="Server wallet not configured")
    if not chain.account_address:
        return TransferResult(success=False, error="Wallet account not available")

    try:
        tx_hash = await chain.write_contract(
            token_address,
            ERC20_ABI,
            "transfer",
            [recipient_address, amount],
        )
        receipt = await chain.wait_for_receipt(tx_hash, confirmations=settings.TX_CONFIRMATIONS)
    except Exception as e:
        logger.error(f"DG transfer to {recipient_address} failed: {e}", exc_info=True)
        return TransferResult(success=False, error=str(e) or "Unknown error")

    if receipt.get('status') != 1:
        logger.error(f"DG transfer reverted on-chain: {tx_hash}")
        return TransferResult(success=False, error="Transaction reverted on-chain")

    return TransferResult(
        success=True,
        transaction_hash=tx_hash,
        block_number=receipt.get('blockNumber'),
    )


async def has_valid_dg_nation_key(chain: ChainClient, wallet_address: str, lock_address: str) -> bool:
    """True if the wallet holds a valid DG Nation key; False on read errors."""
    try:
        return bool(await chain.read_contract(
            lock_address,
            PUBLIC_LOCK_ABI,
            "getHasValidKey",
            [wallet_address],
        ))
    except Exception as e:
        logger.error(f"Error checking DG Nation key for {wallet_address}: {e}")
        return False
