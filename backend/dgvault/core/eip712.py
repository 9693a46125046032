"""EIP-712 typed data for signed DG withdrawal requests."""

import logging
import re
from typing import Dict, Any

from eth_account import Account
from eth_account.messages import encode_typed_data
from web3 import Web3

from dgvault.config import settings

logger = logging.getLogger(__name__)

WITHDRAWAL_DOMAIN_NAME = "P2E INFERNO DG PULLOUT"
WITHDRAWAL_DOMAIN_VERSION = "1"
DG_WEI_PER_TOKEN = 10 ** 18

WITHDRAWAL_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "Withdrawal": [
        {"name": "user", "type": "address"},
        {"name": "amount", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}


SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_SIGNATURE_RE = re.compile(r"^0x[0-9a-fA-F]{130}$")


def normalize_signature(signature: str) -> str:
    """Lowercase 0x-prefixed hex, the canonical idempotency key form."""
    signature = signature.strip()
    if not signature.startswith("0x"):
        signature = f"0x{signature}"
    return signature.lower()


def is_canonical_signature(signature: str) -> bool:
    """
    Accept only 65-byte signatures with low ``s`` and ``v`` in {0, 1, 27, 28}.

    The high-s twin of a valid signature recovers the same signer, so it
    would otherwise act as a second idempotency key for one request.
    """
    if not _SIGNATURE_RE.match(signature):
        return False
    raw = bytes.fromhex(signature[2:])
    s = int.from_bytes(raw[32:64], "big")
    v = raw[64]
    return 0 < s <= SECP256K1_N // 2 and v in (0, 1, 27, 28)


def get_withdrawal_domain(chain_id: int) -> Dict[str, Any]:
    """
    Build the signing domain for a chain.

    Raises:
        ValueError: If no DG token contract is configured for the chain
    """
    contract = settings.dg_contracts_by_chain.get(chain_id)
    if not contract:
        raise ValueError(f"DG token contract not configured for chainId {chain_id}")
    return {
        "name": WITHDRAWAL_DOMAIN_NAME,
        "version": WITHDRAWAL_DOMAIN_VERSION,
        "chainId": chain_id,
        "verifyingContract": Web3.to_checksum_address(contract),
    }


def build_withdrawal_typed_data(
    wallet_address: str,
    amount_dg: int,
    deadline: int,
    chain_id: int,
) -> Dict[str, Any]:
    """Full typed-data payload; the signed amount is in wei, not whole DG."""
    return {
        "types": WITHDRAWAL_TYPES,
        "primaryType": "Withdrawal",
        "domain": get_withdrawal_domain(chain_id),
        "message": {
            "user": Web3.to_checksum_address(wallet_address),
            "amount": amount_dg * DG_WEI_PER_TOKEN,
            "deadline": deadline,
        },
    }


def recover_withdrawal_signer(
    wallet_address: str,
    amount_dg: int,
    deadline: int,
    chain_id: int,
    signature: str,
) -> str:
    """Recover the address that signed the withdrawal payload."""
    typed_data = build_withdrawal_typed_data(wallet_address, amount_dg, deadline, chain_id)
    signable = encode_typed_data(full_message=typed_data)
    return Account.recover_message(signable, signature=signature)


def verify_withdrawal_signature(
    wallet_address: str,
    amount_dg: int,
    deadline: int,
    chain_id: int,
    signature: str,
) -> bool:
    """
    Check that ``signature`` was produced by ``wallet_address`` over exactly
    this amount, deadline and chain.

    Returns:
        True if the recovered signer matches the claimed wallet
    """
    try:
        recovered = recover_withdrawal_signer(
            wallet_address, amount_dg, deadline, chain_id, signature
        )
    except Exception as e:
        logger.warning(f"Could not recover withdrawal signer for {wallet_address}: {e}")
        return False

    return recovered.lower() == wallet_address.lower()
