"""Tests for withdrawal typed data signing and verification."""

import time

import pytest
from eth_account import Account

from dgvault.core.eip712 import (
    SECP256K1_N,
    DG_WEI_PER_TOKEN,
    build_withdrawal_typed_data,
    is_canonical_signature,
    normalize_signature,
    recover_withdrawal_signer,
    verify_withdrawal_signature,
)
from conftest import DG_TOKEN_ADDRESS, TEST_CHAIN_ID


def _high_s_twin(signature: str) -> str:
    raw = bytes.fromhex(signature[2:])
    s = int.from_bytes(raw[32:64], "big")
    v = raw[64]
    twin = raw[:32] + (SECP256K1_N - s).to_bytes(32, "big") + bytes([55 - v])
    return "0x" + twin.hex()


def test_typed_data_uses_wei_and_token_domain(wallet):
    typed = build_withdrawal_typed_data(wallet.address, 3000, 1_900_000_000, TEST_CHAIN_ID)

    assert typed["primaryType"] == "Withdrawal"
    assert typed["domain"]["name"] == "P2E INFERNO DG PULLOUT"
    assert typed["domain"]["version"] == "1"
    assert typed["domain"]["chainId"] == TEST_CHAIN_ID
    assert typed["domain"]["verifyingContract"].lower() == DG_TOKEN_ADDRESS.lower()
    assert typed["message"]["amount"] == 3000 * DG_WEI_PER_TOKEN


def test_unconfigured_chain_raises(wallet):
    with pytest.raises(ValueError, match="chainId 8453"):
        build_withdrawal_typed_data(wallet.address, 3000, 1_900_000_000, 8453)


def test_valid_signature_verifies(wallet, sign):
    body = sign(wallet, 5000)
    assert verify_withdrawal_signature(
        wallet.address, 5000, body["deadline"], TEST_CHAIN_ID, body["signature"]
    )
    assert recover_withdrawal_signer(
        wallet.address, 5000, body["deadline"], TEST_CHAIN_ID, body["signature"]
    ) == wallet.address


def test_tampered_amount_fails(wallet, sign):
    """Test the signature binds the amount."""
    body = sign(wallet, 5000)
    assert not verify_withdrawal_signature(
        wallet.address, 50000, body["deadline"], TEST_CHAIN_ID, body["signature"]
    )


def test_other_signer_fails(wallet, sign):
    other = Account.create()
    body = sign(other, 5000, wallet_address=wallet.address)
    assert not verify_withdrawal_signature(
        wallet.address, 5000, body["deadline"], TEST_CHAIN_ID, body["signature"]
    )


def test_garbage_signature_returns_false(wallet):
    assert not verify_withdrawal_signature(
        wallet.address, 5000, int(time.time()) + 60, TEST_CHAIN_ID, "0x1234"
    )


def test_canonical_signature_checks(wallet, sign):
    signature = sign(wallet, 5000)["signature"]
    assert is_canonical_signature(signature)
    assert not is_canonical_signature(_high_s_twin(signature))
    assert not is_canonical_signature(signature[:-2])
    assert not is_canonical_signature("0x" + "zz" * 65)


def test_normalize_signature():
    assert normalize_signature(" 0xABcd ") == "0xabcd"
    assert normalize_signature("ABCD") == "0xabcd"
