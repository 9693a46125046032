"""Chain client for reading contracts and submitting server-wallet transactions."""

import asyncio
import logging
import time
from typing import Any, Optional, Sequence

from web3 import Web3

from dgvault.config import settings

logger = logging.getLogger(__name__)


class ChainClient:
    """
    Thin async facade over a synchronous Web3 instance.

    Blocking RPC calls run in worker threads and are bounded by
    ``call_timeout``. Writes are signed by the single server wallet key.
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        call_timeout: Optional[float] = None,
    ):
        self.web3 = Web3(Web3.HTTPProvider(rpc_url or settings.WEB3_RPC_URL))
        self.chain_id = chain_id or settings.CHAIN_ID
        self.call_timeout = call_timeout or settings.CHAIN_CALL_TIMEOUT

        key = private_key if private_key is not None else settings.SERVER_WALLET_PRIVATE_KEY
        if key:
            self.account = self.web3.eth.account.from_key(key)
            self.account_address: Optional[str] = self.account.address
        else:
            self.account = None
            self.account_address = None
            logger.warning("Server wallet not configured - on-chain writes are disabled")

    async def _run(self, fn, *args, timeout: Optional[float] = None):
        return await asyncio.wait_for(
            asyncio.to_thread(fn, *args),
            timeout=timeout or self.call_timeout
        )

    def _contract(self, address: str, abi: list):
        return self.web3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=abi
        )

    async def read_contract(
        self,
        address: str,
        abi: list,
        function_name: str,
        args: Sequence[Any] = (),
    ) -> Any:
        """
        Call a view function.

        Args:
            address: Contract address
            abi: Contract ABI containing ``function_name``
            function_name: Function to call
            args: Positional arguments

        Returns:
            Decoded return value (tuples for multi-output functions)
        """
        contract = self._contract(address, abi)
        fn = contract.get_function_by_name(function_name)(*args)
        return await self._run(fn.call)

    async def write_contract(
        self,
        address: str,
        abi: list,
        function_name: str,
        args: Sequence[Any] = (),
    ) -> str:
        """
        Sign and broadcast a transaction from the server wallet.

        Returns:
            0x-prefixed transaction hash

        Raises:
            RuntimeError: If the server wallet is not configured
        """
        if not self.account:
            raise RuntimeError("Server wallet not configured")

        def _send() -> str:
            contract = self._contract(address, abi)
            nonce = self.web3.eth.get_transaction_count(self.account_address, "pending")
            tx = contract.get_function_by_name(function_name)(*args).build_transaction({
                'from': self.account_address,
                'nonce': nonce,
                'chainId': self.chain_id,
            })
            signed = self.account.sign_transaction(tx)
            tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
            return Web3.to_hex(tx_hash)

        tx_hash = await self._run(_send)
        logger.info(f"Submitted {function_name} to {address} (tx: {tx_hash})")
        return tx_hash

    async def wait_for_receipt(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout: Optional[float] = None,
    ) -> dict:
        """
        Wait until a transaction is mined and buried under ``confirmations`` blocks.

        Returns:
            Receipt dict with at least ``status`` and ``blockNumber``
        """
        timeout = timeout or settings.TX_RECEIPT_TIMEOUT

        def _wait() -> dict:
            receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
            target_block = receipt['blockNumber'] + max(confirmations, 1) - 1
            while self.web3.eth.block_number < target_block:
                time.sleep(1)
            return dict(receipt)

        return await self._run(_wait, timeout=timeout + 30)

    async def get_balance(self, address: str) -> int:
        """Native balance in wei."""
        return await self._run(
            self.web3.eth.get_balance,
            Web3.to_checksum_address(address)
        )


_chain_client: Optional[ChainClient] = None


def get_chain_client() -> ChainClient:
    """Lazily construct the shared client so importing never touches the network."""
    global _chain_client
    if _chain_client is None:
        _chain_client = ChainClient()
    return _chain_client
