"""Pytest configuration and fixtures for testing."""

import asyncio
import secrets
import time
from typing import AsyncGenerator, Callable, Dict, List, Optional

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from dgvault.main import app
from dgvault.database import Base, get_db
from dgvault.config import settings
from dgvault.api.deps import get_chain
from dgvault.core.eip712 import build_withdrawal_typed_data
from dgvault.core.security import hash_api_key
from dgvault.models.user import User

DG_TOKEN_ADDRESS = "0x4200000000000000000000000000000000000042"
SERVER_WALLET = "0x1111111111111111111111111111111111111111"
TEST_CHAIN_ID = 84532


class FakeChainClient:
    """
    In-memory stand-in for ChainClient.

    ``reads`` maps a function name to a value or to ``fn(address, args)``.
    ``write_errors`` maps a function name to exceptions raised by the next
    writes of that function, in order.
    """

    def __init__(self, account_address: Optional[str] = SERVER_WALLET):
        self.account_address = account_address
        self.reads: Dict[str, object] = {}
        self.writes: List[tuple] = []
        self.write_errors: Dict[str, List[Exception]] = {}
        self.receipt_status = 1
        self.eth_balance = 0
        self.transfer_gate: Optional[asyncio.Event] = None
        self.transfers_started = 0

    async def read_contract(self, address, abi, function_name, args=()):
        value = self.reads.get(function_name)
        if callable(value):
            return value(address, list(args))
        return value

    async def write_contract(self, address, abi, function_name, args=()):
        if function_name == "transfer":
            self.transfers_started += 1
            if self.transfer_gate is not None:
                await self.transfer_gate.wait()
        errors = self.write_errors.get(function_name)
        if errors:
            raise errors.pop(0)
        self.writes.append((address, function_name, list(args)))
        return f"0x{len(self.writes):064x}"

    async def wait_for_receipt(self, tx_hash, confirmations=1, timeout=None):
        return {"status": self.receipt_status, "blockNumber": 100 + confirmations, "transactionHash": tx_hash}

    async def get_balance(self, address):
        return self.eth_balance

    def writes_of(self, function_name: str) -> List[tuple]:
        return [w for w in self.writes if w[1] == function_name]


@pytest.fixture(autouse=True)
def vault_settings(monkeypatch):
    """Pin chain and withdrawal settings regardless of the local .env."""
    monkeypatch.setattr(settings, "CHAIN_ID", TEST_CHAIN_ID)
    monkeypatch.setattr(settings, "DG_TOKEN_ADDRESS_BASE_SEPOLIA", DG_TOKEN_ADDRESS)
    monkeypatch.setattr(settings, "DG_TOKEN_ADDRESS_BASE_MAINNET", "")
    monkeypatch.setattr(settings, "DG_NATION_LOCK_ADDRESS", "")
    monkeypatch.setattr(settings, "WITHDRAWAL_MIN_AMOUNT", 3000)
    monkeypatch.setattr(settings, "WITHDRAWAL_MAX_DAILY_AMOUNT", 100000)
    monkeypatch.setattr(settings, "WITHDRAWAL_RETRY_POLICY", "new_signature")
    monkeypatch.setattr(settings, "TX_CONFIRMATIONS", 2)
    monkeypatch.setattr(settings, "WITHDRAWAL_RATE_LIMIT_MAX", 100)
    return settings


@pytest.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory bound to a fresh SQLite file per test.

    A file database (not :memory:) lets several sessions see each other's
    commits, which the concurrency tests depend on.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_chain() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
async def client(session_factory, fake_chain) -> AsyncGenerator[AsyncClient, None]:
    """
    Create test client with database and chain dependency overrides.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chain] = lambda: fake_chain

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def wallet():
    """Fresh key pair standing in for the user's browser wallet."""
    return Account.create()


@pytest.fixture
def make_user(db: AsyncSession) -> Callable:
    """
    Factory creating users directly in the database.

    Returns:
        async fn(name, xp, wallets, is_admin) -> (User, api_key)
    """
    async def _make(name: str = "player", xp: int = 10000, wallets=None, is_admin: bool = False):
        api_key = f"dgv_sk_{secrets.token_hex(32)}"
        user = User(
            name=name,
            api_key_hash=hash_api_key(api_key),
            is_admin=is_admin,
            wallet_addresses=[w.lower() for w in (wallets or [])],
            experience_points=xp,
        )
        db.add(user)
        await db.commit()
        return user, api_key

    return _make


@pytest.fixture
async def player(make_user, wallet):
    """Returns: Tuple of (user, api_key) with 10000 XP and ``wallet`` linked."""
    return await make_user(name="player", xp=10000, wallets=[wallet.address])


@pytest.fixture
async def admin(make_user):
    """Returns: Tuple of (admin_user, api_key)."""
    return await make_user(name="admin", xp=0, is_admin=True)


def sign_withdrawal(
    account,
    amount_dg: int,
    deadline: Optional[int] = None,
    chain_id: int = TEST_CHAIN_ID,
    wallet_address: Optional[str] = None,
) -> dict:
    """
    Build a signed withdrawal request body as the frontend would.

    Returns:
        JSON body with walletAddress, amountDG, signature, deadline, chainId
    """
    deadline = deadline if deadline is not None else int(time.time()) + 900
    wallet_address = wallet_address or account.address
    typed_data = build_withdrawal_typed_data(wallet_address, amount_dg, deadline, chain_id)
    signed = Account.sign_message(encode_typed_data(full_message=typed_data), account.key)
    return {
        "walletAddress": wallet_address,
        "amountDG": amount_dg,
        "signature": "0x" + bytes(signed.signature).hex(),
        "deadline": deadline,
        "chainId": chain_id,
    }


@pytest.fixture
def sign() -> Callable:
    return sign_withdrawal
