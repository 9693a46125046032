"""Application configuration management using Pydantic Settings."""

from typing import Dict, List
from decimal import Decimal
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./dgvault.db"

    # API
    API_V1_PREFIX: str = "/api"

    # CORS
    CORS_ORIGINS: List[str] = ['http://localhost:3000']

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Blockchain
    WEB3_RPC_URL: str = "https://sepolia.base.org"
    CHAIN_ID: int = 84532  # Base Sepolia
    CHAIN_CALL_TIMEOUT: float = 30.0  # Seconds allowed for a single RPC read
    TX_RECEIPT_TIMEOUT: float = 180.0  # Seconds to wait for a mined receipt
    TX_CONFIRMATIONS: int = 2

    # DG Token
    DG_TOKEN_ADDRESS_BASE_MAINNET: str = ""
    DG_TOKEN_ADDRESS_BASE_SEPOLIA: str = ""
    DG_TOKEN_DECIMALS: int = 18
    DG_NATION_LOCK_ADDRESS: str = ""  # Empty disables the membership gate

    # Server wallet (single custodial key used for payouts)
    SERVER_WALLET_PRIVATE_KEY: str = ""  # SECURE! Use a vault in production

    # Withdrawal Settings (defaults, overridable at runtime via system_config)
    WITHDRAWAL_MIN_AMOUNT: int = 3000  # DG
    WITHDRAWAL_MAX_DAILY_AMOUNT: int = 100000  # DG per rolling 24 hours
    WITHDRAWAL_RATE_LIMIT_MAX: int = 3
    WITHDRAWAL_RATE_LIMIT_WINDOW_MS: int = 60_000
    WITHDRAWAL_RETRY_POLICY: str = "new_signature"  # new_signature|resubmit
    RATE_LIMIT_SWEEP_INTERVAL: float = 60.0

    # Vendor (DG market) settings
    VENDOR_BUY_FEE_BPS: int = 100  # 1%
    VENDOR_SELL_FEE_BPS: int = 200  # 2%
    VENDOR_EXCHANGE_RATE: int = 2  # swap-token units per base-token unit
    VENDOR_BASE_TOKEN_DECIMALS: int = 18
    VENDOR_SWAP_TOKEN_DECIMALS: int = 18
    VENDOR_MIN_BUY_AMOUNT: str = "0"  # Human-readable, base token
    VENDOR_MIN_SELL_AMOUNT: str = "0"  # Human-readable, swap token

    # Uniswap approvals
    PERMIT2_ADDRESS: str = "0x000000000022D473030F116dDEE9F6B43aC78BA3"
    UNISWAP_UNIVERSAL_ROUTER: str = "0x6fF5693b99212Da76ad316178A184AB56D299b43"

    # Server wallet balance thresholds (human-readable units)
    DG_BALANCE_WARNING_THRESHOLD: Decimal = Decimal("10000")
    DG_BALANCE_CRITICAL_THRESHOLD: Decimal = Decimal("1000")
    ETH_BALANCE_WARNING_THRESHOLD: Decimal = Decimal("0.01")
    ETH_BALANCE_CRITICAL_THRESHOLD: Decimal = Decimal("0.002")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v) -> List[str]:
        """Parse CORS_ORIGINS from JSON string to list."""
        if isinstance(v, str):
            return json.loads(v)
        return v

    @field_validator(
        "DG_BALANCE_WARNING_THRESHOLD",
        "DG_BALANCE_CRITICAL_THRESHOLD",
        "ETH_BALANCE_WARNING_THRESHOLD",
        "ETH_BALANCE_CRITICAL_THRESHOLD",
        mode="before",
    )
    @classmethod
    def parse_decimal(cls, v) -> Decimal:
        """Parse string to Decimal so thresholds never pass through float."""
        if isinstance(v, str):
            return Decimal(v)
        return v

    @field_validator("WITHDRAWAL_RETRY_POLICY")
    @classmethod
    def check_retry_policy(cls, v: str) -> str:
        if v not in ("new_signature", "resubmit"):
            raise ValueError("WITHDRAWAL_RETRY_POLICY must be 'new_signature' or 'resubmit'")
        return v

    @property
    def dg_contracts_by_chain(self) -> Dict[int, str]:
        """DG token address per supported chain id (Base Mainnet, Base Sepolia)."""
        return {
            8453: self.DG_TOKEN_ADDRESS_BASE_MAINNET,
            84532: self.DG_TOKEN_ADDRESS_BASE_SEPOLIA,
        }


# Global settings instance
settings = Settings()
