"""Pydantic schemas package."""

from dgvault.schemas.withdrawal import (
    WithdrawalRequest,
    WithdrawalResponse,
    WithdrawalDetailResponse,
    WithdrawalHistoryResponse,
)
from dgvault.schemas.config import WithdrawalLimitsUpdate
from dgvault.schemas.vendor import VendorQuoteRequest, ApprovalExecuteRequest

__all__ = [
    # Withdrawal schemas
    "WithdrawalRequest",
    "WithdrawalResponse",
    "WithdrawalDetailResponse",
    "WithdrawalHistoryResponse",
    # Config schemas
    "WithdrawalLimitsUpdate",
    # Vendor schemas
    "VendorQuoteRequest",
    "ApprovalExecuteRequest",
]
