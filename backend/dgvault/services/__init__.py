"""Business logic services package."""

from dgvault.services.withdrawal_service import WithdrawalProcessor, WithdrawalSubmission, WithdrawalOutcome
from dgvault.services.approval_service import ApprovalOrchestrator, ApprovalStepKind
from dgvault.services.balance_monitor import BalanceMonitor
from dgvault.services.config_service import get_withdrawal_limits, update_withdrawal_limits
from dgvault.services.vendor_service import VendorQuoteService, QuoteDirection, vendor_quote_service

__all__ = [
    # Withdrawals
    "WithdrawalProcessor",
    "WithdrawalSubmission",
    "WithdrawalOutcome",
    # Approvals
    "ApprovalOrchestrator",
    "ApprovalStepKind",
    # Monitoring
    "BalanceMonitor",
    # Config
    "get_withdrawal_limits",
    "update_withdrawal_limits",
    # Vendor
    "VendorQuoteService",
    "QuoteDirection",
    "vendor_quote_service",
]
