"""Database models package."""

from dgvault.models.user import User
from dgvault.models.withdrawal import DGTokenWithdrawal, WithdrawalStatus
from dgvault.models.system_config import SystemConfig, ConfigAuditLog

__all__ = [
    "User",
    "DGTokenWithdrawal",
    "WithdrawalStatus",
    "SystemConfig",
    "ConfigAuditLog",
]
