"""API routers package."""

from dgvault.api import withdrawals, admin, vendor, config, deps

__all__ = [
    "withdrawals",
    "admin",
    "vendor",
    "config",
    "deps",
]
