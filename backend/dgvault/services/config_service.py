"""Database-backed withdrawal limit configuration."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from dgvault.config import settings
from dgvault.core.errors import InvalidRequest
from dgvault.models.system_config import SystemConfig, ConfigAuditLog

logger = logging.getLogger(__name__)

MIN_AMOUNT_KEY = "dg_withdrawal_min_amount"
MAX_DAILY_KEY = "dg_withdrawal_max_daily_amount"


@dataclass
class WithdrawalLimits:
    min_amount: int
    max_amount: int
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "minAmount": self.min_amount,
            "maxAmount": self.max_amount,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "updatedBy": self.updated_by,
        }


def _as_int(value: str, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-integer config value {value!r}, using {default}")
        return default


async def get_withdrawal_limits(db: AsyncSession) -> WithdrawalLimits:
    """
    Current min/max daily limits, falling back to settings for missing keys.

    Args:
        db: Database session

    Returns:
        WithdrawalLimits with the most recent update metadata
    """
    result = await db.execute(
        select(SystemConfig).where(SystemConfig.key.in_([MIN_AMOUNT_KEY, MAX_DAILY_KEY]))
    )
    limits = WithdrawalLimits(
        min_amount=settings.WITHDRAWAL_MIN_AMOUNT,
        max_amount=settings.WITHDRAWAL_MAX_DAILY_AMOUNT,
    )
    for row in result.scalars().all():
        if row.key == MIN_AMOUNT_KEY:
            limits.min_amount = _as_int(row.value, limits.min_amount)
        else:
            limits.max_amount = _as_int(row.value, limits.max_amount)
        if limits.updated_at is None or (row.updated_at and row.updated_at > limits.updated_at):
            limits.updated_at = row.updated_at
            limits.updated_by = row.updated_by
    return limits


async def _set_value(db: AsyncSession, key: str, value: str, admin_id: str, description: str) -> None:
    row = await db.get(SystemConfig, key)
    old_value = row.value if row else None
    if old_value == value:
        return

    now = datetime.utcnow()
    if row is None:
        db.add(SystemConfig(key=key, value=value, description=description,
                            updated_at=now, updated_by=admin_id))
    else:
        row.value = value
        row.updated_at = now
        row.updated_by = admin_id

    db.add(ConfigAuditLog(
        config_key=key,
        old_value=old_value,
        new_value=value,
        changed_by=admin_id,
        changed_at=now,
    ))


async def update_withdrawal_limits(
    db: AsyncSession,
    min_amount: int,
    max_amount: int,
    admin_id: str,
) -> WithdrawalLimits:
    """
    Update limits and record an audit row for each changed key.

    Raises:
        InvalidRequest: Unless 0 < min_amount < max_amount
    """
    if min_amount <= 0:
        raise InvalidRequest("Minimum amount must be greater than 0")
    if max_amount <= min_amount:
        raise InvalidRequest("Maximum amount must be greater than minimum amount")

    await _set_value(db, MIN_AMOUNT_KEY, str(min_amount), admin_id,
                     "Minimum DG amount that can be withdrawn")
    await _set_value(db, MAX_DAILY_KEY, str(max_amount), admin_id,
                     "Maximum DG amount that can be withdrawn in 24 hours")
    await db.commit()

    logger.info(f"Withdrawal limits updated by {admin_id}: min={min_amount}, max={max_amount}")
    return await get_withdrawal_limits(db)
