"""Public read-only configuration."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dgvault.api.deps import get_db
from dgvault.services.config_service import get_withdrawal_limits

router = APIRouter(prefix="/config", tags=["config"])


@router.get("/withdrawal-limits")
async def public_withdrawal_limits(db: AsyncSession = Depends(get_db)):
    limits = await get_withdrawal_limits(db)
    return {"success": True, "limits": {"minAmount": limits.min_amount, "maxAmount": limits.max_amount}}
