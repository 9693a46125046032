"""Runtime configuration schemas."""

from pydantic import BaseModel, Field


class WithdrawalLimitsUpdate(BaseModel):
    """New withdrawal limits in whole DG."""

    min_amount: int = Field(..., alias="minAmount")
    max_amount: int = Field(..., alias="maxAmount", description="Maximum per rolling 24 hours")

    class Config:
        populate_by_name = True
