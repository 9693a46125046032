"""Token vendor schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from dgvault.services.vendor_service import QuoteDirection


class VendorQuoteRequest(BaseModel):
    """Quote request with the amount as typed by the user."""

    direction: QuoteDirection
    amount: str = Field(..., description="Decimal amount of the input token", max_length=100)
    owner: Optional[str] = Field(
        None,
        description="Seller wallet; when set, a sell quote also requires swap approvals to be in place"
    )


class ApprovalExecuteRequest(BaseModel):
    """Bring the server wallet's swap approvals up to an amount."""

    token_address: str = Field(..., alias="tokenAddress")
    amount: str = Field(..., description="Required allowance in smallest token units")

    class Config:
        populate_by_name = True
