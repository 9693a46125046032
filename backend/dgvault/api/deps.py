"""API dependencies for authentication, chain access and throttling."""

from fastapi import Depends, HTTPException, status, Header
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from dgvault.config import settings
from dgvault.database import get_db
from dgvault.core.errors import RateLimited
from dgvault.core.rate_limit import withdrawal_rate_limiter
from dgvault.core.security import hash_api_key, verify_api_key
from dgvault.models.user import User
from dgvault.services.chain_service import ChainClient, get_chain_client
from dgvault.services.withdrawal_service import WithdrawalProcessor


async def get_current_user(
    x_user_key: str = Header(..., description="API key for authentication"),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency that validates the X-User-Key header and returns the user.

    Raises:
        HTTPException: 401 if API key is invalid
    """
    result = await db.execute(
        select(User).where(User.api_key_hash == hash_api_key(x_user_key))
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_api_key(x_user_key, user.api_key_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "INVALID_API_KEY",
                "message": "Invalid API key provided"
            }
        )
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "ADMIN_REQUIRED",
                "message": "Admin access required"
            }
        )
    return user


def get_chain() -> ChainClient:
    """Chain client for the server wallet; overridden in tests."""
    return get_chain_client()


def get_withdrawal_processor(chain: ChainClient = Depends(get_chain)) -> WithdrawalProcessor:
    return WithdrawalProcessor(chain)


async def enforce_withdrawal_rate_limit(user: User = Depends(get_current_user)) -> User:
    """
    Throttle withdrawal submissions per user.

    Raises:
        RateLimited: When the user's window is exhausted
    """
    result = withdrawal_rate_limiter.check(
        f"withdraw:{user.id}",
        settings.WITHDRAWAL_RATE_LIMIT_MAX,
        settings.WITHDRAWAL_RATE_LIMIT_WINDOW_MS,
    )
    if not result.success:
        raise RateLimited(
            "Too many withdrawal requests, please try again later",
            reset_at=result.reset_at,
            retry_after=result.retry_after_seconds,
        )
    return user
