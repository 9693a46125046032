"""Withdrawal processor: pays out off-chain XP as DG tokens.

A request moves received → validated → pending → completed | failed. The
pending record and the XP deduction are committed together before any
transfer is submitted, so a crash mid-settlement leaves a pending row to
reconcile rather than tokens sent with no trace.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from web3 import Web3
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, update, func

from dgvault.config import settings
from dgvault.core.eip712 import (
    DG_WEI_PER_TOKEN,
    is_canonical_signature,
    normalize_signature,
    verify_withdrawal_signature,
)
from dgvault.core.errors import (
    DuplicateInFlight,
    InsufficientBalance,
    InvalidRequest,
    MembershipRequired,
    NotFound,
    OnChainFailure,
    SignatureInvalid,
    WithdrawalLimitExceeded,
)
from dgvault.models.user import User
from dgvault.models.withdrawal import DGTokenWithdrawal, WithdrawalStatus
from dgvault.services.chain_service import ChainClient
from dgvault.services.config_service import get_withdrawal_limits
from dgvault.services.transfer_service import has_valid_dg_nation_key, transfer_dg_tokens

logger = logging.getLogger(__name__)

RETRY_NEW_SIGNATURE = "new_signature"
RETRY_RESUBMIT = "resubmit"

DAILY_WINDOW = timedelta(hours=24)
MAX_HISTORY_PAGE = 100


@dataclass
class WithdrawalSubmission:
    """A signed withdrawal request as received from the client."""
    wallet_address: str
    amount_dg: int
    signature: str
    deadline: int
    chain_id: int

    @classmethod
    def from_record(cls, record: DGTokenWithdrawal) -> "WithdrawalSubmission":
        return cls(
            wallet_address=record.wallet_address,
            amount_dg=record.amount_dg,
            signature=record.signature,
            deadline=record.deadline,
            chain_id=record.chain_id,
        )


@dataclass
class WithdrawalOutcome:
    withdrawal: DGTokenWithdrawal
    idempotent: bool = False

    def to_dict(self) -> dict:
        data = {
            "success": True,
            "withdrawalId": self.withdrawal.id,
            "transactionHash": self.withdrawal.transaction_hash,
            "amountDG": self.withdrawal.amount_dg,
            "status": self.withdrawal.status,
        }
        if self.idempotent:
            data["idempotent"] = True
        return data


class WithdrawalProcessor:
    """Validates, records and settles signed DG withdrawal requests."""

    def __init__(
        self,
        chain: Optional[ChainClient],
        clock: Callable[[], float] = time.time,
        retry_policy: Optional[str] = None,
    ):
        self.chain = chain
        self._clock = clock
        self.retry_policy = retry_policy or settings.WITHDRAWAL_RETRY_POLICY

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_structure(self, submission: WithdrawalSubmission, user: User) -> None:
        """
        Cheap checks that need neither the chain nor the database.

        Raises:
            InvalidRequest: On any malformed or expired field
        """
        amount = submission.amount_dg
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidRequest("amountDG must be a positive integer")

        if submission.deadline <= int(self._clock()):
            raise InvalidRequest("Signature expired")

        if not Web3.is_address(submission.wallet_address):
            raise InvalidRequest("Invalid wallet address")

        if not is_canonical_signature(submission.signature):
            raise InvalidRequest("Malformed signature")

        if not settings.dg_contracts_by_chain.get(submission.chain_id):
            raise InvalidRequest(f"DG token contract not configured for chainId {submission.chain_id}")

        if not user.owns_wallet(submission.wallet_address):
            raise InvalidRequest("Wallet is not linked to this account")

    async def check_membership(self, wallet_address: str) -> None:
        """Require a valid DG Nation key when a lock address is configured."""
        lock_address = settings.DG_NATION_LOCK_ADDRESS
        if not lock_address:
            return
        if self.chain is None or not await has_valid_dg_nation_key(self.chain, wallet_address, lock_address):
            raise MembershipRequired("DG Nation membership required for withdrawals")

    def verify_signature(self, submission: WithdrawalSubmission, user: User) -> None:
        valid = verify_withdrawal_signature(
            submission.wallet_address,
            submission.amount_dg,
            submission.deadline,
            submission.chain_id,
            submission.signature,
        )
        if not valid:
            logger.warning(
                f"Invalid withdrawal signature from user {user.id} "
                f"for wallet {submission.wallet_address}"
            )
            raise SignatureInvalid("Invalid signature")

    async def _validate(self, submission: WithdrawalSubmission, user: User) -> WithdrawalSubmission:
        submission.signature = normalize_signature(submission.signature)
        self.validate_structure(submission, user)
        await self.check_membership(submission.wallet_address)
        self.verify_signature(submission, user)
        return submission

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_latest_by_signature(self, db: AsyncSession, signature: str) -> Optional[DGTokenWithdrawal]:
        result = await db.execute(
            select(DGTokenWithdrawal)
            .where(DGTokenWithdrawal.signature == normalize_signature(signature))
            .order_by(DGTokenWithdrawal.attempt.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_withdrawal(self, db: AsyncSession, user_id: str, withdrawal_id: str) -> DGTokenWithdrawal:
        """
        Fetch one of the user's withdrawals.

        Raises:
            NotFound: If no such withdrawal belongs to the user
        """
        result = await db.execute(
            select(DGTokenWithdrawal).where(
                DGTokenWithdrawal.id == withdrawal_id,
                DGTokenWithdrawal.user_id == user_id,
            )
        )
        withdrawal = result.scalar_one_or_none()
        if withdrawal is None:
            raise NotFound("Withdrawal not found")
        return withdrawal

    async def list_withdrawals(
        self,
        db: AsyncSession,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[DGTokenWithdrawal], int]:
        """Newest-first page of a user's withdrawals plus the total count."""
        limit = max(1, min(limit, MAX_HISTORY_PAGE))
        offset = max(0, offset)

        total = await db.scalar(
            select(func.count()).select_from(DGTokenWithdrawal).where(DGTokenWithdrawal.user_id == user_id)
        )
        result = await db.execute(
            select(DGTokenWithdrawal)
            .where(DGTokenWithdrawal.user_id == user_id)
            .order_by(DGTokenWithdrawal.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), int(total or 0)

    async def daily_total(self, db: AsyncSession, user_id: str) -> int:
        """
        DG withdrawn or in flight over the trailing 24 hours.

        Pending rows count so that parallel requests cannot jointly exceed
        the cap before either settles.
        """
        since = datetime.utcnow() - DAILY_WINDOW
        total = await db.scalar(
            select(func.coalesce(func.sum(DGTokenWithdrawal.amount_dg), 0)).where(
                DGTokenWithdrawal.user_id == user_id,
                DGTokenWithdrawal.status.in_([
                    WithdrawalStatus.PENDING.value,
                    WithdrawalStatus.COMPLETED.value,
                ]),
                DGTokenWithdrawal.created_at > since,
            )
        )
        return int(total or 0)

    def _resolve_existing(self, existing: DGTokenWithdrawal, user: User) -> WithdrawalOutcome:
        """Map a prior record for the same signature onto a response or error."""
        if existing.user_id != user.id:
            logger.warning(f"User {user.id} replayed signature owned by user {existing.user_id}")
            raise InvalidRequest("Signature already used")

        if existing.status == WithdrawalStatus.COMPLETED.value:
            logger.info(f"Idempotent replay of completed withdrawal {existing.id}")
            return WithdrawalOutcome(existing, idempotent=True)

        if existing.status == WithdrawalStatus.PENDING.value:
            raise DuplicateInFlight(
                f"Withdrawal {existing.id} with this signature is already being processed"
            )

        if self.retry_policy == RETRY_RESUBMIT:
            raise InvalidRequest(
                f"Withdrawal {existing.id} with this signature failed; use the retry endpoint"
            )
        raise InvalidRequest(
            f"Withdrawal {existing.id} with this signature failed; sign a new request to retry"
        )

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    async def _create_pending(
        self,
        db: AsyncSession,
        user: User,
        submission: WithdrawalSubmission,
        attempt: int = 1,
        retry_of_id: Optional[str] = None,
    ) -> Optional[DGTokenWithdrawal]:
        """
        Check eligibility, deduct XP and insert the pending record atomically.

        Returns:
            The pending record, or None if the (signature, attempt) slot was
            taken by a concurrent request, either seen after the user row
            lock or caught by the unique constraint

        Raises:
            WithdrawalLimitExceeded: Below minimum or over the daily cap
            InsufficientBalance: Not enough XP
        """
        limits = await get_withdrawal_limits(db)
        amount = submission.amount_dg
        if amount < limits.min_amount:
            raise WithdrawalLimitExceeded(f"Minimum withdrawal is {limits.min_amount} DG")

        result = await db.execute(
            select(User)
            .where(User.id == user.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        locked_user = result.scalar_one_or_none()
        if locked_user is None:
            raise InvalidRequest("User profile not found")

        # A concurrent request for the same slot may have committed while we
        # waited on the lock; its deduction must not fail our balance checks
        taken = await self.find_latest_by_signature(db, submission.signature)
        if taken is not None and taken.attempt >= attempt:
            await db.rollback()
            await db.refresh(user)
            logger.warning(
                f"Withdrawal {taken.id} already holds signature {submission.signature[:12]}... "
                f"(attempt {taken.attempt})"
            )
            return None

        if locked_user.experience_points < amount:
            raise InsufficientBalance(
                f"Insufficient balance. You have {locked_user.experience_points} DG available"
            )

        withdrawn_today = await self.daily_total(db, user.id)
        if withdrawn_today + amount > limits.max_amount:
            remaining = max(0, limits.max_amount - withdrawn_today)
            raise WithdrawalLimitExceeded(
                f"Daily limit exceeded. You can withdraw up to {remaining} DG more today"
            )

        xp_before = locked_user.experience_points
        locked_user.experience_points = xp_before - amount

        withdrawal = DGTokenWithdrawal(
            user_id=user.id,
            retry_of_id=retry_of_id,
            wallet_address=submission.wallet_address.lower(),
            amount_dg=amount,
            xp_balance_before=xp_before,
            signature=submission.signature,
            deadline=submission.deadline,
            chain_id=submission.chain_id,
            attempt=attempt,
            status=WithdrawalStatus.PENDING.value,
        )
        db.add(withdrawal)

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            await db.refresh(user)
            logger.warning(
                f"Concurrent withdrawal for signature {submission.signature[:12]}... "
                f"(attempt {attempt}) lost the insert race"
            )
            return None

        logger.info(
            f"Withdrawal {withdrawal.id} pending: {amount} DG for user {user.id} "
            f"(XP {xp_before} -> {xp_before - amount})"
        )
        return withdrawal

    async def _mark_completed(self, db: AsyncSession, withdrawal: DGTokenWithdrawal, tx_hash: str) -> None:
        result = await db.execute(
            update(DGTokenWithdrawal)
            .where(
                DGTokenWithdrawal.id == withdrawal.id,
                DGTokenWithdrawal.status == WithdrawalStatus.PENDING.value,
            )
            .values(
                status=WithdrawalStatus.COMPLETED.value,
                transaction_hash=tx_hash,
                completed_at=datetime.utcnow(),
            )
        )
        await db.commit()
        await db.refresh(withdrawal)
        if result.rowcount != 1:
            logger.warning(f"Withdrawal {withdrawal.id} was not pending when completing")

    async def _mark_failed(self, db: AsyncSession, withdrawal: DGTokenWithdrawal, error: str) -> None:
        """Fail a pending withdrawal and restore the deducted XP exactly once."""
        result = await db.execute(
            update(DGTokenWithdrawal)
            .where(
                DGTokenWithdrawal.id == withdrawal.id,
                DGTokenWithdrawal.status == WithdrawalStatus.PENDING.value,
            )
            .values(status=WithdrawalStatus.FAILED.value, error_message=error)
        )
        if result.rowcount == 1:
            await db.execute(
                update(User)
                .where(User.id == withdrawal.user_id)
                .values(experience_points=User.experience_points + withdrawal.amount_dg)
            )
        await db.commit()
        await db.refresh(withdrawal)

        if result.rowcount == 1:
            logger.info(f"Restored {withdrawal.amount_dg} XP to user {withdrawal.user_id}")
        else:
            logger.warning(f"Withdrawal {withdrawal.id} was not pending when failing")

    async def settle(self, db: AsyncSession, withdrawal: DGTokenWithdrawal) -> WithdrawalOutcome:
        """
        Transfer DG for a pending withdrawal and record the result.

        Raises:
            OnChainFailure: If the transfer fails; the record is marked failed
                and the user's XP restored first
        """
        token_address = settings.dg_contracts_by_chain.get(withdrawal.chain_id)
        logger.info(
            f"Settling withdrawal {withdrawal.id}: {withdrawal.amount_dg} DG "
            f"to {withdrawal.wallet_address} on chain {withdrawal.chain_id}"
        )

        transfer = await transfer_dg_tokens(
            self.chain,
            Web3.to_checksum_address(withdrawal.wallet_address),
            withdrawal.amount_dg * DG_WEI_PER_TOKEN,
            token_address,
        )

        if transfer.success:
            try:
                await self._mark_completed(db, withdrawal, transfer.transaction_hash)
            except Exception:
                # Tokens are already sent; leave the row pending for reconciliation
                logger.critical(
                    f"Withdrawal {withdrawal.id} transferred (tx: {transfer.transaction_hash}) "
                    f"but could not be marked completed",
                    exc_info=True
                )
                raise
            logger.info(f"Withdrawal {withdrawal.id} completed (tx: {transfer.transaction_hash})")
            return WithdrawalOutcome(withdrawal)

        error = transfer.error or "Transfer failed"
        logger.error(f"Withdrawal {withdrawal.id} failed: {error}")
        await self._mark_failed(db, withdrawal, error)
        raise OnChainFailure(f"Token transfer failed: {error}", withdrawal_id=withdrawal.id)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def _submit(
        self,
        db: AsyncSession,
        user: User,
        submission: WithdrawalSubmission,
        attempt: int = 1,
        retry_of_id: Optional[str] = None,
    ) -> WithdrawalOutcome:
        withdrawal = await self._create_pending(db, user, submission, attempt, retry_of_id)
        if withdrawal is None:
            existing = await self.find_latest_by_signature(db, submission.signature)
            if existing is None:
                raise DuplicateInFlight("A withdrawal with this signature is already being processed")
            return self._resolve_existing(existing, user)
        return await self.settle(db, withdrawal)

    async def process(self, db: AsyncSession, user: User, submission: WithdrawalSubmission) -> WithdrawalOutcome:
        """
        Run a new signed withdrawal request through to settlement.

        Args:
            db: Database session
            user: Authenticated user
            submission: Signed request

        Returns:
            WithdrawalOutcome; ``idempotent`` is set when the same signature
            already completed

        Raises:
            VaultError subclasses for every rejection
        """
        submission = await self._validate(submission, user)

        existing = await self.find_latest_by_signature(db, submission.signature)
        if existing is not None:
            return self._resolve_existing(existing, user)

        return await self._submit(db, user, submission)

    async def retry(
        self,
        db: AsyncSession,
        user: User,
        withdrawal_id: str,
        submission: Optional[WithdrawalSubmission] = None,
    ) -> WithdrawalOutcome:
        """
        Retry a failed withdrawal.

        Under the ``new_signature`` policy the client must supply a freshly
        signed request for the same wallet and amount; the new record links
        back via ``retry_of_id``. Under ``resubmit`` the stored signature is
        reused as the next attempt while its deadline holds.

        Raises:
            InvalidRequest: If the withdrawal is not failed or the retry
                request does not match it
        """
        failed = await self.get_withdrawal(db, user.id, withdrawal_id)
        if failed.status != WithdrawalStatus.FAILED.value:
            raise InvalidRequest("Only failed withdrawals can be retried")

        latest = await self.find_latest_by_signature(db, failed.signature)
        if latest is not None and latest.status != WithdrawalStatus.FAILED.value:
            return self._resolve_existing(latest, user)
        base = latest or failed

        if self.retry_policy == RETRY_RESUBMIT:
            resubmission = await self._validate(WithdrawalSubmission.from_record(base), user)
            logger.info(f"Resubmitting withdrawal {base.id} as attempt {base.attempt + 1}")
            return await self._submit(db, user, resubmission, attempt=base.attempt + 1, retry_of_id=base.id)

        if submission is None:
            raise InvalidRequest("Retry requires a newly signed request")
        if normalize_signature(submission.signature) == failed.signature:
            raise InvalidRequest("Retry requires a new signature and deadline")
        if (submission.wallet_address.lower() != failed.wallet_address.lower()
                or submission.amount_dg != failed.amount_dg):
            raise InvalidRequest("Retry must use the same wallet and amount as the failed withdrawal")

        submission = await self._validate(submission, user)
        existing = await self.find_latest_by_signature(db, submission.signature)
        if existing is not None:
            return self._resolve_existing(existing, user)

        logger.info(f"Retrying failed withdrawal {failed.id} with a new signature")
        return await self._submit(db, user, submission, retry_of_id=failed.id)
