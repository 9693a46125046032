"""DG token withdrawal database model."""

from datetime import datetime
from enum import Enum
import uuid

from sqlalchemy import (
    String,
    Text,
    Integer,
    BigInteger,
    ForeignKey,
    TIMESTAMP,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dgvault.database import Base


class WithdrawalStatus(str, Enum):
    """Withdrawal status enum."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class DGTokenWithdrawal(Base):
    """
    One attempt to pay out XP as DG tokens.

    The signature is the idempotency key. ``(signature, attempt)`` is unique,
    so a second insert for the same signed request is rejected by the
    database even when two requests pass the application pre-check together.
    """

    __tablename__ = "dg_token_withdrawals"
    __table_args__ = (
        UniqueConstraint("signature", "attempt", name="uq_dg_withdrawals_signature_attempt"),
        CheckConstraint("amount_dg > 0", name="positive_amount"),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="valid_status"
        ),
    )

    # Primary Key
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )

    # Foreign Keys
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    retry_of_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("dg_token_withdrawals.id"),
        nullable=True
    )  # Failed withdrawal this attempt retries

    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)

    # Amounts (whole DG; converted to wei only for the chain)
    amount_dg: Mapped[int] = mapped_column(Integer, nullable=False)
    xp_balance_before: Mapped[int] = mapped_column(Integer, nullable=False)  # Audit trail

    # Signature data
    signature: Mapped[str] = mapped_column(String(132), nullable=False, index=True)
    deadline: Mapped[int] = mapped_column(BigInteger, nullable=False)  # Unix seconds
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Blockchain data
    transaction_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=WithdrawalStatus.PENDING.value,
        index=True
    )  # pending|completed|failed
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=datetime.utcnow,
        index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP,
        nullable=True
    )

    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        back_populates="withdrawals"
    )

    def __repr__(self) -> str:
        return f"<DGTokenWithdrawal(id={self.id}, user_id={self.user_id}, status={self.status})>"
