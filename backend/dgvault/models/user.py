"""User database model."""

from datetime import datetime
from typing import List
import uuid

from sqlalchemy import String, Integer, Boolean, TIMESTAMP, CheckConstraint
from sqlalchemy import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dgvault.database import Base


class User(Base):
    """Platform user holding off-chain XP redeemable for DG tokens."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("experience_points >= 0", name="non_negative_experience_points"),
    )

    # Primary Key
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )

    # Basic Info
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    api_key_hash: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Linked wallets (lowercased 0x addresses)
    wallet_addresses: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Off-chain reward balance, 1 XP withdraws 1 DG
    experience_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    # Relationships
    withdrawals: Mapped[List["DGTokenWithdrawal"]] = relationship(
        "DGTokenWithdrawal",
        back_populates="user"
    )

    def owns_wallet(self, address: str) -> bool:
        return address.lower() in {w.lower() for w in (self.wallet_addresses or [])}

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name={self.name}, xp={self.experience_points})>"
