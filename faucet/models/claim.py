"""
Claim model - one token disbursement owed to a recipient on one chain.

Rows are inserted by the claim intake API in status `pending` and mutated
only by the worker. They are never deleted; the table is the audit trail.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING

from sqlalchemy import (
    String, Integer, DateTime, ForeignKey, Index, CheckConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin

if TYPE_CHECKING:
    from .user import Recipient

# Stored error text is bounded so status polling stays cheap.
ERROR_MESSAGE_MAX_LENGTH = 255


class ClaimStatus(Enum):
    """Claim processing status."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class Claim(BaseModel, TimestampMixin):
    """A disbursement job."""

    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        index=True,
        comment="Recipient record"
    )

    qr_code_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Redeemed code that created this claim"
    )

    blockchain: Mapped[str] = mapped_column(
        String(32),
        comment="Target chain identifier as submitted by intake"
    )

    status: Mapped[ClaimStatus] = mapped_column(
        SQLEnum(
            ClaimStatus,
            name="claimstatus",
            values_callable=lambda e: [member.value for member in e],
        ),
        default=ClaimStatus.PENDING,
        nullable=False,
        comment="pending, success or failed"
    )

    tx_hash: Mapped[Optional[str]] = mapped_column(
        String(128),
        nullable=True,
        comment="Transaction hash (final on success, provisional after an ambiguous attempt)"
    )

    error_message: Mapped[Optional[str]] = mapped_column(
        String(ERROR_MESSAGE_MAX_LENGTH),
        nullable=True,
        comment="Error from the last failed attempt"
    )

    retry_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Number of failed attempts"
    )

    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        comment="When the worker last attempted this claim"
    )

    next_retry_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        comment="Earliest time a failed claim may be retried"
    )

    recipient: Mapped["Recipient"] = relationship(
        "Recipient",
        back_populates="claims",
        lazy="raise",
    )

    __table_args__ = (
        Index("idx_claims_status_created", "status", "created_at"),
        Index("idx_claims_next_retry", "status", "next_retry_at"),
        CheckConstraint("retry_count >= 0", name="ck_claims_retry_count_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Claim(id={self.id}, chain={self.blockchain}, status={self.status.value})>"

    @property
    def is_final(self) -> bool:
        return self.status == ClaimStatus.SUCCESS

    def is_retry_eligible(self, now: datetime, max_retries: int) -> bool:
        """Check whether a failed claim may be picked up again."""
        return (
            self.status == ClaimStatus.FAILED
            and self.retry_count < max_retries
            and (self.next_retry_at is None or now >= self.next_retry_at)
        )
