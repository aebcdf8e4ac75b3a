"""
Recipient model - the wallet a claim pays out to.
"""

from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin

if TYPE_CHECKING:
    from .claim import Claim


class Recipient(BaseModel, TimestampMixin):
    """Recipient registered by the claim intake API."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    wallet_address: Mapped[str] = mapped_column(
        String(128),
        index=True,
        comment="Destination address, validated by intake"
    )

    ip_hash: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Hashed client IP used for claim limits"
    )

    device_hash: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Hashed device fingerprint used for claim limits"
    )

    claims: Mapped[List["Claim"]] = relationship(
        "Claim",
        back_populates="recipient",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Recipient(id={self.id}, wallet={self.wallet_address})>"
