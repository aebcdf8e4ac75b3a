"""
Exclusive claim acquisition.

Selects the next eligible claim and locks its row with
`FOR UPDATE SKIP LOCKED` inside the caller's transaction. A row locked by
another worker is skipped rather than waited on, so any number of worker
processes can poll the same table without ever holding the same claim.

Eligible: status=pending, or status=failed with retry_count below the
ceiling and next_retry_at unset or due. Pending claims come first, then
oldest first.
"""

from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import Select, and_, case, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from faucet.models import Claim, ClaimStatus, Recipient


def eligible_claims_query(now: datetime, max_retries: int) -> Select:
    """Build the locking query for the next claim to process."""
    retry_eligible = and_(
        Claim.status == ClaimStatus.FAILED,
        Claim.retry_count < max_retries,
        or_(Claim.next_retry_at.is_(None), Claim.next_retry_at <= now),
    )
    pending_first = case((Claim.status == ClaimStatus.PENDING, 0), else_=1)

    return (
        select(Claim, Recipient.wallet_address)
        .join(Recipient, Claim.user_id == Recipient.id)
        .where(or_(Claim.status == ClaimStatus.PENDING, retry_eligible))
        .order_by(pending_first, Claim.created_at, Claim.id)
        .limit(1)
        .with_for_update(skip_locked=True, of=Claim)
    )


async def acquire_next_claim(
    session: AsyncSession,
    now: datetime,
    max_retries: int,
) -> Optional[Tuple[Claim, str]]:
    """
    Lock and return the next eligible claim with its recipient wallet, or
    None when there is no work. The lock lasts until the caller's
    transaction ends.
    """
    result = await session.execute(eligible_claims_query(now, max_retries))
    row = result.first()
    if row is None:
        return None
    claim, wallet_address = row
    return claim, wallet_address
