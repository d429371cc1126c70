"""Reputation amounts and the atomic counter update.

Reputation changes are column-expression UPDATEs (reputation + delta) so two
concurrent actions against the same user never lose an increment. They run in
the caller's transaction and commit together with the mutation that caused
them.
"""

import uuid

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from overflow.models.user import User

ASK_QUESTION = 5
POST_ANSWER = 10


async def adjust_reputation(db: AsyncSession, user_id: uuid.UUID, delta: int) -> None:
    if delta == 0:
        return
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(reputation=User.reputation + delta)
        .execution_options(synchronize_session=False)
    )
