"""Vote state machine shared by questions and answers.

A user's vote on a post is exactly one of none / up / down. Each vote set is
a join table with a (post, user) primary key, and a single call moves the user
between states:

    current == requested   -> retract   (row removed from that set)
    current == opposite    -> swap      (row moved to the other set)
    current == none        -> add       (row inserted)

Reputation follows the transition. Casting an upvote gives the voter +1 and
the author +10; casting a downvote gives the voter +2 and the author -10.
Retracting reverses the cast amounts, and a swap is a retraction followed by a
cast. The stored state is the source of truth. Callers lock the post row
(lock_post, SELECT ... FOR UPDATE) before reading it, so concurrent votes on
one post are applied one after the other and a user never lands in both
sets.
"""

import enum
import uuid
from dataclasses import dataclass

from sqlalchemy import Column, Select, Table, delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from overflow.exceptions import NotFoundError
from overflow.metrics import votes_cast
from overflow.services.reputation import adjust_reputation


class VoteDirection(str, enum.Enum):
    up = "up"
    down = "down"

    @property
    def opposite(self) -> "VoteDirection":
        return VoteDirection.down if self is VoteDirection.up else VoteDirection.up


class VoteState(str, enum.Enum):
    none = "none"
    up = "up"
    down = "down"


# (voter delta, author delta) for casting a vote in each direction
CAST_DELTAS: dict[VoteDirection, tuple[int, int]] = {
    VoteDirection.up: (1, 10),
    VoteDirection.down: (2, -10),
}


@dataclass(frozen=True)
class VoteTransition:
    previous: VoteState
    new_state: VoteState
    kind: str  # add | retract | swap
    voter_delta: int
    author_delta: int


def plan_vote(current: VoteState, direction: VoteDirection) -> VoteTransition:
    """Compute the next vote state and the reputation deltas it implies."""
    cast_voter, cast_author = CAST_DELTAS[direction]

    if current.value == direction.value:
        return VoteTransition(current, VoteState.none, "retract", -cast_voter, -cast_author)

    if current.value == direction.opposite.value:
        undo_voter, undo_author = CAST_DELTAS[direction.opposite]
        return VoteTransition(
            current,
            VoteState(direction.value),
            "swap",
            cast_voter - undo_voter,
            cast_author - undo_author,
        )

    return VoteTransition(current, VoteState(direction.value), "add", cast_voter, cast_author)


@dataclass(frozen=True)
class VoteTables:
    """The pair of join tables holding one post type's vote sets."""

    target: str  # metric label: "question" | "answer"
    upvotes: Table
    downvotes: Table
    post_column: str  # name of the post FK column in both tables

    def post_col(self, table: Table) -> Column:
        return table.c[self.post_column]

    def table_for(self, state: VoteState) -> Table:
        return self.upvotes if state is VoteState.up else self.downvotes


def locked_post_query(model, post_id: uuid.UUID) -> Select:
    return select(model).where(model.id == post_id).with_for_update()


async def lock_post(db: AsyncSession, model, post_id: uuid.UUID, missing: str):
    """Load a question or answer row FOR UPDATE, raising NotFoundError(missing) if absent."""
    result = await db.execute(locked_post_query(model, post_id))
    post = result.scalar_one_or_none()
    if post is None:
        raise NotFoundError(missing)
    return post


async def current_vote_state(
    db: AsyncSession,
    tables: VoteTables,
    post_id: uuid.UUID,
    user_id: uuid.UUID,
) -> VoteState:
    for state in (VoteState.up, VoteState.down):
        table = tables.table_for(state)
        found = await db.scalar(
            select(func.count())
            .select_from(table)
            .where(tables.post_col(table) == post_id)
            .where(table.c.user_id == user_id)
        )
        if found:
            return state
    return VoteState.none


async def apply_vote(
    db: AsyncSession,
    tables: VoteTables,
    post_id: uuid.UUID,
    author_id: uuid.UUID,
    user_id: uuid.UUID,
    direction: VoteDirection,
) -> VoteTransition:
    """Apply one vote action inside the caller's transaction (caller commits)."""
    current = await current_vote_state(db, tables, post_id, user_id)
    transition = plan_vote(current, direction)

    if transition.previous is not VoteState.none:
        table = tables.table_for(transition.previous)
        await db.execute(
            delete(table)
            .where(tables.post_col(table) == post_id)
            .where(table.c.user_id == user_id)
        )

    if transition.new_state is not VoteState.none:
        table = tables.table_for(transition.new_state)
        await db.execute(
            insert(table).values({tables.post_column: post_id, "user_id": user_id})
        )

    await adjust_reputation(db, user_id, transition.voter_delta)
    await adjust_reputation(db, author_id, transition.author_delta)

    votes_cast.labels(
        target=tables.target, direction=direction.value, transition=transition.kind
    ).inc()
    return transition


async def vote_counts(
    db: AsyncSession,
    tables: VoteTables,
    post_ids: list[uuid.UUID],
) -> dict[uuid.UUID, tuple[int, int]]:
    """Return {post_id: (upvotes, downvotes)} for the given posts in two grouped queries."""
    counts = {post_id: [0, 0] for post_id in post_ids}
    if not post_ids:
        return {}

    for index, table in enumerate((tables.upvotes, tables.downvotes)):
        post_col = tables.post_col(table)
        result = await db.execute(
            select(post_col, func.count())
            .where(post_col.in_(post_ids))
            .group_by(post_col)
        )
        for post_id, count in result.all():
            counts[post_id][index] = count

    return {post_id: (up, down) for post_id, (up, down) in counts.items()}


async def voters(
    db: AsyncSession,
    tables: VoteTables,
    post_id: uuid.UUID,
) -> tuple[set[uuid.UUID], set[uuid.UUID]]:
    """Return the (upvoter ids, downvoter ids) of one post."""
    sets = []
    for table in (tables.upvotes, tables.downvotes):
        result = await db.execute(
            select(table.c.user_id).where(tables.post_col(table) == post_id)
        )
        sets.append(set(result.scalars().all()))
    return sets[0], sets[1]
