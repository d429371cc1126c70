"""Initial schema: users, tags, questions, answers, interactions and join tables

Revision ID: 5c1e0f2a9d3b
Revises:
Create Date: 2026-10-16 00:00:00.000000

Creates the 5 entity tables plus the join tables that hold question tags,
vote sets and interaction tags. Vote sets use composite primary keys so a
user appears at most once per set. Tag names are unique case-insensitively
through a functional index on lower(name).
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c1e0f2a9d3b"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def _link_table(name: str, left: str, left_table: str, right: str, right_table: str) -> None:
    op.create_table(
        name,
        sa.Column(
            left,
            UUID(as_uuid=True),
            sa.ForeignKey(f"{left_table}.id", name=f"fk_{name}_{left}_{left_table}"),
            nullable=False,
        ),
        sa.Column(
            right,
            UUID(as_uuid=True),
            sa.ForeignKey(f"{right_table}.id", name=f"fk_{name}_{right}_{right_table}"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint(left, right, name=f"pk_{name}"),
    )


def upgrade() -> None:
    # --- users table ---
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("clerk_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("picture", sa.String(1024), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("portfolio_website", sa.String(1024), nullable=True),
        sa.Column("reputation", sa.Integer(), nullable=False, server_default="0"),
        _created_at("joined_at"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_clerk_id", "users", ["clerk_id"], unique=True)

    # --- tags table ---
    op.create_table(
        "tags",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
    )
    op.execute("CREATE UNIQUE INDEX uq_tags_name_lower ON tags (lower(name))")

    # --- questions table ---
    op.create_table(
        "questions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "author_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_questions_author_id_users"),
            nullable=False,
        ),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        _created_at("updated_at"),
    )
    op.create_index("ix_questions_author_id", "questions", ["author_id"])
    op.create_index("ix_questions_created_at", "questions", ["created_at"])

    # --- answers table ---
    op.create_table(
        "answers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "question_id",
            UUID(as_uuid=True),
            sa.ForeignKey("questions.id", name="fk_answers_question_id_questions"),
            nullable=False,
        ),
        sa.Column(
            "author_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_answers_author_id_users"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_answers_question_id", "answers", ["question_id"])
    op.create_index("ix_answers_author_id", "answers", ["author_id"])

    # --- interactions table ---
    op.create_table(
        "interactions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_interactions_user_id_users"),
            nullable=False,
        ),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column(
            "question_id",
            UUID(as_uuid=True),
            sa.ForeignKey("questions.id", name="fk_interactions_question_id_questions"),
            nullable=True,
        ),
        sa.Column(
            "answer_id",
            UUID(as_uuid=True),
            sa.ForeignKey("answers.id", name="fk_interactions_answer_id_answers"),
            nullable=True,
        ),
        _created_at(),
    )
    op.create_index("ix_interactions_user_id", "interactions", ["user_id"])
    op.create_index("ix_interactions_question_id", "interactions", ["question_id"])

    # --- join tables ---
    _link_table("question_tags", "question_id", "questions", "tag_id", "tags")
    _link_table("question_upvotes", "question_id", "questions", "user_id", "users")
    _link_table("question_downvotes", "question_id", "questions", "user_id", "users")
    _link_table("answer_upvotes", "answer_id", "answers", "user_id", "users")
    _link_table("answer_downvotes", "answer_id", "answers", "user_id", "users")
    _link_table("interaction_tags", "interaction_id", "interactions", "tag_id", "tags")


def downgrade() -> None:
    # Drop tables in reverse dependency order
    for name in (
        "interaction_tags",
        "answer_downvotes",
        "answer_upvotes",
        "question_downvotes",
        "question_upvotes",
        "question_tags",
    ):
        op.drop_table(name)
    op.drop_index("ix_interactions_question_id", table_name="interactions")
    op.drop_index("ix_interactions_user_id", table_name="interactions")
    op.drop_table("interactions")
    op.drop_index("ix_answers_author_id", table_name="answers")
    op.drop_index("ix_answers_question_id", table_name="answers")
    op.drop_table("answers")
    op.drop_index("ix_questions_created_at", table_name="questions")
    op.drop_index("ix_questions_author_id", table_name="questions")
    op.drop_table("questions")
    op.execute("DROP INDEX IF EXISTS uq_tags_name_lower")
    op.drop_table("tags")
    op.drop_index("ix_users_clerk_id", table_name="users")
    op.drop_table("users")
