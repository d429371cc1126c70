"""Seed sample community data into the database.

Creates a handful of users, then asks questions, posts answers and casts votes
through the service layer so reputation, interactions and tag links end up
exactly as they would from real traffic. Faker is seeded (42) so every run
produces the same content.

Usage:
    cd api
    DATABASE_URL="postgresql+asyncpg://..." uv run python -m fixtures.seed_fixtures

The script is idempotent: if the first seed user already exists it prints
"Already seeded" and exits.
"""
import asyncio
import random

from faker import Faker
from sqlalchemy import select

from overflow.database import async_session_factory
from overflow.models.user import User
from overflow.services import answers as answer_service
from overflow.services import questions as question_service
from overflow.services import users as user_service

SEED_USERS = 8
SEED_QUESTIONS = 30
MAX_ANSWERS_PER_QUESTION = 4

TAG_POOL = [
    "python", "javascript", "typescript", "react", "nextjs", "fastapi",
    "sql", "postgres", "docker", "css", "git", "testing",
]


def seed_clerk_id(index: int) -> str:
    return f"seed_user_{index}"


def markdown_body(fake: Faker) -> str:
    """A paragraph, a fenced code block and a closing sentence."""
    code = "\n".join(f"value_{i} = {fake.pyint()}" for i in range(3))
    return f"{fake.paragraph(nb_sentences=4)}\n\n```python\n{code}\n```\n\n{fake.sentence()}"


async def seed() -> None:
    fake = Faker()
    Faker.seed(42)
    rng = random.Random(42)

    async with async_session_factory() as session:
        result = await session.execute(select(User).where(User.clerk_id == seed_clerk_id(0)))
        if result.scalar_one_or_none() is not None:
            print("Already seeded: seed users already exist, skipping.")
            return

        users = []
        for index in range(SEED_USERS):
            profile = fake.simple_profile()
            users.append(
                await user_service.create_user(
                    session,
                    seed_clerk_id(index),
                    name=profile["name"],
                    username=f"{profile['username']}{index}",
                    email=profile["mail"],
                    picture=f"https://i.pravatar.cc/150?u={seed_clerk_id(index)}",
                )
            )
        print(f"Created {len(users)} users")

        answer_count = 0
        vote_count = 0
        for _ in range(SEED_QUESTIONS):
            author = rng.choice(users)
            question = await question_service.create_question(
                session,
                title=fake.sentence(nb_words=8).rstrip(".") + "?",
                content=markdown_body(fake),
                author_id=author.id,
                tags=rng.sample(TAG_POOL, rng.randint(1, 3)),
            )

            others = [u for u in users if u.id != author.id]
            for answerer in rng.sample(others, rng.randint(0, MAX_ANSWERS_PER_QUESTION)):
                answer = await answer_service.create_answer(
                    session,
                    question_id=question.id,
                    author_id=answerer.id,
                    content=markdown_body(fake),
                )
                answer_count += 1
                voter = rng.choice([u for u in others if u.id != answerer.id])
                await answer_service.upvote_answer(session, answer.id, voter.id)
                vote_count += 1

            for voter in rng.sample(others, rng.randint(0, 3)):
                if rng.random() < 0.8:
                    await question_service.upvote_question(session, question.id, voter.id)
                else:
                    await question_service.downvote_question(session, question.id, voter.id)
                vote_count += 1

            for viewer in rng.sample(users, rng.randint(1, 4)):
                await question_service.view_question(session, question.id, viewer.id)

        print("Seeding complete!")
        print(f"  Created: {SEED_QUESTIONS} questions, {answer_count} answers")
        print(f"  Cast: {vote_count} votes")


if __name__ == "__main__":
    asyncio.run(seed())
