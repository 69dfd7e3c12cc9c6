"""Database seeder for local development: one admin, a few authors, many articles."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from cms.database import engine, async_session, Base
from cms.models import Article, Role, User
from cms.security import hash_password

TOPICS = ["python", "fastapi", "postgresql", "redis", "docker", "testing",
          "performance", "security", "caching", "jwt"]


async def seed(small: bool = False, password: str = "secret1"):
    num_users = 5 if small else 25
    num_articles = 50 if small else 2000

    print(f"Seeding: 1 admin, {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # One hash shared by every seeded account keeps seeding fast.
    hashed = hash_password(password)

    async with async_session() as session:
        admin = User(email="admin@example.com", password=hashed, role=Role.ADMIN)
        session.add(admin)

        users = [admin]
        for i in range(num_users):
            user = User(email=f"user_{i:03d}@example.com", password=hashed)
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users (password: {password!r})")

        batch_size = 500
        for batch_start in range(0, num_articles, batch_size):
            batch_end = min(batch_start + batch_size, num_articles)
            for i in range(batch_start, batch_end):
                topic = random.choice(TOPICS)
                created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
                session.add(Article(
                    title=f"Article {i}: notes on {topic}",
                    description=f"A short write-up about {topic}.",
                    content=f"This is the full content of article {i} about {topic}. " * 10,
                    author_id=random.choice(users).id,
                    created_at=created,
                    updated_at=created,
                ))
            await session.flush()
            print(f"  Batch {batch_start}-{batch_end}: articles created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Seed the CMS database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (50 articles)")
    parser.add_argument("--password", default="secret1", help="Password for every seeded account")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small, password=args.password))


if __name__ == "__main__":
    main()
