"""Populate the blog database with demo users, articles and comments."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta
from blogapi.database import engine, async_session, Base
from blogapi.models import Article, Category, Comment, User
from blogapi.security import hash_password

DEMO_PASSWORD = "secret123"

TOPICS = ["python", "fastapi", "postgresql", "docker", "nutrition", "running",
          "football", "cinema", "startups", "marketing", "testing", "security"]


async def seed(small: bool = False):
    num_users = 5 if small else 50
    num_articles = 50 if small else 5000
    max_comments_per_article = 3 if small else 8

    print(f"Seeding: {num_users} users, {num_articles} articles, up to "
          f"{num_articles * max_comments_per_article} comments")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Every demo account shares one password hash.
    password_hash = hash_password(DEMO_PASSWORD)
    categories = list(Category) + [None]

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = User(
                name=f"User {i}",
                email=f"user_{i:04d}@example.com",
                password_hash=password_hash,
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users (password: {DEMO_PASSWORD!r})")

        articles = []
        for i in range(num_articles):
            created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
            topic = random.choice(TOPICS)
            article = Article(
                title=f"Article {i}: notes on {topic}",
                content=f"This is the full content of article {i} about {topic}. " * 10,
                category=random.choice(categories),
                published=random.random() > 0.3,
                view_count=random.randint(0, 5000),
                author_id=random.choice(users).id,
                created_at=created,
                updated_at=created,
            )
            session.add(article)
            articles.append(article)
        await session.flush()
        print(f"  Created {len(articles)} articles")

        total_comments = 0
        for article in articles:
            for _ in range(random.randint(0, max_comments_per_article)):
                session.add(Comment(
                    content=f"Thanks for this write-up on article {article.id}!",
                    article_id=article.id,
                    author_id=random.choice(users).id,
                    like_count=random.randint(0, 50),
                ))
                total_comments += 1
        await session.commit()

    await engine.dispose()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Articles: {num_articles}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (50 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
