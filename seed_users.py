import asyncio
import logging
from sqlmodel import select
from skillswap.db import init_db, get_session
from skillswap.models.user import User
from skillswap.core.config import get_settings
from skillswap.core.logging_config import setup_logging
from skillswap.utils.auth import get_password_hash

logger = logging.getLogger("seed_users")

users = [
    {
        "name": "Admin User",
        "email": "admin@skillswap.com",
        "password": "admin123",
        "role": "admin",
        "is_email_verified": True,
        "skills_offered": ["Platform Management", "User Support"],
        "skills_wanted": ["Community Building"],
        "location": "Platform HQ",
        "bio": "Platform administrator with full access to all features.",
    },
    {
        "name": "Demo User",
        "email": "demo@skillswap.com",
        "password": "demo123",
        "is_email_verified": True,
        "skills_offered": ["JavaScript", "React", "Node.js"],
        "skills_wanted": ["Python", "Machine Learning", "Data Science"],
        "location": "New York, NY",
        "availability": "Weekends",
        "bio": "Full-stack developer looking to expand into data science.",
    },
    {
        "name": "Alice Johnson",
        "email": "alice@example.com",
        "password": "password123",
        "skills_offered": ["Python", "Data Analysis", "SQL"],
        "skills_wanted": ["React", "Frontend Development"],
        "location": "San Francisco, CA",
        "availability": "Evenings",
    },
    {
        "name": "Bob Smith",
        "email": "bob@example.com",
        "password": "password123",
        "skills_offered": ["Graphic Design", "Photoshop", "Illustrator"],
        "skills_wanted": ["Web Design", "UX/UI"],
        "location": "Los Angeles, CA",
        "availability": "Weekends",
    },
]

async def seed_users():
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    init_db(settings)

    async for session in get_session():
        for data in users:
            data = dict(data)
            result = await session.execute(select(User).where(User.email == data["email"]))
            if result.scalar_one_or_none() is not None:
                logger.info("User already exists: %s", data["email"])
                continue

            password = data.pop("password")
            session.add(User(hashed_password=get_password_hash(password), **data))
            logger.info("Added user: %s", data["email"])

        await session.commit()

if __name__ == "__main__":
    asyncio.run(seed_users())
