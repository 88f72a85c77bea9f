"""Seed demo users for local development.

Every demo account uses the password ``tweetheart-demo`` and sits in
Manhattan so that they appear in each other's feeds.  Re-running the script
skips accounts that already exist.

Usage: python -m scripts.seed_demo_users
"""
import asyncio
import sys
from datetime import date
sys.path.insert(0, ".")

from sqlalchemy import select
from app.auth import hash_password
from app.database import async_session_factory
from app.models.user import User


DEMO_PASSWORD = "tweetheart-demo"

DEMO_USERS = [
    {
        "email": "demo@tweetheart.com",
        "first_name": "Alex",
        "last_name": "Johnson",
        "gender": "male",
        "birthdate": date(1995, 6, 15),
        "bio": "Love hiking, photography, and good coffee! Always up for an adventure.",
        "latitude": 40.7128,
        "longitude": -74.0060,
    },
    {
        "email": "sarah@tweetheart.com",
        "first_name": "Sarah",
        "last_name": "Williams",
        "gender": "female",
        "birthdate": date(1993, 8, 22),
        "bio": "Artist and traveler. Love painting landscapes and trying new cuisines.",
        "latitude": 40.7589,
        "longitude": -73.9851,
    },
    {
        "email": "michael@tweetheart.com",
        "first_name": "Michael",
        "last_name": "Chen",
        "gender": "male",
        "birthdate": date(1997, 3, 10),
        "bio": "Software engineer by day, foodie by night.",
        "latitude": 40.7282,
        "longitude": -73.9942,
    },
    {
        "email": "emma@tweetheart.com",
        "first_name": "Emma",
        "last_name": "Davis",
        "gender": "female",
        "birthdate": date(1994, 11, 5),
        "bio": "Yoga instructor and wellness enthusiast. Looking for someone who values mindfulness.",
        "latitude": 40.7614,
        "longitude": -73.9776,
    },
    {
        "email": "james@tweetheart.com",
        "first_name": "James",
        "last_name": "Rodriguez",
        "gender": "male",
        "birthdate": date(1992, 1, 30),
        "bio": "Musician and dog lover. Weekends are for live shows and long walks.",
        "latitude": 40.7061,
        "longitude": -74.0087,
    },
    {
        "email": "olivia@tweetheart.com",
        "first_name": "Olivia",
        "last_name": "Martinez",
        "gender": "female",
        "birthdate": date(1996, 7, 18),
        "bio": "Bookworm, runner and amateur baker.",
        "latitude": 40.7831,
        "longitude": -73.9712,
    },
]


async def seed():
    password_hash = hash_password(DEMO_PASSWORD)
    async with async_session_factory() as session:
        for u in DEMO_USERS:
            existing = await session.execute(select(User.id).where(User.email == u["email"]))
            if existing.scalar_one_or_none() is None:
                session.add(User(password_hash=password_hash, photos=[], **u))
                print(f"  Seeded {u['first_name']} <{u['email']}>")
            else:
                print(f"  {u['email']} already exists, skipping.")
        await session.commit()
    print(f"Done seeding demo users (password: {DEMO_PASSWORD}).")


if __name__ == "__main__":
    asyncio.run(seed())
