# scripts/create_admin.py
"""Create the first admin account.

Usage: python -m scripts.create_admin
Reads ADMIN_EMAIL, ADMIN_PASSWORD and ADMIN_NAME from the environment (.env).
"""
import asyncio
import logging
import os
import sys
import uuid
from datetime import datetime

from database import db, init_db
from routes.auth import hash_password

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def create_admin(database, name: str, email: str, password: str) -> bool:
    """Insert an admin user unless the email is taken. Returns True when created."""
    email = email.strip().lower()
    if await database.users.find_one({"email": email}):
        logger.info(f"User already exists: {email}")
        return False

    now = datetime.utcnow()
    await database.users.insert_one({
        "id": str(uuid.uuid4()),
        "name": name,
        "email": email,
        "password": hash_password(password),
        "role": "admin",
        "accountStatus": "active",
        "profileComplete": False,
        "createdAt": now,
        "updatedAt": now,
    })
    logger.info(f"Admin user created: {email}")
    return True


async def main() -> int:
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        logger.error("ADMIN_EMAIL and ADMIN_PASSWORD must be set")
        return 1
    if len(password) < 6:
        logger.error("ADMIN_PASSWORD must be at least 6 characters")
        return 1

    await init_db()
    await create_admin(db, os.getenv("ADMIN_NAME", "Administrator"), email, password)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
