# database.py
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
import logging

from config import MONGODB_URI, DB_NAME

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGODB_URI)
db = client[DB_NAME]


def get_db():
    """FastAPI dependency returning the application database."""
    return db


async def init_db(database=None):
    database = database if database is not None else db
    logger.info(f"Creating indexes on database: {database.name}")
    for collection in ("users", "tests", "test_results", "resources"):
        await database[collection].create_index("id", unique=True)
    await database.users.create_index("email", unique=True)
    await database.users.create_index([("role", ASCENDING), ("accountStatus", ASCENDING)])
    await database.tests.create_index([("createdBy", ASCENDING), ("createdAt", DESCENDING)])
    await database.test_results.create_index([("student", ASCENDING), ("test", ASCENDING)])
    await database.test_results.create_index([("student", ASCENDING), ("createdAt", DESCENDING)])
    await database.test_results.create_index([("test", ASCENDING), ("score", DESCENDING)])
    await database.test_results.create_index("expiresAt", expireAfterSeconds=0)
    await database.resources.create_index(
        [("category", ASCENDING), ("type", ASCENDING), ("difficulty", ASCENDING)]
    )
    await database.resources.create_index([("viewCount", DESCENDING), ("isPublic", ASCENDING)])
