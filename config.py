# config.py
import os
import logging
from dotenv import load_dotenv

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "exam_prep_db")

JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    logger.warning("JWT_SECRET is not set, falling back to the development secret")
    JWT_SECRET = "your-secret-key"
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", 30))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

PORT = int(os.getenv("PORT", 5000))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

# Test results are purged by a TTL index after this many days
RESULT_RETENTION_DAYS = int(os.getenv("RESULT_RETENTION_DAYS", 365))
