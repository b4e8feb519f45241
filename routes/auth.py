# routes/auth.py
from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime, timedelta, timezone
from typing import Optional
import bcrypt
import logging
import uuid

from config import JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRES_DAYS, BCRYPT_ROUNDS
from database import get_db
from errors import AppError, AuthenticationError, ConflictError, ForbiddenError, NotFoundError
from models.user import SignupRequest, LoginRequest, UpdateMeRequest, public_user

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def sign_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "iat": int(now.timestamp()),
        "exp": now + timedelta(days=JWT_EXPIRES_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _changed_password_after(user: dict, issued_at: int) -> bool:
    changed_at = user.get("passwordChangedAt")
    if not changed_at:
        return False
    if changed_at.tzinfo is None:
        changed_at = changed_at.replace(tzinfo=timezone.utc)
    return issued_at < int(changed_at.timestamp())


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db=Depends(get_db)) -> dict:
    if not token:
        raise AuthenticationError("Please log in to access this resource")
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected token: {str(e)}")
        raise AuthenticationError("Invalid token. Please log in again")

    user_id = payload.get("id")
    if not user_id:
        logger.error("Invalid token: missing user id")
        raise AuthenticationError("Invalid token. Please log in again")

    user = await db.users.find_one({"id": user_id}, {"_id": 0})
    if not user:
        logger.warning(f"Token presented for missing user: {user_id}")
        raise AuthenticationError("User no longer exists")
    if _changed_password_after(user, payload.get("iat", 0)):
        raise AuthenticationError("Password was changed recently. Please log in again")
    return user


def restrict_to(*roles: str):
    """Dependency factory admitting only accounts whose role is in ``roles``."""
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user["role"] not in roles:
            logger.warning(f"User {current_user['id']} with role {current_user['role']} denied, needs {roles}")
            raise ForbiddenError("You do not have permission to perform this action")
        return current_user
    return role_checker


def ensure_owner(document: dict, current_user: dict, action: str) -> None:
    """Creators may change their own documents; admins may change any."""
    if current_user["role"] != "admin" and document.get("createdBy") != current_user["id"]:
        logger.warning(f"User {current_user['id']} is not allowed to {action} {document.get('id')}")
        raise ForbiddenError(f"You do not have permission to {action}")


@router.post("/signup", status_code=201)
async def signup(request: SignupRequest, db=Depends(get_db)):
    email = request.email.strip().lower()
    name = request.name.strip()
    if not name:
        raise AppError("Name is required")
    logger.info(f"Signup attempt for email: {email}")

    if await db.users.find_one({"email": email}):
        raise ConflictError("Email already in use")

    now = datetime.utcnow()
    user = {
        "id": str(uuid.uuid4()),
        "name": name,
        "email": email,
        "password": hash_password(request.password),
        "role": "student",
        "accountStatus": "active",
        "profileComplete": False,
        "preferences": {"emailNotifications": True, "studyReminders": True, "theme": "system"},
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        await db.users.insert_one(user)
    except DuplicateKeyError:
        raise ConflictError("Email already in use")
    user.pop("_id", None)

    return {
        "status": "success",
        "token": sign_token(user["id"]),
        "data": {"user": public_user(user)},
    }


@router.post("/login")
async def login(request: LoginRequest, db=Depends(get_db)):
    email = request.email.strip().lower()
    logger.info(f"Login attempt for email: {email}")

    user = await db.users.find_one({"email": email}, {"_id": 0})
    if not user or not verify_password(request.password, user["password"]):
        raise AuthenticationError("Incorrect email or password")

    if request.role and user["role"] != request.role:
        raise ForbiddenError(f"Invalid login attempt. Please use the {user['role']} login.")

    user["lastLogin"] = datetime.utcnow()
    await db.users.update_one({"id": user["id"]}, {"$set": {"lastLogin": user["lastLogin"]}})

    return {
        "status": "success",
        "token": sign_token(user["id"]),
        "data": {"user": public_user(user)},
    }


@router.get("/me")
async def get_me(current_user: dict = Depends(get_current_user)):
    return {"status": "success", "data": {"user": public_user(current_user)}}


@router.patch("/updateMe")
async def update_me(request: UpdateMeRequest, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    if request.email is not None:
        raise AppError("Email cannot be changed")

    updates = {}
    if request.name is not None:
        name = request.name.strip()
        if not name:
            raise AppError("Name cannot be empty")
        updates["name"] = name
    if request.password is not None:
        updates["password"] = hash_password(request.password)
        updates["passwordChangedAt"] = datetime.utcnow()

    logger.info(f"Updating profile for user {current_user['id']}: fields={sorted(k for k in updates if k != 'password')}")
    if not updates:
        return {"status": "success", "data": {"user": public_user(current_user)}}

    updates["updatedAt"] = datetime.utcnow()
    user = await db.users.find_one_and_update(
        {"id": current_user["id"]},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise NotFoundError("User not found")
    user.pop("_id", None)

    response = {"status": "success", "data": {"user": public_user(user)}}
    if "password" in updates:
        response["token"] = sign_token(user["id"])
    return response
