import logging

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..exceptions import AuthenticationError, ConflictError, ValidationError
from ..models import User

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes and refuses anything longer
MAX_PASSWORD_BYTES = 72


def _too_long(plain: str) -> bool:
    return len(plain.encode()) > MAX_PASSWORD_BYTES


def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.password_hash_rounds)
    return bcrypt.hashpw(plain.encode(), salt).decode()


def verify_password(plain: str, hashed: str) -> bool:
    if _too_long(plain):
        return False
    return bcrypt.checkpw(plain.encode(), hashed.encode())


async def sign_up(db: AsyncSession, name: str, email: str, password: str, password_check: str) -> User:
    """Register a new account. The password is stored as a bcrypt hash."""
    if password != password_check:
        raise ValidationError("Passwords do not match!")
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name or not email or not password:
        raise ValidationError("Name, email and password are required!")
    if _too_long(password):
        raise ValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes long!")

    res = await db.execute(select(User.id).where(User.email == email))
    if res.scalar_one_or_none() is not None:
        raise ConflictError("Email already exists!")

    user = User(name=name, email=email, password=hash_password(password))
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email already exists!")
    logger.info({"event": "signup", "user_id": user.id})
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    """Local email/password strategy."""
    email = (email or "").strip().lower()
    res = await db.execute(select(User).where(User.email == email))
    user = res.scalar_one_or_none()
    if user is None or not verify_password(password or "", user.password):
        raise AuthenticationError("Incorrect email or password!")
    return user
