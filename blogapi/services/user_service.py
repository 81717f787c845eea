"""
User service: the credential store.

Emails are normalised to lower case before they reach this module, so the
unique constraint on ``users.email`` is effectively case-insensitive.
bcrypt work is pushed onto the threadpool to keep the event loop free.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from blogapi.exceptions import Conflict, Unauthorized
from blogapi.models import User
from blogapi.schemas import UserRegister
from blogapi.security import hash_password, verify_password

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
EMAIL_TAKEN = "This email is already registered"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_dict(user: User) -> dict:
    """Public view of a user; the password hash is never included."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def find_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def register_user(db: AsyncSession, data: UserRegister) -> User:
    """
    Create a user with a salted bcrypt hash of *data.password*.

    Raises ``Conflict`` when the email is already registered, either found
    up front or reported by the unique constraint under a concurrent insert.
    """
    if await find_by_email(db, data.email) is not None:
        raise Conflict(EMAIL_TAKEN)

    password_hash = await run_in_threadpool(hash_password, data.password)
    user = User(name=data.name, email=data.email, password_hash=password_hash)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise Conflict(EMAIL_TAKEN)

    logger.info("Registered user id=%s", user.id)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """Return the user for valid credentials, otherwise raise ``Unauthorized``."""
    user = await find_by_email(db, email)
    if user is None:
        logger.warning("Login failed: unknown email")
        raise Unauthorized(INVALID_CREDENTIALS)

    if not await run_in_threadpool(verify_password, password, user.password_hash):
        logger.warning("Login failed for user id=%s: wrong password", user.id)
        raise Unauthorized(INVALID_CREDENTIALS)

    return user
