import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt
from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import settings
from ..models import User, UserSession
from ..schemas import FormRepopulation

logger = logging.getLogger(__name__)

FLASH_SUCCESS = "success_messages"
FLASH_ERROR = "error_messages"
FLASH_FORM = "form"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionService:
    """Signed session tokens and the server-side session rows they point to."""

    @staticmethod
    def create_token(session_id: str, expires_at: datetime) -> str:
        """Create a signed token carrying the session id"""
        to_encode = {"sid": session_id, "exp": expires_at}
        return jwt.encode(
            to_encode,
            settings.session_secret_key,
            algorithm=settings.session_algorithm
        )

    @staticmethod
    def verify_token(token: str) -> Optional[str]:
        """Return the session id of a valid token, None otherwise"""
        try:
            payload = jwt.decode(
                token,
                settings.session_secret_key,
                algorithms=[settings.session_algorithm]
            )
        except JWTError:
            return None
        sid = payload.get("sid")
        return sid if isinstance(sid, str) else None

    @staticmethod
    async def load(db: AsyncSession, token: Optional[str]) -> Optional[UserSession]:
        if not token:
            return None
        session_id = SessionService.verify_token(token)
        if session_id is None:
            return None
        result = await db.execute(
            select(UserSession)
            .options(selectinload(UserSession.user))
            .where(UserSession.id == session_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        if _as_utc(row.expires_at) <= datetime.now(timezone.utc):
            await db.delete(row)
            await db.commit()
            return None
        return row

    @staticmethod
    async def create(db: AsyncSession, user_id: Optional[int] = None, data: Optional[dict] = None) -> tuple[UserSession, str]:
        expires_at = datetime.now(timezone.utc) + \
            timedelta(minutes=settings.session_expiry_minutes)
        row = UserSession(
            id=secrets.token_urlsafe(32),
            user_id=user_id,
            data=dict(data or {}),
            expires_at=expires_at,
        )
        db.add(row)
        await db.commit()
        return row, SessionService.create_token(row.id, expires_at)

    @staticmethod
    async def find(db: AsyncSession, session_id: Optional[str]) -> Optional[UserSession]:
        if not session_id:
            return None
        return await db.get(UserSession, session_id)

    @staticmethod
    async def push_flash(db: AsyncSession, row: UserSession, key: str, value) -> None:
        if inspect(row).expired:
            # a rollback earlier in the request expired the row
            await db.refresh(row)
        data = dict(row.data or {})
        data.setdefault(key, [])
        data[key] = [*data[key], value]
        row.data = data
        await db.commit()


class RequestContext:
    """Per-request state: database session, session row and current user.

    Flash values live in the session row and are cleared when consumed.
    A session row is only created once something needs to be stored.
    """

    def __init__(self, request: Request, db: AsyncSession, session: Optional[UserSession]):
        self.request = request
        self.db = db
        self.session = session
        self.session_id: Optional[str] = session.id if session is not None else None
        self.user: Optional[User] = session.user if session is not None else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def _bind(self, row: UserSession, token: str) -> None:
        self.session = row
        self.session_id = row.id
        # Picked up by the HTTP middleware, which sets the cookie
        self.request.state.session_token = token

    async def _ensure_session(self) -> UserSession:
        if self.session is None:
            self._bind(*await SessionService.create(self.db))
        return self.session

    async def flash(self, key: str, message) -> None:
        row = await self._ensure_session()
        await SessionService.push_flash(self.db, row, key, message)

    async def consume_flash(self, *keys: str) -> dict[str, list]:
        if self.session is None:
            return {key: [] for key in keys}
        data = dict(self.session.data or {})
        consumed = {key: data.pop(key, []) for key in keys}
        if any(consumed.values()):
            self.session.data = data
            await self.db.commit()
        return consumed

    async def flash_form(self, form: FormRepopulation) -> None:
        await self.flash(FLASH_FORM, form.model_dump(exclude_none=True))

    async def consume_form(self) -> FormRepopulation:
        stored = (await self.consume_flash(FLASH_FORM))[FLASH_FORM]
        if not stored:
            return FormRepopulation()
        return FormRepopulation.model_validate(stored[-1])

    async def login(self, user: User) -> None:
        """Bind a fresh session to `user`, carrying pending flash values over."""
        data = {}
        if self.session is not None:
            data = dict(self.session.data or {})
            await self.db.delete(self.session)
        self._bind(*await SessionService.create(self.db, user_id=user.id, data=data))
        self.user = user
        logger.info({"event": "login", "user_id": user.id})

    async def logout(self) -> None:
        """Drop the session row; a new anonymous one is created on next flash."""
        if self.session is not None:
            user_id = self.session.user_id
            await self.db.delete(self.session)
            await self.db.commit()
            logger.info({"event": "logout", "user_id": user_id})
        self.session = None
        self.session_id = None
        self.user = None
        self.request.state.session_token = None
        self.request.state.clear_session = True
