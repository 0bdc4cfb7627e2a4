"""Session registry: opaque bearer tokens backed by the user_sessions table.

A token is 64 bytes from the OS CSPRNG, base64-encoded. With that much
entropy no uniqueness re-check is done before insert.

Sessions have no expiry unless FOXB_SESSION_IDLE_TIMEOUT_MINUTES is set, in
which case a session not seen for that long no longer resolves and its row
is deleted on that lookup. Logout deletes the row too.
"""

import base64
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from foxboard.config import settings
from foxboard.db.models import User, UserSession, utcnow

logger = structlog.get_logger()

TOKEN_BYTES = 64


def generate_token() -> str:
    return base64.b64encode(secrets.token_bytes(TOKEN_BYTES)).decode("ascii")


class SessionRegistry:
    """Create, resolve, refresh and revoke login sessions."""

    def __init__(self, db: AsyncSession, idle_timeout_minutes: Optional[int] = None):
        self.db = db
        self.idle_timeout_minutes = (
            idle_timeout_minutes
            if idle_timeout_minutes is not None
            else settings.session_idle_timeout_minutes
        )

    async def create_session(
        self, user_id: uuid.UUID, user_agent: str, ip_addr: str
    ) -> str:
        token = generate_token()
        self.db.add(
            UserSession(
                token=token,
                user_id=user_id,
                user_agent=user_agent,
                ip_addr=ip_addr,
            )
        )
        await self.db.commit()
        logger.info("session.created", user_id=str(user_id), ip_addr=ip_addr)
        return token

    async def resolve_session(
        self, token: str
    ) -> Optional[tuple[User, UserSession]]:
        """Look up the session by exact token and join its user."""
        result = await self.db.execute(
            select(User, UserSession)
            .join(UserSession, UserSession.user_id == User.id)
            .where(UserSession.token == token)
        )
        row = result.first()
        if row is None:
            return None
        user, session = row
        if self._is_idle(session):
            await self.db.execute(delete(UserSession).where(UserSession.token == token))
            await self.db.commit()
            logger.info("session.idle_expired", user_id=str(user.id))
            return None
        return user, session

    async def touch_session(self, token: str, user_agent: str, ip_addr: str) -> None:
        """Record the latest client metadata for a session.

        Commits on its own: activity tracking is not part of whatever the
        request goes on to do.
        """
        await self.db.execute(
            update(UserSession)
            .where(UserSession.token == token)
            .values(user_agent=user_agent, ip_addr=ip_addr, last_seen_at=utcnow())
        )
        await self.db.commit()

    async def revoke_session(self, token: str) -> None:
        await self.db.execute(delete(UserSession).where(UserSession.token == token))
        await self.db.commit()
        logger.info("session.revoked")

    async def revoke_user_sessions(
        self, user_id: uuid.UUID, keep_token: Optional[str] = None
    ) -> None:
        """Drop every session of a user, optionally sparing the current one.

        Does not commit; callers fold this into their own transaction.
        """
        stmt = delete(UserSession).where(UserSession.user_id == user_id)
        if keep_token is not None:
            stmt = stmt.where(UserSession.token != keep_token)
        await self.db.execute(stmt)

    def _is_idle(self, session: UserSession) -> bool:
        if not self.idle_timeout_minutes:
            return False
        last_seen = session.last_seen_at
        if last_seen.tzinfo is None:
            # SQLite hands back naive datetimes
            last_seen = last_seen.replace(tzinfo=timezone.utc)
        cutoff = datetime.now(timezone.utc) - timedelta(
            minutes=self.idle_timeout_minutes
        )
        return last_seen < cutoff
