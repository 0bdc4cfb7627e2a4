"""FastAPI auth dependencies.

These are used as Depends() in route handlers to extract and validate the
caller from the request.

- get_current_user: Authorization header -> AuthenticatedUser. Lookup only,
  no side effects.
- record_activity: refreshes the session's user agent / IP. Attached to the
  protected routers in api/__init__.py; FastAPI caches get_current_user per
  request so the lookup still happens once.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from foxboard.auth.sessions import SessionRegistry
from foxboard.db.engine import get_db
from foxboard.db.models import User
from foxboard.errors import AuthError

BEARER_PREFIX = "Bearer "


@dataclass
class AuthenticatedUser:
    """The caller of the current request plus the token they presented."""

    user: User
    token: str

    @property
    def id(self):
        return self.user.id

    @property
    def is_admin(self) -> bool:
        return self.user.is_admin


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an Authorization header value.

    The prefix is matched exactly, case and trailing space included.
    """
    if authorization is None:
        raise AuthError("Auth header missing")
    if not authorization.startswith(BEARER_PREFIX):
        raise AuthError("Doesnt start with 'Bearer '")
    return authorization[len(BEARER_PREFIX):]


def client_metadata(request: Request) -> tuple[str, str]:
    """(user agent, client address) of a request."""
    user_agent = request.headers.get("user-agent", "")
    ip_addr = request.client.host if request.client else "unknown"
    return user_agent, ip_addr


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> AuthenticatedUser:
    """Resolve the caller from the bearer token (401 if that fails)."""
    token = extract_bearer_token(authorization)
    resolved = await SessionRegistry(db).resolve_session(token)
    if resolved is None:
        raise AuthError("Could not find user by token")
    user, _session = resolved
    return AuthenticatedUser(user=user, token=token)


async def record_activity(
    request: Request,
    identity: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> None:
    user_agent, ip_addr = client_metadata(request)
    await SessionRegistry(db).touch_session(identity.token, user_agent, ip_addr)
