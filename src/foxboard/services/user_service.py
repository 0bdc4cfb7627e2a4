"""User service: accounts, login/logout and the bootstrap admin.

The service layer separates business logic from HTTP routing: routes call
services, services call the database and raise typed errors from
foxboard.errors.

User records resolve permissions like any other resource: admins are ADMIN,
a user is OWNER of themselves, everyone else NONE. Which level an update
needs depends on what it touches (see update_user).
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from foxboard.auth.dependencies import AuthenticatedUser
from foxboard.auth.password import hash_password, needs_upgrade, verify_password
from foxboard.auth.permissions import require_permission
from foxboard.auth.sessions import SessionRegistry
from foxboard.db.models import (
    Permission,
    Project,
    ProjectPermission,
    Task,
    User,
)
from foxboard.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RequestError,
)
from foxboard.schemas.common import Pagination
from foxboard.schemas.user import UserUpdate
from foxboard.services.project_service import ProjectService

logger = structlog.get_logger()

# Verified against when the username is unknown, so a miss costs the same
# as a wrong password.
_DUMMY_HASH = hash_password("foxboard-dummy-password")


class UserService:
    """Business logic for user accounts and sessions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sessions = SessionRegistry(db)

    # ─── Lookups ────────────────────────────────────────

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def username_available(self, username: str) -> bool:
        return await self.get_by_username(username) is None

    async def _commit_username(self) -> None:
        """Commit; a unique-username violation from a concurrent writer is a 409."""
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info("user.username_conflict", error=str(e.orig))
            raise ConflictError("Username already taken") from e

    # ─── Login / logout ─────────────────────────────────

    async def login(
        self, username: str, password: str, user_agent: str, ip_addr: str
    ) -> str:
        """Check credentials and open a session. Returns the bearer token."""
        user = await self.get_by_username(username)
        if user is None:
            verify_password(password, _DUMMY_HASH)
            logger.info("login.failed", username=username, reason="unknown_user")
            raise RequestError("username or password wrong")

        if not verify_password(password, user.password_hash):
            logger.info("login.failed", username=username, reason="bad_password")
            raise RequestError("username or password wrong")

        if needs_upgrade(user.password_hash):
            user.password_hash = hash_password(password)
            await self.db.flush()

        return await self.sessions.create_session(user.id, user_agent, ip_addr)

    async def logout(self, caller: AuthenticatedUser) -> None:
        await self.sessions.revoke_session(caller.token)

    # ─── Create ─────────────────────────────────────────

    async def create_user(
        self,
        caller: Optional[AuthenticatedUser],
        username: str,
        password: str,
        is_admin: bool = False,
    ) -> User:
        """Create an account. Only admins may; caller=None is the bootstrap path."""
        if caller is not None and not caller.is_admin:
            raise ForbiddenError("Only admins can create users")
        if not await self.username_available(username):
            raise ConflictError("Username already taken")

        user = User(
            username=username,
            password_hash=hash_password(password),
            is_admin=is_admin,
        )
        self.db.add(user)
        await self._commit_username()
        logger.info("user.created", user_id=str(user.id), is_admin=is_admin)
        return user

    async def bootstrap_admin(self, username: str, password: str) -> Optional[User]:
        """Create the initial admin if no user has that name. Idempotent."""
        if await self.get_by_username(username) is not None:
            return None
        try:
            user = await self.create_user(None, username, password, is_admin=True)
        except ConflictError:
            return None
        logger.info("user.admin_bootstrapped", username=username)
        return user

    # ─── Read ───────────────────────────────────────────

    async def get_user(
        self, caller: AuthenticatedUser, user_id: Optional[uuid.UUID] = None
    ) -> User:
        """The caller's own record, or any record when the caller is an admin."""
        target_id = user_id if user_id is not None and caller.is_admin else caller.id
        user = await self.get_by_id(target_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def list_users(
        self, caller: AuthenticatedUser, pag: Pagination
    ) -> tuple[int, list[User]]:
        if not caller.is_admin:
            raise ForbiddenError("Only admins can list users")
        total = await self.db.scalar(select(func.count()).select_from(User))
        result = await self.db.execute(
            select(User)
            .order_by(User.created_at, User.username)
            .limit(pag.count)
            .offset(pag.offset)
        )
        return total or 0, list(result.scalars().all())

    # ─── Update ─────────────────────────────────────────

    @staticmethod
    def required_for_update(body: UserUpdate, caller_id: uuid.UUID) -> Permission:
        """Promoting/demoting admins or editing someone else needs ADMIN."""
        fields = body.model_fields_set
        if ("id" in fields and body.id is not None and body.id != caller_id) or (
            "is_admin" in fields and body.is_admin is not None
        ):
            return Permission.ADMIN
        return Permission.OWNER

    async def update_user(self, caller: AuthenticatedUser, body: UserUpdate) -> User:
        if not caller.is_admin and (body.new_password is None) != (
            body.old_password is None
        ):
            raise RequestError("Need new and old password to verify")

        target_id = body.id or caller.id
        user = await self.get_by_id(target_id)
        if user is None:
            raise NotFoundError("User not found")

        await require_permission(
            self.db, caller.user, user, self.required_for_update(body, caller.id)
        )

        if (
            body.new_password is not None
            and not caller.is_admin
            and not verify_password(body.old_password or "", user.password_hash)
        ):
            raise ForbiddenError("Old password does not match")

        changes = body.model_dump(exclude_unset=True)
        if changes.get("username") and changes["username"] != user.username:
            if not await self.username_available(changes["username"]):
                raise ConflictError("Username already taken")
            user.username = changes["username"]
        if changes.get("is_admin") is not None:
            user.is_admin = changes["is_admin"]

        if body.new_password is not None:
            user.password_hash = hash_password(body.new_password)
            # Other logins of this user stop working; the caller's stays.
            keep = caller.token if user.id == caller.id else None
            await self.sessions.revoke_user_sessions(user.id, keep_token=keep)

        await self._commit_username()
        logger.info(
            "user.updated",
            user_id=str(user.id),
            by=str(caller.id),
            fields=sorted(k for k in changes if k not in ("old_password", "new_password")),
            password_changed=body.new_password is not None,
        )
        return user

    # ─── Delete ─────────────────────────────────────────

    async def delete_user(self, caller: AuthenticatedUser, user_id: uuid.UUID) -> None:
        """Admins delete anyone, users delete themselves.

        Owned projects go with the account (a project cannot be ownerless);
        tasks elsewhere just lose the assignee/creator reference.
        """
        user = await self.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        await require_permission(self.db, caller.user, user, Permission.OWNER)

        projects = ProjectService(self.db)
        owned = await self.db.execute(
            select(Project.id).where(Project.owner_id == user_id)
        )
        for project_id in owned.scalars().all():
            await projects.purge_project(project_id)

        await self.db.execute(
            update(Task).where(Task.assignee_id == user_id).values(assignee_id=None)
        )
        await self.db.execute(
            update(Task).where(Task.creator_id == user_id).values(creator_id=None)
        )
        await self.db.execute(
            delete(ProjectPermission).where(ProjectPermission.user_id == user_id)
        )
        await self.sessions.revoke_user_sessions(user_id)
        await self.db.execute(delete(User).where(User.id == user_id))
        await self.db.commit()
        logger.info("user.deleted", user_id=str(user_id), by=str(caller.id))
