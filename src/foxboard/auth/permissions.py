"""Permission resolution and the access guard.

Resolution is three-tiered, cheapest first:
1. Admin callers get ADMIN, no lookup at all.
2. The resource's own fields decide when they can (intrinsic permission):
   a project's owner is OWNER, anyone may read a public project, a user is
   OWNER of their own record.
3. Otherwise the explicit grant in project_permissions, defaulting to NONE.

Columns, labels, states and tasks have no permissions of their own; callers
resolve against the project they belong to.
"""

import uuid
from typing import Optional, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from foxboard.db.models import Permission, Project, ProjectPermission, User
from foxboard.errors import ForbiddenError

logger = structlog.get_logger()

__all__ = [
    "Permission",
    "Resource",
    "get_project_grant",
    "require_permission",
    "resolve_permission",
]


class Resource(Protocol):
    id: uuid.UUID

    def intrinsic_permission(self, caller_id: uuid.UUID) -> Optional[Permission]:
        ...


async def get_project_grant(
    db: AsyncSession, user_id: uuid.UUID, project_id: uuid.UUID
) -> Permission:
    result = await db.execute(
        select(ProjectPermission.perms).where(
            ProjectPermission.user_id == user_id,
            ProjectPermission.project_id == project_id,
        )
    )
    return result.scalars().first() or Permission.NONE


async def resolve_permission(
    db: AsyncSession, caller: User, resource: Resource
) -> Permission:
    """Effective permission of caller over resource."""
    if caller.is_admin:
        return Permission.ADMIN

    intrinsic = resource.intrinsic_permission(caller.id)
    if intrinsic is not None:
        return intrinsic

    if isinstance(resource, Project):
        return await get_project_grant(db, caller.id, resource.id)
    return Permission.NONE


async def require_permission(
    db: AsyncSession,
    caller: User,
    resource: Resource,
    required: Permission,
) -> Permission:
    """Raise ForbiddenError unless caller holds at least `required`.

    Returns the effective permission so callers can branch on it.
    """
    effective = await resolve_permission(db, caller, resource)
    if not effective >= required:
        logger.info(
            "access.denied",
            user_id=str(caller.id),
            resource=type(resource).__name__,
            resource_id=str(resource.id),
            required=required.name,
            effective=effective.name,
        )
        raise ForbiddenError("Insufficient permissions")
    return effective
