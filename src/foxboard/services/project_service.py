"""Project service: boards, their columns/labels/states, and access grants.

Every operation loads the project first (404 if missing), then checks the
caller against the level the operation needs:

  read project / list children          READER
  create / update child, rename project EDITOR
  change owner_id or public             OWNER
  delete project or child, manage grants OWNER

Children addressed by id must belong to the project in the URL; a column of
another project is reported as not found.
"""

import uuid
from typing import Optional, Union

import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from foxboard.auth.dependencies import AuthenticatedUser
from foxboard.auth.permissions import require_permission
from foxboard.db.engine import upsert_insert
from foxboard.db.models import (
    Label,
    Permission,
    Project,
    ProjectColumn,
    ProjectPermission,
    State,
    Task,
    User,
    labels_tasks,
)
from foxboard.errors import NotFoundError, RequestError
from foxboard.schemas.common import Pagination
from foxboard.schemas.project import ColumnUpdate, NamedUpdate, ProjectUpdate

logger = structlog.get_logger()

ChildModel = Union[type[ProjectColumn], type[Label], type[State]]

_CHILD_NAMES = {ProjectColumn: "Column", Label: "Label", State: "State"}


class ProjectService:
    """Business logic for projects and everything hanging off them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Helpers ────────────────────────────────────────

    async def load_project(self, project_id: uuid.UUID) -> Project:
        project = await self.db.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    async def authorize(
        self, caller: AuthenticatedUser, project_id: uuid.UUID, required: Permission
    ) -> Project:
        """Load a project and require `required` on it."""
        project = await self.load_project(project_id)
        await require_permission(self.db, caller.user, project, required)
        return project

    # ─── Projects ───────────────────────────────────────

    async def create_project(
        self, caller: AuthenticatedUser, name: str, public: bool = False
    ) -> Project:
        project = Project(name=name, public=public, owner_id=caller.id)
        self.db.add(project)
        await self.db.commit()
        logger.info("project.created", project_id=str(project.id), owner_id=str(caller.id))
        return project

    async def get_project(
        self, caller: AuthenticatedUser, project_id: uuid.UUID
    ) -> tuple[Project, list[ProjectColumn], list[Label], list[State]]:
        """A project with its columns (by index), labels and states."""
        project = await self.authorize(caller, project_id, Permission.READER)
        columns = await self._children(ProjectColumn, project_id)
        labels = await self._children(Label, project_id)
        states = await self._children(State, project_id)
        return project, columns, labels, states

    def _visible_to(self, caller: AuthenticatedUser):
        granted = select(ProjectPermission.project_id).where(
            ProjectPermission.user_id == caller.id,
            ProjectPermission.perms != Permission.NONE,
        )
        return or_(
            Project.owner_id == caller.id,
            Project.public.is_(True),
            Project.id.in_(granted),
        )

    async def list_projects(
        self, caller: AuthenticatedUser, pag: Pagination
    ) -> tuple[int, list[Project]]:
        """Admins see everything; others see owned, public and granted projects."""
        query = select(Project)
        count_query = select(func.count()).select_from(Project)
        if not caller.is_admin:
            query = query.where(self._visible_to(caller))
            count_query = count_query.where(self._visible_to(caller))

        total = await self.db.scalar(count_query)
        result = await self.db.execute(
            query.order_by(Project.created_at, Project.name)
            .limit(pag.count)
            .offset(pag.offset)
        )
        return total or 0, list(result.scalars().all())

    @staticmethod
    def required_for_update(body: ProjectUpdate) -> Permission:
        fields = body.model_fields_set
        if ("public" in fields and body.public is not None) or (
            "owner_id" in fields and body.owner_id is not None
        ):
            return Permission.OWNER
        return Permission.EDITOR

    async def update_project(
        self, caller: AuthenticatedUser, project_id: uuid.UUID, body: ProjectUpdate
    ) -> Project:
        project = await self.authorize(
            caller, project_id, self.required_for_update(body)
        )

        changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
        if "owner_id" in changes and await self.db.get(User, changes["owner_id"]) is None:
            raise RequestError("New owner does not exist")

        for field, value in changes.items():
            setattr(project, field, value)
        await self.db.commit()
        logger.info(
            "project.updated",
            project_id=str(project_id),
            by=str(caller.id),
            fields=sorted(changes),
        )
        return project

    async def delete_project(self, caller: AuthenticatedUser, project_id: uuid.UUID) -> None:
        await self.authorize(caller, project_id, Permission.OWNER)
        await self.purge_project(project_id)
        await self.db.commit()
        logger.info("project.deleted", project_id=str(project_id), by=str(caller.id))

    async def purge_project(self, project_id: uuid.UUID) -> None:
        """Delete a project and everything under it. Does not commit."""
        task_ids = select(Task.id).where(Task.project_id == project_id)
        label_ids = select(Label.id).where(Label.project_id == project_id)
        await self.db.execute(
            delete(labels_tasks).where(
                or_(
                    labels_tasks.c.task_id.in_(task_ids),
                    labels_tasks.c.label_id.in_(label_ids),
                )
            )
        )
        await self.db.execute(
            update(Task).where(Task.project_id == project_id).values(parent_id=None)
        )
        for model in (Task, ProjectColumn, Label, State, ProjectPermission):
            await self.db.execute(delete(model).where(model.project_id == project_id))
        await self.db.execute(delete(Project).where(Project.id == project_id))

    # ─── Columns / labels / states ──────────────────────

    async def _children(self, model: ChildModel, project_id: uuid.UUID) -> list:
        query = select(model).where(model.project_id == project_id)
        if model is ProjectColumn:
            query = query.order_by(ProjectColumn.index, ProjectColumn.name)
        else:
            query = query.order_by(model.name)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_child(self, model: ChildModel, project_id: uuid.UUID, child_id: uuid.UUID):
        child = await self.db.get(model, child_id)
        if child is None or child.project_id != project_id:
            raise NotFoundError(f"{_CHILD_NAMES[model]} not found")
        return child

    async def list_children(
        self, caller: AuthenticatedUser, model: ChildModel, project_id: uuid.UUID
    ) -> list:
        await self.authorize(caller, project_id, Permission.READER)
        return await self._children(model, project_id)

    async def create_child(
        self, caller: AuthenticatedUser, model: ChildModel, project_id: uuid.UUID, **fields
    ):
        await self.authorize(caller, project_id, Permission.EDITOR)
        child = model(project_id=project_id, **fields)
        self.db.add(child)
        await self.db.commit()
        logger.info(
            "project.child_created",
            kind=_CHILD_NAMES[model].lower(),
            project_id=str(project_id),
            child_id=str(child.id),
        )
        return child

    async def update_child(
        self,
        caller: AuthenticatedUser,
        model: ChildModel,
        project_id: uuid.UUID,
        child_id: uuid.UUID,
        body: Union[ColumnUpdate, NamedUpdate],
    ):
        await self.authorize(caller, project_id, Permission.EDITOR)
        child = await self.get_child(model, project_id, child_id)
        for field, value in body.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(child, field, value)
        await self.db.commit()
        return child

    async def delete_child(
        self,
        caller: AuthenticatedUser,
        model: ChildModel,
        project_id: uuid.UUID,
        child_id: uuid.UUID,
    ) -> None:
        """Delete a column/label/state; tasks pointing at it are detached."""
        await self.authorize(caller, project_id, Permission.OWNER)
        await self.get_child(model, project_id, child_id)

        if model is ProjectColumn:
            await self.db.execute(
                update(Task).where(Task.column_id == child_id).values(column_id=None)
            )
        elif model is State:
            await self.db.execute(
                update(Task).where(Task.state_id == child_id).values(state_id=None)
            )
        else:
            await self.db.execute(
                delete(labels_tasks).where(labels_tasks.c.label_id == child_id)
            )
        await self.db.execute(delete(model).where(model.id == child_id))
        await self.db.commit()
        logger.info(
            "project.child_deleted",
            kind=_CHILD_NAMES[model].lower(),
            project_id=str(project_id),
            child_id=str(child_id),
        )

    # ─── Grants ─────────────────────────────────────────

    async def list_grants(
        self, caller: AuthenticatedUser, project_id: uuid.UUID
    ) -> list[ProjectPermission]:
        await self.authorize(caller, project_id, Permission.OWNER)
        result = await self.db.execute(
            select(ProjectPermission).where(ProjectPermission.project_id == project_id)
        )
        return list(result.scalars().all())

    async def set_grant(
        self,
        caller: AuthenticatedUser,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        permission: Permission,
    ) -> ProjectPermission:
        """Give a collaborator a level on the project (insert or replace)."""
        if permission in (Permission.ADMIN, Permission.NONE):
            raise RequestError("Grant must be owner, editor or reader")
        await self.authorize(caller, project_id, Permission.OWNER)
        if await self.db.get(User, user_id) is None:
            raise NotFoundError("User not found")

        stmt = upsert_insert(self.db, ProjectPermission).values(
            user_id=user_id, project_id=project_id, perms=permission
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "project_id"],
            set_={"perms": stmt.excluded.perms},
        )
        await self.db.execute(stmt)
        await self.db.commit()
        grant = await self._get_grant(project_id, user_id)
        logger.info(
            "project.grant_set",
            project_id=str(project_id),
            user_id=str(user_id),
            permission=permission.name,
        )
        return grant

    async def revoke_grant(
        self, caller: AuthenticatedUser, project_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        await self.authorize(caller, project_id, Permission.OWNER)
        grant = await self._get_grant(project_id, user_id)
        if grant is None:
            raise NotFoundError("Grant not found")
        await self.db.delete(grant)
        await self.db.commit()
        logger.info("project.grant_revoked", project_id=str(project_id), user_id=str(user_id))

    async def _get_grant(
        self, project_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[ProjectPermission]:
        result = await self.db.execute(
            select(ProjectPermission).where(
                ProjectPermission.project_id == project_id,
                ProjectPermission.user_id == user_id,
            ).execution_options(populate_existing=True)
        )
        return result.scalars().first()
