"""Project API routes: boards, their columns/labels/states, and grants.

Columns, labels and states share one service path (ProjectService.*_child)
keyed by model; the routes below are thin per-kind wrappers so each gets
its own schema and OpenAPI entry.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from foxboard.api.pagination import get_pagination
from foxboard.api.tasks import task_read
from foxboard.auth.dependencies import AuthenticatedUser, get_current_user
from foxboard.db.engine import get_db
from foxboard.db.models import Label, Permission, ProjectColumn, ProjectPermission, State
from foxboard.schemas.common import Page, Pagination, SuccessRead
from foxboard.schemas.project import (
    ColumnCreate,
    ColumnRead,
    ColumnUpdate,
    GrantRead,
    GrantSet,
    LabelRead,
    NamedCreate,
    NamedUpdate,
    ProjectCreate,
    ProjectDetail,
    ProjectRead,
    ProjectUpdate,
    StateRead,
)
from foxboard.schemas.task import TaskRead
from foxboard.services.project_service import ProjectService
from foxboard.services.task_service import TaskService

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> ProjectService:
    return ProjectService(db)


def _task_svc(db: AsyncSession = Depends(get_db)) -> TaskService:
    return TaskService(db)


def _grant_read(grant: ProjectPermission) -> GrantRead:
    return GrantRead(
        user_id=grant.user_id,
        project_id=grant.project_id,
        permission=grant.perms.name.lower(),
    )


# ═══════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════


@router.post("/projects", response_model=ProjectRead, status_code=201)
async def create_project(
    body: ProjectCreate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.create_project(identity, body.name, body.public)


# Declared before /projects/{project_id} so "list" is not parsed as an id
@router.get("/projects/list", response_model=Page[ProjectRead])
async def list_projects(
    pag: Pagination = Depends(get_pagination),
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    total, projects = await svc.list_projects(identity, pag)
    return Page[ProjectRead].build(
        [ProjectRead.model_validate(p) for p in projects], pag, total
    )


@router.get("/projects/{project_id}", response_model=ProjectDetail)
async def get_project(
    project_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    """Project with its columns (by index), labels and states."""
    project, columns, labels, states = await svc.get_project(identity, project_id)
    return ProjectDetail(
        **ProjectRead.model_validate(project).model_dump(),
        columns=[ColumnRead.model_validate(c) for c in columns],
        labels=[LabelRead.model_validate(lb) for lb in labels],
        states=[StateRead.model_validate(s) for s in states],
    )


@router.put("/projects/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.update_project(identity, project_id, body)


@router.delete("/projects/{project_id}", response_model=SuccessRead)
async def delete_project(
    project_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    await svc.delete_project(identity, project_id)
    return SuccessRead(success=True)


@router.get("/projects/{project_id}/tasks", response_model=Page[TaskRead])
async def list_project_tasks(
    project_id: uuid.UUID,
    pag: Pagination = Depends(get_pagination),
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: TaskService = Depends(_task_svc),
):
    total, tasks = await svc.list_tasks(identity, project_id, pag)
    return Page[TaskRead].build(
        [task_read(task, labels) for task, labels in tasks], pag, total
    )


# ═══════════════════════════════════════════════════════════
# Columns
# ═══════════════════════════════════════════════════════════


@router.get("/projects/{project_id}/columns", response_model=list[ColumnRead])
async def list_columns(
    project_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.list_children(identity, ProjectColumn, project_id)


@router.post("/projects/{project_id}/columns", response_model=ColumnRead, status_code=201)
async def create_column(
    project_id: uuid.UUID,
    body: ColumnCreate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.create_child(identity, ProjectColumn, project_id, **body.model_dump())


@router.put("/projects/{project_id}/columns/{column_id}", response_model=ColumnRead)
async def update_column(
    project_id: uuid.UUID,
    column_id: uuid.UUID,
    body: ColumnUpdate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.update_child(identity, ProjectColumn, project_id, column_id, body)


@router.delete("/projects/{project_id}/columns/{column_id}", response_model=SuccessRead)
async def delete_column(
    project_id: uuid.UUID,
    column_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    await svc.delete_child(identity, ProjectColumn, project_id, column_id)
    return SuccessRead(success=True)


# ═══════════════════════════════════════════════════════════
# Labels
# ═══════════════════════════════════════════════════════════


@router.get("/projects/{project_id}/labels", response_model=list[LabelRead])
async def list_labels(
    project_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.list_children(identity, Label, project_id)


@router.post("/projects/{project_id}/labels", response_model=LabelRead, status_code=201)
async def create_label(
    project_id: uuid.UUID,
    body: NamedCreate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.create_child(identity, Label, project_id, name=body.name)


@router.put("/projects/{project_id}/labels/{label_id}", response_model=LabelRead)
async def update_label(
    project_id: uuid.UUID,
    label_id: uuid.UUID,
    body: NamedUpdate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.update_child(identity, Label, project_id, label_id, body)


@router.delete("/projects/{project_id}/labels/{label_id}", response_model=SuccessRead)
async def delete_label(
    project_id: uuid.UUID,
    label_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    await svc.delete_child(identity, Label, project_id, label_id)
    return SuccessRead(success=True)


# ═══════════════════════════════════════════════════════════
# States
# ═══════════════════════════════════════════════════════════


@router.get("/projects/{project_id}/states", response_model=list[StateRead])
async def list_states(
    project_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.list_children(identity, State, project_id)


@router.post("/projects/{project_id}/states", response_model=StateRead, status_code=201)
async def create_state(
    project_id: uuid.UUID,
    body: NamedCreate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.create_child(identity, State, project_id, name=body.name)


@router.put("/projects/{project_id}/states/{state_id}", response_model=StateRead)
async def update_state(
    project_id: uuid.UUID,
    state_id: uuid.UUID,
    body: NamedUpdate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return await svc.update_child(identity, State, project_id, state_id, body)


@router.delete("/projects/{project_id}/states/{state_id}", response_model=SuccessRead)
async def delete_state(
    project_id: uuid.UUID,
    state_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    await svc.delete_child(identity, State, project_id, state_id)
    return SuccessRead(success=True)


# ═══════════════════════════════════════════════════════════
# Grants
# ═══════════════════════════════════════════════════════════


@router.get("/projects/{project_id}/permissions", response_model=list[GrantRead])
async def list_grants(
    project_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    return [_grant_read(g) for g in await svc.list_grants(identity, project_id)]


@router.put("/projects/{project_id}/permissions/{user_id}", response_model=GrantRead)
async def set_grant(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    body: GrantSet,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    """Give user_id owner/editor/reader on the project."""
    grant = await svc.set_grant(
        identity, project_id, user_id, Permission[body.permission.upper()]
    )
    return _grant_read(grant)


@router.delete("/projects/{project_id}/permissions/{user_id}", response_model=SuccessRead)
async def revoke_grant(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: ProjectService = Depends(_svc),
):
    await svc.revoke_grant(identity, project_id, user_id)
    return SuccessRead(success=True)
