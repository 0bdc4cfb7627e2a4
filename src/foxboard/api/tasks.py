"""Task API routes.

Updates are POST /tasks/{id} with a partial body: fields left out are
untouched, explicit nulls clear optional references, and `labels`, when
sent, is the complete new label set.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from foxboard.auth.dependencies import AuthenticatedUser, get_current_user
from foxboard.db.engine import get_db
from foxboard.db.models import Task
from foxboard.schemas.common import SuccessRead
from foxboard.schemas.task import TaskCreate, TaskRead, TaskUpdate
from foxboard.services.task_service import TaskService

router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> TaskService:
    return TaskService(db)


def task_read(task: Task, labels: list[uuid.UUID]) -> TaskRead:
    return TaskRead.model_validate(task).model_copy(update={"labels": list(labels)})


@router.post("/tasks", response_model=TaskRead, status_code=201)
async def create_task(
    body: TaskCreate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: TaskService = Depends(_svc),
):
    task, labels = await svc.create_task(identity, body)
    return task_read(task, labels)


@router.get("/tasks/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: TaskService = Depends(_svc),
):
    task, labels = await svc.get_task(identity, task_id)
    return task_read(task, labels)


@router.post("/tasks/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: TaskService = Depends(_svc),
):
    task, labels = await svc.update_task(identity, task_id, body)
    return task_read(task, labels)


@router.delete("/tasks/{task_id}", response_model=SuccessRead)
async def delete_task(
    task_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: TaskService = Depends(_svc),
):
    await svc.delete_task(identity, task_id)
    return SuccessRead(success=True)
