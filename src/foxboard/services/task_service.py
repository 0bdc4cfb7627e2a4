"""Task service: cards on a board.

Tasks inherit access from their project: reading needs READER, creating and
editing EDITOR, deleting OWNER.

Every reference a task carries (column, state, labels, parent) must point
into the task's own project; the assignee must be an existing user. The
parent link forms a tree, so an update may not make a task its own
ancestor.

A task and its label links are written in one transaction. On update the
requested label set is diffed against the stored one and only the
difference is inserted/deleted.
"""

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from foxboard.auth.dependencies import AuthenticatedUser
from foxboard.db.engine import upsert_insert
from foxboard.db.models import (
    Label,
    Permission,
    ProjectColumn,
    State,
    Task,
    User,
    labels_tasks,
)
from foxboard.errors import NotFoundError, RequestError
from foxboard.schemas.common import Pagination
from foxboard.schemas.task import TaskCreate, TaskUpdate
from foxboard.services.project_service import ProjectService

logger = structlog.get_logger()


def diff_labels(
    current: Iterable[uuid.UUID], requested: Iterable[uuid.UUID]
) -> tuple[set[uuid.UUID], set[uuid.UUID]]:
    """(to_add, to_remove) turning the current label set into the requested one."""
    current, requested = set(current), set(requested)
    return requested - current, current - requested


class TaskService:
    """Business logic for task CRUD and label links."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.projects = ProjectService(db)

    # ─── Helpers ────────────────────────────────────────

    async def load_task(self, task_id: uuid.UUID) -> Task:
        task = await self.db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def get_label_ids(self, task_id: uuid.UUID) -> list[uuid.UUID]:
        result = await self.db.execute(
            select(labels_tasks.c.label_id).where(labels_tasks.c.task_id == task_id)
        )
        return list(result.scalars().all())

    async def _check_in_project(
        self, model, ref_id: Optional[uuid.UUID], project_id: uuid.UUID, what: str
    ) -> None:
        if ref_id is None:
            return
        obj = await self.db.get(model, ref_id)
        if obj is None or obj.project_id != project_id:
            raise RequestError(f"{what} does not belong to the project")

    async def _check_labels(
        self, label_ids: Iterable[uuid.UUID], project_id: uuid.UUID
    ) -> None:
        wanted = set(label_ids)
        if not wanted:
            return
        result = await self.db.execute(
            select(Label.id).where(Label.id.in_(list(wanted)), Label.project_id == project_id)
        )
        if set(result.scalars().all()) != wanted:
            raise RequestError("Label does not belong to the project")

    async def _check_assignee(self, assignee_id: Optional[uuid.UUID]) -> None:
        if assignee_id is not None and await self.db.get(User, assignee_id) is None:
            raise RequestError("Assignee does not exist")

    async def _check_parent(
        self, task_id: Optional[uuid.UUID], parent_id: Optional[uuid.UUID], project_id: uuid.UUID
    ) -> None:
        """Parent must be in the same project and must not be a descendant."""
        if parent_id is None:
            return
        await self._check_in_project(Task, parent_id, project_id, "Parent task")
        if task_id is None:
            return
        seen = set()
        cursor: Optional[uuid.UUID] = parent_id
        while cursor is not None and cursor not in seen:
            if cursor == task_id:
                raise RequestError("Task cannot be its own ancestor")
            seen.add(cursor)
            cursor = await self.db.scalar(select(Task.parent_id).where(Task.id == cursor))

    # ─── Create ──────────────────────────────────────────

    async def create_task(self, caller: AuthenticatedUser, body: TaskCreate) -> tuple[Task, list[uuid.UUID]]:
        await self.projects.authorize(caller, body.project_id, Permission.EDITOR)

        await self._check_in_project(ProjectColumn, body.column_id, body.project_id, "Column")
        await self._check_in_project(State, body.state_id, body.project_id, "State")
        await self._check_parent(None, body.parent_id, body.project_id)
        await self._check_assignee(body.assignee_id)
        labels = list(dict.fromkeys(body.labels))
        await self._check_labels(labels, body.project_id)

        task = Task(
            title=body.title,
            project_id=body.project_id,
            column_id=body.column_id,
            state_id=body.state_id,
            assignee_id=body.assignee_id,
            creator_id=caller.id,
            parent_id=body.parent_id,
            deadline=body.deadline,
            estimation=body.estimation,
            task_type=body.task_type,
        )
        self.db.add(task)
        await self.db.flush()  # need task.id for the label links

        if labels:
            await self.db.execute(
                insert(labels_tasks),
                [{"task_id": task.id, "label_id": label_id} for label_id in labels],
            )

        await self.db.commit()
        logger.info(
            "task.created",
            task_id=str(task.id),
            project_id=str(body.project_id),
            labels=len(labels),
        )
        return task, labels

    # ─── Read ────────────────────────────────────────────

    async def get_task(self, caller: AuthenticatedUser, task_id: uuid.UUID) -> tuple[Task, list[uuid.UUID]]:
        task = await self.load_task(task_id)
        await self.projects.authorize(caller, task.project_id, Permission.READER)
        return task, await self.get_label_ids(task.id)

    async def list_tasks(
        self, caller: AuthenticatedUser, project_id: uuid.UUID, pag: Pagination
    ) -> tuple[int, list[tuple[Task, list[uuid.UUID]]]]:
        """Tasks of a project, oldest first, each with its label ids."""
        await self.projects.authorize(caller, project_id, Permission.READER)
        total = await self.db.scalar(
            select(func.count()).select_from(Task).where(Task.project_id == project_id)
        )
        result = await self.db.execute(
            select(Task)
            .where(Task.project_id == project_id)
            .order_by(Task.created_at, Task.title)
            .limit(pag.count)
            .offset(pag.offset)
        )
        tasks = list(result.scalars().all())

        labels: dict[uuid.UUID, list[uuid.UUID]] = {t.id: [] for t in tasks}
        if tasks:
            rows = await self.db.execute(
                select(labels_tasks.c.task_id, labels_tasks.c.label_id).where(
                    labels_tasks.c.task_id.in_(list(labels))
                )
            )
            for task_id, label_id in rows.all():
                labels[task_id].append(label_id)
        return total or 0, [(t, labels[t.id]) for t in tasks]

    # ─── Update ──────────────────────────────────────────

    async def update_task(
        self, caller: AuthenticatedUser, task_id: uuid.UUID, body: TaskUpdate
    ) -> tuple[Task, list[uuid.UUID]]:
        task = await self.load_task(task_id)
        await self.projects.authorize(caller, task.project_id, Permission.EDITOR)

        changes = body.model_dump(exclude_unset=True)
        new_labels = changes.pop("labels", None)
        for required in ("title", "task_type"):
            if required in changes and changes[required] is None:
                raise RequestError(f"{required} cannot be cleared")

        if "column_id" in changes:
            await self._check_in_project(ProjectColumn, changes["column_id"], task.project_id, "Column")
        if "state_id" in changes:
            await self._check_in_project(State, changes["state_id"], task.project_id, "State")
        if "parent_id" in changes:
            await self._check_parent(task.id, changes["parent_id"], task.project_id)
        if "assignee_id" in changes:
            await self._check_assignee(changes["assignee_id"])

        for field, value in changes.items():
            setattr(task, field, value)

        current = await self.get_label_ids(task.id)
        added: set[uuid.UUID] = set()
        removed: set[uuid.UUID] = set()
        if new_labels is not None:
            await self._check_labels(new_labels, task.project_id)
            added, removed = diff_labels(current, new_labels)
            if added:
                # a concurrent update may have linked the same label already
                await self.db.execute(
                    upsert_insert(self.db, labels_tasks).on_conflict_do_nothing(),
                    [{"task_id": task.id, "label_id": label_id} for label_id in added],
                )
            if removed:
                await self.db.execute(
                    delete(labels_tasks).where(
                        labels_tasks.c.task_id == task.id,
                        labels_tasks.c.label_id.in_(list(removed)),
                    )
                )
            current = [label_id for label_id in current if label_id not in removed]
            current += [label_id for label_id in dict.fromkeys(new_labels) if label_id in added]

        await self.db.commit()
        logger.info(
            "task.updated",
            task_id=str(task.id),
            fields=sorted(changes),
            labels_added=len(added),
            labels_removed=len(removed),
        )
        return task, current

    # ─── Delete ──────────────────────────────────────────

    async def delete_task(self, caller: AuthenticatedUser, task_id: uuid.UUID) -> None:
        """Delete a task. Its subtasks stay, detached from the tree."""
        task = await self.load_task(task_id)
        await self.projects.authorize(caller, task.project_id, Permission.OWNER)

        await self.db.execute(
            update(Task).where(Task.parent_id == task_id).values(parent_id=None)
        )
        await self.db.execute(delete(labels_tasks).where(labels_tasks.c.task_id == task_id))
        await self.db.execute(delete(Task).where(Task.id == task_id))
        await self.db.commit()
        logger.info("task.deleted", task_id=str(task_id), by=str(caller.id))
