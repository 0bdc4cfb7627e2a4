"""Pydantic schemas for tasks.

- TaskCreate: what you POST to /tasks
- TaskUpdate: partial; fields left out stay as they are, explicit null clears
- TaskRead: what the API returns, label ids included
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from foxboard.db.models import TaskType


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    project_id: uuid.UUID
    column_id: Optional[uuid.UUID] = None
    state_id: Optional[uuid.UUID] = None
    assignee_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None
    deadline: Optional[datetime] = None
    estimation: Optional[int] = Field(None, ge=0)
    task_type: TaskType = TaskType.STANDARD
    labels: list[uuid.UUID] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    column_id: Optional[uuid.UUID] = None
    state_id: Optional[uuid.UUID] = None
    assignee_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None
    deadline: Optional[datetime] = None
    estimation: Optional[int] = Field(None, ge=0)
    task_type: Optional[TaskType] = None
    labels: Optional[list[uuid.UUID]] = None


class TaskRead(BaseModel):
    id: uuid.UUID
    title: str
    project_id: uuid.UUID
    column_id: Optional[uuid.UUID]
    state_id: Optional[uuid.UUID]
    assignee_id: Optional[uuid.UUID]
    creator_id: Optional[uuid.UUID]
    parent_id: Optional[uuid.UUID]
    deadline: Optional[datetime]
    estimation: Optional[int]
    task_type: TaskType
    labels: list[uuid.UUID] = []

    model_config = {"from_attributes": True}
