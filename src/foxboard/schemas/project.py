"""Pydantic schemas for projects and their columns, labels, states and grants.

Update schemas are partial: every field is optional and only the fields
actually sent are applied (see model_dump(exclude_unset=True) in the
services).
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ─── Columns ────────────────────────────────────────────

class ColumnCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    card_limit: int = Field(default=0, ge=0)
    index: int = 0


class ColumnUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    card_limit: Optional[int] = Field(None, ge=0)
    index: Optional[int] = None


class ColumnRead(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    name: str
    card_limit: int
    index: int

    model_config = {"from_attributes": True}


# ─── Labels / States ────────────────────────────────────

class NamedCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class NamedUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)


class LabelRead(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    name: str

    model_config = {"from_attributes": True}


class StateRead(LabelRead):
    pass


# ─── Projects ───────────────────────────────────────────

class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    public: bool = False


class ProjectUpdate(BaseModel):
    """Changing owner_id or public needs OWNER; name alone needs EDITOR."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    public: Optional[bool] = None
    owner_id: Optional[uuid.UUID] = None


class ProjectRead(BaseModel):
    id: uuid.UUID
    name: str
    public: bool
    owner_id: uuid.UUID
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProjectDetail(ProjectRead):
    """Project with its board structure."""
    columns: list[ColumnRead] = []
    labels: list[LabelRead] = []
    states: list[StateRead] = []


# ─── Grants ─────────────────────────────────────────────

class GrantSet(BaseModel):
    permission: str = Field(..., pattern=r"^(owner|editor|reader)$")


class GrantRead(BaseModel):
    user_id: uuid.UUID
    project_id: uuid.UUID
    permission: str
