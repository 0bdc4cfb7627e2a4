"""Pydantic schemas for users and login.

Create schemas (input) are separate from Read schemas (output); the
password hash never leaves the server.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    token: str


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)
    is_admin: bool = False


class UserUpdate(BaseModel):
    """Partial update of a user record.

    `id` targets another user (admins only); omitted means the caller.
    Changing the password needs old_password unless the caller is an admin.
    """
    id: Optional[uuid.UUID] = None
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    is_admin: Optional[bool] = None
    new_password: Optional[str] = Field(None, min_length=1)
    old_password: Optional[str] = None


class UserRead(BaseModel):
    id: uuid.UUID
    username: str
    is_admin: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
