"""Request/response models for the demonstration routes."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    MODERATOR = "moderator"


class CreateUserRequest(BaseModel):
    """Payload for ``POST /users``."""

    model_config = ConfigDict(extra="forbid")

    email: str = Field(pattern=EMAIL_PATTERN, max_length=254)
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    role: UserRole = UserRole.USER


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool = True
    created_at: str


class CreatePostRequest(BaseModel):
    """Payload for ``POST /posts``."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    excerpt: str | None = None
    author_id: int = Field(ge=1)
    is_published: bool = True


class PostResponse(BaseModel):
    id: int
    title: str
    content: str
    excerpt: str | None = None
    author_id: int
    is_published: bool
    created_at: str


class SimpleHealthStatus(BaseModel):
    """Simple health status response for basic health check."""

    status: str
    service: str
