"""In-memory users and posts endpoints.

These routes stand in for the business collaborators the pipeline wraps: they
return plain results or raise ``ApiError`` subclasses, and never build
envelopes themselves.

Endpoints:
- GET  /posts              - Published posts (optional ``keyword`` filter)
- GET  /posts/{post_id}    - Single post
- POST /posts              - Create a post for an existing author
- GET  /users/{user_id}    - Single user
- POST /users              - Create a user
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from fastapi import APIRouter, Depends, Request, status

from reqtrail.api.schemas import CreatePostRequest, CreateUserRequest, PostResponse, UserResponse
from reqtrail.utils.errors import ConflictError, NotFoundError
from reqtrail.utils.time_provider import DefaultTimeProvider, TimeProvider, utc_isoformat

logger = logging.getLogger(__name__)

router = APIRouter(tags=["demo"])


class DemoStore:
    """Thread-safe in-memory users/posts store."""

    def __init__(self, time_provider: TimeProvider | None = None) -> None:
        self._time = time_provider or DefaultTimeProvider()
        self._lock = threading.Lock()
        self._users: dict[int, UserResponse] = {}
        self._posts: dict[int, PostResponse] = {}
        self._next_user_id = 1
        self._next_post_id = 1

    def _now(self) -> str:
        return utc_isoformat(self._time.now())

    def create_user(self, payload: CreateUserRequest) -> UserResponse:
        with self._lock:
            email = payload.email.lower()
            if any(user.email == email for user in self._users.values()):
                raise ConflictError(f"User with email {email} already exists")
            user = UserResponse(
                id=self._next_user_id,
                email=email,
                first_name=payload.first_name,
                last_name=payload.last_name,
                role=payload.role,
                created_at=self._now(),
            )
            self._users[user.id] = user
            self._next_user_id += 1
        logger.info("Created user %d", user.id)
        return user

    def get_user(self, user_id: int) -> UserResponse:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        return user

    def create_post(self, payload: CreatePostRequest) -> PostResponse:
        with self._lock:
            if payload.author_id not in self._users:
                raise NotFoundError("Author not found")
            post = PostResponse(
                id=self._next_post_id,
                title=payload.title,
                content=payload.content,
                excerpt=payload.excerpt,
                author_id=payload.author_id,
                is_published=payload.is_published,
                created_at=self._now(),
            )
            self._posts[post.id] = post
            self._next_post_id += 1
        logger.info("Created post %d", post.id)
        return post

    def list_posts(self, keyword: str | None = None) -> list[PostResponse]:
        posts = [post for post in self._posts.values() if post.is_published]
        if keyword:
            needle = keyword.lower()
            posts = [
                post
                for post in posts
                if needle in post.title.lower() or needle in post.content.lower()
            ]
        return posts

    def get_post(self, post_id: int) -> PostResponse:
        post = self._posts.get(post_id)
        if post is None:
            raise NotFoundError(f"Post with ID {post_id} not found")
        return post


def get_store(request: Request) -> DemoStore:
    store: DemoStore | None = getattr(request.app.state, "store", None)
    if store is None:
        store = DemoStore(getattr(request.app.state, "time_provider", None))
        request.app.state.store = store
    return store


@router.get("/posts")
async def list_posts(keyword: str | None = None, store: DemoStore = Depends(get_store)) -> list[dict[str, Any]]:
    return [post.model_dump(mode="json") for post in store.list_posts(keyword)]


@router.get("/posts/{post_id}")
async def get_post(post_id: int, store: DemoStore = Depends(get_store)) -> dict[str, Any]:
    return store.get_post(post_id).model_dump(mode="json")


@router.post("/posts", status_code=status.HTTP_201_CREATED)
async def create_post(payload: CreatePostRequest, store: DemoStore = Depends(get_store)) -> dict[str, Any]:
    return store.create_post(payload).model_dump(mode="json")


@router.get("/users/{user_id}")
async def get_user(user_id: int, store: DemoStore = Depends(get_store)) -> dict[str, Any]:
    return store.get_user(user_id).model_dump(mode="json")


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(payload: CreateUserRequest, store: DemoStore = Depends(get_store)) -> dict[str, Any]:
    return store.create_user(payload).model_dump(mode="json")
