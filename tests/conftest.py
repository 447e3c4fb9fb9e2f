from pathlib import Path
import textwrap

import pytest

POSTS_SOURCE = '''
from __future__ import annotations

from typing import Optional, Protocol

from pydantic import BaseModel


class Post(BaseModel):
    id: int
    userId: int
    title: str
    body: str


class CreatePostRequest(BaseModel):
    userId: int
    title: str
    body: str


class PostsAPI(Protocol):
    """
    Blog posts.

    @client PostsClient
    @basepath /api/posts
    """

    def get_all(self, ctx) -> list[Post]:
        """@route GET /"""

    def get_by_id(self, ctx, id: int) -> Optional[Post]:
        """@route GET /{id}"""

    def create(self, ctx, req: CreatePostRequest) -> Post:
        """@route POST /"""

    def update(self, ctx, id: int, req: CreatePostRequest) -> Optional[Post]:
        """@route PUT /{id}"""

    def delete(self, ctx, id: int) -> None:
        """@route DELETE /{id}"""

    def get_user_post(self, ctx, postId: int, userId: int) -> Post:
        """@route GET /users/{userId}/posts/{postId}"""

    def by_slug(self, ctx, slug: str) -> Post:
        """@route GET /slug/{slug}"""

    def helper(self, ctx) -> None:
        """Not exposed over HTTP."""
'''


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


@pytest.fixture
def posts_source() -> str:
    return POSTS_SOURCE
