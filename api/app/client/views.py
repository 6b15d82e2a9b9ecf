"""View models for the engagement and user-admin screens."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from .api import ApiClient
from .optimistic import OptimisticCollection, Record, placeholder_id

PARTICIPATING = "participating"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _engagement_key(record: Record) -> tuple[Any, Any]:
    return (record["item_id"], record["user_id"])


class PostEngagementView:
    """
    Likes, participation and comments of one content item as seen by ``user``.

    ``user`` is the signed-in user's public record (``id``, ``name``, ...).
    Every mutation returns the background task that confirms it.
    """

    def __init__(self, api: ApiClient, kind: str, item_id: int, user: Record):
        self.api = api
        self.kind = kind
        self.item_id = item_id
        self.user = user

        self.likes = OptimisticCollection(lambda: api.list_likes(item_id), _engagement_key)
        self.participants = OptimisticCollection(
            lambda: api.list_participants(kind, item_id), _engagement_key
        )
        self.comments = OptimisticCollection(
            lambda: api.list_comments(kind, item_id),
            lambda c: (c["user_id"], c["content"]),
            unique=False,
        )

    @property
    def supports_likes(self) -> bool:
        return self.kind == "post"

    async def load(self) -> None:
        loads = [self.participants.refresh(), self.comments.refresh()]
        if self.supports_likes:
            loads.append(self.likes.refresh())
        await asyncio.gather(*loads)

    async def wait(self) -> None:
        await asyncio.gather(self.likes.wait(), self.participants.wait(), self.comments.wait())

    # Derived state -----------------------------------------------------

    @property
    def my_key(self) -> tuple[int, int]:
        return (self.item_id, self.user["id"])

    @property
    def like_count(self) -> int:
        return len(self.likes.items)

    @property
    def liked(self) -> bool:
        return self.likes.find(self.my_key) is not None

    @property
    def my_participation(self) -> str | None:
        record = self.participants.find(self.my_key)
        return record["status"] if record else None

    @property
    def participating_count(self) -> int:
        return sum(1 for p in self.participants.items if p["status"] == PARTICIPATING)

    # Mutations ---------------------------------------------------------

    def like(self) -> asyncio.Task:
        placeholder = {
            "id": placeholder_id(),
            "item_id": self.item_id,
            "user_id": self.user["id"],
            "created_at": _now(),
        }
        return self.likes.mutate(
            lambda items: items + [placeholder],
            lambda: self.api.like_post(self.item_id),
            placeholder=placeholder["id"],
        )

    def unlike(self) -> asyncio.Task:
        key = self.my_key
        return self.likes.mutate(
            lambda items: [item for item in items if _engagement_key(item) != key],
            lambda: self.api.unlike_post(self.item_id),
        )

    def toggle_like(self) -> asyncio.Task:
        return self.unlike() if self.liked else self.like()

    def set_participation(self, status: str) -> asyncio.Task:
        key = self.my_key
        temp_id = placeholder_id()

        def apply(items: list[Record]) -> list[Record]:
            for item in items:
                if _engagement_key(item) == key:
                    item["status"] = status
                    return items
            return items + [
                {
                    "id": temp_id,
                    "item_id": self.item_id,
                    "user_id": self.user["id"],
                    "status": status,
                    "created_at": _now(),
                    "user": self.user,
                }
            ]

        return self.participants.mutate(
            apply,
            lambda: self.api.set_participation(self.kind, self.item_id, status),
            placeholder=temp_id,
        )

    def clear_participation(self) -> asyncio.Task:
        key = self.my_key
        return self.participants.mutate(
            lambda items: [item for item in items if _engagement_key(item) != key],
            lambda: self.api.clear_participation(self.kind, self.item_id),
        )

    def add_comment(self, content: str) -> asyncio.Task:
        # The server stores comments stripped
        content = content.strip()
        placeholder = {
            "id": placeholder_id(),
            "item_id": self.item_id,
            "user_id": self.user["id"],
            "content": content,
            "created_at": _now(),
            "user": self.user,
        }
        return self.comments.mutate(
            lambda items: items + [placeholder],
            lambda: self.api.add_comment(self.kind, self.item_id, content),
            placeholder=placeholder["id"],
        )


class UserAdminView:
    """User management list for site admins."""

    def __init__(self, api: ApiClient, current_user_id: int):
        self.api = api
        self.current_user_id = current_user_id
        self.users = OptimisticCollection(api.list_users, lambda u: u["id"])

    async def load(self) -> None:
        await self.users.refresh()

    def can_manage(self, user: Record) -> bool:
        """Whether role change and deletion are offered for ``user``."""
        return user["id"] != self.current_user_id

    def change_role(self, user_id: int, role: str) -> asyncio.Task:
        def apply(items: list[Record]) -> list[Record]:
            for item in items:
                if item["id"] == user_id:
                    item["role"] = role
            return items

        return self.users.mutate(apply, lambda: self.api.update_user(user_id, role=role))

    def delete_user(self, user_id: int) -> asyncio.Task:
        return self.users.mutate(
            lambda items: [item for item in items if item["id"] != user_id],
            lambda: self.api.delete_user(user_id),
        )
