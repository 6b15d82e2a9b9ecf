"""Async HTTP client for the BOLD API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# URL prefix of each content kind's router
KIND_PATHS = {
    "post": "/posts",
    "event": "/events",
    "activity_schedule": "/activity-schedules",
}


class ApiError(Exception):
    """
    A request that did not produce a 2xx response.

    ``status_code`` is 0 for transport failures (timeouts, refused
    connections), otherwise the HTTP status. ``detail`` carries the
    server's ``{"detail": ...}`` payload when there is one.
    """

    def __init__(self, status_code: int, detail: Any = None):
        super().__init__(f"API request failed ({status_code}): {detail}")
        self.status_code = status_code
        self.detail = detail

    @property
    def is_auth_error(self) -> bool:
        return self.status_code == 401


def _kind_path(kind: str) -> str:
    try:
        return KIND_PATHS[kind]
    except KeyError:
        raise ValueError(f"Unknown content kind: {kind}") from None


class ApiClient:
    """Thin coroutine wrapper over the REST endpoints used by the views."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_token(self, token: str | None) -> None:
        if token:
            self._client.headers["Authorization"] = f"Bearer {token}"
        else:
            self._client.headers.pop("Authorization", None)

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body (None for empty responses)."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ApiError(0, "Request timed out") from e
        except httpx.RequestError as e:
            raise ApiError(0, f"Request failed: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text or None
            logger.debug(f"{method} {path} -> {response.status_code}: {detail}")
            raise ApiError(response.status_code, detail)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Likes (posts only)
    # ------------------------------------------------------------------

    async def list_likes(self, post_id: int) -> list[dict]:
        return await self.request("GET", f"/posts/{post_id}/likes")

    async def like_post(self, post_id: int) -> dict:
        return await self.request("POST", f"/posts/{post_id}/like")

    async def unlike_post(self, post_id: int) -> None:
        await self.request("DELETE", f"/posts/{post_id}/like")

    # ------------------------------------------------------------------
    # Participation and comments
    # ------------------------------------------------------------------

    async def list_participants(self, kind: str, item_id: int, participation: str | None = None) -> list[dict]:
        params = {"participation": participation} if participation else None
        return await self.request("GET", f"{_kind_path(kind)}/{item_id}/participants", params=params)

    async def set_participation(self, kind: str, item_id: int, status: str) -> dict:
        return await self.request(
            "POST",
            f"{_kind_path(kind)}/{item_id}/participate",
            json={"status": status},
        )

    async def clear_participation(self, kind: str, item_id: int) -> None:
        await self.request("DELETE", f"{_kind_path(kind)}/{item_id}/participate")

    async def list_comments(self, kind: str, item_id: int) -> list[dict]:
        return await self.request("GET", f"{_kind_path(kind)}/{item_id}/comments")

    async def add_comment(self, kind: str, item_id: int, content: str) -> dict:
        return await self.request(
            "POST",
            f"{_kind_path(kind)}/{item_id}/comments",
            json={"content": content},
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def me(self) -> dict:
        data = await self.request("GET", "/auth/me")
        return data["user"]

    async def list_users(self) -> list[dict]:
        return await self.request("GET", "/users")

    async def update_user(self, user_id: int, **changes: Any) -> dict:
        return await self.request("PATCH", f"/users/{user_id}", json=changes)

    async def delete_user(self, user_id: int) -> None:
        await self.request("DELETE", f"/users/{user_id}")
