"""
Optimistic local state with rollback-by-refetch.

An ``OptimisticCollection`` holds the client's copy of one list (likes on
a post, participants of an event, users on the admin page, ...). Every
change goes through ``mutate``:

1. ``apply`` computes the speculative list synchronously and listeners are
   notified at once. New records carry a ``temp-<hex>`` placeholder id.
2. ``commit`` is started as its own asyncio task; ``mutate`` returns
   without waiting for it, so further mutations can be issued while it is
   in flight. Nothing is serialized on the client.
3. If ``commit`` returns a record, it replaces the placeholder the mutation
   added, when one was passed to ``mutate``, and otherwise the entry with the
   same logical key. ``None`` means a bare acknowledgement and the
   speculative state stays.
4. If ``commit`` raises, the speculative state is thrown away and the list
   is reloaded with ``fetch``.

When mutations overlap, the server applies them last-write-wins in whatever
order they arrive, so the last one to settle reloads the list as well.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Hashable

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Listener = Callable[[list[Record]], None]

PLACEHOLDER_PREFIX = "temp-"


def placeholder_id() -> str:
    return f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex}"


def is_placeholder(record: Record) -> bool:
    record_id = record.get("id")
    return isinstance(record_id, str) and record_id.startswith(PLACEHOLDER_PREFIX)


class OptimisticCollection:
    """
    Client-side list reconciled against the server.

    Args:
        fetch: coroutine function returning the authoritative list.
        key: logical key of a record, e.g. ``(item_id, user_id)``.
        unique: when True (engagement rows, users) at most one record per
            key is kept; when False (comments) several records may share a
            key and a server record only replaces a matching placeholder.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[list[Record]]],
        key: Callable[[Record], Hashable],
        *,
        unique: bool = True,
    ):
        self._fetch = fetch
        self._key = key
        self._unique = unique
        self._listeners: list[Listener] = []
        self._pending: set[asyncio.Task] = set()
        self._in_flight = 0
        self._overlapped = False
        self.items: list[Record] = []
        self.last_error: Exception | None = None
        # True when a rollback could not reload the list
        self.stale = False

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_items(self, items: list[Record]) -> None:
        self.items = items
        for listener in list(self._listeners):
            listener(list(items))

    def find(self, key: Hashable) -> Record | None:
        return next((item for item in self.items if self._key(item) == key), None)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def refresh(self) -> list[Record]:
        """Replace local state with a fresh server read."""
        items = list(await self._fetch())
        self.stale = False
        self._set_items(items)
        return items

    def mutate(
        self,
        apply: Callable[[list[Record]], list[Record]],
        commit: Callable[[], Awaitable[Record | None]],
        placeholder: str | None = None,
    ) -> asyncio.Task:
        """
        Apply a speculative change now and confirm it in the background.

        Must be called from a running event loop. The returned task resolves
        to the server record (or None) once the change has been reconciled
        or rolled back; awaiting it is optional.
        ``placeholder`` is the temporary id of the record ``apply`` adds, if
        any; the server record replaces exactly that entry.
        """
        self._set_items(apply([dict(item) for item in self.items]))

        if self._in_flight:
            self._overlapped = True
        self._in_flight += 1
        task = asyncio.get_running_loop().create_task(self._settle(commit, placeholder))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def wait(self) -> None:
        """Wait until every in-flight mutation has settled."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _settle(
        self, commit: Callable[[], Awaitable[Record | None]], placeholder: str | None
    ) -> Record | None:
        result = None
        reloaded = False
        try:
            try:
                result = await commit()
            except Exception as e:
                self.last_error = e
                logger.warning(f"Optimistic update rejected, reloading: {e}")
                await self._rollback()
                reloaded = True
            else:
                if result is not None:
                    self._reconcile(result, placeholder)

            if self._overlapped and self._in_flight == 1:
                self._overlapped = False
                if not reloaded:
                    await self._rollback()
        finally:
            self._in_flight -= 1
        return result

    async def _rollback(self) -> None:
        try:
            await self.refresh()
        except Exception as e:
            self.stale = True
            logger.error(f"Reload after failed update also failed: {e}")

    def _reconcile(self, record: Record, placeholder: str | None = None) -> None:
        key = self._key(record)
        items = list(self.items)

        target = None
        if placeholder is not None:
            target = next((i for i, item in enumerate(items) if item.get("id") == placeholder), None)
        if target is None:
            target = next(
                (i for i, item in enumerate(items) if self._key(item) == key and is_placeholder(item)),
                None,
            )
        if target is None:
            target = next(
                (
                    i
                    for i, item in enumerate(items)
                    if self._key(item) == key and (self._unique or item.get("id") == record.get("id"))
                ),
                None,
            )

        if target is None:
            items.append(record)
        else:
            items[target] = record

        if self._unique:
            items = [item for item in items if item is record or self._key(item) != key]

        self._set_items(items)
