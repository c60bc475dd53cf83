"""Supabase-backed access to the episode table and its realtime change feed."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from supabase import AsyncClient, acreate_client

from config import settings
from src.exceptions import StoreQueryError, StoreWriteError

logger = logging.getLogger(__name__)

NAME_COLUMN = "episode_interview_file_name"


@dataclass(frozen=True)
class ChangeEvent:
    """A row-level change from the realtime feed."""

    kind: str  # INSERT | UPDATE | DELETE
    record: dict[str, Any] | None
    old_record: dict[str, Any] | None = None
    commit_timestamp: str | None = None


def parse_change_payload(payload: dict[str, Any]) -> ChangeEvent:
    """Normalize a realtime payload into a ChangeEvent.

    The Python realtime client nests the change under ``data`` with
    ``type``/``record``/``old_record``; the JS-style shape uses
    ``eventType``/``new``/``old``. Both are accepted.
    """
    data = payload.get("data", payload) or {}
    kind = data.get("type") or data.get("eventType") or ""
    record = data.get("record") or data.get("new") or None
    old_record = data.get("old_record") or data.get("old") or None
    return ChangeEvent(
        kind=str(kind).upper(),
        record=record,
        old_record=old_record,
        commit_timestamp=data.get("commit_timestamp"),
    )


ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]


class StoreSubscription:
    """Handle for one realtime channel; ``close()`` tears it down."""

    def __init__(self, client: AsyncClient, channel: Any, topic: str):
        self._client = client
        self._channel = channel
        self.topic = topic
        self.closed = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self._client.remove_channel(self._channel)
            logger.info("Unsubscribed from %s", self.topic)
        except Exception as e:
            logger.warning("Failed to remove channel %s: %s", self.topic, e)


def is_configured() -> bool:
    """Check if Supabase credentials are configured."""
    return bool(settings.supabase_url and settings.supabase_key)


class EpisodeStore:
    """Thin async wrapper over one Supabase table."""

    def __init__(self, client: AsyncClient, table: str | None = None):
        self.client = client
        self.table = table or settings.episodes_table
        self._pending: set[asyncio.Task] = set()
        self._channel_seq = 0

    @classmethod
    async def connect(cls, url: str | None = None, key: str | None = None,
                      table: str | None = None) -> "EpisodeStore":
        client = await acreate_client(url or settings.supabase_url, key or settings.supabase_key)
        return cls(client, table=table)

    def _handle_error(self, error: Exception, operation: str, write: bool = False) -> None:
        """Log and re-raise a client error as a store error."""
        logger.error("Store error in %s on %s: %s", operation, self.table, error)
        if write:
            raise StoreWriteError(f"Error in {operation}: {error}") from error
        raise StoreQueryError(f"Error in {operation}: {error}") from error

    async def list_all(self) -> list[dict[str, Any]]:
        try:
            response = await self.client.table(self.table).select("*").execute()
        except Exception as e:
            self._handle_error(e, "list_all")
        return list(response.data or [])

    async def find_by_name(self, episode_name: str) -> list[dict[str, Any]]:
        """Rows whose episode name matches exactly."""
        try:
            response = await (
                self.client.table(self.table)
                .select("*")
                .eq(NAME_COLUMN, episode_name)
                .execute()
            )
        except Exception as e:
            self._handle_error(e, "find_by_name")
        return list(response.data or [])

    async def update(self, record_id: str, changes: dict[str, Any]) -> None:
        payload = {k: v for k, v in changes.items() if k != "id"}
        try:
            await self.client.table(self.table).update(payload).eq("id", record_id).execute()
        except Exception as e:
            self._handle_error(e, "update", write=True)
        logger.info("Updated %s row %s (%d columns)", self.table, record_id, len(payload))

    async def delete(self, record_id: str) -> None:
        try:
            await self.client.table(self.table).delete().eq("id", record_id).execute()
        except Exception as e:
            self._handle_error(e, "delete", write=True)
        logger.info("Deleted %s row %s", self.table, record_id)

    async def subscribe(self, handler: ChangeHandler, event: str = "*") -> StoreSubscription:
        """Subscribe to row changes on the table.

        The realtime client invokes callbacks synchronously, so each change is
        handed to ``handler`` as a task on the running loop.
        """
        loop = asyncio.get_running_loop()
        self._channel_seq += 1
        topic = f"{self.table}-changes-{self._channel_seq}"

        def _on_change(payload: dict[str, Any]) -> None:
            change = parse_change_payload(payload)

            def _schedule() -> None:
                task = loop.create_task(handler(change))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

            loop.call_soon_threadsafe(_schedule)

        channel = self.client.channel(topic)
        channel.on_postgres_changes(event, callback=_on_change, schema="public", table=self.table)
        await channel.subscribe()
        logger.info("Subscribed to %s changes on %s", event, self.table)
        return StoreSubscription(self.client, channel, topic)

    async def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        try:
            await self.client.remove_all_channels()
        except Exception as e:
            logger.warning("Failed to close realtime channels: %s", e)
