"""Episode table view: load, sort, inline edit, delete and select rows."""

import asyncio
import json
import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Iterable, Sequence
from urllib.parse import urlparse

from config import COLUMN_TYPES, PREFERRED_COLUMN_ORDER, ColumnType
from src.events import EventBus, ListRefreshed, RefreshRequested, SelectionChanged, Toast
from src.exceptions import EditConflictError, RecordNotFoundError, StoreError
from src.models import EpisodeRecord
from src.store import ChangeEvent, EpisodeStore, StoreSubscription

logger = logging.getLogger(__name__)

LINK_DISPLAY_LIMIT = 40


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortState:
    column: str | None = None
    direction: SortDirection | None = None


def next_sort_state(state: SortState, column: str) -> SortState:
    """Same column cycles none -> asc -> desc -> none; a new column starts at asc."""
    if state.column != column:
        return SortState(column, SortDirection.ASC)
    if state.direction is None:
        return SortState(column, SortDirection.ASC)
    if state.direction == SortDirection.ASC:
        return SortState(column, SortDirection.DESC)
    return SortState()


def _parse_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def sort_key(value: Any, column_type: ColumnType) -> tuple:
    """Key for one cell under the declared column type.

    Nulls rank first. Values that parse as the declared type rank before the
    ones that don't; the latter compare as case-insensitive text.
    """
    if value is None:
        return (0,)
    text = str(value).casefold()
    if column_type == ColumnType.NUMBER:
        number = _parse_number(value)
        if number is not None:
            return (1, 0, number, "")
    elif column_type == ColumnType.DATETIME:
        dt = parse_datetime(value)
        if dt is not None:
            return (1, 0, dt.timestamp(), "")
    else:
        return (1, 0, 0.0, text)
    return (1, 1, 0.0, text)


def sort_records(records: Sequence[EpisodeRecord], state: SortState,
                 column_types: dict[str, ColumnType] | None = None) -> list[EpisodeRecord]:
    """Return records in display order. Unsorted keeps fetch order; sorting is stable."""
    if not state.column or not state.direction:
        return list(records)
    types = COLUMN_TYPES if column_types is None else column_types
    column_type = types.get(state.column, ColumnType.TEXT)
    return sorted(
        records,
        key=lambda r: sort_key(r.get(state.column), column_type),
        reverse=state.direction == SortDirection.DESC,
    )


def order_columns(observed: Iterable[str], preferred: Sequence[str] = PREFERRED_COLUMN_ORDER) -> list[str]:
    """Preferred columns that exist, then the rest alphabetically."""
    observed = set(observed)
    head = [c for c in preferred if c in observed]
    tail = sorted(observed - set(preferred))
    return head + tail


def _is_link(text: str) -> bool:
    parsed = urlparse(text)
    return bool(parsed.scheme and parsed.netloc)


def format_cell(value: Any, column_type: ColumnType) -> dict[str, Any]:
    """Display text (and optional href) for a table cell."""
    if value is None:
        return {"text": "null", "href": None}
    if column_type == ColumnType.DATETIME:
        dt = parse_datetime(value)
        if dt is not None:
            return {"text": dt.strftime("%b %d, %Y %H:%M"), "href": None}
    if isinstance(value, (dict, list)):
        return {"text": json.dumps(value), "href": None}
    text = str(value)
    if _is_link(text):
        shown = f"{text[:LINK_DISPLAY_LIMIT]}..." if len(text) > LINK_DISPLAY_LIMIT else text
        return {"text": shown, "href": text}
    return {"text": text, "href": None}


class RecordListView:
    """Holds the fetched result set plus the sort, edit and selection state."""

    def __init__(self, store: EpisodeStore, bus: EventBus,
                 column_types: dict[str, ColumnType] | None = None,
                 preferred_order: Sequence[str] = PREFERRED_COLUMN_ORDER):
        self.store = store
        self.bus = bus
        self.column_types = COLUMN_TYPES if column_types is None else column_types
        self.preferred_order = preferred_order

        self.records: list[EpisodeRecord] = []
        self.columns: list[str] = []
        self.sort_state = SortState()
        self.error: str | None = None
        self.loading = False
        self.loaded_once = False

        self.editing_id: str | None = None
        self.edit_buffer: EpisodeRecord | None = None
        self.selected_id: str | None = None

        self._load_lock = asyncio.Lock()
        self._reload_requested = False
        self._subscription: StoreSubscription | None = None
        self._unsubscribe_refresh = None

    # --- Loading ---

    async def load(self) -> bool:
        """Fetch every row. Overlapping calls coalesce into one extra reload."""
        if self._load_lock.locked():
            self._reload_requested = True
            return False
        async with self._load_lock:
            ok = await self._load_once()
            while self._reload_requested:
                self._reload_requested = False
                ok = await self._load_once()
        if ok:
            await self.bus.publish(ListRefreshed(record_count=len(self.records)))
        return ok

    async def _load_once(self) -> bool:
        self.loading = True
        try:
            rows = await self.store.list_all()
        except StoreError as e:
            logger.error("Failed to load episodes: %s", e)
            self.error = str(e)
            return False
        finally:
            self.loading = False

        self.records = [EpisodeRecord.from_row(row) for row in rows]
        observed: set[str] = set()
        for row in rows:
            observed.update(row.keys())
        self.columns = order_columns(observed, self.preferred_order)
        self.error = None
        self.loaded_once = True

        ids = {r.id for r in self.records}
        if self.editing_id and self.editing_id not in ids:
            logger.info("Row %s in edit mode no longer exists; leaving edit mode", self.editing_id)
            self.cancel_edit()
        if self.selected_id and self.selected_id not in ids:
            logger.info("Selected row %s no longer exists; clearing selection", self.selected_id)
            self.selected_id = None
            await self.bus.publish(SelectionChanged.clear())
        return True

    def find(self, record_id: str) -> EpisodeRecord:
        for record in self.records:
            if record.id == record_id:
                return record
        raise RecordNotFoundError(f"No episode with id {record_id}")

    # --- Sorting ---

    def sort(self, column: str) -> SortState:
        self.sort_state = next_sort_state(self.sort_state, column)
        return self.sort_state

    def sorted_records(self) -> list[EpisodeRecord]:
        return sort_records(self.records, self.sort_state, self.column_types)

    # --- Editing ---

    def begin_edit(self, record_id: str) -> None:
        """Start editing one row; any other row in edit mode is discarded."""
        record = self.find(record_id)
        self.editing_id = record.id
        self.edit_buffer = record

    def set_field(self, column: str, value: Any) -> None:
        if self.edit_buffer is None:
            raise EditConflictError("No row is in edit mode")
        if value == "":
            value = None
        self.edit_buffer = self.edit_buffer.with_value(column, value)

    def cancel_edit(self) -> None:
        self.editing_id = None
        self.edit_buffer = None

    async def save(self) -> bool:
        """Push the edited row to the store, then mirror it locally."""
        if self.edit_buffer is None or self.editing_id is None:
            raise EditConflictError("No row is in edit mode")
        edited = self.edit_buffer
        try:
            await self.store.update(edited.id, edited.to_row())
        except StoreError as e:
            await self.bus.publish(Toast("Update failed", str(e), "destructive"))
            return False

        self.records = [edited if r.id == edited.id else r for r in self.records]
        self.cancel_edit()
        await self.bus.publish(Toast("Record updated", "The record has been successfully updated."))
        if self.selected_id == edited.id:
            await self.bus.publish(SelectionChanged(edited.script_links(), edited.episode_name))
        return True

    # --- Delete / select ---

    async def delete(self, record_id: str, confirmed: bool = False) -> bool:
        """Delete a row. Irreversible, so nothing happens without confirmation."""
        if not confirmed:
            return False
        try:
            await self.store.delete(record_id)
        except StoreError as e:
            await self.bus.publish(Toast("Delete failed", str(e), "destructive"))
            return False

        self.records = [r for r in self.records if r.id != record_id]
        if self.editing_id == record_id:
            self.cancel_edit()
        if self.selected_id == record_id:
            self.selected_id = None
            await self.bus.publish(SelectionChanged.clear())
        await self.bus.publish(Toast("Record deleted", "The record has been successfully deleted."))
        return True

    async def select(self, record_id: str) -> SelectionChanged | None:
        """Toggle selection of a row and announce it."""
        if self.editing_id == record_id:
            return None
        record = self.find(record_id)
        if self.selected_id == record.id:
            self.selected_id = None
            event = SelectionChanged.clear()
        else:
            self.selected_id = record.id
            event = SelectionChanged(record.script_links(), record.episode_name)
        await self.bus.publish(event)
        return event

    def selected_record(self) -> EpisodeRecord | None:
        if self.selected_id is None:
            return None
        try:
            return self.find(self.selected_id)
        except RecordNotFoundError:
            return None

    # --- Live updates ---

    async def start(self) -> None:
        """Load once, then follow the change feed and refresh requests."""
        self._unsubscribe_refresh = self.bus.subscribe(RefreshRequested, self._on_refresh_requested)
        try:
            self._subscription = await self.store.subscribe(self._on_change)
        except Exception as e:
            logger.warning("Realtime subscription unavailable, relying on refresh requests: %s", e)
        await self.load()

    async def stop(self) -> None:
        if self._unsubscribe_refresh:
            self._unsubscribe_refresh()
            self._unsubscribe_refresh = None
        if self._subscription:
            await self._subscription.close()
            self._subscription = None

    async def _on_change(self, change: ChangeEvent) -> None:
        logger.debug("Change received: %s", change.kind)
        await self.load()

    async def _on_refresh_requested(self, event: RefreshRequested) -> None:
        await self.load()

    # --- Rendering ---

    def rows(self) -> list[dict[str, Any]]:
        out = []
        for record in self.sorted_records():
            editing = record.id == self.editing_id and self.edit_buffer is not None
            source = self.edit_buffer if editing else record
            cells = {}
            for column in self.columns:
                value = source.get(column)
                if editing:
                    cells[column] = {"text": "" if value is None else str(value), "href": None}
                else:
                    cells[column] = format_cell(value, self.column_types.get(column, ColumnType.TEXT))
            out.append({
                "id": record.id,
                "selected": record.id == self.selected_id,
                "editing": editing,
                "cells": cells,
            })
        return out

    def snapshot(self) -> dict[str, Any]:
        return {
            "loading": self.loading and not self.loaded_once,
            "error": self.error,
            "columns": self.columns,
            "sort": {
                "column": self.sort_state.column,
                "direction": self.sort_state.direction.value if self.sort_state.direction else None,
            },
            "selected_id": self.selected_id,
            "editing_id": self.editing_id,
            "rows": self.rows(),
        }
