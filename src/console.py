"""Top-level container wiring the list view, the form and the toast queue."""

import logging
from collections import deque
from dataclasses import asdict
from typing import Any

from config import settings
from src.events import EventBus, ListRefreshed, SelectionChanged, Toast
from src.record_list import RecordListView
from src.store import EpisodeStore
from src.submission import SubmissionFormView
from src.webhook import WebhookClient

logger = logging.getLogger(__name__)


class Console:
    """Owns the shared selection and fans it out to both views."""

    def __init__(self, store: EpisodeStore, webhook: WebhookClient, bus: EventBus | None = None,
                 poll_interval: float | None = None, timeout: float | None = None):
        self.bus = bus or EventBus()
        self.store = store
        self.list_view = RecordListView(store, self.bus)
        self.form = SubmissionFormView(store, webhook, self.bus, poll_interval=poll_interval, timeout=timeout)
        self.selected_name: str | None = None
        self.toasts: deque[Toast] = deque(maxlen=settings.toast_limit)
        self._unsubscribe = [
            self.bus.subscribe(SelectionChanged, self._on_selection),
            self.bus.subscribe(ListRefreshed, self._on_list_refreshed),
            self.bus.subscribe(Toast, self._on_toast),
        ]

    async def start(self) -> None:
        await self.list_view.start()

    async def close(self) -> None:
        await self.form.close()
        await self.list_view.stop()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    async def _on_selection(self, event: SelectionChanged) -> None:
        # A cleared selection carries no name; both fields reset together.
        self.selected_name = event.episode_name if not event.cleared else None
        await self.form.show_selection(event)

    async def _on_list_refreshed(self, event: ListRefreshed) -> None:
        """Re-push the selected row when the store copy changed."""
        record = self.list_view.selected_record()
        viewing = self.form.viewing
        if record is None or viewing is None:
            return
        fresh = record.script_links()
        if fresh != viewing.links or record.episode_name != viewing.episode_name:
            logger.info("Selected episode %s changed in the store; refreshing form", record.id)
            await self.bus.publish(SelectionChanged(fresh, record.episode_name))

    def _on_toast(self, toast: Toast) -> None:
        log = logger.warning if toast.variant == "destructive" else logger.info
        log("Toast: %s - %s", toast.title, toast.description)
        self.toasts.append(toast)

    def drain_toasts(self) -> list[dict[str, Any]]:
        drained = [asdict(t) for t in self.toasts]
        self.toasts.clear()
        return drained

    def snapshot(self) -> dict[str, Any]:
        return {
            "selected_name": self.selected_name,
            "list": self.list_view.snapshot(),
            "form": self.form.snapshot(),
            "toasts": self.drain_toasts(),
        }
