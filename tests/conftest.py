"""Shared fakes for the episode store and the generation webhook."""

import copy
import uuid

import pytest

from src.exceptions import RecordNotFoundError, StoreQueryError, StoreWriteError, WebhookError
from src.store import ChangeEvent


def make_row(name="Episode One", **columns):
    """A table row with an id, a name and whatever columns the test sets."""
    row = {
        "id": columns.pop("id", str(uuid.uuid4())),
        "created_at": columns.pop("created_at", "2025-01-01T10:00:00+00:00"),
        "episode_interview_file_name": name,
    }
    for short in ("1", "2", "3", "4"):
        value = columns.pop(f"script_{short}", None)
        if value is not None:
            row[f"episode_interview_script_{short}"] = value
    row.update(columns)
    return row


class FakeSubscription:
    def __init__(self, store, handler):
        self.store = store
        self.handler = handler
        self.closed = False

    async def close(self):
        self.closed = True
        if self.handler in self.store.handlers:
            self.store.handlers.remove(self.handler)


class FakeStore:
    """In-memory stand-in for EpisodeStore."""

    def __init__(self, rows=None):
        self.table = "autoworkflow"
        self.rows = list(rows or [])
        self.handlers = []
        self.updates = []
        self.deletes = []
        self.list_calls = 0
        self.fail_list = False
        self.fail_update = False
        self.fail_delete = False
        self.fail_subscribe = False
        self.closed = False

    async def list_all(self):
        self.list_calls += 1
        if self.fail_list:
            raise StoreQueryError("Error in list_all: connection refused")
        return copy.deepcopy(self.rows)

    async def find_by_name(self, episode_name):
        if self.fail_list:
            raise StoreQueryError("Error in find_by_name: connection refused")
        return [copy.deepcopy(r) for r in self.rows if r.get("episode_interview_file_name") == episode_name]

    async def update(self, record_id, changes):
        if self.fail_update:
            raise StoreWriteError("Error in update: permission denied")
        self.updates.append((record_id, dict(changes)))
        for row in self.rows:
            if str(row["id"]) == record_id:
                row.update({k: v for k, v in changes.items() if k != "id"})
                return
        raise RecordNotFoundError(record_id)

    async def delete(self, record_id):
        if self.fail_delete:
            raise StoreWriteError("Error in delete: permission denied")
        self.deletes.append(record_id)
        self.rows = [r for r in self.rows if str(r["id"]) != record_id]

    async def subscribe(self, handler, event="*"):
        if self.fail_subscribe:
            raise RuntimeError("realtime unavailable")
        self.handlers.append(handler)
        return FakeSubscription(self, handler)

    async def push(self, kind, record, old_record=None):
        """Deliver a change to every live subscriber."""
        change = ChangeEvent(kind=kind, record=record, old_record=old_record)
        for handler in list(self.handlers):
            await handler(change)

    async def close(self):
        self.closed = True


class FakeWebhook:
    """Records submissions; returns ``response`` or raises ``error``."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def is_configured(self):
        return True

    async def submit(self, episode_name, filename, data):
        self.calls.append((episode_name, filename, data))
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def webhook():
    return FakeWebhook()


@pytest.fixture
def failing_webhook():
    return FakeWebhook(error=WebhookError("Webhook responded with status 500: boom", status_code=500))
