"""Episode submission workflow and generation tracking.

A submission moves Idle -> Submitted -> Polling -> Resolved. Several signal
sources race to resolve it: the immediate existing-record check, the
post-webhook re-check, the 1 s poll, the realtime change feed and list
refreshes. Every one of them feeds the same pure reducer,
``apply_record_snapshot``, which refuses to change a Resolved state. That
refusal is the latch: the first matching snapshot wins and the rest are no-ops.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from config import settings
from src.approval import ApprovalDialog, badge_for, can_approve
from src.events import EventBus, ListRefreshed, RefreshRequested, SelectionChanged, Toast
from src.exceptions import ApprovalNotAllowedError, StoreError, SubmissionValidationError, WebhookError
from src.models import SCRIPT_SLOTS, EpisodeRecord, JobStatus, ScriptLinks, ScriptStatus
from src.store import ChangeEvent, EpisodeStore, StoreSubscription
from src.webhook import PDF_CONTENT_TYPE, WebhookClient, first_item

logger = logging.getLogger(__name__)

GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


class SubmissionPhase(StrEnum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    POLLING = "polling"
    RESOLVED = "resolved"


class Resolution(StrEnum):
    EXISTING = "existing"
    COMPLETED = "completed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class SubmissionState:
    """Snapshot of one generate-scripts request."""

    phase: SubmissionPhase = SubmissionPhase.IDLE
    episode_name: str | None = None
    submitted_at: float | None = None
    found: bool = False
    links: ScriptLinks = field(default_factory=ScriptLinks)
    progress: str = ""
    resolution: Resolution | None = None
    clear_file_on_resolve: bool = False

    @property
    def active(self) -> bool:
        return self.phase in (SubmissionPhase.SUBMITTED, SubmissionPhase.POLLING)

    @property
    def resolved(self) -> bool:
        return self.phase == SubmissionPhase.RESOLVED


# --- Reducer ---

def start_submission(episode_name: str, now: float) -> SubmissionState:
    return SubmissionState(
        phase=SubmissionPhase.SUBMITTED,
        episode_name=episode_name,
        submitted_at=now,
        progress="Checking for an existing episode...",
        clear_file_on_resolve=True,
    )


def begin_polling(state: SubmissionState) -> SubmissionState:
    if state.phase != SubmissionPhase.SUBMITTED:
        return state
    return replace(state, phase=SubmissionPhase.POLLING, progress="Generating scripts...")


def apply_existing_record(state: SubmissionState, record: EpisodeRecord) -> SubmissionState:
    """A record with this name already existed when the form was submitted."""
    if state.phase != SubmissionPhase.SUBMITTED or record.episode_name != state.episode_name:
        return state
    return replace(
        state,
        phase=SubmissionPhase.RESOLVED,
        found=True,
        links=record.script_links(),
        progress="Episode already exists. Showing its scripts.",
        resolution=Resolution.EXISTING,
    )


def _progress_for(links: ScriptLinks) -> str:
    if links.has_any_script:
        return f"Generated {links.available_count} of {len(SCRIPT_SLOTS)} scripts. Waiting for the summary..."
    return "Episode record created. Waiting for scripts..."


def apply_record_snapshot(state: SubmissionState, record: EpisodeRecord | None) -> SubmissionState:
    """Fold one observed record into the session.

    Only records whose name matches the submission count. The summary script
    (#4) is the sole completion signal; anything less updates progress and
    keeps polling. A resolved (or idle) state is returned unchanged.
    """
    if not state.active or record is None or record.episode_name != state.episode_name:
        return state
    links = record.script_links()
    if links.has_summary:
        return replace(
            state,
            phase=SubmissionPhase.RESOLVED,
            found=True,
            links=links,
            progress="All scripts generated.",
            resolution=Resolution.COMPLETED,
        )
    progress = _progress_for(links)
    if state.found and links == state.links and progress == state.progress:
        return state
    return replace(state, phase=SubmissionPhase.POLLING, found=True, links=links, progress=progress)


def apply_webhook_response(state: SubmissionState, item: dict[str, Any] | None) -> SubmissionState:
    """Overlay advisory links from the webhook response; never resolves."""
    if not state.active or not item:
        return state
    links = ScriptLinks.from_mapping(item)
    if not links.has_any_script:
        return state
    merged = state.links.merged_with(links)
    return replace(state, links=merged, progress=_progress_for(merged))


def apply_timeout(state: SubmissionState) -> SubmissionState:
    if not state.active:
        return state
    return replace(
        state,
        phase=SubmissionPhase.RESOLVED,
        progress="Generation is taking longer than expected.",
        resolution=Resolution.TIMEOUT,
    )


def pick_best(records: list[EpisodeRecord]) -> EpisodeRecord | None:
    """Among duplicate-name rows, prefer the most complete one."""
    if not records:
        return None
    return max(records, key=lambda r: (r.script_links().has_summary, r.script_links().available_count))


def validate_submission(episode_name: str | None, filename: str | None, content_type: str | None,
                        data: bytes | None, min_name_length: int | None = None) -> str:
    """Return the cleaned episode name or raise with field-level messages."""
    min_length = min_name_length or settings.min_episode_name_length
    errors: dict[str, str] = {}
    name = (episode_name or "").strip()
    if len(name) < min_length:
        errors["episodeName"] = f"Episode name must be at least {min_length} characters."

    content_type = (content_type or "").split(";")[0].strip().lower()
    is_pdf = content_type == PDF_CONTENT_TYPE or (
        content_type in GENERIC_CONTENT_TYPES and (filename or "").lower().endswith(".pdf")
    )
    if not data or not is_pdf:
        errors["pdfFile"] = "Please upload a valid PDF file."

    if errors:
        raise SubmissionValidationError(errors)
    return name


RESOLUTION_TOASTS = {
    Resolution.COMPLETED: Toast("Success!", "Your podcast scripts have been generated."),
    Resolution.EXISTING: Toast("Episode found", "Showing the scripts of the existing episode."),
    Resolution.TIMEOUT: Toast(
        "Taking longer than expected",
        "Scripts are still being generated. They will appear in the episodes list when ready.",
        "warning",
    ),
}


@dataclass(frozen=True)
class ViewedEpisode:
    """A row selected in the list, shown read-only in the form."""

    episode_name: str
    links: ScriptLinks


class SubmissionFormView:
    """Runs submissions and renders the script checklist and approval gate."""

    def __init__(self, store: EpisodeStore, webhook: WebhookClient, bus: EventBus,
                 poll_interval: float | None = None, timeout: float | None = None,
                 min_name_length: int | None = None):
        self.store = store
        self.webhook = webhook
        self.bus = bus
        self.poll_interval = poll_interval if poll_interval is not None else settings.poll_interval_seconds
        self.timeout = timeout if timeout is not None else settings.generation_timeout_seconds
        self.min_name_length = min_name_length or settings.min_episode_name_length

        self.state = SubmissionState()
        self.viewing: ViewedEpisode | None = None
        self.file_name: str | None = None
        self.dialog = ApprovalDialog(on_confirm=self._write_approval)

        self._tasks: set[asyncio.Task] = set()
        self._subscription: StoreSubscription | None = None
        self._resolved = asyncio.Event()
        self._unsubscribe = [self.bus.subscribe(ListRefreshed, self._on_list_refreshed)]

    # --- Submission ---

    async def submit(self, episode_name: str, filename: str, content_type: str | None,
                     data: bytes) -> SubmissionState:
        """Start a session. Returns once the existing-record check is done.

        The webhook call and the tracking run as background tasks.
        """
        if self.viewing is not None:
            raise SubmissionValidationError({"form": "Deselect the episode before submitting a new one."})
        name = validate_submission(episode_name, filename, content_type, data, self.min_name_length)

        await self._teardown()
        self._resolved.clear()
        self.file_name = filename
        self.state = start_submission(name, time.time())
        logger.info("Submission started for '%s'", name)
        await self.bus.publish(Toast(
            "Processing Started", "Your request is being processed. This may take several minutes."))

        existing = await self._lookup(name)
        if existing is not None:
            logger.info("Episode '%s' already exists (id=%s); skipping webhook", name, existing.id)
            await self._apply(apply_existing_record(self.state, existing))
            return self.state

        await self._start_tracking()
        self._spawn(self._run_webhook(name, filename, data))
        return self.state

    async def _run_webhook(self, name: str, filename: str, data: bytes) -> None:
        try:
            response = await self.webhook.submit(name, filename, data)
        except WebhookError as e:
            logger.warning("Webhook failed for '%s', relying on store polling: %s", name, e)
        else:
            await self._apply(apply_webhook_response(self.state, first_item(response)))
        await self._apply(begin_polling(self.state))
        await self._check_store()

    async def _lookup(self, name: str) -> EpisodeRecord | None:
        try:
            rows = await self.store.find_by_name(name)
        except StoreError as e:
            logger.warning("Lookup for '%s' failed: %s", name, e)
            return None
        return pick_best([EpisodeRecord.from_row(row) for row in rows])

    async def _check_store(self) -> None:
        if not self.state.active or not self.state.episode_name:
            return
        record = await self._lookup(self.state.episode_name)
        await self._apply(apply_record_snapshot(self.state, record))

    async def _apply(self, new_state: SubmissionState) -> None:
        old = self.state
        if new_state is old:
            return
        self.state = new_state
        if new_state.progress != old.progress:
            logger.info("[%s] %s", new_state.episode_name, new_state.progress)
        if new_state.resolved and not old.resolved:
            await self._on_resolved()

    async def _on_resolved(self) -> None:
        await self._teardown()
        if self.state.clear_file_on_resolve:
            self.file_name = None
        self._resolved.set()
        logger.info("Submission '%s' resolved (%s)", self.state.episode_name, self.state.resolution)
        toast = RESOLUTION_TOASTS.get(self.state.resolution)
        if toast:
            await self.bus.publish(replace(toast, created_at=datetime.now(UTC).isoformat()))

    async def wait_resolved(self, timeout: float | None = None) -> SubmissionState:
        await asyncio.wait_for(self._resolved.wait(), timeout)
        return self.state

    # --- Tracking ---

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _start_tracking(self) -> None:
        try:
            self._subscription = await self.store.subscribe(self._on_change)
        except Exception as e:
            logger.warning("Realtime subscription unavailable, polling only: %s", e)
        self._spawn(self._poll_loop())
        self._spawn(self._timeout_watch())

    async def _poll_loop(self) -> None:
        while self.state.active:
            await asyncio.sleep(self.poll_interval)
            if not self.state.active:
                break
            await self.bus.publish(RefreshRequested("submission polling"))
            await self._check_store()

    async def _timeout_watch(self) -> None:
        await asyncio.sleep(self.timeout)
        if self.state.active:
            logger.warning("No summary script for '%s' after %.0fs", self.state.episode_name, self.timeout)
        await self._apply(apply_timeout(self.state))

    async def _on_change(self, change: ChangeEvent) -> None:
        if change.kind not in ("INSERT", "UPDATE") or not change.record:
            return
        await self._apply(apply_record_snapshot(self.state, EpisodeRecord.from_row(change.record)))

    async def _on_list_refreshed(self, event: ListRefreshed) -> None:
        await self._check_store()

    async def _teardown(self) -> None:
        """Cancel poll/timeout/webhook tasks and drop the session subscription."""
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        if self._subscription is not None:
            subscription, self._subscription = self._subscription, None
            await subscription.close()

    async def close(self) -> None:
        await self._teardown()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    # --- Selection ---

    async def show_selection(self, event: SelectionChanged) -> None:
        """Switch to read-only viewing of a selected row, or back to the form."""
        same_row = (
            self.viewing is not None and event.links is not None
            and self.viewing.links.record_id == event.links.record_id
        )
        if not same_row:
            self.dialog = replace(self.dialog, is_open=False)
        if event.cleared or event.links is None:
            self.viewing = None
            if not self.state.active:
                self.state = SubmissionState()
                self.file_name = None
            return
        if self.state.active:
            logger.info("Submission '%s' superseded by selecting '%s'", self.state.episode_name, event.episode_name)
            await self._teardown()
            self.state = SubmissionState()
            self.file_name = None
        self.viewing = ViewedEpisode(event.episode_name, event.links)

    # --- Approval ---

    def current_links(self) -> ScriptLinks:
        return self.viewing.links if self.viewing else self.state.links

    def _set_current_links(self, links: ScriptLinks) -> None:
        if self.viewing:
            self.viewing = replace(self.viewing, links=links)
        else:
            self.state = replace(self.state, links=links)

    def request_approval(self) -> ApprovalDialog:
        if not can_approve(self.current_links()):
            raise ApprovalNotAllowedError("Scripts cannot be approved until the summary script exists.")
        self.dialog = self.dialog.opened()
        return self.dialog

    async def confirm_approval(self) -> None:
        if not self.dialog.is_open:
            raise ApprovalNotAllowedError("No approval is pending.")
        if not can_approve(self.current_links()):
            self.dialog = replace(self.dialog, is_open=False)
            raise ApprovalNotAllowedError("Scripts can no longer be approved.")
        self.dialog = await self.dialog.confirm()

    async def cancel_approval(self) -> None:
        self.dialog = await self.dialog.cancel()

    async def _write_approval(self) -> None:
        """Flip status locally first; the store write is best-effort."""
        links = self.current_links()
        self._set_current_links(links.approved())
        changes = {
            "episode_interview_script_status": ScriptStatus.APPROVED.value,
            "episode_text_files_status": JobStatus.PENDING.value,
            "podcast_status": JobStatus.PENDING.value,
        }
        if not links.record_id:
            logger.warning("Approved scripts without a known record id; nothing written")
        else:
            try:
                await self.store.update(links.record_id, changes)
            except StoreError as e:
                await self.bus.publish(Toast("Approval not saved", str(e), "destructive"))
                return
        await self.bus.publish(Toast("Scripts Approved", "All scripts have been successfully approved."))

    # --- Rendering ---

    def snapshot(self) -> dict[str, Any]:
        links = self.current_links()
        scripts = [
            {"key": column, "label": label, "url": links.script(column)}
            for column, label in SCRIPT_SLOTS
        ]
        submitted_at = (
            datetime.fromtimestamp(self.state.submitted_at, UTC).isoformat()
            if self.state.submitted_at else None
        )
        return {
            "phase": self.state.phase.value,
            "episode_name": self.viewing.episode_name if self.viewing else self.state.episode_name,
            "submitted_at": submitted_at,
            "progress": self.state.progress,
            "resolution": self.state.resolution.value if self.state.resolution else None,
            "busy": self.state.active,
            "read_only": self.viewing is not None,
            "file_name": self.file_name,
            "scripts": scripts,
            "full_script": links.episode_interview_full_script,
            "interview_file": links.episode_interview_file,
            "script_status": links.episode_interview_script_status or ScriptStatus.PENDING.value,
            "text_files_badge": badge_for(links.episode_text_files_status),
            "podcast_badge": badge_for(links.podcast_status),
            "can_approve": can_approve(links),
            "dialog": self.dialog.to_dict(),
        }
