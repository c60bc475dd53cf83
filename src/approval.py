"""Script approval: confirmation dialog, gating rule and status badges."""

import inspect
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable

from src.models import JobStatus, ScriptLinks

Callback = Callable[[], Awaitable[None] | None]

DIALOG_TITLE = "Approve Scripts"
DIALOG_DESCRIPTION = (
    "Approving the scripts starts text-file and audio generation for this episode. "
    "This cannot be undone from the console. Continue?"
)

# status -> (css class, label)
STATUS_BADGES: dict[str, tuple[str, str]] = {
    JobStatus.PENDING: ("badge-pending", "Pending"),
    JobStatus.PROCESSING: ("badge-processing", "Processing"),
    JobStatus.COMPLETED: ("badge-completed", "Completed"),
    JobStatus.FAILED: ("badge-failed", "Failed"),
}


def badge_for(status: str | None) -> dict[str, str] | None:
    """Badge for a job status; no status (or an unknown one) renders nothing."""
    if not status or status not in STATUS_BADGES:
        return None
    css, label = STATUS_BADGES[status]
    return {"css": css, "label": label}


def can_approve(links: ScriptLinks) -> bool:
    """Scripts can be approved once, and only after the summary script exists."""
    return not links.is_approved and links.has_any_script and links.has_summary


async def _call(callback: Callback | None) -> None:
    if callback is None:
        return
    result = callback()
    if inspect.isawaitable(result):
        await result


@dataclass(frozen=True)
class ApprovalDialog:
    """Stateless confirmation prompt; each action returns the closed dialog."""

    is_open: bool = False
    on_confirm: Callback | None = None
    on_cancel: Callback | None = None

    def opened(self) -> "ApprovalDialog":
        return replace(self, is_open=True)

    async def confirm(self) -> "ApprovalDialog":
        await _call(self.on_confirm)
        return replace(self, is_open=False)

    async def cancel(self) -> "ApprovalDialog":
        await _call(self.on_cancel)
        return replace(self, is_open=False)

    def to_dict(self) -> dict[str, Any]:
        return {"open": self.is_open, "title": DIALOG_TITLE, "description": DIALOG_DESCRIPTION}
