"""Tests for approval gating and the confirmation dialog."""

import asyncio

from src.approval import ApprovalDialog, badge_for, can_approve
from src.models import ScriptLinks


def test_can_approve_requires_summary():
    assert not can_approve(ScriptLinks())
    assert not can_approve(ScriptLinks(episode_interview_script_1="a"))
    assert can_approve(ScriptLinks(episode_interview_script_1="a", episode_interview_script_4="d"))
    assert can_approve(ScriptLinks(episode_interview_script_4="d"))


def test_can_approve_only_once():
    links = ScriptLinks(episode_interview_script_4="d", episode_interview_script_status="Approved")
    assert not can_approve(links)


def test_badge_for():
    assert badge_for("Completed") == {"css": "badge-completed", "label": "Completed"}
    assert badge_for("Processing")["css"] == "badge-processing"
    assert badge_for(None) is None
    assert badge_for("Unknown") is None


def test_dialog_confirm_runs_callback_and_closes():
    calls = []

    async def on_confirm():
        calls.append("confirm")

    dialog = ApprovalDialog(on_confirm=on_confirm).opened()
    assert dialog.is_open
    closed = asyncio.run(dialog.confirm())
    assert calls == ["confirm"]
    assert not closed.is_open


def test_dialog_cancel_skips_confirm():
    calls = []
    dialog = ApprovalDialog(on_confirm=lambda: calls.append("confirm"),
                            on_cancel=lambda: calls.append("cancel")).opened()
    closed = asyncio.run(dialog.cancel())
    assert calls == ["cancel"]
    assert not closed.is_open


def test_dialog_to_dict():
    data = ApprovalDialog().to_dict()
    assert data["open"] is False
    assert data["title"] == "Approve Scripts"
    assert data["description"]
