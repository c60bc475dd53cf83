"""Tests for the submission workflow, generation tracking and approval."""

import asyncio

import pytest

from src.events import EventBus, RefreshRequested, SelectionChanged, Toast
from src.exceptions import ApprovalNotAllowedError, SubmissionValidationError
from src.models import EpisodeRecord, ScriptLinks
from src.submission import (
    Resolution,
    SubmissionFormView,
    SubmissionPhase,
    SubmissionState,
    apply_existing_record,
    apply_record_snapshot,
    apply_timeout,
    apply_webhook_response,
    begin_polling,
    pick_best,
    start_submission,
    validate_submission,
)

from conftest import make_row

PDF = b"%PDF-1.7 fake"


def _record(name="Ep", **columns):
    return EpisodeRecord.from_row(make_row(name, **columns))


def _form(store, webhook, bus, **kwargs):
    kwargs.setdefault("poll_interval", 0.01)
    kwargs.setdefault("timeout", 2.0)
    return SubmissionFormView(store, webhook, bus, **kwargs)


class TestReducer:
    """Tests for the pure state transitions."""

    def test_start(self):
        state = start_submission("Ep", 100.0)
        assert state.phase == SubmissionPhase.SUBMITTED
        assert state.active
        assert state.submitted_at == 100.0

    def test_existing_record_resolves(self):
        state = apply_existing_record(start_submission("Ep", 0), _record("Ep", script_1="a"))
        assert state.resolved
        assert state.resolution == Resolution.EXISTING
        assert state.links.episode_interview_script_1 == "a"

    def test_partial_scripts_keep_polling(self):
        state = begin_polling(start_submission("Ep", 0))
        state = apply_record_snapshot(state, _record("Ep", script_1="a", script_2="b", script_3="c"))
        assert state.phase == SubmissionPhase.POLLING
        assert state.found
        assert "3 of 4" in state.progress

    def test_summary_resolves(self):
        state = begin_polling(start_submission("Ep", 0))
        state = apply_record_snapshot(state, _record("Ep", script_4="d"))
        assert state.resolved
        assert state.resolution == Resolution.COMPLETED

    def test_resolved_state_is_latched(self):
        state = apply_record_snapshot(begin_polling(start_submission("Ep", 0)), _record("Ep", script_4="d"))
        assert apply_record_snapshot(state, _record("Ep", script_4="other")) is state
        assert apply_timeout(state) is state
        assert apply_webhook_response(state, {"episode_interview_script_1": "x"}) is state

    def test_other_name_ignored(self):
        state = begin_polling(start_submission("Ep", 0))
        assert apply_record_snapshot(state, _record("Other", script_4="d")) is state
        assert apply_record_snapshot(state, None) is state

    def test_idle_ignores_snapshots(self):
        state = SubmissionState()
        assert apply_record_snapshot(state, _record("Ep", script_4="d")) is state

    def test_webhook_response_is_advisory(self):
        state = start_submission("Ep", 0)
        state = apply_webhook_response(state, {"episode_interview_script_4": "https://x/4"})
        assert state.active
        assert state.links.episode_interview_script_4 == "https://x/4"

    def test_timeout(self):
        state = apply_timeout(begin_polling(start_submission("Ep", 0)))
        assert state.resolved
        assert state.resolution == Resolution.TIMEOUT

    def test_pick_best_prefers_complete_row(self):
        partial = _record("Ep", id="1", script_1="a")
        complete = _record("Ep", id="2", script_4="d")
        assert pick_best([partial, complete]).id == "2"
        assert pick_best([]) is None


class TestValidation:
    """Tests for validate_submission."""

    def test_valid(self):
        assert validate_submission("  My Episode ", "src.pdf", "application/pdf", PDF) == "My Episode"

    def test_short_name(self):
        with pytest.raises(SubmissionValidationError) as exc:
            validate_submission(" ab ", "src.pdf", "application/pdf", PDF)
        assert set(exc.value.errors) == {"episodeName"}

    def test_missing_file(self):
        with pytest.raises(SubmissionValidationError) as exc:
            validate_submission("Episode", "", "", b"")
        assert set(exc.value.errors) == {"pdfFile"}

    def test_wrong_type(self):
        with pytest.raises(SubmissionValidationError) as exc:
            validate_submission("Episode", "notes.docx", "application/msword", b"data")
        assert "pdfFile" in exc.value.errors

    def test_generic_type_with_pdf_extension(self):
        assert validate_submission("Episode", "SRC.PDF", "application/octet-stream", PDF) == "Episode"

    def test_both_errors_reported(self):
        with pytest.raises(SubmissionValidationError) as exc:
            validate_submission("", None, None, None)
        assert set(exc.value.errors) == {"episodeName", "pdfFile"}


class TestSubmissionFormView:
    """Tests for the running workflow."""

    def test_existing_record_skips_webhook(self, store, webhook):
        store.rows = [make_row("Ep One", id="5", script_1="https://x/1")]

        async def scenario():
            bus = EventBus()
            toasts = []
            bus.subscribe(Toast, toasts.append)
            form = _form(store, webhook, bus)
            state = await form.submit("Ep One", "src.pdf", "application/pdf", PDF)
            await form.close()
            return form, state, toasts

        form, state, toasts = asyncio.run(scenario())
        assert state.resolution == Resolution.EXISTING
        assert webhook.calls == []
        assert form.file_name is None
        assert [t.title for t in toasts] == ["Processing Started", "Episode found"]

    def test_polling_resolves_exactly_once(self, store, webhook):
        async def scenario():
            bus = EventBus()
            toasts = []
            refreshes = []
            bus.subscribe(Toast, toasts.append)
            bus.subscribe(RefreshRequested, refreshes.append)
            form = _form(store, webhook, bus)
            state = await form.submit("New Ep", "src.pdf", "application/pdf", PDF)
            assert state.active

            await asyncio.sleep(0.05)
            row = make_row("New Ep", id="7", script_1="https://x/1")
            store.rows.append(row)
            await store.push("INSERT", dict(row))
            assert form.state.active

            row["episode_interview_script_4"] = "https://x/4"
            final = await form.wait_resolved(2)
            # Late signals after resolution are no-ops
            await store.push("UPDATE", dict(row))
            await form._check_store()
            await form.close()
            return final, toasts, refreshes

        final, toasts, refreshes = asyncio.run(scenario())
        assert final.resolution == Resolution.COMPLETED
        assert final.links.episode_interview_script_4 == "https://x/4"
        assert [t.title for t in toasts].count("Success!") == 1
        assert webhook.calls == [("New Ep", "src.pdf", PDF)]
        assert refreshes

    def test_change_feed_resolves(self, store, webhook):
        async def scenario():
            form = _form(store, webhook, EventBus(), poll_interval=10)
            await form.submit("Feed Ep", "src.pdf", "application/pdf", PDF)
            await asyncio.sleep(0)
            await store.push("INSERT", make_row("Feed Ep", id="3", script_4="https://x/4"))
            state = await form.wait_resolved(1)
            await form.close()
            return state

        state = asyncio.run(scenario())
        assert state.resolution == Resolution.COMPLETED
        assert state.links.record_id == "3"

    def test_webhook_failure_falls_back_to_polling(self, store, failing_webhook):
        async def scenario():
            form = _form(store, failing_webhook, EventBus())
            await form.submit("Ep", "src.pdf", "application/pdf", PDF)
            await asyncio.sleep(0.05)
            store.rows.append(make_row("Ep", script_4="https://x/4"))
            state = await form.wait_resolved(2)
            await form.close()
            return state

        state = asyncio.run(scenario())
        assert state.resolution == Resolution.COMPLETED
        assert len(failing_webhook.calls) == 1

    def test_timeout_resolves(self, store, webhook):
        async def scenario():
            bus = EventBus()
            toasts = []
            bus.subscribe(Toast, toasts.append)
            form = _form(store, webhook, bus, timeout=0.05)
            await form.submit("Slow Ep", "src.pdf", "application/pdf", PDF)
            state = await form.wait_resolved(2)
            await form.close()
            return form, state, toasts

        form, state, toasts = asyncio.run(scenario())
        assert state.resolution == Resolution.TIMEOUT
        assert toasts[-1].title == "Taking longer than expected"
        assert toasts[-1].variant == "warning"
        assert form.file_name is None
        assert store.handlers == []

    def test_invalid_submission_has_no_side_effects(self, store, webhook):
        async def scenario():
            form = _form(store, webhook, EventBus())
            with pytest.raises(SubmissionValidationError):
                await form.submit("ab", "src.pdf", "application/pdf", PDF)
            return form

        form = asyncio.run(scenario())
        assert form.state.phase == SubmissionPhase.IDLE
        assert webhook.calls == []

    def test_selection_makes_form_read_only(self, store, webhook):
        links = ScriptLinks(record_id="1", episode_interview_script_4="https://x/4")

        async def scenario():
            form = _form(store, webhook, EventBus())
            await form.submit("Running", "src.pdf", "application/pdf", PDF)
            await form.show_selection(SelectionChanged(links, "Selected"))
            snap = form.snapshot()
            with pytest.raises(SubmissionValidationError):
                await form.submit("Another", "src.pdf", "application/pdf", PDF)
            await form.show_selection(SelectionChanged.clear())
            after = form.snapshot()
            await form.close()
            return snap, after

        snap, after = asyncio.run(scenario())
        assert snap["read_only"]
        assert snap["episode_name"] == "Selected"
        assert snap["phase"] == "idle"
        assert snap["can_approve"]
        assert not after["read_only"]

    def test_deselect_after_resolved_session_clears_form(self, store, webhook):
        store.rows = [make_row("Ep One", id="5", script_4="https://x/4")]
        other = ScriptLinks(record_id="6", episode_interview_script_1="https://x/6")

        async def scenario():
            form = _form(store, webhook, EventBus())
            await form.submit("Ep One", "src.pdf", "application/pdf", PDF)
            await form.show_selection(SelectionChanged(other, "Other"))
            await form.show_selection(SelectionChanged.clear())
            snap = form.snapshot()
            await form.close()
            return snap

        snap = asyncio.run(scenario())
        assert snap["phase"] == "idle"
        assert snap["episode_name"] is None
        assert snap["file_name"] is None
        assert [s["url"] for s in snap["scripts"]] == [None, None, None, None]
        assert not snap["can_approve"]

    def test_snapshot_lists_checklist(self, store, webhook):
        form = _form(store, webhook, EventBus())
        snap = form.snapshot()
        assert [s["label"] for s in snap["scripts"]][0] == "Script #1 - 3 Key Points"
        assert all(s["url"] is None for s in snap["scripts"])
        assert snap["script_status"] == "Pending"
        assert snap["text_files_badge"] is None
        assert not snap["can_approve"]


class TestApproval:
    """Tests for approving scripts from the form."""

    LINKS = ScriptLinks(record_id="1", episode_interview_script_1="a", episode_interview_script_4="d",
                        episode_text_files_status="Completed", podcast_status="Completed")

    def _run(self, store, webhook, steps):
        async def scenario():
            bus = EventBus()
            toasts = []
            bus.subscribe(Toast, toasts.append)
            form = _form(store, webhook, bus)
            await form.show_selection(SelectionChanged(self.LINKS, "Ep"))
            await steps(form)
            await form.close()
            return form, toasts

        return asyncio.run(scenario())

    def test_approve_writes_statuses(self, store, webhook):
        store.rows = [make_row("Ep", id="1")]

        async def steps(form):
            form.request_approval()
            assert form.dialog.is_open
            await form.confirm_approval()

        form, toasts = self._run(store, webhook, steps)
        assert store.updates == [("1", {
            "episode_interview_script_status": "Approved",
            "episode_text_files_status": "Pending",
            "podcast_status": "Pending",
        })]
        assert not form.dialog.is_open
        assert form.current_links().is_approved
        assert toasts[-1].title == "Scripts Approved"
        assert not form.snapshot()["can_approve"]

    def test_write_failure_keeps_local_approval(self, store, webhook):
        store.fail_update = True

        async def steps(form):
            form.request_approval()
            await form.confirm_approval()

        form, toasts = self._run(store, webhook, steps)
        assert form.current_links().is_approved
        assert toasts[-1].title == "Approval not saved"
        assert toasts[-1].variant == "destructive"

    def test_cancel_writes_nothing(self, store, webhook):
        async def steps(form):
            form.request_approval()
            await form.cancel_approval()

        form, _ = self._run(store, webhook, steps)
        assert store.updates == []
        assert not form.dialog.is_open
        assert not form.current_links().is_approved

    def test_not_allowed_without_summary(self, store, webhook):
        async def scenario():
            form = _form(store, webhook, EventBus())
            await form.show_selection(SelectionChanged(ScriptLinks(record_id="1", episode_interview_script_1="a"), "Ep"))
            with pytest.raises(ApprovalNotAllowedError):
                form.request_approval()
            with pytest.raises(ApprovalNotAllowedError):
                await form.confirm_approval()

        asyncio.run(scenario())

    def test_dialog_survives_refresh_of_same_row(self, store, webhook):
        async def steps(form):
            form.request_approval()
            await form.show_selection(SelectionChanged(self.LINKS, "Ep"))
            assert form.dialog.is_open
            await form.show_selection(SelectionChanged(ScriptLinks(record_id="2"), "Other"))
            assert not form.dialog.is_open

        self._run(store, webhook, steps)
