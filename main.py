"""FastAPI app: serves the episode console dashboard and its JSON API."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from html import escape

from fastapi import FastAPI, Form, Query, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse

from config import settings
from src import store as store_module
from src.console import Console
from src.exceptions import (
    ApprovalNotAllowedError,
    EditConflictError,
    RecordNotFoundError,
    SubmissionValidationError,
)
from src.store import EpisodeStore
from src.webhook import WebhookClient

BUILD_NUMBER = 1
BUILD_DATE = datetime.now(UTC).strftime("%b %d, %Y")
BUILD_VERSION = f"b{BUILD_NUMBER} · {BUILD_DATE}"

MAX_UPLOAD_BYTES = 50 * 1024 * 1024

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

# Populated during lifespan startup
_console: Console | None = None


async def _build_console() -> Console:
    """Connect to Supabase and wire the console components."""
    store = await EpisodeStore.connect()
    return Console(store, WebhookClient())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the store and start the list view's live updates."""
    global _console
    if not store_module.is_configured():
        logger.error("SUPABASE_URL / SUPABASE_KEY not set; console API is disabled.")
    else:
        _console = await _build_console()
        await _console.start()
        logger.info("Console started on table '%s'", _console.store.table)
    if not settings.webhook_url:
        logger.warning("WEBHOOK_URL not set; submissions will rely on store polling only.")
    yield
    if _console is not None:
        await _console.close()
        await _console.store.close()
        _console = None


app = FastAPI(title="Episode Console", description="Podcast production console", lifespan=lifespan)


def _unavailable() -> JSONResponse:
    return JSONResponse({"error": "Episode store is not configured."}, status_code=503)


def _state() -> JSONResponse:
    return JSONResponse(_console.snapshot())


# --- Dashboard ---

@app.get("/")
async def dashboard():
    return HTMLResponse(
        content=_build_dashboard_html(),
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


@app.get("/api/state")
async def api_state():
    """Everything the dashboard renders: list, form and pending toasts."""
    if _console is None:
        return _unavailable()
    return _state()


# --- Episodes list ---

@app.post("/api/episodes/refresh")
async def api_refresh():
    """Reload the table (also used as the retry action after an error)."""
    if _console is None:
        return _unavailable()
    await _console.list_view.load()
    if _console.list_view.error:
        return JSONResponse({"error": _console.list_view.error}, status_code=502)
    return _state()


@app.post("/api/episodes/sort")
async def api_sort(column: str = Form("")):
    if _console is None:
        return _unavailable()
    if not column:
        return JSONResponse({"error": "Column is required."}, status_code=400)
    _console.list_view.sort(column)
    return _state()


@app.post("/api/episodes/{record_id}/select")
async def api_select(record_id: str):
    if _console is None:
        return _unavailable()
    try:
        await _console.list_view.select(record_id)
    except RecordNotFoundError as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    return _state()


@app.post("/api/episodes/{record_id}/edit")
async def api_begin_edit(record_id: str):
    if _console is None:
        return _unavailable()
    try:
        _console.list_view.begin_edit(record_id)
    except RecordNotFoundError as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    return _state()


@app.post("/api/episodes/edit/field")
async def api_edit_field(column: str = Form(""), value: str = Form("")):
    if _console is None:
        return _unavailable()
    if not column:
        return JSONResponse({"error": "Column is required."}, status_code=400)
    try:
        _console.list_view.set_field(column, value)
    except EditConflictError as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return JSONResponse({"ok": True})


@app.post("/api/episodes/edit/save")
async def api_save_edit():
    if _console is None:
        return _unavailable()
    try:
        saved = await _console.list_view.save()
    except EditConflictError as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    if not saved:
        return JSONResponse({"error": "Update failed."}, status_code=502)
    return _state()


@app.post("/api/episodes/edit/cancel")
async def api_cancel_edit():
    if _console is None:
        return _unavailable()
    _console.list_view.cancel_edit()
    return _state()


@app.delete("/api/episodes/{record_id}")
async def api_delete(record_id: str, confirm: bool = Query(default=False)):
    """Delete a row. Requires ``confirm=true``; the action cannot be undone."""
    if _console is None:
        return _unavailable()
    if not confirm:
        return JSONResponse({"error": "Deletion must be confirmed."}, status_code=400)
    deleted = await _console.list_view.delete(record_id, confirmed=True)
    if not deleted:
        return JSONResponse({"error": "Delete failed."}, status_code=502)
    return _state()


# --- Submission form ---

@app.post("/api/submit")
async def api_submit(pdfFile: UploadFile | None = None, episodeName: str = Form("")):
    """Start a generate-scripts submission (name + PDF)."""
    if _console is None:
        return _unavailable()
    filename = ""
    content_type = ""
    data = b""
    if pdfFile is not None:
        filename = pdfFile.filename or ""
        content_type = pdfFile.content_type or ""
        data = await pdfFile.read(MAX_UPLOAD_BYTES + 1)
        if len(data) > MAX_UPLOAD_BYTES:
            return JSONResponse({"errors": {"pdfFile": "PDF is too large."}}, status_code=400)
    try:
        await _console.form.submit(episodeName, filename, content_type, data)
    except SubmissionValidationError as e:
        return JSONResponse({"errors": e.errors}, status_code=400)
    return _state()


@app.post("/api/approval/request")
async def api_request_approval():
    if _console is None:
        return _unavailable()
    try:
        _console.form.request_approval()
    except ApprovalNotAllowedError as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return _state()


@app.post("/api/approval/confirm")
async def api_confirm_approval():
    if _console is None:
        return _unavailable()
    try:
        await _console.form.confirm_approval()
    except ApprovalNotAllowedError as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return _state()


@app.post("/api/approval/cancel")
async def api_cancel_approval():
    if _console is None:
        return _unavailable()
    await _console.form.cancel_approval()
    return _state()


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    form = _console.form if _console else None
    return {
        "status": "ok" if _console else "degraded",
        "store_configured": store_module.is_configured(),
        "webhook_configured": bool(settings.webhook_url),
        "table": settings.episodes_table,
        "records": len(_console.list_view.records) if _console else 0,
        "list_error": _console.list_view.error if _console else None,
        "submission_phase": form.state.phase.value if form else None,
        "tasks": len(asyncio.all_tasks()),
    }


# --- Dashboard HTML ---

def _build_dashboard_html() -> str:
    return (DASHBOARD_HTML
            .replace("__CONSOLE_TITLE__", escape(settings.console_title))
            .replace("__POLL_MS__", str(int(settings.poll_interval_seconds * 1000)))
            .replace("__BUILD_VERSION__", BUILD_VERSION))


DASHBOARD_HTML = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>__CONSOLE_TITLE__</title>
<style>
  :root {
    --bg: #0f1117;
    --surface: #1a1d27;
    --surface2: #242734;
    --border: #2e3140;
    --text: #e4e4e7;
    --text-dim: #8b8d98;
    --accent: #c4a052;
    --accent-dim: #a08438;
    --green: #4ade80;
    --red: #f87171;
    --yellow: #fbbf24;
    --blue: #60a5fa;
  }

  * { margin: 0; padding: 0; box-sizing: border-box; }

  body {
    font-family: 'SF Mono', 'Cascadia Code', 'Fira Code', 'Consolas', monospace;
    background: var(--bg);
    color: var(--text);
    min-height: 100vh;
  }

  header {
    border-bottom: 1px solid var(--border);
    padding: 12px 24px;
    display: flex;
    align-items: center;
    justify-content: space-between;
  }
  header h1 { font-size: 18px; font-weight: 600; color: var(--accent); letter-spacing: 2px; }
  header .tagline { font-size: 11px; color: var(--text-dim); font-style: italic; }

  .btn {
    font-size: 12px; color: var(--accent); text-decoration: none;
    border: 1px solid var(--accent-dim); padding: 4px 12px; border-radius: 4px;
    cursor: pointer; background: transparent; font-family: inherit;
  }
  .btn:hover { background: var(--accent-dim); color: var(--bg); }
  .btn:disabled { opacity: 0.4; cursor: not-allowed; }
  .btn.danger { color: var(--red); border-color: var(--red); }

  .layout { display: flex; gap: 24px; max-width: 1400px; margin: 0 auto; padding: 24px; align-items: flex-start; }
  .col-form { width: 460px; flex-shrink: 0; }
  .col-list { flex: 1; min-width: 0; }

  .card {
    background: var(--surface); border: 1px solid var(--border);
    border-radius: 12px; padding: 24px; margin-bottom: 16px;
  }
  .card-label { font-size: 11px; text-transform: uppercase; letter-spacing: 1.5px; color: var(--accent); margin-bottom: 8px; }
  .card-desc { font-size: 11px; color: var(--text-dim); margin-bottom: 16px; line-height: 1.5; }

  .viewing { border: 1px solid var(--blue); border-radius: 8px; padding: 12px; margin-bottom: 16px; font-size: 12px; color: var(--blue); }

  label.field { display: block; font-size: 11px; color: var(--text-dim); margin: 12px 0 6px; }
  input[type="text"], .cell-input {
    width: 100%; font-family: inherit; font-size: 12px; color: var(--text); background: var(--bg);
    border: 1px solid var(--border); border-radius: 6px; padding: 8px;
  }
  input[type="file"] { font-family: inherit; font-size: 12px; color: var(--text-dim); width: 100%; }
  .field-error { font-size: 11px; color: var(--red); margin-top: 4px; min-height: 14px; }

  .up-btn {
    font-size: 12px; color: var(--bg); background: var(--accent); border: none; width: 100%;
    padding: 10px 18px; border-radius: 6px; cursor: pointer; font-family: inherit; font-weight: 500; margin-top: 12px;
  }
  .up-btn:hover { background: var(--accent-dim); }
  .up-btn:disabled { opacity: 0.4; cursor: not-allowed; }
  .progress { font-size: 12px; color: var(--yellow); margin-top: 10px; }

  .scripts { list-style: none; margin-top: 12px; }
  .scripts li { display: flex; justify-content: space-between; font-size: 12px; padding: 8px 0; border-bottom: 1px solid var(--border); }
  .scripts a { color: var(--blue); text-decoration: none; }
  .scripts .off { color: var(--text-dim); opacity: 0.5; }

  .badge { display: inline-block; font-size: 10px; padding: 2px 8px; border-radius: 10px; font-weight: 600; }
  .badge-pending { background: rgba(251,191,36,0.15); color: var(--yellow); }
  .badge-processing { background: rgba(96,165,250,0.15); color: var(--blue); }
  .badge-completed { background: rgba(74,222,128,0.15); color: var(--green); }
  .badge-failed { background: rgba(248,113,113,0.15); color: var(--red); }
  .badge-approved { background: rgba(74,222,128,0.15); color: var(--green); }
  .status-row { display: flex; gap: 12px; align-items: center; font-size: 11px; color: var(--text-dim); margin: 8px 0; flex-wrap: wrap; }

  .table-wrap { overflow: auto; max-height: 800px; }
  .htable { width: 100%; border-collapse: collapse; font-size: 12px; }
  .htable th {
    text-align: left; color: var(--text-dim); font-weight: 500; padding: 8px 12px; cursor: pointer;
    border-bottom: 1px solid var(--border); font-size: 10px; letter-spacing: 1px; white-space: nowrap;
  }
  .htable td { padding: 8px 12px; border-bottom: 1px solid var(--border); white-space: nowrap; max-width: 320px; overflow: hidden; text-overflow: ellipsis; }
  .htable tr:hover td { background: var(--surface2); cursor: pointer; }
  .htable tr.selected td { background: rgba(96,165,250,0.12); }
  .htable a { color: var(--blue); text-decoration: none; }
  .row-actions { display: flex; gap: 4px; }

  .error-panel { border: 1px solid var(--red); border-radius: 8px; padding: 16px; color: var(--red); font-size: 12px; }
  .empty { text-align: center; color: var(--text-dim); padding: 40px; font-size: 13px; }

  #toasts { position: fixed; bottom: 20px; right: 20px; display: flex; flex-direction: column; gap: 8px; z-index: 50; }
  .toast { background: var(--surface2); border: 1px solid var(--border); border-radius: 8px; padding: 10px 14px; font-size: 12px; max-width: 360px; }
  .toast.destructive { border-color: var(--red); }
  .toast.warning { border-color: var(--yellow); }
  .toast b { display: block; margin-bottom: 2px; }

  .modal-bg { position: fixed; inset: 0; background: rgba(0,0,0,0.6); display: none; align-items: center; justify-content: center; z-index: 40; }
  .modal-bg.open { display: flex; }
  .modal { background: var(--surface); border: 1px solid var(--border); border-radius: 12px; padding: 24px; max-width: 420px; }
  .modal p { font-size: 12px; color: var(--text-dim); margin: 12px 0 20px; line-height: 1.6; }
  .modal .actions { display: flex; gap: 8px; justify-content: flex-end; }

  @media (max-width: 960px) {
    .layout { flex-direction: column; }
    .col-form { width: 100%; }
  }
</style>
</head>
<body>

<header>
  <div>
    <h1>__CONSOLE_TITLE__</h1>
    <div class="tagline">Episode interview scripts and audio generator</div>
  </div>
  <span style="font-size:9px;color:var(--text-dim);opacity:0.5;">v__BUILD_VERSION__</span>
</header>

<div class="layout">
  <div class="col-form">
    <div class="card">
      <div class="card-label">New Episode</div>
      <p class="card-desc">Upload your PDF and get a generated podcast script in minutes.</p>
      <div id="viewing-slot"></div>
      <label class="field" for="episode-name">Episode Interview File Name</label>
      <input type="text" id="episode-name" placeholder="Enter episode name">
      <div class="field-error" id="err-episodeName"></div>
      <label class="field" for="pdf-file">Upload PDF</label>
      <input type="file" id="pdf-file" accept=".pdf,application/pdf">
      <div class="field-error" id="err-pdfFile"></div>
      <div class="field-error" id="err-form"></div>
      <button class="up-btn" id="submit-btn" onclick="submitForm()">Generate Script</button>
      <div class="progress" id="progress"></div>
    </div>
    <div class="card">
      <div class="card-label">Scripts</div>
      <div class="status-row" id="status-row"></div>
      <ul class="scripts" id="scripts"></ul>
      <button class="up-btn" id="approve-btn" onclick="requestApproval()">Approve Scripts</button>
    </div>
  </div>

  <div class="col-list">
    <div class="card">
      <div class="card-label">Episodes List</div>
      <p class="card-desc">Episodes list is updated automatically. Click a row to view its scripts.</p>
      <div id="list-slot"><div class="empty">Loading data...</div></div>
    </div>
  </div>
</div>

<div class="modal-bg" id="approval-modal">
  <div class="modal">
    <div class="card-label" id="approval-title">Approve Scripts</div>
    <p id="approval-desc"></p>
    <div class="actions">
      <button class="btn" onclick="cancelApproval()">Cancel</button>
      <button class="btn" onclick="confirmApproval()">Approve</button>
    </div>
  </div>
</div>

<div id="toasts"></div>

<script>
const POLL_MS = __POLL_MS__;
let _state = null;
let _lastPhase = null;

function esc(s) {
  if (s === null || s === undefined) return '';
  return String(s).replace(/[&<>"']/g, c => ({'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'}[c]));
}

function rowId(el) {
  return el.closest('tr').dataset.id;
}

async function post(path, form) {
  const res = await fetch(path, {method: 'POST', body: form || new FormData()});
  const data = await res.json().catch(() => ({}));
  return {res, data};
}

function showToasts(toasts) {
  const box = document.getElementById('toasts');
  for (const t of toasts || []) {
    const el = document.createElement('div');
    el.className = 'toast ' + esc(t.variant);
    el.innerHTML = '<b>' + esc(t.title) + '</b>' + esc(t.description);
    box.appendChild(el);
    setTimeout(() => el.remove(), 5000);
  }
}

function flash(message) {
  showToasts([{title: 'Error', description: message, variant: 'destructive'}]);
}

// ===== FORM =====
function renderForm(form) {
  const slot = document.getElementById('viewing-slot');
  slot.innerHTML = form.read_only
    ? '<div class="viewing">Viewing scripts for: <b>' + esc(form.episode_name) + '</b><br>Deselect the row to create a new episode.</div>'
    : '';
  const nameInput = document.getElementById('episode-name');
  const fileInput = document.getElementById('pdf-file');
  nameInput.disabled = form.read_only || form.busy;
  fileInput.disabled = form.read_only || form.busy;
  if (form.read_only) nameInput.value = form.episode_name || '';
  if (_lastPhase && _lastPhase !== 'resolved' && form.phase === 'resolved' && !form.file_name) fileInput.value = '';
  _lastPhase = form.phase;

  const btn = document.getElementById('submit-btn');
  btn.disabled = form.read_only || form.busy;
  btn.textContent = form.busy ? 'Generating...' : 'Generate Script';
  document.getElementById('progress').textContent = form.busy || form.phase === 'resolved' ? form.progress : '';

  const approved = form.script_status === 'Approved';
  let st = '<span>Script Status: <span class="badge ' + (approved ? 'badge-approved' : 'badge-pending') + '">' + esc(form.script_status) + '</span></span>';
  if (form.text_files_badge) st += '<span>Text Files: <span class="badge ' + esc(form.text_files_badge.css) + '">' + esc(form.text_files_badge.label) + '</span></span>';
  if (form.podcast_badge) st += '<span>Podcast: <span class="badge ' + esc(form.podcast_badge.css) + '">' + esc(form.podcast_badge.label) + '</span></span>';
  document.getElementById('status-row').innerHTML = st;

  const items = form.scripts.map(s => ({label: s.label, url: s.url}));
  items.push({label: 'Full Script', url: form.full_script});
  items.push({label: 'Interview File', url: form.interview_file});
  document.getElementById('scripts').innerHTML = items.map(s =>
    '<li><span>' + esc(s.label) + '</span>' + (s.url
      ? '<a href="' + esc(s.url) + '" target="_blank" rel="noopener noreferrer">View</a>'
      : '<span class="off">View</span>') + '</li>').join('');

  const ab = document.getElementById('approve-btn');
  ab.disabled = !form.can_approve;
  ab.textContent = approved ? 'Scripts Approved' : 'Approve Scripts';

  const modal = document.getElementById('approval-modal');
  document.getElementById('approval-title').textContent = form.dialog.title;
  document.getElementById('approval-desc').textContent = form.dialog.description;
  modal.className = 'modal-bg' + (form.dialog.open ? ' open' : '');
}

function setFieldErrors(errors) {
  for (const f of ['episodeName', 'pdfFile', 'form']) {
    document.getElementById('err-' + f).textContent = (errors && errors[f]) || '';
  }
}

async function submitForm() {
  const name = document.getElementById('episode-name').value;
  const fi = document.getElementById('pdf-file');
  const form = new FormData();
  form.append('episodeName', name);
  if (fi.files.length) form.append('pdfFile', fi.files[0]);
  setFieldErrors(null);
  try {
    const {res, data} = await post('/api/submit', form);
    if (!res.ok) { setFieldErrors(data.errors); if (data.error) flash(data.error); return; }
    render(data);
  } catch (e) { flash('Network error.'); }
}

async function requestApproval() {
  const {res, data} = await post('/api/approval/request');
  if (!res.ok) { flash(data.error || 'Approval not available.'); return; }
  render(data);
}

async function confirmApproval() {
  const {res, data} = await post('/api/approval/confirm');
  if (!res.ok) { flash(data.error || 'Approval failed.'); }
  refresh();
}

async function cancelApproval() {
  const {data} = await post('/api/approval/cancel');
  render(data);
}

// ===== LIST =====
function sortArrow(sort, column) {
  if (sort.column !== column || !sort.direction) return ' &#8597;';
  return sort.direction === 'asc' ? ' &#8593;' : ' &#8595;';
}

function renderList(list) {
  const slot = document.getElementById('list-slot');
  if (list.error) {
    slot.innerHTML = '<div class="error-panel"><b>Error loading data</b><br>' + esc(list.error) +
      '<br><br><button class="btn" onclick="retryLoad()">Retry</button></div>';
    return;
  }
  if (list.loading) { slot.innerHTML = '<div class="empty">Loading data...</div>'; return; }
  if (!list.rows.length) { slot.innerHTML = '<div class="empty">No records found. The episodes table is currently empty.</div>'; return; }
  if (list.editing_id && slot.querySelector('tr.editing[data-id="' + CSS.escape(list.editing_id) + '"]')) return;

  let h = '<div class="table-wrap"><table class="htable"><thead><tr><th>Actions</th>';
  for (const c of list.columns) h += '<th data-col="' + esc(c) + '" onclick="sortBy(this.dataset.col)">' + esc(c) + sortArrow(list.sort, c) + '</th>';
  h += '</tr></thead><tbody>';
  for (const r of list.rows) {
    const id = esc(r.id);
    h += '<tr data-id="' + id + '" class="' + (r.selected ? 'selected ' : '') + (r.editing ? 'editing' : '') + '"' +
      (r.editing ? '' : ' onclick="selectRow(this.dataset.id)"') + '><td><div class="row-actions">';
    if (r.editing) {
      h += '<button class="btn" onclick="event.stopPropagation();saveEdit()">Save</button>';
      h += '<button class="btn" onclick="event.stopPropagation();cancelEdit()">Cancel</button>';
    } else {
      h += '<button class="btn" onclick="event.stopPropagation();selectRow(rowId(this))">' + (r.selected ? 'Unselect' : 'View') + '</button>';
      h += '<button class="btn" onclick="event.stopPropagation();beginEdit(rowId(this))">Edit</button>';
      h += '<button class="btn danger" onclick="event.stopPropagation();deleteRow(rowId(this))">Delete</button>';
    }
    h += '</div></td>';
    for (const c of list.columns) {
      const cell = r.cells[c];
      if (r.editing) {
        const ro = c === 'id' ? ' disabled' : '';
        h += '<td><input class="cell-input" data-col="' + esc(c) + '" value="' + esc(cell.text) + '"' + ro +
          ' onclick="event.stopPropagation()" onchange="setField(this.dataset.col, this.value)"></td>';
      } else if (cell.href) {
        h += '<td><a href="' + esc(cell.href) + '" target="_blank" rel="noopener noreferrer" onclick="event.stopPropagation()">' + esc(cell.text) + ' &#8599;</a></td>';
      } else {
        h += '<td>' + esc(cell.text) + '</td>';
      }
    }
    h += '</tr>';
  }
  h += '</tbody></table></div>';
  slot.innerHTML = h;
}

async function retryLoad() {
  const {res, data} = await post('/api/episodes/refresh');
  if (res.ok) render(data); else refresh();
}

async function sortBy(column) {
  const form = new FormData(); form.append('column', column);
  const {data} = await post('/api/episodes/sort', form);
  render(data);
}

async function selectRow(id) {
  const {res, data} = await post('/api/episodes/' + encodeURIComponent(id) + '/select');
  if (!res.ok) { flash(data.error || 'Selection failed.'); return; }
  render(data);
}

async function beginEdit(id) {
  const {res, data} = await post('/api/episodes/' + encodeURIComponent(id) + '/edit');
  if (!res.ok) { flash(data.error || 'Edit failed.'); return; }
  render(data);
}

async function setField(column, value) {
  const form = new FormData(); form.append('column', column); form.append('value', value);
  const {res, data} = await post('/api/episodes/edit/field', form);
  if (!res.ok) flash(data.error || 'Edit failed.');
}

async function saveEdit() {
  const {res, data} = await post('/api/episodes/edit/save');
  if (!res.ok && data.error) { refresh(); return; }
  render(data);
}

async function cancelEdit() {
  const {data} = await post('/api/episodes/edit/cancel');
  render(data);
}

async function deleteRow(id) {
  if (!confirm('Are you sure you want to delete this record? This action cannot be undone.')) return;
  const res = await fetch('/api/episodes/' + encodeURIComponent(id) + '?confirm=true', {method: 'DELETE'});
  const data = await res.json().catch(() => ({}));
  if (res.ok) render(data); else refresh();
}

// ===== STATE =====
function render(state) {
  if (!state || !state.list) return;
  _state = state;
  renderForm(state.form);
  renderList(state.list);
  showToasts(state.toasts);
}

async function refresh() {
  try {
    const res = await fetch('/api/state');
    const data = await res.json();
    if (!res.ok) {
      document.getElementById('list-slot').innerHTML = '<div class="error-panel">' + esc(data.error || 'Console unavailable.') + '</div>';
      return;
    }
    render(data);
  } catch (e) {}
}

refresh();
setInterval(refresh, POLL_MS);
</script>
</body>
</html>
"""
