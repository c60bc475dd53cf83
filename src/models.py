"""Data models for the episode console."""

from dataclasses import asdict, dataclass, field, fields, replace
from enum import StrEnum
from typing import Any


class ScriptStatus(StrEnum):
    """Review status of an episode's generated scripts."""

    PENDING = "Pending"
    APPROVED = "Approved"


class JobStatus(StrEnum):
    """Status of a downstream job (text files, podcast audio)."""

    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"


# (column, checklist label); the last entry is the completion signal.
SCRIPT_SLOTS: tuple[tuple[str, str], ...] = (
    ("episode_interview_script_1", "Script #1 - 3 Key Points"),
    ("episode_interview_script_2", "Script #2 - What it Means"),
    ("episode_interview_script_3", "Script #3 - Practical Application"),
    ("episode_interview_script_4", "Script #4 - Summary"),
)
SUMMARY_SCRIPT = SCRIPT_SLOTS[-1][0]


def is_present(value: Any) -> bool:
    """A link counts only when it is a non-blank string."""
    return isinstance(value, str) and value.strip() != ""


@dataclass
class EpisodeRecord:
    """One row of the production-tracking table."""

    id: str
    created_at: str | None = None
    episode_interview_file_name: str | None = None
    episode_number: Any = None
    source_document_file_name: str | None = None
    source_document: str | None = None
    episode_interview_script_1: str | None = None
    episode_interview_script_2: str | None = None
    episode_interview_script_3: str | None = None
    episode_interview_script_4: str | None = None
    episode_interview_full_script: str | None = None
    episode_interview_file: str | None = None
    episode_interview_script_status: str | None = None
    episode_text_files_status: str | None = None
    podcast_status: str | None = None
    episode_titles: str | None = None
    episode_description: str | None = None
    episode_intro_transcript: str | None = None
    linkedin_post_copy: str | None = None
    x_post_copy: str | None = None
    show_notes: str | None = None
    podcast_excerpt: str | None = None
    episode_intro_audio_file: str | None = None
    master_audio_file: str | None = None
    episode_cover_art: str | None = None
    scheduled_date: str | None = None
    unix_timestamp: Any = None
    publish_date: str | None = None
    publish_time: str | None = None
    # Columns the table carries that are not declared above
    extra: dict[str, Any] = field(default_factory=dict)
    # Declared columns the fetched row actually had; None means all of them
    present: frozenset[str] | None = field(default=None, compare=False)

    @classmethod
    def declared_columns(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls) if f.name not in ("extra", "present"))

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "EpisodeRecord":
        """Build a record from a raw table row, keeping unknown columns in ``extra``."""
        declared = set(cls.declared_columns())
        known = {k: v for k, v in row.items() if k in declared}
        extra = {k: v for k, v in row.items() if k not in declared}
        known["id"] = str(row.get("id", ""))
        return cls(**known, extra=extra, present=frozenset(known))

    def to_row(self) -> dict[str, Any]:
        """The row as the table knows it: present declared columns plus ``extra``."""
        columns = self.declared_columns() if self.present is None else self.present
        data = {column: getattr(self, column) for column in self.declared_columns() if column in columns}
        data.update(self.extra)
        return data

    def get(self, column: str) -> Any:
        if column in self.extra:
            return self.extra[column]
        if column in ("extra", "present"):
            return None
        return getattr(self, column, None)

    def with_value(self, column: str, value: Any) -> "EpisodeRecord":
        """Return a copy with one column changed. The id never changes."""
        if column == "id":
            return self
        if column in self.declared_columns():
            present = None if self.present is None else self.present | {column}
            return replace(self, present=present, **{column: value})
        return replace(self, extra={**self.extra, column: value})

    @property
    def episode_name(self) -> str | None:
        return self.episode_interview_file_name

    def script_links(self) -> "ScriptLinks":
        return ScriptLinks(
            record_id=self.id,
            episode_interview_script_1=self.episode_interview_script_1 or None,
            episode_interview_script_2=self.episode_interview_script_2 or None,
            episode_interview_script_3=self.episode_interview_script_3 or None,
            episode_interview_script_4=self.episode_interview_script_4 or None,
            episode_interview_full_script=self.episode_interview_full_script or None,
            episode_interview_file=self.episode_interview_file or None,
            episode_interview_script_status=self.episode_interview_script_status,
            episode_text_files_status=self.episode_text_files_status,
            podcast_status=self.podcast_status,
        )


@dataclass(frozen=True)
class ScriptLinks:
    """The script-related subset of a record shown by the submission form."""

    record_id: str | None = None
    episode_interview_script_1: str | None = None
    episode_interview_script_2: str | None = None
    episode_interview_script_3: str | None = None
    episode_interview_script_4: str | None = None
    episode_interview_full_script: str | None = None
    episode_interview_file: str | None = None
    episode_interview_script_status: str | None = None
    episode_text_files_status: str | None = None
    podcast_status: str | None = None

    @classmethod
    def empty(cls) -> "ScriptLinks":
        return cls()

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "ScriptLinks":
        """Pick script fields out of a loose mapping such as a webhook payload."""
        names = {f.name for f in fields(cls)} - {"record_id"}
        values = {k: (v if is_present(v) else None) for k, v in data.items() if k in names}
        record_id = data.get("id")
        return cls(record_id=str(record_id) if record_id is not None else None, **values)

    def script(self, column: str) -> str | None:
        value = getattr(self, column)
        return value if is_present(value) else None

    @property
    def available_count(self) -> int:
        return sum(1 for column, _ in SCRIPT_SLOTS if self.script(column))

    @property
    def has_any_script(self) -> bool:
        return self.available_count > 0

    @property
    def has_summary(self) -> bool:
        return self.script(SUMMARY_SCRIPT) is not None

    @property
    def is_approved(self) -> bool:
        return self.episode_interview_script_status == ScriptStatus.APPROVED

    def merged_with(self, newer: "ScriptLinks") -> "ScriptLinks":
        """Overlay the non-empty fields of ``newer`` on top of these links."""
        changes = {
            f.name: getattr(newer, f.name)
            for f in fields(newer)
            if getattr(newer, f.name) is not None
        }
        return replace(self, **changes)

    def approved(self) -> "ScriptLinks":
        return replace(
            self,
            episode_interview_script_status=ScriptStatus.APPROVED.value,
            episode_text_files_status=JobStatus.PENDING.value,
            podcast_status=JobStatus.PENDING.value,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
