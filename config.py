"""Centralized configuration using pydantic-settings."""

import json
import logging
from enum import StrEnum

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase (episode table + realtime change feed)
    supabase_url: str = ""
    supabase_key: str = ""
    episodes_table: str = "autoworkflow"

    # Script-generation workflow webhook
    webhook_url: str = ""
    webhook_timeout_seconds: int = 120

    # Submission tracking
    poll_interval_seconds: float = 1.0
    generation_timeout_seconds: float = 120.0
    min_episode_name_length: int = 3

    # Dashboard
    console_title: str = "Marketing Execution Podcast"
    toast_limit: int = 20

    # Extra column types as JSON, e.g. '{"episode_number": "number"}'
    column_types_json: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()


class ColumnType(StrEnum):
    """Semantic type of a table column, used for sorting and display."""

    TEXT = "text"
    NUMBER = "number"
    DATETIME = "datetime"


# Curated display order; only columns present in the data are shown.
PREFERRED_COLUMN_ORDER: tuple[str, ...] = (
    "created_at",
    "episode_interview_file_name",
    "episode_interview_file",
    "id",
    "episode_number",
    "source_document_file_name",
    "source_document",
    "episode_interview_full_script",
    "episode_interview_script_1",
    "episode_interview_script_2",
    "episode_interview_script_3",
    "episode_interview_script_4",
    "episode_interview_script_status",
    "episode_text_files_status",
    "podcast_status",
    "episode_titles",
    "episode_description",
    "episode_intro_transcript",
    "linkedin_post_copy",
    "x_post_copy",
    "podcast_excerpt",
    "show_notes",
    "episode_intro_audio_file",
    "master_audio_file",
    "episode_cover_art",
    "scheduled_date",
    "unix_timestamp",
    "publish_date",
    "publish_time",
)

# Columns not listed here compare as text.
DEFAULT_COLUMN_TYPES: dict[str, ColumnType] = {
    "created_at": ColumnType.DATETIME,
    "episode_number": ColumnType.NUMBER,
    "scheduled_date": ColumnType.DATETIME,
    "unix_timestamp": ColumnType.NUMBER,
    "publish_date": ColumnType.DATETIME,
}


def load_column_types(raw: str = "") -> dict[str, ColumnType]:
    """Merge the declared column schema with overrides from settings.

    Unknown type names are logged and skipped rather than failing startup.
    """
    types = dict(DEFAULT_COLUMN_TYPES)
    raw = raw.strip()
    if not raw:
        return types
    try:
        overrides = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring invalid COLUMN_TYPES_JSON: %s", e)
        return types
    if not isinstance(overrides, dict):
        logger.warning("Ignoring COLUMN_TYPES_JSON: expected an object, got %s", type(overrides).__name__)
        return types
    for column, type_name in overrides.items():
        try:
            types[str(column)] = ColumnType(str(type_name).lower())
        except ValueError:
            logger.warning("Unknown column type %r for column %r", type_name, column)
    return types


COLUMN_TYPES: dict[str, ColumnType] = load_column_types(settings.column_types_json)
