from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Optional

from dotenv import load_dotenv

load_dotenv()

PACKAGE_ROOT = Path(__file__).resolve().parents[1]

DEFAULT_ALLOWED_CONTENT_TYPES = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/jpg",
        "image/webp",
        "application/pdf",
    }
)


def _strip_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def _int_setting(name: str, default: int) -> int:
    raw = _strip_or_none(os.getenv(name))
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be a positive integer, got {value}")
    return value


@dataclass(frozen=True)
class SchemaLimits:
    min_select_options: int = 2
    max_select_options: int = 5
    conditional_branch_count: int = 3


@dataclass(frozen=True)
class AttachmentPolicy:
    max_bytes: int = 5 * 1024 * 1024
    default_content_types: FrozenSet[str] = DEFAULT_ALLOWED_CONTENT_TYPES


@dataclass(frozen=True)
class ParticipationLimits:
    max_text_answer_length: int = 2000


class Settings:

    def __init__(self) -> None:
        min_options = _int_setting("SURVEYFLOW_MIN_SELECT_OPTIONS", 2)
        max_options = _int_setting("SURVEYFLOW_MAX_SELECT_OPTIONS", 5)
        if min_options > max_options:
            raise RuntimeError("SURVEYFLOW_MIN_SELECT_OPTIONS cannot exceed SURVEYFLOW_MAX_SELECT_OPTIONS.")
        self.schema = SchemaLimits(
            min_select_options=min_options,
            max_select_options=max_options,
            conditional_branch_count=_int_setting("SURVEYFLOW_CONDITIONAL_BRANCHES", 3),
        )

        raw_types = _strip_or_none(os.getenv("SURVEYFLOW_ALLOWED_CONTENT_TYPES"))
        content_types = (
            frozenset(part.strip().lower() for part in raw_types.split(",") if part.strip())
            if raw_types
            else DEFAULT_ALLOWED_CONTENT_TYPES
        )
        self.attachments = AttachmentPolicy(
            max_bytes=_int_setting("SURVEYFLOW_MAX_ATTACHMENT_BYTES", 5 * 1024 * 1024),
            default_content_types=content_types,
        )

        self.participation = ParticipationLimits(
            max_text_answer_length=_int_setting("SURVEYFLOW_MAX_TEXT_ANSWER_LENGTH", 2000),
        )

        self.report_page_size = _int_setting("SURVEYFLOW_REPORT_PAGE_SIZE", 20)
        self.log_level = (_strip_or_none(os.getenv("SURVEYFLOW_LOG_LEVEL")) or "INFO").upper()

        survey_path = _strip_or_none(os.getenv("SURVEYFLOW_SURVEY_FILE"))
        survey_path = survey_path or str(PACKAGE_ROOT / "data" / "sample_survey.json")
        self.survey_file_path = Path(survey_path).expanduser().resolve()

        results_path = _strip_or_none(os.getenv("SURVEYFLOW_RESULTS_PATH"))
        results_path = results_path or str(PACKAGE_ROOT / "data" / "survey_results.json")
        self.results_path = Path(results_path).expanduser().resolve()


settings = Settings()
