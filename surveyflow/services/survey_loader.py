from __future__ import annotations

import json
import re
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from surveyflow.models.survey import Survey

_SLUG_NUMBER = re.compile(r"^(?P<slug>.+)-(?P<number>\d+)$")


def generate_survey_slug(slug: str, survey_number: int) -> str:
    """Public participation slug: ``{slug}-{surveyNumber}``."""

    return f"{slug}-{survey_number}"


def parse_survey_number_from_slug(slug: str) -> int | None:
    """Return the trailing survey number of a public slug, or ``None``."""

    match = _SLUG_NUMBER.match(slug or "")
    if match is None:
        return None
    return int(match.group("number"))


class SurveyLoader:
    """Load a survey schema from a JSON file.

    The file holds one survey object in the wire shape (camelCase keys)::

        {"title": "Team pulse", "description": "...", "questions": [
            {"type": "SingleSelect", "text": "How was the week?", "order": 1,
             "options": [{"text": "Good", "order": 1}, {"text": "Bad", "order": 2}]}
        ]}
    """

    def __init__(self, source: str | Path) -> None:
        self._path = Path(source)
        if not self._path.is_file():
            raise FileNotFoundError(f"Survey file not found: {self._path}")

        self._survey = self._load_survey()

    @property
    def survey(self) -> Survey:
        """Return the full survey loaded from the file."""

        return self._survey

    def _load_survey(self) -> Survey:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"{self._path}: invalid JSON at line {exc.lineno}: {exc.msg}") from exc

        try:
            return Survey.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValueError(f"{self._path}: invalid survey schema: {exc}") from exc


__all__ = ["SurveyLoader", "generate_survey_slug", "parse_survey_number_from_slug"]
