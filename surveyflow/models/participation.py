from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from surveyflow.models.survey import AttachmentData

_WIRE_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)


class ParticipationState(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


class Answer(BaseModel):
    """Wire-level answer submitted once per leaf question (and per Conditional parent)."""

    model_config = _WIRE_CONFIG

    question_id: str
    text_value: Optional[str] = None
    option_ids: List[int] = Field(default_factory=list)
    attachment: Optional[AttachmentData] = None

    @property
    def is_empty(self) -> bool:
        has_text = bool(self.text_value and self.text_value.strip())
        return not has_text and not self.option_ids and self.attachment is None


class ParticipationStatusResult(BaseModel):
    """Backend answer to "has this respondent already completed the survey?"."""

    model_config = _WIRE_CONFIG

    is_completed: bool = False
    completed_at: Optional[datetime] = None


class StoredAnswer(BaseModel):
    """An answer as held by a backend, stamped with when it was last written."""

    model_config = _WIRE_CONFIG

    participation_id: str
    answer: Answer
    submitted_at: datetime
    attachment_id: Optional[str] = None


class ParticipationRecord(BaseModel):
    """Backend-side view of one participation, used for reporting."""

    model_config = _WIRE_CONFIG

    participation_id: str
    survey_id: str
    participant_name: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


__all__ = [
    "Answer",
    "ParticipationRecord",
    "ParticipationState",
    "ParticipationStatusResult",
    "StoredAnswer",
]
