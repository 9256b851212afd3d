from __future__ import annotations

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_REPORT_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="forbid",
)

T = TypeVar("T")


class OptionResult(BaseModel):
    """Selection tally for one option of a select or Conditional question."""

    model_config = _REPORT_CONFIG

    option_id: int
    text: str
    selection_count: int = 0
    percentage: float = 0.0


class TextResponse(BaseModel):
    model_config = _REPORT_CONFIG

    participation_id: str
    participant_name: Optional[str] = None
    text_value: str
    submitted_at: datetime


class FileResponse(BaseModel):
    model_config = _REPORT_CONFIG

    participation_id: str
    participant_name: Optional[str] = None
    attachment_id: Optional[str] = None
    file_name: str
    content_type: str
    size_bytes: int
    submitted_at: datetime


class Page(BaseModel, Generic[T]):
    """A slice of a longer list together with paging counters."""

    model_config = _REPORT_CONFIG

    items: List[T] = Field(default_factory=list)
    total_count: int = 0
    page_size: int = 0
    current_page: int = 1
    total_pages: int = 0


class QuestionReport(BaseModel):
    """Aggregated results for a single question (top-level or child)."""

    model_config = _REPORT_CONFIG

    question_id: str
    text: str
    type: str
    order: int
    is_required: bool = False
    total_responses: int = 0
    response_rate: float = 0.0
    option_results: List[OptionResult] = Field(default_factory=list)
    text_responses: Optional[Page[TextResponse]] = None
    file_responses: List[FileResponse] = Field(default_factory=list)
    conditional_results: List["ConditionalBranchResult"] = Field(default_factory=list)

    @property
    def has_responses(self) -> bool:
        return self.total_responses > 0


class ConditionalBranchResult(BaseModel):
    """Participants who took one branch, with the branch's child questions aggregated."""

    model_config = _REPORT_CONFIG

    parent_option_id: int
    parent_option_text: str
    participant_count: int = 0
    child_question_results: List[QuestionReport] = Field(default_factory=list)


class ParticipantSummary(BaseModel):
    model_config = _REPORT_CONFIG

    participation_id: str
    participant_name: Optional[str] = None
    is_completed: bool = False


class SurveyReport(BaseModel):
    """Container describing aggregated survey results."""

    model_config = _REPORT_CONFIG

    survey_id: Optional[str] = None
    title: str
    description: str = ""
    intro_text: Optional[str] = None
    outro_text: Optional[str] = None
    total_participations: int = 0
    completed_participations: int = 0
    completion_rate: float = 0.0
    participants: List[ParticipantSummary] = Field(default_factory=list)
    questions: List[QuestionReport] = Field(default_factory=list)

    @property
    def total_questions(self) -> int:
        return len(self.questions)


class ParticipantAnswer(BaseModel):
    """Raw answer joined with the question text for an individual-participant view."""

    model_config = _REPORT_CONFIG

    question_id: str
    question_text: str
    question_type: str
    parent_question_id: Optional[str] = None
    text_value: Optional[str] = None
    selected_options: List[str] = Field(default_factory=list)
    file_name: Optional[str] = None
    attachment_id: Optional[str] = None
    submitted_at: Optional[datetime] = None


class ParticipantResponse(BaseModel):
    model_config = _REPORT_CONFIG

    participation_id: str
    participant_name: Optional[str] = None
    is_completed: bool = False
    answers: List[ParticipantAnswer] = Field(default_factory=list)


QuestionReport.model_rebuild()


__all__ = [
    "ConditionalBranchResult",
    "FileResponse",
    "OptionResult",
    "Page",
    "ParticipantAnswer",
    "ParticipantResponse",
    "ParticipantSummary",
    "QuestionReport",
    "SurveyReport",
    "TextResponse",
]
