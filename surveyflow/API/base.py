from __future__ import annotations

from typing import Protocol, runtime_checkable

from surveyflow.models.participation import Answer, ParticipationStatusResult
from surveyflow.models.report import ParticipantResponse, SurveyReport
from surveyflow.models.survey import Survey


class SurveyBackendError(RuntimeError):
    """Raised when a backend call fails in transport (network, timeout, 5xx).

    ``retryable`` tells the caller whether replaying the same call is sensible;
    the engine itself never retries.
    """

    def __init__(self, message: str, *, retryable: bool = True, status_code: int | None = None) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


@runtime_checkable
class SurveyBackend(Protocol):
    """Async operations the participation engine and report views depend on."""

    async def start_participation(self, survey_ref: str) -> str:
        """Open a participation and return its id; fails if already completed."""

    async def submit_answer(self, participation_id: str, answer: Answer) -> None:
        """Upsert one answer; repeating a ``(participation_id, question_id)`` overwrites."""

    async def complete_participation(self, participation_id: str) -> None:
        """Mark the participation as finished."""

    async def get_participation_status(self, survey_ref: str) -> ParticipationStatusResult:
        """Report whether the current respondent already completed the survey."""

    async def get_survey_schema(self, survey_ref: str) -> Survey:
        """Fetch the survey by id or public slug."""

    async def get_report(self, survey_id: str) -> SurveyReport:
        """Return aggregated results."""

    async def get_participant_response(self, survey_id: str, participation_id: str) -> ParticipantResponse:
        """Return the raw answers of one participation."""


__all__ = ["SurveyBackend", "SurveyBackendError"]
