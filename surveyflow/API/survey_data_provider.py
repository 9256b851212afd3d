from __future__ import annotations

from typing import Iterator, List

from surveyflow.API.base import SurveyBackend
from surveyflow.models.report import ParticipantResponse, QuestionReport, SurveyReport


class SurveyDataProvider:
    """Expose survey results through an interchangeable API layer."""

    def __init__(self, backend: SurveyBackend, *, survey_id: str) -> None:
        if backend is None:
            raise ValueError("backend must be provided")
        if not survey_id:
            raise ValueError("survey_id must be provided")
        self._backend = backend
        self._survey_id = survey_id

    @property
    def survey_id(self) -> str:
        return self._survey_id

    async def get_survey_report(self, survey_id: str | None = None) -> SurveyReport:
        """Return the aggregated report for the requested survey."""

        return await self._backend.get_report(survey_id or self._survey_id)

    async def get_question_report(self, question_id: str, survey_id: str | None = None) -> QuestionReport:
        """Return the report of one question, looking inside Conditional branches too."""

        report = await self.get_survey_report(survey_id)
        for question in iter_question_reports(report.questions):
            if question.question_id == question_id:
                return question
        raise KeyError(f"Unknown question id: {question_id}")

    async def get_participant_response(
        self,
        participation_id: str,
        survey_id: str | None = None,
    ) -> ParticipantResponse:
        return await self._backend.get_participant_response(survey_id or self._survey_id, participation_id)


def iter_question_reports(questions: List[QuestionReport]) -> Iterator[QuestionReport]:
    """Yield question reports depth first, branch children after their parent."""

    for question in questions:
        yield question
        for branch in question.conditional_results:
            yield from iter_question_reports(branch.child_question_results)


__all__ = ["SurveyDataProvider", "iter_question_reports"]
