from __future__ import annotations

import math
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set

from surveyflow.core.config import settings
from surveyflow.models.participation import ParticipationRecord, StoredAnswer
from surveyflow.models.report import (
    ConditionalBranchResult,
    FileResponse,
    OptionResult,
    Page,
    ParticipantAnswer,
    ParticipantResponse,
    ParticipantSummary,
    QuestionReport,
    SurveyReport,
    TextResponse,
)
from surveyflow.models.survey import (
    ConditionalQuestion,
    FileUploadQuestion,
    MultiSelectQuestion,
    OpenTextQuestion,
    QuestionLike,
    SingleSelectQuestion,
    Survey,
    question_key,
)


def percentage(part: int, whole: int) -> float:
    """``part / whole * 100`` rounded to two decimals; 0 when ``whole`` is 0."""

    if whole <= 0:
        return 0.0
    return round(part * 100 / whole, 2)


def _latest_answers(answers: Iterable[StoredAnswer]) -> List[StoredAnswer]:
    latest: Dict[tuple[str, str], StoredAnswer] = {}
    for stored in answers:
        key = (stored.participation_id, stored.answer.question_id)
        current = latest.get(key)
        if current is None or stored.submitted_at >= current.submitted_at:
            latest[key] = stored
    return list(latest.values())


class ReportAggregator:
    """Fold stored answers back through the survey schema into report values."""

    def __init__(self, survey: Survey, *, page_size: int | None = None) -> None:
        if survey is None:
            raise ValueError("survey must be provided")
        resolved_page_size = page_size or settings.report_page_size
        if resolved_page_size <= 0:
            raise ValueError("page_size must be a positive integer")

        self._survey = survey
        self._page_size = resolved_page_size

    def build_report(
        self,
        participations: Sequence[ParticipationRecord],
        answers: Iterable[StoredAnswer],
    ) -> SurveyReport:
        by_question = self._group(answers)
        names = {record.participation_id: record.participant_name for record in participations}
        total = len(participations)
        completed = sum(1 for record in participations if record.is_completed)

        return SurveyReport(
            survey_id=self._survey.id,
            title=self._survey.title,
            description=self._survey.description,
            intro_text=self._survey.intro_text,
            outro_text=self._survey.outro_text,
            total_participations=total,
            completed_participations=completed,
            completion_rate=percentage(completed, total),
            participants=[
                ParticipantSummary(
                    participation_id=record.participation_id,
                    participant_name=record.participant_name,
                    is_completed=record.is_completed,
                )
                for record in participations
            ],
            questions=[
                self._question_report(question, question_key(question), by_question, names, total, None)
                for question in self._survey.ordered_questions()
            ],
        )

    def text_responses(
        self,
        question_id: str,
        answers: Iterable[StoredAnswer],
        *,
        page: int = 1,
        names: Dict[str, Optional[str]] | None = None,
    ) -> Page[TextResponse]:
        """Return one page of raw text answers for ``question_id``, oldest first."""

        if page < 1:
            raise ValueError("page must be 1 or greater")
        relevant = self._group(answers).get(question_id, [])
        return self._text_page(relevant, names or {}, page)

    def participant_response(
        self,
        participation: ParticipationRecord,
        answers: Iterable[StoredAnswer],
    ) -> ParticipantResponse:
        """Raw answers of one participation joined with question text, in survey order."""

        own = {
            stored.answer.question_id: stored
            for stored in _latest_answers(answers)
            if stored.participation_id == participation.participation_id
        }
        rows: List[ParticipantAnswer] = []
        for key, question, parent in self._survey.iter_questions():
            stored = own.get(key)
            if stored is None:
                continue
            answer = stored.answer
            selected = [
                option.text
                for option in question.sorted_options()
                if option.key in answer.option_ids
            ]
            rows.append(
                ParticipantAnswer(
                    question_id=key,
                    question_text=question.text,
                    question_type=question.type,
                    parent_question_id=question_key(parent) if parent is not None else None,
                    text_value=answer.text_value,
                    selected_options=selected,
                    file_name=answer.attachment.file_name if answer.attachment else None,
                    attachment_id=stored.attachment_id,
                    submitted_at=stored.submitted_at,
                )
            )
        return ParticipantResponse(
            participation_id=participation.participation_id,
            participant_name=participation.participant_name,
            is_completed=participation.is_completed,
            answers=rows,
        )

    # -- internals -------------------------------------------------------------

    @staticmethod
    def _group(answers: Iterable[StoredAnswer]) -> Dict[str, List[StoredAnswer]]:
        grouped: Dict[str, List[StoredAnswer]] = defaultdict(list)
        for stored in _latest_answers(answers):
            if stored.answer.is_empty:
                continue
            grouped[stored.answer.question_id].append(stored)
        return grouped

    def _question_report(
        self,
        question: QuestionLike,
        key: str,
        by_question: Dict[str, List[StoredAnswer]],
        names: Dict[str, Optional[str]],
        base: int,
        participants: Set[str] | None,
    ) -> QuestionReport:
        responses = by_question.get(key, [])
        if participants is not None:
            responses = [stored for stored in responses if stored.participation_id in participants]

        report = QuestionReport(
            question_id=key,
            text=question.text,
            type=question.type,
            order=question.order,
            is_required=question.is_required,
            total_responses=len(responses),
            response_rate=percentage(len(responses), base),
        )

        if isinstance(question, (SingleSelectQuestion, MultiSelectQuestion, ConditionalQuestion)):
            report.option_results = self._option_results(question, responses)
        elif isinstance(question, OpenTextQuestion):
            report.text_responses = self._text_page(responses, names, 1)
        elif isinstance(question, FileUploadQuestion):
            report.file_responses = self._file_responses(responses, names)

        if isinstance(question, ConditionalQuestion):
            report.conditional_results = self._branch_results(question, responses, by_question, names)
        return report

    @staticmethod
    def _option_results(question: QuestionLike, responses: List[StoredAnswer]) -> List[OptionResult]:
        total = len(responses)
        results: List[OptionResult] = []
        for option in question.sorted_options():
            count = sum(1 for stored in responses if option.key in stored.answer.option_ids)
            results.append(
                OptionResult(
                    option_id=option.key,
                    text=option.text,
                    selection_count=count,
                    percentage=percentage(count, total),
                )
            )
        return results

    def _branch_results(
        self,
        question: ConditionalQuestion,
        responses: List[StoredAnswer],
        by_question: Dict[str, List[StoredAnswer]],
        names: Dict[str, Optional[str]],
    ) -> List[ConditionalBranchResult]:
        branches: List[ConditionalBranchResult] = []
        for option in question.sorted_options():
            participants = {
                stored.participation_id for stored in responses if option.key in stored.answer.option_ids
            }
            child_results = [
                self._question_report(
                    child,
                    question_key(child, question),
                    by_question,
                    names,
                    len(participants),
                    participants,
                )
                for child in question.children_for(option.order)
            ]
            branches.append(
                ConditionalBranchResult(
                    parent_option_id=option.key,
                    parent_option_text=option.text,
                    participant_count=len(participants),
                    child_question_results=child_results,
                )
            )
        return branches

    def _text_page(
        self,
        responses: List[StoredAnswer],
        names: Dict[str, Optional[str]],
        page: int,
    ) -> Page[TextResponse]:
        ordered = sorted(
            (stored for stored in responses if stored.answer.text_value),
            key=lambda stored: stored.submitted_at,
        )
        start = (page - 1) * self._page_size
        items = [
            TextResponse(
                participation_id=stored.participation_id,
                participant_name=names.get(stored.participation_id),
                text_value=stored.answer.text_value or "",
                submitted_at=stored.submitted_at,
            )
            for stored in ordered[start : start + self._page_size]
        ]
        return Page[TextResponse](
            items=items,
            total_count=len(ordered),
            page_size=self._page_size,
            current_page=page,
            total_pages=math.ceil(len(ordered) / self._page_size),
        )

    @staticmethod
    def _file_responses(
        responses: List[StoredAnswer],
        names: Dict[str, Optional[str]],
    ) -> List[FileResponse]:
        files: List[FileResponse] = []
        for stored in sorted(responses, key=lambda item: item.submitted_at):
            attachment = stored.answer.attachment
            if attachment is None:
                continue
            files.append(
                FileResponse(
                    participation_id=stored.participation_id,
                    participant_name=names.get(stored.participation_id),
                    attachment_id=stored.attachment_id,
                    file_name=attachment.file_name,
                    content_type=attachment.content_type,
                    size_bytes=attachment.size_bytes,
                    submitted_at=stored.submitted_at,
                )
            )
        return files


__all__ = ["ReportAggregator", "percentage"]
