from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Tuple

from surveyflow.API.survey_data_provider import iter_question_reports
from surveyflow.models.report import QuestionReport, SurveyReport
from surveyflow.models.survey import QuestionType

_OPTION_CHART_TYPES = {
    QuestionType.SINGLE_SELECT.value,
    QuestionType.MULTI_SELECT.value,
    QuestionType.CONDITIONAL.value,
}
# Multi select percentages do not add up to 100.
_PIE_CHART_TYPES = {QuestionType.SINGLE_SELECT.value, QuestionType.CONDITIONAL.value}


class ChartType(str, Enum):
    """Supported chart shapes for survey visualisations."""

    BAR = "bar"
    PIE = "pie"


@dataclass(frozen=True)
class ChartData:
    """Structured payload describing a chart for the UI layer."""

    chart_type: ChartType
    labels: Tuple[str, ...]
    values: Tuple[float, ...]
    title: str
    question_id: str | None = None
    question_text: str | None = None
    description: str | None = None
    metadata: dict[str, int | float | str] = field(default_factory=dict)

    def to_series(self) -> List[Tuple[str, float]]:
        """Return data as a list of (label, value) tuples."""

        return list(zip(self.labels, self.values))

    def as_dict(self) -> dict[str, float]:
        return {label: value for label, value in zip(self.labels, self.values)}


class SurveyChartBuilder:
    """Prepare chart-ready data from aggregated survey reports."""

    def __init__(self, *, max_terms: int = 10) -> None:
        if max_terms <= 0:
            raise ValueError("max_terms must be a positive integer")
        self._max_terms = max_terms

    def completion_summary(self, report: SurveyReport) -> ChartData:
        """Return a chart comparing completed and unfinished participations."""

        completed = report.completed_participations
        unfinished = max(report.total_participations - completed, 0)
        return ChartData(
            chart_type=ChartType.BAR,
            labels=("Completed", "In progress"),
            values=(float(completed), float(unfinished)),
            title="Participation overview",
            description="Participations that reached the final question.",
            metadata={
                "total_participations": report.total_participations,
                "completion_rate": report.completion_rate,
            },
        )

    def question_chart(
        self,
        question: QuestionReport,
        *,
        chart_type: ChartType | str | None = None,
    ) -> ChartData:
        """Return chart data for a single question report."""

        resolved = self._resolve_chart_type(chart_type, question)
        if question.type in _OPTION_CHART_TYPES:
            labels = tuple(result.text for result in question.option_results)
            values = tuple(result.percentage for result in question.option_results)
            description = "Share of respondents choosing each option (%)."
        elif question.type == QuestionType.OPEN_TEXT.value:
            labels, values = self._textual_term_frequency(question)
            description = "Most common terms in the written answers."
        else:
            raise ValueError(f"No chart available for {question.type} questions.")

        return ChartData(
            chart_type=resolved,
            labels=labels,
            values=values,
            title=f"Responses for question {question.question_id}",
            question_id=question.question_id,
            question_text=question.text,
            description=description,
            metadata={"question_type": question.type, "total_responses": question.total_responses},
        )

    def branch_chart(self, question: QuestionReport) -> ChartData:
        """Return how many participants went down each branch of a Conditional question."""

        if question.type != QuestionType.CONDITIONAL.value:
            raise ValueError("Branch charts are only available for Conditional questions.")
        return ChartData(
            chart_type=ChartType.BAR,
            labels=tuple(branch.parent_option_text for branch in question.conditional_results),
            values=tuple(float(branch.participant_count) for branch in question.conditional_results),
            title=f"Branches taken for question {question.question_id}",
            question_id=question.question_id,
            question_text=question.text,
            description="Participants per branch.",
        )

    def all_question_charts(
        self,
        report: SurveyReport,
        *,
        chart_type: ChartType | str | None = None,
    ) -> List[ChartData]:
        """Return chart data for each chartable question with at least one response."""

        charts: List[ChartData] = []
        for question in iter_question_reports(report.questions):
            if not question.has_responses:
                continue
            if question.type not in _OPTION_CHART_TYPES and question.type != QuestionType.OPEN_TEXT.value:
                continue
            requested = chart_type if question.type in _PIE_CHART_TYPES else None
            charts.append(self.question_chart(question, chart_type=requested))
        return charts

    @staticmethod
    def _resolve_chart_type(chart_type: ChartType | str | None, question: QuestionReport) -> ChartType:
        if chart_type is None:
            return ChartType.BAR

        if isinstance(chart_type, str):
            try:
                resolved = ChartType(chart_type)
            except ValueError as exc:
                raise ValueError(f"Unknown chart type: {chart_type}") from exc
        else:
            resolved = chart_type

        if resolved == ChartType.PIE and question.type not in _PIE_CHART_TYPES:
            raise ValueError("Pie charts are only supported for single choice questions.")
        return resolved

    def _textual_term_frequency(self, question: QuestionReport) -> Tuple[Tuple[str, ...], Tuple[float, ...]]:
        page = question.text_responses
        texts = [item.text_value for item in page.items] if page is not None else []
        tokens = [token for text in texts for token in self._tokenise(text)]
        if not tokens:
            return ("No response recorded",), (0.0,)

        most_common = Counter(tokens).most_common(self._max_terms)
        labels = tuple(label for label, _ in most_common)
        values = tuple(float(value) for _, value in most_common)
        return labels, values

    @staticmethod
    def _tokenise(text: str) -> Iterable[str]:
        for token in re.findall(r"[A-Za-z0-9']+", text.lower()):
            if token:
                yield token


__all__ = [
    "ChartData",
    "ChartType",
    "SurveyChartBuilder",
]
