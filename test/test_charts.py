from __future__ import annotations

from datetime import datetime, timezone

import pytest

from surveyflow.models.report import (
    ConditionalBranchResult,
    OptionResult,
    Page,
    QuestionReport,
    SurveyReport,
    TextResponse,
)
from surveyflow.services.charts import ChartType, SurveyChartBuilder


def _single(question_id: str = "q1", responses: int = 10) -> QuestionReport:
    return QuestionReport(
        question_id=question_id,
        text="Pick one",
        type="SingleSelect",
        order=1,
        total_responses=responses,
        option_results=[
            OptionResult(option_id=1, text="A", selection_count=7, percentage=70.0),
            OptionResult(option_id=2, text="B", selection_count=3, percentage=30.0),
        ],
    )


def _text(entries: list[str]) -> QuestionReport:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return QuestionReport(
        question_id="q2",
        text="Why?",
        type="OpenText",
        order=2,
        total_responses=len(entries),
        text_responses=Page[TextResponse](
            items=[TextResponse(participation_id=f"p{i}", text_value=value, submitted_at=now) for i, value in enumerate(entries)],
            total_count=len(entries),
            page_size=20,
            current_page=1,
            total_pages=1,
        ),
    )


def test_option_chart_uses_report_percentages() -> None:
    chart = SurveyChartBuilder().question_chart(_single())

    assert chart.chart_type == ChartType.BAR
    assert chart.as_dict() == {"A": 70.0, "B": 30.0}
    assert chart.metadata["total_responses"] == 10


def test_pie_charts_only_for_single_choice() -> None:
    builder = SurveyChartBuilder()
    multi = _single().model_copy(update={"type": "MultiSelect"})

    assert builder.question_chart(_single(), chart_type="pie").chart_type == ChartType.PIE
    with pytest.raises(ValueError):
        builder.question_chart(multi, chart_type=ChartType.PIE)
    with pytest.raises(ValueError):
        builder.question_chart(_single(), chart_type="donut")


def test_text_chart_counts_terms() -> None:
    chart = SurveyChartBuilder(max_terms=2).question_chart(_text(["Great team", "great tools, great team"]))

    assert chart.to_series() == [("great", 3.0), ("team", 2.0)]


def test_file_questions_have_no_chart() -> None:
    upload = QuestionReport(question_id="f", text="File", type="FileUpload", order=1)

    with pytest.raises(ValueError):
        SurveyChartBuilder().question_chart(upload)


def test_branch_chart_and_all_question_charts() -> None:
    child = _single("child", responses=2)
    parent = QuestionReport(
        question_id="c",
        text="Where?",
        type="Conditional",
        order=3,
        total_responses=3,
        option_results=[OptionResult(option_id=1, text="Office", selection_count=3, percentage=100.0)],
        conditional_results=[
            ConditionalBranchResult(parent_option_id=1, parent_option_text="Office", participant_count=3,
                                    child_question_results=[child]),
        ],
    )
    unanswered = _single("q9", responses=0)
    report = SurveyReport(title="t", total_participations=4, completed_participations=3,
                          questions=[_single(), unanswered, parent])
    builder = SurveyChartBuilder()

    assert builder.branch_chart(parent).as_dict() == {"Office": 3.0}
    with pytest.raises(ValueError):
        builder.branch_chart(_single())

    charts = builder.all_question_charts(report)
    assert [chart.question_id for chart in charts] == ["q1", "c", "child"]

    summary = builder.completion_summary(report)
    assert summary.values == (3.0, 1.0)


def test_builder_rejects_bad_term_limit() -> None:
    with pytest.raises(ValueError):
        SurveyChartBuilder(max_terms=0)
