from __future__ import annotations

import asyncio

import streamlit as st

from surveyflow.API.base import SurveyBackendError
from surveyflow.API.survey_data_provider import SurveyDataProvider
from surveyflow.models.report import QuestionReport, SurveyReport
from surveyflow.models.survey import QuestionType
from surveyflow.services.charts import ChartData, ChartType, SurveyChartBuilder


def render_report(provider: SurveyDataProvider) -> None:
    """Render aggregated results with one chart per answered question."""

    try:
        report = asyncio.run(provider.get_survey_report())
    except SurveyBackendError as exc:
        st.error(f"Results are unavailable right now ({exc}).")
        return

    st.markdown(f"## {report.title}")
    _render_overview(report)

    builder = SurveyChartBuilder()
    for question in report.questions:
        st.divider()
        _render_question(builder, question)


def _render_overview(report: SurveyReport) -> None:
    total_col, completed_col, rate_col = st.columns(3)
    total_col.metric("Participations", report.total_participations)
    completed_col.metric("Completed", report.completed_participations)
    rate_col.metric("Completion rate", f"{report.completion_rate:.2f}%")


def _render_question(builder: SurveyChartBuilder, question: QuestionReport, depth: int = 0) -> None:
    heading = "####" if depth == 0 else "#####"
    st.markdown(f"{heading} {question.order}. {question.text}")
    st.caption(f"{question.total_responses} responses ({question.response_rate:.2f}%)")

    if not question.has_responses:
        st.markdown("_No responses recorded._")
        return

    if question.type in (QuestionType.SINGLE_SELECT.value, QuestionType.MULTI_SELECT.value, QuestionType.CONDITIONAL.value):
        _render_chart(builder.question_chart(question))
    elif question.type == QuestionType.OPEN_TEXT.value and question.text_responses is not None:
        for item in question.text_responses.items:
            st.write(f"{item.participant_name or 'Anonymous'}: {item.text_value}")
        if question.text_responses.total_pages > 1:
            st.caption(f"Showing page 1 of {question.text_responses.total_pages}")
    elif question.type == QuestionType.FILE_UPLOAD.value:
        for item in question.file_responses:
            st.write(f"{item.participant_name or 'Anonymous'}: {item.file_name} ({item.size_bytes} bytes)")

    for branch in question.conditional_results:
        with st.expander(f"{branch.parent_option_text} ({branch.participant_count} participants)"):
            for child in branch.child_question_results:
                _render_question(builder, child, depth + 1)


def _render_chart(chart: ChartData) -> None:
    data = {"label": list(chart.labels), "value": list(chart.values)}
    if chart.description:
        st.caption(chart.description)
    if chart.chart_type == ChartType.BAR:
        st.bar_chart(data, x="label", y="value")
    else:
        st.table(data)
