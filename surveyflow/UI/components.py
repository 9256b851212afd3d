from __future__ import annotations

import base64
from typing import Any, Callable, List

import streamlit as st

from surveyflow.models.survey import (
    AttachmentData,
    ConditionalQuestion,
    QuestionLike,
    QuestionType,
    Survey,
    question_key,
)
from surveyflow.services.participation import AnswerValidationError, ParticipationEngine

from . import state

UNSUPPORTED_PLACEHOLDER = "This question type is not supported by this app. You can continue to the next question."


def render_start_page(survey: Survey, on_start: Callable[[bool], None]) -> None:
    """Render the survey intro, the optional consent box and the start button."""

    st.title(survey.title)
    if survey.description:
        st.markdown(survey.description)
    if survey.intro_text:
        st.markdown(survey.intro_text)

    st.text_input("Your name (optional)", key=state.RESPONDENT_KEY)

    consent_given = True
    if survey.consent_text:
        st.markdown(survey.consent_text)
        consent_given = st.checkbox("I agree to take part in this survey", key="consent_checkbox")

    if st.button("Start survey", key="start_survey_button", type="primary"):
        on_start(consent_given)


def render_question_header(engine: ParticipationEngine) -> None:
    """Render progress information for the active question."""

    st.progress(min((engine.current_index + 1) / max(engine.total_questions, 1), 1.0))
    st.markdown(f"### Question {engine.current_index + 1} of {engine.total_questions}")


def render_question(engine: ParticipationEngine, question: QuestionLike, parent: QuestionLike | None = None) -> None:
    """Render one question with the widget its registered type calls for."""

    key = question_key(question, parent)
    descriptor = engine.descriptor_for(question)
    if descriptor is None:
        st.markdown(f"**{question.text}**")
        st.info(UNSUPPORTED_PLACEHOLDER)
        return

    label = question.text + (" *" if question.is_required else "")
    if question.description:
        st.caption(question.description)

    tag = descriptor.type
    if tag in (QuestionType.SINGLE_SELECT.value, QuestionType.CONDITIONAL.value):
        _render_single_select(engine, question, key, label)
    elif tag == QuestionType.MULTI_SELECT.value:
        _render_multi_select(engine, question, key, label)
    elif tag == QuestionType.OPEN_TEXT.value:
        _render_open_text(engine, key, label)
    elif tag == QuestionType.FILE_UPLOAD.value:
        _render_file_upload(engine, question, key, label)

    if isinstance(question, ConditionalQuestion):
        for child in engine.active_child_questions(question):
            with st.container(border=True):
                render_question(engine, child, question)


def render_errors(messages: List[str]) -> None:
    for message in messages:
        st.error(message)


def render_completion(engine: ParticipationEngine) -> None:
    st.success(engine.outro_text or "Thank you for completing the survey!")


def _store(engine: ParticipationEngine, key: str, value: Any) -> None:
    try:
        engine.answer(key, value)
    except AnswerValidationError as exc:
        for error in exc.errors:
            st.error(error.message)


def _render_single_select(engine: ParticipationEngine, question: QuestionLike, key: str, label: str) -> None:
    options = question.sorted_options()
    widget = state.widget_key(key)
    if widget not in st.session_state:
        current = engine.get_answer(key)
        st.session_state[widget] = question.find_option(current) if current is not None else None

    selection = st.radio(label, options=options, index=None, format_func=lambda option: option.text, key=widget)
    _store(engine, key, selection.key if selection is not None else None)


def _render_multi_select(engine: ParticipationEngine, question: QuestionLike, key: str, label: str) -> None:
    options = question.sorted_options()
    widget = state.widget_key(key)
    if widget not in st.session_state:
        current = set(engine.get_answer(key) or ())
        st.session_state[widget] = [option for option in options if option.key in current]

    selection = st.multiselect(label, options=options, format_func=lambda option: option.text, key=widget)
    _store(engine, key, [option.key for option in selection] or None)


def _render_open_text(engine: ParticipationEngine, key: str, label: str) -> None:
    widget = state.widget_key(key)
    if widget not in st.session_state:
        st.session_state[widget] = engine.get_answer(key) or ""

    value = st.text_area(label, key=widget, placeholder="Type your answer here...")
    _store(engine, key, value.strip() or None)


def _render_file_upload(engine: ParticipationEngine, question: QuestionLike, key: str, label: str) -> None:
    allowed = getattr(question, "allowed_attachment_content_types", None) or []
    if allowed:
        st.caption("Accepted types: " + ", ".join(allowed))

    uploaded = st.file_uploader(label, key=state.widget_key(key))
    if uploaded is None:
        current = engine.get_answer(key)
        if current is not None:
            st.caption(f"Attached: {current.file_name}")
        return

    attachment = AttachmentData(
        file_name=uploaded.name,
        content_type=uploaded.type or "application/octet-stream",
        base64_content=base64.b64encode(uploaded.getvalue()).decode("ascii"),
    )
    _store(engine, key, attachment)
