from __future__ import annotations

import asyncio

import streamlit as st

from surveyflow.API.base import SurveyBackendError
from surveyflow.services.participation import AnswerValidationError, ParticipationEngine, ParticipationError

from . import state


def render(engine: ParticipationEngine) -> None:
    """Render navigation controls for moving through the survey."""

    prev_disabled = engine.current_index == 0 or engine.is_busy
    submit_label = "Finish Survey" if engine.is_last else "Next"

    def _go_previous() -> None:
        try:
            engine.back()
        except ParticipationError as exc:
            state.add_message(str(exc))

    def _submit() -> None:
        try:
            asyncio.run(engine.submit_and_advance())
        except AnswerValidationError as exc:
            for error in exc.errors:
                state.add_message(_describe(engine, error.field, error.message))
        except SurveyBackendError as exc:
            state.add_message(f"Your answer could not be saved ({exc}). Please try again.")
        except ParticipationError as exc:
            state.add_message(str(exc))

    prev_col, next_col = st.columns(2)
    with prev_col:
        st.button("Previous", on_click=_go_previous, disabled=prev_disabled)
    with next_col:
        st.button(submit_label, on_click=_submit, type="primary", disabled=engine.is_busy)


def _describe(engine: ParticipationEngine, question_id: str, message: str) -> str:
    try:
        question, _parent = engine.survey.find_question(question_id)
        text = question.text
    except KeyError:
        text = question_id
    return f"{text}: {message}"
