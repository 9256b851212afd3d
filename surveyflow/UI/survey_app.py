from __future__ import annotations

import asyncio

import streamlit as st

from surveyflow.API.base import SurveyBackendError
from surveyflow.API.survey_data_provider import SurveyDataProvider
from surveyflow.UI import components, navigation, report, state
from surveyflow.core.config import settings
from surveyflow.core.logging_setup import configure_logging
from surveyflow.models.participation import ParticipationState
from surveyflow.models.survey import Survey
from surveyflow.services.participation import (
    AlreadyCompletedError,
    ConsentRequiredError,
    ParticipationEngine,
)
from surveyflow.services.survey_database import LocalSurveyBackend
from surveyflow.services.survey_loader import SurveyLoader


@st.cache_resource
def load_survey() -> Survey:
    """Load the configured survey once per server process."""

    return SurveyLoader(settings.survey_file_path).survey


def build_backend(survey: Survey, respondent: str) -> LocalSurveyBackend:
    return LocalSurveyBackend(settings.results_path, [survey], respondent=respondent)


def run_app() -> None:
    """Entry point for the Streamlit-based survey UI."""

    configure_logging()
    st.set_page_config(page_title="Survey", page_icon="📝", layout="centered")

    try:
        survey = load_survey()
    except (FileNotFoundError, ValueError) as exc:
        st.error(str(exc))
        return

    state.ensure_defaults()
    components.render_errors(state.pop_messages())

    engine = state.get_engine()
    if engine is None:
        components.render_start_page(survey, on_start=lambda consent: _start(survey, consent))
        return

    if engine.state == ParticipationState.COMPLETED:
        _render_finished(engine)
        return

    question = engine.current_question
    if question is None:
        navigation.render(engine)
        return

    components.render_question_header(engine)
    components.render_question(engine, question)
    navigation.render(engine)


def _start(survey: Survey, consent_given: bool) -> None:
    backend = build_backend(survey, state.get_respondent())
    engine = ParticipationEngine(survey, backend)
    engine.affirm_consent(consent_given)
    try:
        asyncio.run(engine.start())
    except AlreadyCompletedError:
        st.info("You have already completed this survey. Thank you!")
        return
    except ConsentRequiredError:
        st.warning("Please agree to the consent statement before starting.")
        return
    except SurveyBackendError as exc:
        st.error(f"The survey could not be started ({exc}). Please try again.")
        return

    state.reset()
    state.set_engine(engine)
    st.rerun()


def _render_finished(engine: ParticipationEngine) -> None:
    components.render_completion(engine)
    st.divider()

    if st.button("Show results", key="show_results_button", disabled=state.is_report_visible()):
        state.set_report_visible(True)

    if state.is_report_visible():
        survey = engine.survey
        backend = build_backend(survey, state.get_respondent())
        report.render_report(SurveyDataProvider(backend, survey_id=survey.id or ""))
        st.divider()

    if st.button("Back to start", key="restart_survey_button"):
        state.reset()
        st.rerun()
