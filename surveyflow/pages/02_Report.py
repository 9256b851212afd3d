from __future__ import annotations

import streamlit as st

from surveyflow.API.survey_data_provider import SurveyDataProvider
from surveyflow.UI import report, state
from surveyflow.UI.survey_app import build_backend, load_survey
from surveyflow.core.logging_setup import configure_logging

configure_logging()
st.set_page_config(page_title="Survey Report", page_icon="📊", layout="wide")

try:
    survey = load_survey()
except (FileNotFoundError, ValueError) as exc:
    st.error(str(exc))
    st.stop()

state.ensure_defaults()
backend = build_backend(survey, state.get_respondent())
report.render_report(SurveyDataProvider(backend, survey_id=survey.id or ""))
