from __future__ import annotations

from typing import List, Optional

import streamlit as st

from surveyflow.services.participation import ParticipationEngine

ENGINE_KEY = "participation_engine"
RESPONDENT_KEY = "respondent_name"
MESSAGES_KEY = "flash_messages"
REPORT_VISIBLE_KEY = "report_visible"
WIDGET_PREFIX = "response_"


def reset() -> None:
    """Reset all survey-related session state values."""

    st.session_state[ENGINE_KEY] = None
    st.session_state[MESSAGES_KEY] = []
    st.session_state[REPORT_VISIBLE_KEY] = False

    for key in [name for name in st.session_state.keys() if str(name).startswith(WIDGET_PREFIX)]:
        del st.session_state[key]


def ensure_defaults() -> None:
    st.session_state.setdefault(ENGINE_KEY, None)
    st.session_state.setdefault(RESPONDENT_KEY, "")
    st.session_state.setdefault(MESSAGES_KEY, [])
    st.session_state.setdefault(REPORT_VISIBLE_KEY, False)


def get_engine() -> Optional[ParticipationEngine]:
    """Return the engine of the running participation, if one was started."""

    return st.session_state.get(ENGINE_KEY)


def set_engine(engine: ParticipationEngine | None) -> None:
    st.session_state[ENGINE_KEY] = engine


def is_started() -> bool:
    return get_engine() is not None


def get_respondent() -> str:
    return str(st.session_state.get(RESPONDENT_KEY) or "").strip() or "anonymous"


def widget_key(question_id: str) -> str:
    return f"{WIDGET_PREFIX}{question_id}"


def add_message(message: str) -> None:
    """Queue an error message to show on the next rerun."""

    st.session_state[MESSAGES_KEY].append(message)


def pop_messages() -> List[str]:
    messages = list(st.session_state[MESSAGES_KEY])
    st.session_state[MESSAGES_KEY] = []
    return messages


def set_report_visible(is_visible: bool) -> None:
    st.session_state[REPORT_VISIBLE_KEY] = bool(is_visible)


def is_report_visible() -> bool:
    return bool(st.session_state[REPORT_VISIBLE_KEY])
