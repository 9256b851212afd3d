from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from surveyflow.API.base import SurveyBackendError  # noqa: E402
from surveyflow.models.participation import Answer, ParticipationStatusResult  # noqa: E402
from surveyflow.models.survey import Survey  # noqa: E402


class StubBackend:
    """Records every backend call; failures can be scheduled per question id."""

    def __init__(self, *, completed_at: datetime | None = None) -> None:
        self.completed_at = completed_at
        self.calls: List[tuple[str, Any]] = []
        self.store: Dict[tuple[str, str], Answer] = {}
        self.fail_on: Dict[str, int] = {}
        self.fail_complete = 0
        self.hook = None

    async def get_participation_status(self, survey_ref: str) -> ParticipationStatusResult:
        self.calls.append(("status", survey_ref))
        return ParticipationStatusResult(is_completed=self.completed_at is not None, completed_at=self.completed_at)

    async def start_participation(self, survey_ref: str) -> str:
        self.calls.append(("start", survey_ref))
        return "p-1"

    async def submit_answer(self, participation_id: str, answer: Answer) -> None:
        self.calls.append(("submit", answer.question_id))
        if self.hook is not None:
            await self.hook(answer)
        if self.fail_on.get(answer.question_id, 0) > 0:
            self.fail_on[answer.question_id] -= 1
            raise SurveyBackendError("gateway timeout", status_code=504)
        self.store[(participation_id, answer.question_id)] = answer

    async def complete_participation(self, participation_id: str) -> None:
        self.calls.append(("complete", participation_id))
        if self.fail_complete > 0:
            self.fail_complete -= 1
            raise SurveyBackendError("service unavailable", status_code=503)

    async def get_survey_schema(self, survey_ref: str) -> Survey:
        raise NotImplementedError

    async def get_report(self, survey_id: str):
        raise NotImplementedError

    async def get_participant_response(self, survey_id: str, participation_id: str):
        raise NotImplementedError

    def submitted(self) -> List[str]:
        return [value for name, value in self.calls if name == "submit"]


def select_options(*texts: str, start_id: int | None = None) -> List[Dict[str, Any]]:
    options = []
    for order, text in enumerate(texts, start=1):
        option: Dict[str, Any] = {"text": text, "order": order}
        if start_id is not None:
            option["id"] = start_id + order - 1
        options.append(option)
    return options


@pytest.fixture
def backend() -> StubBackend:
    return StubBackend()


@pytest.fixture
def linear_survey() -> Survey:
    return Survey.model_validate(
        {
            "id": "s-1",
            "slug": "linear",
            "title": "Linear",
            "description": "Three plain questions",
            "outroText": "Bye",
            "questions": [
                {
                    "id": "q1",
                    "type": "SingleSelect",
                    "text": "Pick one",
                    "order": 1,
                    "isRequired": True,
                    "options": select_options("A", "B", start_id=10),
                },
                {
                    "id": "q2",
                    "type": "MultiSelect",
                    "text": "Pick some",
                    "order": 2,
                    "options": select_options("X", "Y", "Z", start_id=20),
                },
                {"id": "q3", "type": "OpenText", "text": "Say something", "order": 3, "isRequired": True},
            ],
        }
    )


@pytest.fixture
def conditional_survey() -> Survey:
    return Survey.model_validate(
        {
            "id": "s-2",
            "title": "Branching",
            "description": "One conditional question",
            "questions": [
                {
                    "id": "c1",
                    "type": "Conditional",
                    "text": "Where do you work?",
                    "order": 1,
                    "isRequired": True,
                    "options": select_options("Office", "Home", "Both", start_id=1),
                    "childQuestions": [
                        {
                            "id": "c1-office",
                            "type": "OpenText",
                            "text": "Office notes",
                            "order": 1,
                            "parentOptionOrder": 1,
                            "isRequired": True,
                        },
                        {
                            "id": "c1-home-a",
                            "type": "OpenText",
                            "text": "Home notes",
                            "order": 1,
                            "parentOptionOrder": 2,
                            "isRequired": True,
                        },
                        {
                            "id": "c1-home-b",
                            "type": "SingleSelect",
                            "text": "Home desk?",
                            "order": 2,
                            "parentOptionOrder": 2,
                            "options": select_options("Yes", "No", start_id=50),
                        },
                        {
                            "id": "c1-both",
                            "type": "OpenText",
                            "text": "Mixed notes",
                            "order": 1,
                            "parentOptionOrder": 3,
                        },
                    ],
                },
                {"id": "c2", "type": "OpenText", "text": "Anything else?", "order": 2},
            ],
        }
    )


@pytest.fixture
def clock():
    """Monotonic fake clock: each call returns one second later."""

    start = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
    ticks = {"count": 0}

    def _now() -> datetime:
        ticks["count"] += 1
        return start + timedelta(seconds=ticks["count"])

    return _now
