from __future__ import annotations

import asyncio

import pytest

from surveyflow.API.base import SurveyBackend, SurveyBackendError
from surveyflow.models.participation import Answer, ParticipationState
from surveyflow.services.participation import AlreadyCompletedError, ParticipationEngine
from surveyflow.services.survey_database import LocalSurveyBackend


@pytest.fixture
def local_backend(tmp_path, linear_survey, clock) -> LocalSurveyBackend:
    return LocalSurveyBackend(tmp_path / "results.json", [linear_survey], respondent="ada", clock=clock)


def test_local_backend_satisfies_protocol(local_backend) -> None:
    assert isinstance(local_backend, SurveyBackend)


def test_answers_are_upserted_per_question(local_backend) -> None:
    participation_id = asyncio.run(local_backend.start_participation("s-1"))

    asyncio.run(local_backend.submit_answer(participation_id, Answer(question_id="q1", option_ids=[10])))
    asyncio.run(local_backend.submit_answer(participation_id, Answer(question_id="q1", option_ids=[11])))
    asyncio.run(local_backend.submit_answer(participation_id, Answer(question_id="q3", text_value="hi")))

    stored = {item.answer.question_id: item for item in local_backend.stored_answers(participation_id)}
    assert set(stored) == {"q1", "q3"}
    assert stored["q1"].answer.option_ids == [11]


def test_schema_resolves_by_id_slug_and_numbered_slug(tmp_path, linear_survey) -> None:
    numbered = linear_survey.model_copy(update={"id": "7", "slug": "other"})
    backend = LocalSurveyBackend(tmp_path / "r.json", [linear_survey, numbered])

    assert asyncio.run(backend.get_survey_schema("s-1")).id == "s-1"
    assert asyncio.run(backend.get_survey_schema("linear")).id == "s-1"
    assert asyncio.run(backend.get_survey_schema("other-7")).id == "7"
    with pytest.raises(SurveyBackendError) as excinfo:
        asyncio.run(backend.get_survey_schema("nope"))
    assert excinfo.value.status_code == 404
    assert not excinfo.value.retryable


def test_engine_round_trip_and_second_attempt_is_refused(tmp_path, linear_survey, clock) -> None:
    path = tmp_path / "results.json"
    backend = LocalSurveyBackend(path, [linear_survey], respondent="ada", clock=clock)
    engine = ParticipationEngine(linear_survey, backend)

    asyncio.run(engine.start())
    engine.answer("q1", 10)
    asyncio.run(engine.submit_and_advance())
    asyncio.run(engine.submit_and_advance())
    engine.answer("q3", "great")
    assert asyncio.run(engine.submit_and_advance()) == ParticipationState.COMPLETED

    reopened = LocalSurveyBackend(path, [linear_survey], respondent="ada", clock=clock)
    status = asyncio.run(reopened.get_participation_status("linear"))
    assert status.is_completed
    with pytest.raises(AlreadyCompletedError):
        asyncio.run(ParticipationEngine(linear_survey, reopened).start())

    someone_else = LocalSurveyBackend(path, [linear_survey], respondent="grace", clock=clock)
    assert not asyncio.run(someone_else.get_participation_status("linear")).is_completed

    report = asyncio.run(reopened.get_report("s-1"))
    assert report.total_participations == 1
    assert report.completed_participations == 1
    assert report.questions[0].option_results[0].selection_count == 1

    response = asyncio.run(reopened.get_participant_response("s-1", engine.participation_id))
    assert [row.question_id for row in response.answers] == ["q1", "q2", "q3"]
    assert response.participant_name == "ada"


def test_submitting_to_completed_participation_fails(local_backend) -> None:
    participation_id = asyncio.run(local_backend.start_participation("s-1"))
    asyncio.run(local_backend.complete_participation(participation_id))
    asyncio.run(local_backend.complete_participation(participation_id))

    with pytest.raises(SurveyBackendError) as excinfo:
        asyncio.run(local_backend.submit_answer(participation_id, Answer(question_id="q1", option_ids=[10])))
    assert excinfo.value.status_code == 409


def test_unknown_participation_is_rejected(local_backend) -> None:
    with pytest.raises(SurveyBackendError):
        asyncio.run(local_backend.submit_answer("missing", Answer(question_id="q1")))


def test_surveys_need_an_id(tmp_path, linear_survey) -> None:
    with pytest.raises(ValueError):
        LocalSurveyBackend(tmp_path / "r.json", [linear_survey.model_copy(update={"id": None})])
