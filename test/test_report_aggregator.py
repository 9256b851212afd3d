from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from surveyflow.models.participation import Answer, ParticipationRecord, StoredAnswer
from surveyflow.services.report_aggregator import ReportAggregator, percentage

_T0 = datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)


def _records(count: int, completed: int | None = None) -> List[ParticipationRecord]:
    completed = count if completed is None else completed
    return [
        ParticipationRecord(
            participation_id=f"p{index}",
            survey_id="s",
            participant_name=f"Person {index}",
            started_at=_T0,
            completed_at=_T0 + timedelta(minutes=5) if index < completed else None,
        )
        for index in range(count)
    ]


def _stored(participation: str, question: str, *, seconds: int = 0, **answer) -> StoredAnswer:
    return StoredAnswer(
        participation_id=participation,
        answer=Answer(question_id=question, **answer),
        submitted_at=_T0 + timedelta(seconds=seconds),
    )


def test_percentage_handles_zero_and_rounding() -> None:
    assert percentage(0, 0) == 0.0
    assert percentage(1, 3) == 33.33
    assert percentage(7, 10) == 70.0


def test_single_select_split_seventy_thirty(linear_survey) -> None:
    records = _records(10)
    answers = [_stored(f"p{i}", "q1", option_ids=[10 if i < 7 else 11]) for i in range(10)]

    report = ReportAggregator(linear_survey).build_report(records, answers)
    q1 = report.questions[0]

    assert [(r.text, r.selection_count, r.percentage) for r in q1.option_results] == [
        ("A", 7, 70.0),
        ("B", 3, 30.0),
    ]
    assert q1.total_responses == 10
    assert q1.response_rate == 100.0


def test_completion_and_response_rates(linear_survey) -> None:
    records = _records(4, completed=3)
    answers = [
        _stored("p0", "q2", option_ids=[20, 21]),
        _stored("p1", "q2", option_ids=[]),
    ]

    report = ReportAggregator(linear_survey).build_report(records, answers)

    assert report.total_participations == 4
    assert report.completed_participations == 3
    assert report.completion_rate == 75.0
    q2 = report.questions[1]
    # The empty multi select answer is not a response.
    assert q2.total_responses == 1
    assert q2.response_rate == 25.0
    assert [r.percentage for r in q2.option_results] == [100.0, 100.0, 0.0]


def test_only_latest_answer_counts(linear_survey) -> None:
    answers = [
        _stored("p0", "q1", seconds=1, option_ids=[10]),
        _stored("p0", "q1", seconds=5, option_ids=[11]),
    ]

    report = ReportAggregator(linear_survey).build_report(_records(1), answers)

    assert [r.selection_count for r in report.questions[0].option_results] == [0, 1]


def test_empty_report_has_zero_percentages(linear_survey) -> None:
    report = ReportAggregator(linear_survey).build_report([], [])

    assert report.completion_rate == 0.0
    assert all(r.percentage == 0.0 for r in report.questions[0].option_results)
    assert report.questions[2].text_responses.total_count == 0


def test_conditional_branch_results(conditional_survey) -> None:
    records = _records(3)
    answers = [
        _stored("p0", "c1", option_ids=[2]),
        _stored("p0", "c1-home-a", text_value="Sofa"),
        _stored("p0", "c1-home-b", option_ids=[50]),
        _stored("p1", "c1", option_ids=[2]),
        _stored("p1", "c1-home-a", text_value="Desk"),
        _stored("p2", "c1", option_ids=[1]),
        _stored("p2", "c1-office", text_value="Noisy"),
    ]

    report = ReportAggregator(conditional_survey).build_report(records, answers)
    parent = report.questions[0]

    assert [r.selection_count for r in parent.option_results] == [1, 2, 0]
    branches = {branch.parent_option_text: branch for branch in parent.conditional_results}
    assert branches["Home"].participant_count == 2
    assert branches["Both"].participant_count == 0

    home_a, home_b = branches["Home"].child_question_results
    assert home_a.total_responses == 2
    assert home_a.response_rate == 100.0
    assert home_b.response_rate == 50.0
    assert [r.percentage for r in home_b.option_results] == [100.0, 0.0]
    assert branches["Office"].child_question_results[0].text_responses.items[0].text_value == "Noisy"


def test_text_responses_are_paginated_in_submission_order(linear_survey) -> None:
    answers = [_stored(f"p{i}", "q3", seconds=30 - i, text_value=f"answer {i}") for i in range(5)]
    aggregator = ReportAggregator(linear_survey, page_size=2)

    first = aggregator.text_responses("q3", answers)
    last = aggregator.text_responses("q3", answers, page=3)

    assert [item.text_value for item in first.items] == ["answer 4", "answer 3"]
    assert first.total_count == 5
    assert first.total_pages == 3
    assert [item.text_value for item in last.items] == ["answer 0"]

    with pytest.raises(ValueError):
        aggregator.text_responses("q3", answers, page=0)


def test_participant_response_in_survey_order(conditional_survey) -> None:
    record = _records(1)[0]
    answers = [
        _stored("p0", "c2", seconds=9, text_value="Nothing"),
        _stored("p0", "c1-home-b", seconds=3, option_ids=[51]),
        _stored("p0", "c1", seconds=2, option_ids=[2]),
        _stored("p9", "c1", option_ids=[1]),
    ]

    response = ReportAggregator(conditional_survey).participant_response(record, answers)

    assert [row.question_id for row in response.answers] == ["c1", "c1-home-b", "c2"]
    assert response.answers[0].selected_options == ["Home"]
    assert response.answers[1].parent_question_id == "c1"
    assert response.answers[1].selected_options == ["No"]
    assert response.is_completed
