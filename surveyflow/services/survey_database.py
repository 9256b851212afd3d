from __future__ import annotations

import hashlib
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from surveyflow.API.base import SurveyBackendError
from surveyflow.models.participation import (
    Answer,
    ParticipationRecord,
    ParticipationStatusResult,
    StoredAnswer,
)
from surveyflow.models.report import ParticipantResponse, SurveyReport
from surveyflow.models.survey import Survey
from surveyflow.services.report_aggregator import ReportAggregator
from surveyflow.services.survey_loader import parse_survey_number_from_slug

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalSurveyBackend:
    """File-backed ``SurveyBackend`` used by the demo UI until a real service is wired in.

    Answers are upserted per ``(participation_id, question_id)``. One instance
    represents one respondent, which is what participation status is checked
    against.
    """

    def __init__(
        self,
        storage_path: Path,
        surveys: Iterable[Survey] = (),
        *,
        respondent: str = "anonymous",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._path = Path(storage_path)
        self._lock = threading.Lock()
        self._respondent = respondent
        self._clock = clock
        self._surveys: Dict[str, Survey] = {}
        for survey in surveys:
            self.register_survey(survey)

    def register_survey(self, survey: Survey) -> None:
        if not survey.id:
            raise ValueError("surveys must have an id to be served")
        self._surveys[survey.id] = survey

    # -- SurveyBackend -------------------------------------------------------------

    async def get_survey_schema(self, survey_ref: str) -> Survey:
        return self._resolve(survey_ref)

    async def get_participation_status(self, survey_ref: str) -> ParticipationStatusResult:
        survey = self._resolve(survey_ref)
        with self._lock:
            payload = self._read_all_unlocked()
        completed = [
            record
            for record in self._records(payload)
            if record.survey_id == survey.id
            and record.participant_name == self._respondent
            and record.completed_at is not None
        ]
        if not completed:
            return ParticipationStatusResult(is_completed=False)
        latest = max(record.completed_at for record in completed)
        return ParticipationStatusResult(is_completed=True, completed_at=latest)

    async def start_participation(self, survey_ref: str) -> str:
        status = await self.get_participation_status(survey_ref)
        if status.is_completed:
            raise SurveyBackendError("survey already completed", retryable=False, status_code=409)

        survey = self._resolve(survey_ref)
        participation_id = uuid.uuid4().hex
        record = ParticipationRecord(
            participation_id=participation_id,
            survey_id=survey.id or "",
            participant_name=self._respondent,
            started_at=self._clock(),
        )
        with self._lock:
            payload = self._read_all_unlocked()
            payload["participations"][participation_id] = record.model_dump(mode="json")
            self._write_all_unlocked(payload)
        logger.info("local_participation_created survey=%s participation=%s", survey.id, participation_id)
        return participation_id

    async def submit_answer(self, participation_id: str, answer: Answer) -> None:
        with self._lock:
            payload = self._read_all_unlocked()
            record = self._record_unlocked(payload, participation_id)
            if record.completed_at is not None:
                raise SurveyBackendError("participation already completed", retryable=False, status_code=409)

            attachment_id = None
            if answer.attachment is not None:
                digest = hashlib.sha256(answer.attachment.base64_content.encode("ascii")).hexdigest()
                attachment_id = digest[:16]

            stored = StoredAnswer(
                participation_id=participation_id,
                answer=answer,
                submitted_at=self._clock(),
                attachment_id=attachment_id,
            )
            payload["answers"].setdefault(participation_id, {})[answer.question_id] = stored.model_dump(mode="json")
            self._write_all_unlocked(payload)

    async def complete_participation(self, participation_id: str) -> None:
        with self._lock:
            payload = self._read_all_unlocked()
            record = self._record_unlocked(payload, participation_id)
            if record.completed_at is None:
                record = record.model_copy(update={"completed_at": self._clock()})
                payload["participations"][participation_id] = record.model_dump(mode="json")
                self._write_all_unlocked(payload)

    async def get_report(self, survey_id: str) -> SurveyReport:
        survey = self._resolve(survey_id)
        records, answers = self._survey_data(survey)
        return ReportAggregator(survey).build_report(records, answers)

    async def get_participant_response(self, survey_id: str, participation_id: str) -> ParticipantResponse:
        survey = self._resolve(survey_id)
        records, answers = self._survey_data(survey)
        for record in records:
            if record.participation_id == participation_id:
                return ReportAggregator(survey).participant_response(record, answers)
        raise SurveyBackendError(f"unknown participation {participation_id}", retryable=False, status_code=404)

    # -- helpers -------------------------------------------------------------------

    def stored_answers(self, participation_id: str) -> List[StoredAnswer]:
        with self._lock:
            payload = self._read_all_unlocked()
        raw = payload["answers"].get(participation_id, {})
        return [StoredAnswer.model_validate(item) for item in raw.values()]

    def _resolve(self, survey_ref: str) -> Survey:
        if survey_ref in self._surveys:
            return self._surveys[survey_ref]
        for survey in self._surveys.values():
            if survey.slug and survey.slug == survey_ref:
                return survey
        number = parse_survey_number_from_slug(survey_ref)
        if number is not None and str(number) in self._surveys:
            return self._surveys[str(number)]
        raise SurveyBackendError(f"unknown survey {survey_ref}", retryable=False, status_code=404)

    def _survey_data(self, survey: Survey) -> tuple[List[ParticipationRecord], List[StoredAnswer]]:
        with self._lock:
            payload = self._read_all_unlocked()
        records = [record for record in self._records(payload) if record.survey_id == survey.id]
        wanted = {record.participation_id for record in records}
        answers = [
            StoredAnswer.model_validate(item)
            for participation_id, items in payload["answers"].items()
            if participation_id in wanted
            for item in items.values()
        ]
        return records, answers

    @staticmethod
    def _records(payload: Dict[str, Any]) -> List[ParticipationRecord]:
        return [ParticipationRecord.model_validate(item) for item in payload["participations"].values()]

    @staticmethod
    def _record_unlocked(payload: Dict[str, Any], participation_id: str) -> ParticipationRecord:
        raw: Optional[Dict[str, Any]] = payload["participations"].get(participation_id)
        if raw is None:
            raise SurveyBackendError(f"unknown participation {participation_id}", retryable=False, status_code=404)
        return ParticipationRecord.model_validate(raw)

    def _read_all_unlocked(self) -> Dict[str, Any]:
        empty: Dict[str, Any] = {"participations": {}, "answers": {}}
        if not self._path.is_file():
            return empty
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("local_store_unreadable path=%s", self._path)
            return empty
        payload.setdefault("participations", {})
        payload.setdefault("answers", {})
        return payload

    def _write_all_unlocked(self, payload: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


__all__ = ["LocalSurveyBackend"]
