"""Respondent-side participation state machine.

``NotStarted -> InProgress -> Completed``. Answers are kept locally until
:meth:`ParticipationEngine.submit_and_advance` validates the displayed question
(and the active Conditional branch) and sends one :class:`Answer` per question
through the backend, parent first and children in order. A failed step leaves
the position and answers untouched so the identical call can be replayed;
the backend upserts by ``(participation_id, question_id)``.
"""
from __future__ import annotations

import logging
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Deque, Dict, Iterator, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from surveyflow.API.base import SurveyBackend, SurveyBackendError
from surveyflow.core.config import AttachmentPolicy, ParticipationLimits, settings
from surveyflow.models.participation import Answer, ParticipationState
from surveyflow.models.survey import (
    AccessType,
    AttachmentData,
    ConditionalQuestion,
    FileUploadQuestion,
    MultiSelectQuestion,
    OpenTextQuestion,
    Option,
    QuestionLike,
    SingleSelectQuestion,
    Survey,
    UnsupportedQuestion,
    ValidationError,
    question_key,
)
from surveyflow.services.attachments import attachment_errors
from surveyflow.services.question_registry import (
    QuestionTypeDescriptor,
    QuestionTypeRegistry,
    build_default_registry,
)

logger = logging.getLogger(__name__)

REQUIRED_MESSAGE = "required"
REQUIRED_FILE_MESSAGE = "required file missing"
UNSUPPORTED_MESSAGE = "unsupported type"


class ParticipationError(RuntimeError):
    """Base class for precondition failures raised by the participation engine."""


class AlreadyCompletedError(ParticipationError):
    def __init__(self, completed_at: Any = None) -> None:
        super().__init__("already completed")
        self.completed_at = completed_at


class ConsentRequiredError(ParticipationError):
    def __init__(self) -> None:
        super().__init__("consent required")


class AnswerValidationError(ParticipationError):
    """The current step (or a single answer) failed a client-side gate."""

    def __init__(self, errors: List[ValidationError]) -> None:
        self.errors = list(errors)
        summary = "; ".join(f"{error.field}: {error.message}" for error in self.errors)
        super().__init__(summary or "invalid answer")


class ParticipationBusyError(ParticipationError):
    def __init__(self) -> None:
        super().__init__("a submission is already in progress")


class InvalidParticipationStateError(ParticipationError):
    pass


class UnknownQuestionError(KeyError):
    pass


@dataclass
class SubmissionStep:
    """Ordered queue of answers for one step.

    Each answer is keyed by ``(participation_id, question_id)``; replaying the
    whole queue after a failure ends in the same backend state as an
    uninterrupted run.
    """

    participation_id: str
    question_id: str
    pending: Deque[Answer] = field(default_factory=deque)
    submitted: List[Answer] = field(default_factory=list)

    async def run(self, backend: SurveyBackend) -> None:
        while self.pending:
            answer = self.pending[0]
            await backend.submit_answer(self.participation_id, answer)
            self.submitted.append(self.pending.popleft())


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (tuple, list, set, frozenset)):
        return len(value) == 0
    return False


class ParticipationEngine:
    """Drive one respondent through a survey against a :class:`SurveyBackend`."""

    def __init__(
        self,
        survey: Survey,
        backend: SurveyBackend,
        *,
        registry: QuestionTypeRegistry | None = None,
        survey_ref: str | None = None,
        attachment_policy: AttachmentPolicy | None = None,
        limits: ParticipationLimits | None = None,
    ) -> None:
        if backend is None:
            raise ValueError("backend must be provided")

        ref = survey_ref or survey.slug or survey.id
        if not ref:
            raise ValueError("survey_ref is required when the survey has no id or slug")

        self._survey = survey
        self._backend = backend
        self._registry = registry or build_default_registry()
        self._survey_ref = ref
        self._attachment_policy = attachment_policy or settings.attachments
        self._limits = limits or settings.participation

        self._questions: List[QuestionLike] = survey.ordered_questions()
        self._lookup = survey.question_index()

        self._state = ParticipationState.NOT_STARTED
        self._participation_id: Optional[str] = None
        self._current_index = 0
        self._answers: Dict[str, Any] = {}
        self._consent_given = False
        self._busy = False

    # -- read-only views -------------------------------------------------------

    @property
    def survey(self) -> Survey:
        return self._survey

    @property
    def state(self) -> ParticipationState:
        return self._state

    @property
    def participation_id(self) -> Optional[str]:
        return self._participation_id

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def total_questions(self) -> int:
        return len(self._questions)

    @property
    def answers(self) -> Mapping[str, Any]:
        return MappingProxyType(self._answers)

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def consent_required(self) -> bool:
        return bool(self._survey.consent_text and self._survey.consent_text.strip())

    @property
    def consent_given(self) -> bool:
        return self._consent_given

    @property
    def requires_authentication(self) -> bool:
        return self._survey.access_type == AccessType.INTERNAL

    @property
    def current_question(self) -> QuestionLike | None:
        if self._state != ParticipationState.IN_PROGRESS or not self._questions:
            return None
        return self._questions[self._current_index]

    @property
    def is_last(self) -> bool:
        return self._current_index >= len(self._questions) - 1

    @property
    def progress(self) -> float:
        if self._state == ParticipationState.COMPLETED:
            return 1.0
        if not self._questions or self._state == ParticipationState.NOT_STARTED:
            return 0.0
        return (self._current_index + 1) / len(self._questions)

    @property
    def outro_text(self) -> Optional[str]:
        return self._survey.outro_text

    def descriptor_for(self, question: QuestionLike) -> QuestionTypeDescriptor | None:
        """Registry lookup for rendering; ``None`` means show the unsupported placeholder."""

        if isinstance(question, UnsupportedQuestion):
            return None
        return self._registry.get(question.type)

    def get_answer(self, question_id: str) -> Any:
        return self._answers.get(question_id)

    def active_child_questions(self, question: QuestionLike | None = None) -> List[QuestionLike]:
        """Children of the currently selected branch, in child order."""

        question = question if question is not None else self.current_question
        if not isinstance(question, ConditionalQuestion):
            return []
        selected = self._answers.get(question_key(question))
        if selected is None:
            return []
        option = question.find_option(selected)
        if option is None:
            return []
        return question.children_for(option.order)

    # -- transitions -------------------------------------------------------------

    def affirm_consent(self, given: bool = True) -> None:
        self._consent_given = bool(given)

    async def start(self) -> str:
        """Open the participation after consent and prior-completion checks."""

        self._require_state(ParticipationState.NOT_STARTED)
        if self.consent_required and not self._consent_given:
            raise ConsentRequiredError()

        with self._exclusive():
            status = await self._backend.get_participation_status(self._survey_ref)
            if status.is_completed:
                logger.info(
                    "participation_already_completed survey=%s completed_at=%s",
                    self._survey_ref,
                    status.completed_at,
                )
                raise AlreadyCompletedError(status.completed_at)

            participation_id = await self._backend.start_participation(self._survey_ref)

        self._participation_id = participation_id
        self._state = ParticipationState.IN_PROGRESS
        self._current_index = 0
        logger.info("participation_started survey=%s participation=%s", self._survey_ref, participation_id)
        return participation_id

    def answer(self, question_id: str, value: Any) -> None:
        """Store an answer locally after coercing it to the question's shape.

        ``None`` clears the stored answer. Nothing is sent until
        :meth:`submit_and_advance`.
        """

        self._require_state(ParticipationState.IN_PROGRESS)
        question = self._question(question_id)
        if value is None:
            self._answers.pop(question_id, None)
            return
        self._answers[question_id] = self._coerce(question, question_id, value)

    def clear_answer(self, question_id: str) -> None:
        self.answer(question_id, None)

    def validate_current(self) -> List[ValidationError]:
        """Required-field errors for the displayed question and its active branch."""

        question = self.current_question
        if question is None:
            return []
        errors = self._required_errors(question, question_key(question))
        if isinstance(question, ConditionalQuestion):
            for child in self.active_child_questions(question):
                errors.extend(self._required_errors(child, question_key(child, question)))
        return errors

    async def submit_and_advance(self) -> ParticipationState:
        """Validate and submit the current step, then advance or complete."""

        self._require_state(ParticipationState.IN_PROGRESS)
        with self._exclusive():
            question = self.current_question
            if question is not None:
                errors = self.validate_current()
                if errors:
                    raise AnswerValidationError(errors)

                step = self._build_step(question)
                try:
                    await step.run(self._backend)
                except SurveyBackendError as exc:
                    logger.warning(
                        "answer_submit_failed participation=%s question=%s submitted=%s pending=%s retryable=%s error=%s",
                        self._participation_id,
                        step.question_id,
                        len(step.submitted),
                        len(step.pending),
                        exc.retryable,
                        exc,
                    )
                    raise
                logger.info(
                    "step_submitted participation=%s question=%s answers=%s",
                    self._participation_id,
                    step.question_id,
                    len(step.submitted),
                )

            if question is None or self.is_last:
                await self._complete()
            else:
                self._current_index += 1
                logger.info(
                    "participation_advanced participation=%s index=%s",
                    self._participation_id,
                    self._current_index,
                )
        return self._state

    def back(self) -> bool:
        """Step back one question; submitted answers stay on the backend."""

        self._require_state(ParticipationState.IN_PROGRESS)
        if self._busy:
            raise ParticipationBusyError()
        if self._current_index == 0:
            return False
        self._current_index -= 1
        logger.info("participation_back participation=%s index=%s", self._participation_id, self._current_index)
        return True

    # -- internals ---------------------------------------------------------------

    async def _complete(self) -> None:
        try:
            await self._backend.complete_participation(self._participation_id)
        except SurveyBackendError as exc:
            logger.warning(
                "participation_complete_failed participation=%s retryable=%s error=%s",
                self._participation_id,
                exc.retryable,
                exc,
            )
            raise
        self._state = ParticipationState.COMPLETED
        logger.info("participation_completed participation=%s", self._participation_id)

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._busy:
            raise ParticipationBusyError()
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _require_state(self, expected: ParticipationState) -> None:
        if self._state != expected:
            raise InvalidParticipationStateError(
                f"operation requires state {expected.value}, participation is {self._state.value}"
            )

    def _question(self, question_id: str) -> QuestionLike:
        try:
            question, _parent = self._lookup[question_id]
        except KeyError:
            raise UnknownQuestionError(question_id) from None
        return question

    def _coerce(self, question: QuestionLike, question_id: str, value: Any) -> Any:
        if isinstance(question, (SingleSelectQuestion, ConditionalQuestion)):
            return self._coerce_option(question, question_id, value)
        if isinstance(question, MultiSelectQuestion):
            if isinstance(value, (str, bytes, Option)) or not hasattr(value, "__iter__"):
                value = [value]
            selected: List[int] = []
            for item in value:
                key = self._coerce_option(question, question_id, item)
                if key not in selected:
                    selected.append(key)
            return tuple(selected)
        if isinstance(question, OpenTextQuestion):
            if not isinstance(value, str):
                raise AnswerValidationError([ValidationError(field=question_id, message="Answer must be text")])
            limit = self._limits.max_text_answer_length
            if len(value) > limit:
                raise AnswerValidationError(
                    [ValidationError(field=question_id, message=f"Answers are limited to {limit} characters")]
                )
            return value
        if isinstance(question, FileUploadQuestion):
            try:
                attachment = AttachmentData.model_validate(value)
            except PydanticValidationError as exc:
                raise AnswerValidationError(
                    [ValidationError(field=question_id, message=f"Invalid attachment: {exc.errors()[0]['msg']}")]
                ) from exc
            errors = attachment_errors(
                attachment,
                question.allowed_attachment_content_types,
                policy=self._attachment_policy,
                field=question_id,
            )
            if errors:
                raise AnswerValidationError(errors)
            return attachment
        raise AnswerValidationError([ValidationError(field=question_id, message=UNSUPPORTED_MESSAGE)])

    @staticmethod
    def _coerce_option(question: QuestionLike, question_id: str, value: Any) -> int:
        if isinstance(value, Option):
            value = value.key
        if isinstance(value, bool):
            raise AnswerValidationError([ValidationError(field=question_id, message="Option id must be an integer")])
        try:
            key = int(value)
        except (TypeError, ValueError):
            raise AnswerValidationError(
                [ValidationError(field=question_id, message="Option id must be an integer")]
            ) from None
        if question.find_option(key) is None:
            raise AnswerValidationError([ValidationError(field=question_id, message=f"Unknown option {key}")])
        return key

    def _required_errors(self, question: QuestionLike, key: str) -> List[ValidationError]:
        if isinstance(question, UnsupportedQuestion):
            return []
        value = self._answers.get(key)
        if isinstance(question, FileUploadQuestion):
            # A displayed file upload always needs a file, whatever is_required says.
            if value is None:
                return [ValidationError(field=key, message=REQUIRED_FILE_MESSAGE)]
            return []
        if question.is_required and _is_empty(value):
            return [ValidationError(field=key, message=REQUIRED_MESSAGE)]
        return []

    def _build_answer(self, question: QuestionLike, key: str) -> Answer:
        value = self._answers.get(key)
        if isinstance(question, OpenTextQuestion):
            return Answer(question_id=key, text_value=value or None)
        if isinstance(question, (SingleSelectQuestion, ConditionalQuestion)):
            return Answer(question_id=key, option_ids=[] if value is None else [value])
        if isinstance(question, MultiSelectQuestion):
            return Answer(question_id=key, option_ids=list(value or ()))
        if isinstance(question, FileUploadQuestion):
            return Answer(question_id=key, attachment=value)
        raise TypeError(f"cannot build an answer for question type {question.type}")

    def _build_step(self, question: QuestionLike) -> SubmissionStep:
        key = question_key(question)
        step = SubmissionStep(participation_id=self._participation_id or "", question_id=key)
        if isinstance(question, UnsupportedQuestion):
            logger.warning(
                "unsupported_question_skipped participation=%s question=%s type=%s",
                self._participation_id,
                key,
                question.type,
            )
            return step

        step.pending.append(self._build_answer(question, key))
        for child in self.active_child_questions(question):
            child_key = question_key(child, question)
            if isinstance(child, UnsupportedQuestion):
                logger.warning(
                    "unsupported_question_skipped participation=%s question=%s type=%s",
                    self._participation_id,
                    child_key,
                    child.type,
                )
                continue
            if _is_empty(self._answers.get(child_key)):
                continue
            step.pending.append(self._build_answer(child, child_key))
        return step


__all__ = [
    "AlreadyCompletedError",
    "AnswerValidationError",
    "ConsentRequiredError",
    "InvalidParticipationStateError",
    "ParticipationBusyError",
    "ParticipationEngine",
    "ParticipationError",
    "REQUIRED_FILE_MESSAGE",
    "REQUIRED_MESSAGE",
    "SubmissionStep",
    "UnknownQuestionError",
]
