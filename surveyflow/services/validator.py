from __future__ import annotations

import logging
from typing import Any, List

from surveyflow.core.config import AttachmentPolicy, settings
from surveyflow.models.survey import (
    AttachmentData,
    ConditionalQuestion,
    QuestionType,
    Survey,
    ValidationError,
    is_child,
)
from surveyflow.services.attachments import attachment_errors
from surveyflow.services.question_registry import (
    QuestionTypeDescriptor,
    QuestionTypeRegistry,
    build_default_registry,
)

logger = logging.getLogger(__name__)

UNSUPPORTED_TYPE_MESSAGE = "unsupported type"
NESTED_CONDITIONAL_MESSAGE = "nested conditional not supported"


def _prefixed(prefix: str, errors: List[ValidationError]) -> List[ValidationError]:
    return [ValidationError(field=f"{prefix}{error.field}", message=error.message) for error in errors]


class QuestionValidator:
    """Collect every schema problem in a question tree without short-circuiting."""

    def __init__(
        self,
        registry: QuestionTypeRegistry | None = None,
        *,
        policy: AttachmentPolicy | None = None,
    ) -> None:
        self._registry = registry or build_default_registry()
        self._policy = policy or settings.attachments

    @property
    def registry(self) -> QuestionTypeRegistry:
        return self._registry

    def validate(self, question: Any) -> List[ValidationError]:
        """Return all errors for ``question`` and, for Conditional questions, its children."""

        if is_child(question) and question.type == QuestionType.CONDITIONAL.value:
            return [ValidationError(field="type", message=NESTED_CONDITIONAL_MESSAGE)]

        descriptor = self._registry.get(question.type)
        if descriptor is None:
            logger.warning("unsupported_question_type type=%s order=%s", question.type, question.order)
            return [ValidationError(field="type", message=UNSUPPORTED_TYPE_MESSAGE)]
        if is_child(question) and not descriptor.allowed_as_child:
            return [ValidationError(field="type", message=f"{descriptor.label} questions cannot be nested")]

        errors: List[ValidationError] = []
        if not (question.text or "").strip():
            errors.append(ValidationError(field="text", message="Question text is required"))

        errors.extend(descriptor.validate(question))

        if descriptor.requires_options:
            errors.extend(self._validate_options(question, descriptor.option_bounds))

        errors.extend(self._validate_attachments(question, descriptor))

        if isinstance(question, ConditionalQuestion):
            for index, child in enumerate(question.child_questions):
                errors.extend(_prefixed(f"childQuestions[{index}].", self.validate(child)))

        return errors

    def validate_survey(self, survey: Survey) -> List[ValidationError]:
        """Validate survey metadata and every question, prefixing question errors by position."""

        errors: List[ValidationError] = []
        if not survey.title.strip():
            errors.append(ValidationError(field="title", message="Survey title is required"))
        if not survey.description.strip():
            errors.append(ValidationError(field="description", message="Survey description is required"))
        if not survey.questions:
            errors.append(ValidationError(field="questions", message="Add at least one question"))

        orders = sorted(question.order for question in survey.questions)
        if orders != list(range(1, len(orders) + 1)):
            errors.append(
                ValidationError(field="questions", message=f"Questions must be ordered 1..{len(orders)}")
            )

        for index, question in enumerate(survey.questions):
            errors.extend(_prefixed(f"questions[{index}].", self.validate(question)))
        return errors

    def _validate_attachments(self, question: Any, descriptor: QuestionTypeDescriptor) -> List[ValidationError]:
        errors: List[ValidationError] = []
        allowed = self._policy.default_content_types

        if question.attachment is not None:
            if not descriptor.supports_question_attachment:
                errors.append(
                    ValidationError(field="attachment", message=f"{descriptor.label} questions cannot have attachments")
                )
            elif isinstance(question.attachment, AttachmentData):
                errors.extend(attachment_errors(question.attachment, allowed, policy=self._policy))

        for index, option in enumerate(question.options):
            if option.attachment is None:
                continue
            field = f"options[{index}].attachment"
            if not descriptor.supports_option_attachment:
                errors.append(
                    ValidationError(field=field, message=f"{descriptor.label} options cannot have attachments")
                )
            elif isinstance(option.attachment, AttachmentData):
                errors.extend(attachment_errors(option.attachment, allowed, policy=self._policy, field=field))
        return errors

    @staticmethod
    def _validate_options(question: Any, bounds: Any) -> List[ValidationError]:
        errors: List[ValidationError] = []
        count = len(question.options)
        if bounds is not None:
            low, high = bounds
            if low == high and count != low:
                errors.append(ValidationError(field="options", message=f"Exactly {low} options are required"))
            elif not low <= count <= high:
                errors.append(ValidationError(field="options", message=f"Add between {low} and {high} options"))

        for index, option in enumerate(question.options):
            if not (option.text or "").strip():
                errors.append(
                    ValidationError(field=f"options[{index}].text", message=f"Option {index + 1} text is required")
                )

        orders = sorted(option.order for option in question.options)
        if orders != list(range(1, count + 1)):
            errors.append(ValidationError(field="options", message=f"Options must be ordered 1..{count}"))
        return errors


__all__ = [
    "NESTED_CONDITIONAL_MESSAGE",
    "QuestionValidator",
    "UNSUPPORTED_TYPE_MESSAGE",
]
