"""Question-type registry.

Maps a question type tag to a capability descriptor. The registry is an
ordinary object built by :func:`build_default_registry` and handed to the
validator, the participation engine and the UI; nothing here is global.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from surveyflow.core.config import SchemaLimits, settings
from surveyflow.models.survey import QuestionType, ValidationError, type_tag

QuestionValidatorFn = Callable[[Any], List[ValidationError]]

_MIME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9!#$&^_.+-]*/[a-z0-9][a-z0-9!#$&^_.+-]*$")


def _no_extra_checks(question: Any) -> List[ValidationError]:
    return []


@dataclass(frozen=True)
class QuestionTypeDescriptor:
    """Capabilities and type-specific validation for one question type."""

    type: str
    label: str
    description: str = ""
    requires_options: bool = False
    supports_question_attachment: bool = True
    supports_option_attachment: bool = False
    supports_allowed_content_types: bool = False
    allowed_as_child: bool = True
    option_bounds: Optional[Tuple[int, int]] = None
    validate: QuestionValidatorFn = field(default=_no_extra_checks, compare=False)


class QuestionTypeRegistry:
    """Tag -> descriptor lookup. Registration overwrites; lookups never raise."""

    def __init__(self) -> None:
        self._descriptors: Dict[str, QuestionTypeDescriptor] = {}

    def register(self, descriptor: QuestionTypeDescriptor) -> None:
        tag = type_tag(descriptor.type)
        if tag is None:
            raise ValueError("descriptor type must be a string tag")
        self._descriptors[tag] = descriptor

    def get(self, tag: Any) -> QuestionTypeDescriptor | None:
        key = type_tag(tag)
        if key is None:
            return None
        return self._descriptors.get(key)

    def get_all(self) -> List[QuestionTypeDescriptor]:
        return list(self._descriptors.values())

    def has(self, tag: Any) -> bool:
        return self.get(tag) is not None

    def __len__(self) -> int:
        return len(self._descriptors)


def _reject_options(label: str) -> QuestionValidatorFn:
    def _validate(question: Any) -> List[ValidationError]:
        if question.options:
            return [ValidationError(field="options", message=f"{label} questions cannot have options")]
        return []

    return _validate


def _validate_file_upload(question: Any) -> List[ValidationError]:
    errors = _reject_options("File upload")(question)
    for index, content_type in enumerate(question.allowed_attachment_content_types or []):
        if not _MIME_PATTERN.match((content_type or "").strip().lower()):
            errors.append(
                ValidationError(
                    field=f"allowedAttachmentContentTypes[{index}]",
                    message=f"'{content_type}' is not a valid content type",
                )
            )
    return errors


def _validate_conditional(question: Any) -> List[ValidationError]:
    errors: List[ValidationError] = []
    option_orders = {option.order for option in question.options}
    for index, child in enumerate(question.child_questions):
        if child.parent_option_order not in option_orders:
            errors.append(
                ValidationError(
                    field=f"childQuestions[{index}].parentOptionOrder",
                    message=f"Child question refers to missing option {child.parent_option_order}",
                )
            )

    for option_order in sorted(option_orders):
        branch_orders = sorted(child.order for child in question.children_for(option_order))
        if branch_orders != list(range(1, len(branch_orders) + 1)):
            errors.append(
                ValidationError(
                    field="childQuestions",
                    message=f"Child questions of option {option_order} must be ordered 1..{len(branch_orders)}",
                )
            )
    return errors


def build_default_registry(limits: SchemaLimits | None = None) -> QuestionTypeRegistry:
    """Return a new registry holding the five built-in question types."""

    limits = limits or settings.schema
    select_bounds = (limits.min_select_options, limits.max_select_options)
    branch_bounds = (limits.conditional_branch_count, limits.conditional_branch_count)

    registry = QuestionTypeRegistry()
    registry.register(
        QuestionTypeDescriptor(
            type=QuestionType.SINGLE_SELECT.value,
            label="Single choice",
            description="Respondents pick exactly one option.",
            requires_options=True,
            supports_option_attachment=True,
            option_bounds=select_bounds,
        )
    )
    registry.register(
        QuestionTypeDescriptor(
            type=QuestionType.MULTI_SELECT.value,
            label="Multiple choice",
            description="Respondents may pick any number of options.",
            requires_options=True,
            supports_option_attachment=True,
            option_bounds=select_bounds,
        )
    )
    registry.register(
        QuestionTypeDescriptor(
            type=QuestionType.OPEN_TEXT.value,
            label="Open text",
            description="Respondents write a free-form answer.",
            validate=_reject_options("Open text"),
        )
    )
    registry.register(
        QuestionTypeDescriptor(
            type=QuestionType.FILE_UPLOAD.value,
            label="File upload",
            description="Respondents attach a single file.",
            supports_allowed_content_types=True,
            validate=_validate_file_upload,
        )
    )
    registry.register(
        QuestionTypeDescriptor(
            type=QuestionType.CONDITIONAL.value,
            label="Conditional",
            description="Each option reveals its own set of follow-up questions.",
            requires_options=True,
            allowed_as_child=False,
            option_bounds=branch_bounds,
            validate=_validate_conditional,
        )
    )
    return registry


__all__ = [
    "QuestionTypeDescriptor",
    "QuestionTypeRegistry",
    "build_default_registry",
]
