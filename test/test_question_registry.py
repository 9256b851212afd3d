from __future__ import annotations

from surveyflow.core.config import SchemaLimits
from surveyflow.models.survey import QuestionType
from surveyflow.services.question_registry import (
    QuestionTypeDescriptor,
    QuestionTypeRegistry,
    build_default_registry,
)


def test_default_registry_holds_the_five_types() -> None:
    registry = build_default_registry()

    assert len(registry) == 5
    assert {descriptor.type for descriptor in registry.get_all()} == {member.value for member in QuestionType}


def test_lookup_accepts_enum_members_and_never_raises() -> None:
    registry = build_default_registry()

    assert registry.get(QuestionType.OPEN_TEXT) is registry.get("OpenText")
    assert registry.get("Slider") is None
    assert registry.get(None) is None
    assert registry.has(QuestionType.CONDITIONAL)
    assert not registry.has("Ranking")


def test_last_registration_wins() -> None:
    registry = QuestionTypeRegistry()
    registry.register(QuestionTypeDescriptor(type="Rating", label="Stars"))
    registry.register(QuestionTypeDescriptor(type="Rating", label="Slider"))

    assert len(registry) == 1
    assert registry.get("Rating").label == "Slider"


def test_capabilities_follow_the_limits() -> None:
    registry = build_default_registry(SchemaLimits(min_select_options=2, max_select_options=7, conditional_branch_count=4))

    conditional = registry.get(QuestionType.CONDITIONAL)
    assert conditional.option_bounds == (4, 4)
    assert not conditional.allowed_as_child
    assert not conditional.supports_option_attachment
    assert registry.get(QuestionType.MULTI_SELECT).option_bounds == (2, 7)
    assert registry.get(QuestionType.FILE_UPLOAD).supports_allowed_content_types
    assert not registry.get(QuestionType.OPEN_TEXT).requires_options
