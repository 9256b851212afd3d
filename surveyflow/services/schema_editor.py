"""Copy-on-write edits for survey schemas.

Every function returns a new ``Survey`` or question value and leaves its input
untouched. Sibling ``order`` values are renumbered 1..N after each edit, and
Conditional branches follow their parent option when options move or go away.
"""
from __future__ import annotations

from typing import Any, Dict, List, Sequence, TypeVar

from surveyflow.core.config import SchemaLimits, settings
from surveyflow.models.survey import (
    OPTION_TYPES,
    AttachmentData,
    ConditionalQuestion,
    Option,
    QuestionLike,
    QuestionType,
    Survey,
    is_child,
    parse_child_question,
    parse_question,
    type_tag,
)

Ordered = TypeVar("Ordered")


def _renumbered(items: Sequence[Ordered]) -> List[Ordered]:
    return [item.model_copy(update={"order": index}) for index, item in enumerate(items, start=1)]


def _sorted(items: Sequence[Ordered]) -> List[Ordered]:
    return sorted(items, key=lambda item: item.order)


def _position(items: Sequence[Any], order: int, label: str) -> int:
    for index, item in enumerate(items):
        if item.order == order:
            return index
    raise KeyError(f"{label} with order {order} not found")


def _moved(items: Sequence[Ordered], from_order: int, to_order: int, label: str) -> List[Ordered]:
    ordered = _sorted(items)
    source = _position(ordered, from_order, label)
    if not 1 <= to_order <= len(ordered):
        raise ValueError(f"{label} order must be between 1 and {len(ordered)}")
    item = ordered.pop(source)
    ordered.insert(to_order - 1, item)
    return _renumbered(ordered)


def _require_conditional(question: QuestionLike) -> ConditionalQuestion:
    if not isinstance(question, ConditionalQuestion):
        raise TypeError("child questions can only be attached to Conditional questions")
    return question


# -- questions ---------------------------------------------------------------


def add_question(survey: Survey, question: Any, position: int | None = None) -> Survey:
    """Insert ``question`` at 1-based ``position`` (end when omitted) and renumber."""

    new_question = parse_question(question)
    questions = _sorted(survey.questions)
    index = len(questions) if position is None else max(0, min(position - 1, len(questions)))
    questions.insert(index, new_question)
    return survey.model_copy(update={"questions": _renumbered(questions)})


def remove_question(survey: Survey, order: int) -> Survey:
    questions = _sorted(survey.questions)
    questions.pop(_position(questions, order, "Question"))
    return survey.model_copy(update={"questions": _renumbered(questions)})


def move_question(survey: Survey, from_order: int, to_order: int) -> Survey:
    return survey.model_copy(update={"questions": _moved(survey.questions, from_order, to_order, "Question")})


def replace_question(survey: Survey, order: int, question: Any) -> Survey:
    """Swap the question at ``order`` for ``question``, keeping its slot."""

    questions = _sorted(survey.questions)
    index = _position(questions, order, "Question")
    questions[index] = parse_question(question).model_copy(update={"order": order})
    return survey.model_copy(update={"questions": questions})


# -- options -----------------------------------------------------------------


def add_option(
    question: QuestionLike,
    text: str = "",
    *,
    value: int | None = None,
    attachment: AttachmentData | None = None,
) -> QuestionLike:
    order = len(question.options) + 1
    option = Option(text=text, order=order, value=order if value is None else value, attachment=attachment)
    return question.model_copy(update={"options": [*_sorted(question.options), option]})


def update_option(question: QuestionLike, option_order: int, /, **changes: Any) -> QuestionLike:
    """Edit one option in place; its position is owned by the list and cannot be changed here."""

    changes.pop("order", None)
    options = _sorted(question.options)
    index = _position(options, option_order, "Option")
    options[index] = options[index].model_copy(update=changes)
    return question.model_copy(update={"options": options})


def remove_option(question: QuestionLike, order: int) -> QuestionLike:
    """Remove an option; on Conditional questions also drop its branch and shift later branches."""

    options = _sorted(question.options)
    options.pop(_position(options, order, "Option"))
    update: Dict[str, Any] = {"options": _renumbered(options)}

    if isinstance(question, ConditionalQuestion):
        children = []
        for child in question.child_questions:
            if child.parent_option_order == order:
                continue
            if child.parent_option_order > order:
                child = child.model_copy(update={"parent_option_order": child.parent_option_order - 1})
            children.append(child)
        update["child_questions"] = children
    return question.model_copy(update=update)


def move_option(question: QuestionLike, from_order: int, to_order: int) -> QuestionLike:
    """Move an option; Conditional branches travel with their option."""

    reordered = _sorted(question.options)
    source = _position(reordered, from_order, "Option")
    if not 1 <= to_order <= len(reordered):
        raise ValueError(f"Option order must be between 1 and {len(reordered)}")
    reordered.insert(to_order - 1, reordered.pop(source))
    mapping = {option.order: new_order for new_order, option in enumerate(reordered, start=1)}
    update: Dict[str, Any] = {"options": _renumbered(reordered)}

    if isinstance(question, ConditionalQuestion):
        update["child_questions"] = [
            child.model_copy(
                update={"parent_option_order": mapping.get(child.parent_option_order, child.parent_option_order)}
            )
            for child in question.child_questions
        ]
    return question.model_copy(update=update)


def set_branch_count(question: QuestionLike, count: int) -> QuestionLike:
    """Grow or shrink a Conditional question's options, cascading removed branches."""

    conditional = _require_conditional(question)
    if count < 1:
        raise ValueError("a Conditional question needs at least one branch")
    result: QuestionLike = conditional
    while len(result.options) > count:
        result = remove_option(result, len(result.options))
    while len(result.options) < count:
        result = add_option(result)
    return result


# -- child questions -----------------------------------------------------------


def add_child_question(
    question: QuestionLike,
    parent_option_order: int,
    child: Any,
    position: int | None = None,
) -> QuestionLike:
    """Attach ``child`` to the branch of option ``parent_option_order``."""

    conditional = _require_conditional(question)
    _position(conditional.options, parent_option_order, "Option")
    new_child = parse_child_question(child, parent_option_order)

    branch = conditional.children_for(parent_option_order)
    index = len(branch) if position is None else max(0, min(position - 1, len(branch)))
    branch.insert(index, new_child)
    return _with_branch(conditional, parent_option_order, branch)


def remove_child_question(question: QuestionLike, parent_option_order: int, child_order: int) -> QuestionLike:
    conditional = _require_conditional(question)
    branch = conditional.children_for(parent_option_order)
    branch.pop(_position(branch, child_order, "Child question"))
    return _with_branch(conditional, parent_option_order, branch)


def move_child_question(
    question: QuestionLike,
    parent_option_order: int,
    from_order: int,
    to_order: int,
) -> QuestionLike:
    conditional = _require_conditional(question)
    branch = _moved(conditional.children_for(parent_option_order), from_order, to_order, "Child question")
    others = [child for child in conditional.child_questions if child.parent_option_order != parent_option_order]
    return conditional.model_copy(update={"child_questions": [*others, *branch]})


def replace_child_question(
    question: QuestionLike,
    parent_option_order: int,
    child_order: int,
    child: Any,
) -> QuestionLike:
    conditional = _require_conditional(question)
    branch = conditional.children_for(parent_option_order)
    index = _position(branch, child_order, "Child question")
    branch[index] = parse_child_question(child, parent_option_order).model_copy(update={"order": child_order})
    others = [item for item in conditional.child_questions if item.parent_option_order != parent_option_order]
    return conditional.model_copy(update={"child_questions": [*others, *branch]})


def _with_branch(question: ConditionalQuestion, parent_option_order: int, branch: List[Any]) -> ConditionalQuestion:
    others = [child for child in question.child_questions if child.parent_option_order != parent_option_order]
    return question.model_copy(update={"child_questions": [*others, *_renumbered(branch)]})


# -- type changes --------------------------------------------------------------


def change_type(question: QuestionLike, new_type: QuestionType | str, limits: SchemaLimits | None = None) -> QuestionLike:
    """Return ``question`` re-tagged as ``new_type``.

    Leaving a select type clears its options and leaving Conditional drops its
    children. Entering Conditional keeps up to ``conditional_branch_count``
    existing options and pads with empty ones.
    """

    limits = limits or settings.schema
    tag = type_tag(new_type)
    if tag == question.type:
        return question

    child = is_child(question)
    if child and tag == QuestionType.CONDITIONAL.value:
        raise ValueError("nested conditional not supported")

    data = question.model_dump(exclude={"type", "child_questions", "allowed_attachment_content_types"})
    data["type"] = tag

    if tag not in OPTION_TYPES:
        data["options"] = []
    elif tag == QuestionType.CONDITIONAL.value:
        options = _sorted(question.options)[: limits.conditional_branch_count]
        while len(options) < limits.conditional_branch_count:
            order = len(options) + 1
            options.append(Option(order=order, value=order))
        data["options"] = [option.model_dump() for option in _renumbered(options)]
        data["child_questions"] = []

    if child:
        return parse_child_question(data)
    return parse_question(data)


__all__ = [
    "add_child_question",
    "add_option",
    "add_question",
    "change_type",
    "move_child_question",
    "move_option",
    "move_question",
    "remove_child_question",
    "remove_option",
    "remove_question",
    "replace_child_question",
    "replace_question",
    "set_branch_count",
    "update_option",
]
