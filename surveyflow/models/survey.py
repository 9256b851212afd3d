from __future__ import annotations

import base64
import binascii
from enum import Enum
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

UNSUPPORTED_TAG = "unsupported"


class QuestionType(str, Enum):
    """Closed set of question shapes the engine understands."""

    SINGLE_SELECT = "SingleSelect"
    MULTI_SELECT = "MultiSelect"
    OPEN_TEXT = "OpenText"
    FILE_UPLOAD = "FileUpload"
    CONDITIONAL = "Conditional"


class AccessType(str, Enum):
    INTERNAL = "Internal"
    PUBLIC = "Public"


SELECT_TYPES = frozenset({QuestionType.SINGLE_SELECT.value, QuestionType.MULTI_SELECT.value})
OPTION_TYPES = SELECT_TYPES | {QuestionType.CONDITIONAL.value}
LEAF_TYPES = frozenset(
    {
        QuestionType.SINGLE_SELECT.value,
        QuestionType.MULTI_SELECT.value,
        QuestionType.OPEN_TEXT.value,
        QuestionType.FILE_UPLOAD.value,
    }
)
TOP_LEVEL_TYPES = LEAF_TYPES | {QuestionType.CONDITIONAL.value}

# Survey payloads come from backends that add fields of their own (dates, audit data).
_WIRE_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    extra="ignore",
)
_SUBMISSION_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)


def type_tag(value: Any) -> str | None:
    """Normalise a question type (enum member or raw string) to its wire tag."""

    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return value
    return None


class AttachmentData(BaseModel):
    """Inline attachment exchanged as base64 during authoring and submission."""

    model_config = _SUBMISSION_CONFIG

    file_name: str
    content_type: str
    base64_content: str

    @field_validator("content_type", mode="before")
    @classmethod
    def _normalise_content_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("base64_content")
    @classmethod
    def _ensure_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("base64_content must be valid base64") from exc
        return value

    @property
    def size_bytes(self) -> int:
        """Size of the decoded payload."""

        return len(base64.b64decode(self.base64_content))


class AttachmentMetadata(BaseModel):
    """Attachment reference returned by the backend once bytes are stored."""

    model_config = _WIRE_CONFIG

    id: str
    file_name: str
    content_type: str
    size_bytes: int = 0


AttachmentRef = Union[AttachmentData, AttachmentMetadata]


class Option(BaseModel):
    """A selectable option; for Conditional questions each option opens a branch."""

    model_config = _WIRE_CONFIG

    id: Optional[int] = None
    text: str = ""
    order: int = Field(default=1, ge=1)
    value: int = 0
    attachment: Optional[AttachmentRef] = None

    @property
    def key(self) -> int:
        """Identity used in answers: the persisted id, or the order before persistence."""

        return self.id if self.id is not None else self.order


class _QuestionFields(BaseModel):
    model_config = _WIRE_CONFIG

    id: Optional[str] = None
    text: str = ""
    description: Optional[str] = None
    order: int = Field(default=1, ge=1)
    is_required: bool = False
    attachment: Optional[AttachmentRef] = None
    options: List[Option] = Field(default_factory=list)

    def sorted_options(self) -> List[Option]:
        return sorted(self.options, key=lambda option: option.order)

    def find_option(self, key: int) -> Option | None:
        for option in self.options:
            if option.key == key:
                return option
        return None


class SingleSelectQuestion(_QuestionFields):
    type: Literal["SingleSelect"] = "SingleSelect"


class MultiSelectQuestion(_QuestionFields):
    type: Literal["MultiSelect"] = "MultiSelect"


class OpenTextQuestion(_QuestionFields):
    type: Literal["OpenText"] = "OpenText"


class FileUploadQuestion(_QuestionFields):
    type: Literal["FileUpload"] = "FileUpload"
    allowed_attachment_content_types: Optional[List[str]] = None


class UnsupportedQuestion(_QuestionFields):
    """Fallback for tags this build does not know; keeps the raw payload."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    type: str


class SingleSelectChildQuestion(SingleSelectQuestion):
    parent_option_order: int = Field(default=1, ge=1)


class MultiSelectChildQuestion(MultiSelectQuestion):
    parent_option_order: int = Field(default=1, ge=1)


class OpenTextChildQuestion(OpenTextQuestion):
    parent_option_order: int = Field(default=1, ge=1)


class FileUploadChildQuestion(FileUploadQuestion):
    parent_option_order: int = Field(default=1, ge=1)


class UnsupportedChildQuestion(UnsupportedQuestion):
    parent_option_order: int = Field(default=1, ge=1)


def _raw_tag(value: Any) -> str | None:
    if isinstance(value, dict):
        return type_tag(value.get("type"))
    return type_tag(getattr(value, "type", None))


def _child_tag(value: Any) -> str:
    tag = _raw_tag(value)
    return tag if tag in LEAF_TYPES else UNSUPPORTED_TAG


def _question_tag(value: Any) -> str:
    tag = _raw_tag(value)
    return tag if tag in TOP_LEVEL_TYPES else UNSUPPORTED_TAG


ChildQuestion = Annotated[
    Union[
        Annotated[SingleSelectChildQuestion, Tag("SingleSelect")],
        Annotated[MultiSelectChildQuestion, Tag("MultiSelect")],
        Annotated[OpenTextChildQuestion, Tag("OpenText")],
        Annotated[FileUploadChildQuestion, Tag("FileUpload")],
        Annotated[UnsupportedChildQuestion, Tag(UNSUPPORTED_TAG)],
    ],
    Discriminator(_child_tag),
]


class ConditionalQuestion(_QuestionFields):
    """A question whose options each reveal a branch of leaf child questions."""

    type: Literal["Conditional"] = "Conditional"
    child_questions: List[ChildQuestion] = Field(default_factory=list)

    def children_for(self, option_order: int) -> List[ChildQuestion]:
        """Return the branch attached to ``option_order``, sorted by child order."""

        branch = [child for child in self.child_questions if child.parent_option_order == option_order]
        return sorted(branch, key=lambda child: child.order)


Question = Annotated[
    Union[
        Annotated[SingleSelectQuestion, Tag("SingleSelect")],
        Annotated[MultiSelectQuestion, Tag("MultiSelect")],
        Annotated[OpenTextQuestion, Tag("OpenText")],
        Annotated[FileUploadQuestion, Tag("FileUpload")],
        Annotated[ConditionalQuestion, Tag("Conditional")],
        Annotated[UnsupportedQuestion, Tag(UNSUPPORTED_TAG)],
    ],
    Discriminator(_question_tag),
]

QuestionLike = Union[
    SingleSelectQuestion,
    MultiSelectQuestion,
    OpenTextQuestion,
    FileUploadQuestion,
    ConditionalQuestion,
    UnsupportedQuestion,
]

_QUESTION_ADAPTER: TypeAdapter[Any] = TypeAdapter(Question)
_CHILD_ADAPTER: TypeAdapter[Any] = TypeAdapter(ChildQuestion)


def parse_question(data: Any) -> QuestionLike:
    """Validate a mapping (camelCase or snake_case keys) into a question variant."""

    if isinstance(data, BaseModel):
        data = data.model_dump(exclude={"parent_option_order"})
    return _QUESTION_ADAPTER.validate_python(data)


def parse_child_question(data: Any, parent_option_order: int | None = None) -> QuestionLike:
    """Validate a mapping into a child question variant."""

    if isinstance(data, BaseModel):
        data = data.model_dump(exclude={"child_questions"})
    else:
        data = dict(data)
    if parent_option_order is not None:
        data.pop("parentOptionOrder", None)
        data["parent_option_order"] = parent_option_order
    return _CHILD_ADAPTER.validate_python(data)


def is_child(question: Any) -> bool:
    return hasattr(question, "parent_option_order")


def question_key(question: Any, parent: Any = None) -> str:
    """Stable identifier for a question, falling back to its position before persistence."""

    if question.id:
        return question.id
    if parent is None:
        return f"q{question.order}"
    return f"q{parent.order}.{question.parent_option_order}.{question.order}"


class Survey(BaseModel):
    """Top-level authored survey."""

    model_config = _WIRE_CONFIG

    id: Optional[str] = None
    slug: Optional[str] = None
    title: str = ""
    description: str = ""
    intro_text: Optional[str] = None
    consent_text: Optional[str] = None
    outro_text: Optional[str] = None
    access_type: AccessType = AccessType.PUBLIC
    attachment: Optional[AttachmentRef] = None
    questions: List[Question] = Field(default_factory=list)

    def ordered_questions(self) -> List[QuestionLike]:
        return sorted(self.questions, key=lambda question: question.order)

    def iter_questions(self) -> Iterator[Tuple[str, QuestionLike, QuestionLike | None]]:
        """Yield ``(key, question, parent)`` for every top-level and child question."""

        for question in self.ordered_questions():
            yield question_key(question), question, None
            if isinstance(question, ConditionalQuestion):
                for option in question.sorted_options():
                    for child in question.children_for(option.order):
                        yield question_key(child, question), child, question

    def question_index(self) -> Dict[str, Tuple[QuestionLike, QuestionLike | None]]:
        return {key: (question, parent) for key, question, parent in self.iter_questions()}

    def find_question(self, key: str) -> Tuple[QuestionLike, QuestionLike | None]:
        """Return ``(question, parent)`` for a question key, raising ``KeyError`` when missing."""

        for candidate, question, parent in self.iter_questions():
            if candidate == key:
                return question, parent
        raise KeyError(key)


class ValidationError(BaseModel):
    """A single schema or answer problem, addressed by field path."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    field: str
    message: str


__all__ = [
    "AccessType",
    "AttachmentData",
    "AttachmentMetadata",
    "ChildQuestion",
    "ConditionalQuestion",
    "FileUploadChildQuestion",
    "FileUploadQuestion",
    "LEAF_TYPES",
    "MultiSelectChildQuestion",
    "MultiSelectQuestion",
    "OPTION_TYPES",
    "OpenTextChildQuestion",
    "OpenTextQuestion",
    "Option",
    "Question",
    "QuestionLike",
    "QuestionType",
    "SELECT_TYPES",
    "SingleSelectChildQuestion",
    "SingleSelectQuestion",
    "Survey",
    "TOP_LEVEL_TYPES",
    "UNSUPPORTED_TAG",
    "UnsupportedChildQuestion",
    "UnsupportedQuestion",
    "ValidationError",
    "is_child",
    "parse_child_question",
    "parse_question",
    "question_key",
    "type_tag",
]
