"""
Form schema models.

Agents send a generic form description (title, description, typed questions).
Each supported question kind is its own pydantic model that knows how to render
itself as a Google Forms API item; QUESTION_TYPES is the closed set of type tags.
"""

from typing import Any, ClassVar, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import InvalidSchema, UnsupportedQuestionType


class Question(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str = Field(min_length=1)
    description: Optional[str] = None
    required: bool = False

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    def to_item(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _item(self, **content: Any) -> Dict[str, Any]:
        item: Dict[str, Any] = {"title": self.title}
        if self.description:
            item["description"] = self.description
        item.update(content)
        return item

    def _question_item(self, **question: Any) -> Dict[str, Any]:
        return self._item(questionItem={"question": {"required": self.required, **question}})


class ChoiceQuestion(Question):
    choice_type: ClassVar[str] = "RADIO"

    options: List[str] = Field(min_length=1)

    def to_item(self) -> Dict[str, Any]:
        return self._question_item(
            choiceQuestion={
                "type": self.choice_type,
                "options": [{"value": option} for option in self.options],
            }
        )


class MultipleChoiceQuestion(ChoiceQuestion):
    choice_type: ClassVar[str] = "RADIO"


class CheckboxQuestion(ChoiceQuestion):
    choice_type: ClassVar[str] = "CHECKBOX"


class DropdownQuestion(ChoiceQuestion):
    choice_type: ClassVar[str] = "DROP_DOWN"


class ShortAnswerQuestion(Question):
    def to_item(self) -> Dict[str, Any]:
        return self._question_item(textQuestion={"paragraph": False})


class ParagraphQuestion(Question):
    def to_item(self) -> Dict[str, Any]:
        return self._question_item(textQuestion={"paragraph": True})


class DateQuestion(Question):
    include_time: bool = Field(default=False, alias="includeTime")
    include_year: bool = Field(default=True, alias="includeYear")

    def to_item(self) -> Dict[str, Any]:
        return self._question_item(
            dateQuestion={"includeTime": self.include_time, "includeYear": self.include_year}
        )


class TimeQuestion(Question):
    def to_item(self) -> Dict[str, Any]:
        return self._question_item(timeQuestion={})


class ScaleQuestion(Question):
    # Range is fixed at 1-5
    low: ClassVar[int] = 1
    high: ClassVar[int] = 5

    low_label: Optional[str] = Field(default=None, alias="lowLabel")
    high_label: Optional[str] = Field(default=None, alias="highLabel")

    def to_item(self) -> Dict[str, Any]:
        scale: Dict[str, Any] = {"low": self.low, "high": self.high}
        if self.low_label:
            scale["lowLabel"] = self.low_label
        if self.high_label:
            scale["highLabel"] = self.high_label
        return self._question_item(scaleQuestion=scale)


class GridQuestion(Question):
    rows: List[str] = Field(min_length=1)
    columns: List[str] = Field(min_length=1)
    multi_select: bool = Field(default=False, alias="multiSelect")

    def to_item(self) -> Dict[str, Any]:
        return self._item(
            questionGroupItem={
                "questions": [
                    {"required": self.required, "rowQuestion": {"title": row}}
                    for row in self.rows
                ],
                "grid": {
                    "columns": {
                        "type": "CHECKBOX" if self.multi_select else "RADIO",
                        "options": [{"value": column} for column in self.columns],
                    }
                },
            }
        )


class PageBreak(Question):
    """Section marker; not a question, so `required` is ignored."""

    def to_item(self) -> Dict[str, Any]:
        return self._item(pageBreakItem={})


QUESTION_TYPES: Dict[str, Type[Question]] = {
    "multiple_choice": MultipleChoiceQuestion,
    "radio": MultipleChoiceQuestion,
    "checkbox": CheckboxQuestion,
    "short_answer": ShortAnswerQuestion,
    "text": ShortAnswerQuestion,
    "paragraph": ParagraphQuestion,
    "dropdown": DropdownQuestion,
    "date": DateQuestion,
    "time": TimeQuestion,
    "scale": ScaleQuestion,
    "grid": GridQuestion,
    "section": PageBreak,
    "page_break": PageBreak,
}


class FormDefinition(BaseModel):
    title: str
    description: Optional[str] = None
    questions: List[Question] = []


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))


def parse_question(raw: Any, position: int) -> Question:
    """
    Build the typed question for one agent-supplied descriptor.

    Raises:
        InvalidSchema: descriptor is not an object or misses required fields
        UnsupportedQuestionType: the type tag is not in QUESTION_TYPES
    """
    if not isinstance(raw, dict):
        raise InvalidSchema(f"Question {position} must be an object")

    question_type = raw.get("type")
    if question_type is None:
        raise InvalidSchema(f"Question {position} is missing type")
    question_cls = None
    if isinstance(question_type, str):
        question_cls = QUESTION_TYPES.get(question_type.lower())
    if question_cls is None:
        raise UnsupportedQuestionType(question_type, position)

    try:
        return question_cls.model_validate(raw)
    except ValidationError as e:
        raise InvalidSchema(f"Question {position} ({question_type}) is invalid: {_first_error(e)}")


def parse_form_schema(payload: Any) -> FormDefinition:
    """
    Validate a whole form payload. Any bad question rejects the entire form.
    """
    if not isinstance(payload, dict):
        raise InvalidSchema()

    title = payload.get("title")
    if not isinstance(title, str) or not title.strip():
        raise InvalidSchema("title is required")

    description = payload.get("description")
    if description is not None and not isinstance(description, str):
        raise InvalidSchema("description must be a string")

    questions = payload.get("questions")
    if not isinstance(questions, list):
        raise InvalidSchema("questions must be a list")

    return FormDefinition(
        title=title,
        description=description or None,
        questions=[parse_question(raw, position) for position, raw in enumerate(questions)],
    )


def build_item_requests(questions: List[Question]) -> List[Dict[str, Any]]:
    """One createItem request per question, positioned in input order."""
    return [
        {"createItem": {"item": question.to_item(), "location": {"index": index}}}
        for index, question in enumerate(questions)
    ]
