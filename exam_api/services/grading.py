"""
Grading rules for the supported question types.

Stored responses and answer keys are JSON blobs. They are validated here into
typed payloads before any comparison; anything malformed degrades to
"not attempted" (responses) or "wrong" (keys) instead of raising.
"""

from __future__ import annotations

import enum
import logging
import math
from typing import Any, Union

from pydantic import BaseModel, Field, StrictInt, ValidationError, field_validator

logger = logging.getLogger(__name__)


class QuestionType(str, enum.Enum):
    """Supported question types."""

    MCQ = "MCQ"  # Single correct option
    MSQ = "MSQ"  # One or more correct options, all-or-nothing
    NUMERICAL = "NUMERICAL"  # Numeric answer within bounds


def to_finite_number(value: object) -> float | None:
    """Parse a number or numeric string; None unless the result is finite."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text or "_" in text:
            return None
        value = text
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


# Responses


class McqResponse(BaseModel):
    """Single selected option index."""

    option: StrictInt


class MsqResponse(BaseModel):
    """Non-empty set of selected option indices."""

    options: list[StrictInt] = Field(..., min_length=1)


class NumericalResponse(BaseModel):
    """Numeric answer, given as a number or a numeric string."""

    value: float

    @field_validator("value", mode="before")
    @classmethod
    def _parse_value(cls, value: object) -> float:
        number = to_finite_number(value)
        if number is None:
            raise ValueError("value must be a finite number")
        return number


# Answer keys


class McqKey(BaseModel):
    correctOption: StrictInt


class MsqKey(BaseModel):
    correctOptions: list[StrictInt]


class NumericalKey(BaseModel):
    """
    Either an inclusive [min, max] range or a value with tolerance.
    The range form wins whenever either bound is present.
    """

    min: float | None = None
    max: float | None = None
    value: float | None = None
    tolerance: float | None = None

    @field_validator("min", "max", "value", "tolerance", mode="before")
    @classmethod
    def _parse_number(cls, value: object) -> float | None:
        return to_finite_number(value)

    @property
    def is_range(self) -> bool:
        return "min" in self.model_fields_set or "max" in self.model_fields_set

    def matches(self, number: float) -> bool:
        if self.is_range:
            low = self.min if self.min is not None else -math.inf
            high = self.max if self.max is not None else math.inf
            return low <= number <= high
        if self.value is None:
            return False
        tolerance = self.tolerance if self.tolerance is not None else 0.0
        return abs(number - self.value) <= tolerance


Response = Union[McqResponse, MsqResponse, NumericalResponse]
AnswerKey = Union[McqKey, MsqKey, NumericalKey]

_RESPONSE_MODELS: dict[QuestionType, type[BaseModel]] = {
    QuestionType.MCQ: McqResponse,
    QuestionType.MSQ: MsqResponse,
    QuestionType.NUMERICAL: NumericalResponse,
}

_KEY_MODELS: dict[QuestionType, type[BaseModel]] = {
    QuestionType.MCQ: McqKey,
    QuestionType.MSQ: MsqKey,
    QuestionType.NUMERICAL: NumericalKey,
}


def coerce_question_type(value: object) -> QuestionType | None:
    """Resolve a stored type name to QuestionType, None if unknown."""
    if isinstance(value, QuestionType):
        return value
    if not isinstance(value, str):
        return None
    try:
        return QuestionType(value.strip().upper())
    except ValueError:
        return None


def _validate(models: dict[QuestionType, type[BaseModel]], question_type: object, raw: Any, what: str):
    qtype = coerce_question_type(question_type)
    if qtype is None or raw is None:
        return None
    try:
        return models[qtype].model_validate(raw)
    except ValidationError:
        logger.debug("Ignoring malformed %s %s: %r", qtype.value, what, raw)
        return None


def parse_response(question_type: object, raw: Any) -> Response | None:
    """Validate a stored response; None when it does not count as an answer."""
    return _validate(_RESPONSE_MODELS, question_type, raw, "response")


def parse_answer_key(question_type: object, raw: Any) -> AnswerKey | None:
    """Validate a stored answer key; None when it is unusable."""
    return _validate(_KEY_MODELS, question_type, raw, "answer key")


def _matches(key: AnswerKey, response: Response) -> bool:
    if isinstance(response, McqResponse) and isinstance(key, McqKey):
        return response.option == key.correctOption
    if isinstance(response, MsqResponse) and isinstance(key, MsqKey):
        return sorted(set(response.options)) == sorted(set(key.correctOptions))
    if isinstance(response, NumericalResponse) and isinstance(key, NumericalKey):
        return key.matches(response.value)
    return False


def is_attempted(question_type: object, response: Any) -> bool:
    """Check whether a stored response counts as an answer."""
    return parse_response(question_type, response) is not None


def is_correct(question_type: object, answer_key: Any, response: Any) -> bool:
    """Check whether a stored response is correct. Never true if unattempted."""
    return grade(question_type, answer_key, response)[1]


def grade(question_type: object, answer_key: Any, response: Any) -> tuple[bool, bool]:
    """Return (attempted, correct) for a stored response."""
    parsed = parse_response(question_type, response)
    if parsed is None:
        return False, False
    key = parse_answer_key(question_type, answer_key)
    if key is None:
        return True, False
    return True, _matches(key, parsed)
