"""
Validation schemas for every item kind, key, query and request payload.

Schemas are pydantic models that forbid unknown attributes.  ``validate`` runs a
schema over a plain mapping and turns pydantic's error list into a
``ValidationError`` naming every violated field at once, so a caller fixing its
input sees all of the problems in a single round.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    WrapValidator,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError
from pydantic_core.core_schema import ValidatorFunctionWrapHandler

from .errors import ValidationError
from .models import QuestionType, SurveyStatus

ModelT = TypeVar("ModelT", bound=BaseModel)

MIN_CHOICE_OPTIONS = 2


def _check_iso_date(value: str) -> str:
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError("must be a valid ISO-8601 date")
    return value


def _check_uuid(value: str) -> str:
    try:
        uuid.UUID(value)
    except ValueError:
        raise ValueError("must be a valid UUID")
    return value


class _Absent:
    """Default for ``options`` so an explicit null can be told apart from a missing field."""

    def __repr__(self) -> str:
        return "<absent>"


def _one_answer_error(value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
    try:
        return handler(value)
    except PydanticValidationError:
        raise PydanticCustomError(
            "answer_type", "Input should be a non-empty string or a list of non-empty strings"
        ) from None


NonEmptyStr = Annotated[str, Field(strict=True, min_length=1)]
IsoDateStr = Annotated[str, Field(strict=True), AfterValidator(_check_iso_date)]
UuidStr = Annotated[str, Field(strict=True), AfterValidator(_check_uuid)]
AnswerValue = Annotated[Union[NonEmptyStr, List[NonEmptyStr]], WrapValidator(_one_answer_error)]


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _QuestionFields(_Strict):
    text: NonEmptyStr
    type: QuestionType
    options: List[NonEmptyStr] = Field(default=_Absent(), validate_default=True)

    @field_validator("options", mode="wrap")
    @classmethod
    def options_match_type(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Optional[List[str]]:
        qtype = info.data.get("type")
        absent = isinstance(value, _Absent)
        if qtype is None:
            # type itself is missing or invalid and is reported on its own
            return None if absent else handler(value)
        if qtype != QuestionType.MULTIPLE_CHOICE:
            if not absent:
                raise PydanticCustomError(
                    "extra_forbidden", "Field not allowed when type is {qtype}", {"qtype": qtype.value}
                )
            return None
        if absent:
            raise PydanticCustomError("missing", "Field required when type is MULTIPLE_CHOICE")
        options = handler(value)
        if len(options) < MIN_CHOICE_OPTIONS:
            raise PydanticCustomError(
                "too_short",
                "List should have at least {min_length} items",
                {"min_length": MIN_CHOICE_OPTIONS},
            )
        return options


# ---------------------------------------------------------------------------
# Stored items
# ---------------------------------------------------------------------------


class SurveyItem(_Strict):
    PK: Annotated[str, Field(strict=True, pattern=r"^SURVEY#.+")]
    SK: Literal["METADATA"]
    title: NonEmptyStr
    description: NonEmptyStr
    status: SurveyStatus
    createdAt: IsoDateStr


class QuestionItem(_QuestionFields):
    PK: Annotated[str, Field(strict=True, pattern=r"^SURVEY#.+")]
    SK: Annotated[str, Field(strict=True, pattern=r"^QUESTION#.+")]


class AnswerItem(_Strict):
    PK: Annotated[str, Field(strict=True, pattern=r"^RESPONSE#.+")]
    SK: Annotated[str, Field(strict=True, pattern=r"^ANSWER#.+")]
    surveyId: UuidStr
    answer: AnswerValue
    createdAt: IsoDateStr


class ItemKey(_Strict):
    PK: NonEmptyStr
    SK: NonEmptyStr


# ---------------------------------------------------------------------------
# Read parameters
# ---------------------------------------------------------------------------


class QueryParams(_Strict):
    TableName: NonEmptyStr
    KeyConditionExpression: NonEmptyStr
    ExpressionAttributeValues: Dict[str, Any] = Field(min_length=1)
    ExpressionAttributeNames: Optional[Dict[str, NonEmptyStr]] = None
    ProjectionExpression: Optional[NonEmptyStr] = None
    ScanIndexForward: Optional[bool] = None


class ScanParams(_Strict):
    TableName: NonEmptyStr
    FilterExpression: Optional[NonEmptyStr] = None
    ExpressionAttributeValues: Optional[Dict[str, Any]] = Field(default=None, validate_default=True)
    ExpressionAttributeNames: Optional[Dict[str, NonEmptyStr]] = None
    ProjectionExpression: Optional[NonEmptyStr] = None

    @field_validator("ExpressionAttributeValues")
    @classmethod
    def values_for_filter(cls, value: Optional[Dict[str, Any]], info: ValidationInfo) -> Optional[Dict[str, Any]]:
        if info.data.get("FilterExpression") and not value:
            raise PydanticCustomError("missing", "Field required when FilterExpression is set")
        return value


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SurveyPathParams(BaseModel):
    surveyId: UuidStr


class CreateSurveyInput(_Strict):
    title: NonEmptyStr
    description: NonEmptyStr


class QuestionInput(_QuestionFields):
    pass


class ResponseInput(_Strict):
    questionId: UuidStr
    answer: AnswerValue


class SubmitResponseInput(_Strict):
    responses: List[ResponseInput] = Field(min_length=1)


class StatusChangeInput(_Strict):
    status: SurveyStatus


# ---------------------------------------------------------------------------
# Validation entry points
# ---------------------------------------------------------------------------


def _messages(exc: PydanticValidationError, drop_missing: bool = False) -> List[str]:
    out = []
    for err in exc.errors():
        if drop_missing and err["type"] == "missing":
            continue
        loc = ".".join(str(p) for p in err["loc"]) or "value"
        out.append(f'"{loc}": {err["msg"]}')
    return out


def validate(schema: Type[ModelT], data: Any) -> ModelT:
    """
    Validate ``data`` against ``schema``.

    Returns:
        The parsed model instance.
    Raises:
        ValidationError: Listing every violated field.
    """
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_messages(e)) from None


def validate_partial(schema: Type[BaseModel], data: Any) -> None:
    """
    Validate ``data`` against an all-optional version of ``schema``.

    Fields that are present must still be well formed and unknown fields are
    still rejected; only "missing" violations are ignored.
    """
    try:
        schema.model_validate(data)
    except PydanticValidationError as e:
        messages = _messages(e, drop_missing=True)
        if messages:
            raise ValidationError(messages) from None
