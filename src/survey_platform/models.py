"""
Domain records for the survey platform.

Each class knows how to compute its own composite key and how to render itself
as a DynamoDB item.  The item carries its key attributes, so the data-access
layer never recomputes them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Union

from . import keys


def now_iso() -> str:
    """Return the current UTC time as an ISO 8601 string ending in ``Z``."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SurveyStatus(str, Enum):
    CREATED = "CREATED"
    PUBLISHED = "PUBLISHED"
    CLOSED = "CLOSED"


class QuestionType(str, Enum):
    FREE_TEXT = "FREE_TEXT"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"


# Legal survey lifecycle moves; CLOSED is terminal.
STATUS_TRANSITIONS: Dict[SurveyStatus, FrozenSet[SurveyStatus]] = {
    SurveyStatus.CREATED: frozenset({SurveyStatus.PUBLISHED}),
    SurveyStatus.PUBLISHED: frozenset({SurveyStatus.CLOSED}),
    SurveyStatus.CLOSED: frozenset(),
}


def can_transition(current: SurveyStatus, requested: SurveyStatus) -> bool:
    return requested in STATUS_TRANSITIONS[current]


@dataclass
class Survey:
    """
    Survey metadata record.

    Attributes:
        surveyId: UUID of the survey.
        title: Human-readable title.
        description: Free-form description shown to respondents.
        status: Lifecycle state, CREATED until published.
        createdAt: ISO timestamp when the survey was created.
    """

    surveyId: str
    title: str
    description: str
    status: SurveyStatus = SurveyStatus.CREATED
    createdAt: str = field(default_factory=now_iso)

    @property
    def key(self) -> Dict[str, str]:
        return keys.survey_key(self.surveyId)

    @property
    def pk(self) -> str:
        return self.key[keys.PK]

    @property
    def sk(self) -> str:
        return self.key[keys.SK]

    def to_item(self) -> Dict[str, Any]:
        """Convert the survey into a DynamoDB item (dictionary)."""
        return {
            **self.key,
            "title": self.title,
            "description": self.description,
            "status": SurveyStatus(self.status).value,
            "createdAt": self.createdAt,
        }


@dataclass
class Question:
    """
    A question attached to a survey.

    ``options`` is only meaningful for multiple-choice questions and is left
    out of the item entirely otherwise.
    """

    surveyId: str
    questionId: str
    text: str
    type: QuestionType
    options: Optional[List[str]] = None

    @property
    def key(self) -> Dict[str, str]:
        return keys.question_key(self.surveyId, self.questionId)

    @property
    def pk(self) -> str:
        return self.key[keys.PK]

    @property
    def sk(self) -> str:
        return self.key[keys.SK]

    def to_item(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            **self.key,
            "text": self.text,
            "type": QuestionType(self.type).value,
        }
        if self.options is not None:
            item["options"] = list(self.options)
        return item


@dataclass
class Answer:
    """One answer of a response batch, stored under the response's partition."""

    responseId: str
    questionId: str
    surveyId: str
    answer: Union[str, List[str]]
    createdAt: str = field(default_factory=now_iso)

    @property
    def key(self) -> Dict[str, str]:
        return keys.answer_key(self.responseId, self.questionId)

    @property
    def pk(self) -> str:
        return self.key[keys.PK]

    @property
    def sk(self) -> str:
        return self.key[keys.SK]

    def to_item(self) -> Dict[str, Any]:
        return {
            **self.key,
            "surveyId": self.surveyId,
            "answer": self.answer,
            "createdAt": self.createdAt,
        }
