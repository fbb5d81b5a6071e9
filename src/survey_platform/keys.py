"""
Composite key encoding for the single survey table.

Every item is addressed by a partition key (PK) naming the aggregate it
belongs to and a sort key (SK) naming its role inside that aggregate:

    SURVEY#<surveyId>    METADATA
    SURVEY#<surveyId>    QUESTION#<questionId>
    RESPONSE#<responseId> ANSWER#<questionId>
"""

from __future__ import annotations

import uuid
from typing import Dict, Optional

PK = "PK"
SK = "SK"

SURVEY_PREFIX = "SURVEY#"
QUESTION_PREFIX = "QUESTION#"
RESPONSE_PREFIX = "RESPONSE#"
ANSWER_PREFIX = "ANSWER#"
METADATA = "METADATA"


def new_id() -> str:
    """Return a random UUID4 string."""
    return str(uuid.uuid4())


def survey_pk(survey_id: str) -> str:
    return f"{SURVEY_PREFIX}{survey_id}"


def survey_key(survey_id: str) -> Dict[str, str]:
    return {PK: survey_pk(survey_id), SK: METADATA}


def question_key(survey_id: str, question_id: Optional[str] = None) -> Dict[str, str]:
    """Key for a question; a fresh question id is generated when none is given."""
    return {PK: survey_pk(survey_id), SK: f"{QUESTION_PREFIX}{new_id() if question_id is None else question_id}"}


def answer_key(response_id: str, question_id: str) -> Dict[str, str]:
    return {PK: f"{RESPONSE_PREFIX}{response_id}", SK: f"{ANSWER_PREFIX}{question_id}"}


def strip_prefix(value: str, prefix: str) -> str:
    """
    Recover the id encoded in a key attribute.

    Raises:
        ValueError: If ``value`` does not start with ``prefix``.
    """
    if not value.startswith(prefix):
        raise ValueError(f"{value!r} does not start with {prefix!r}")
    return value[len(prefix):]
