"""
Construction of the survey, question and answer repositories.

All three share one table and the same query schema; they differ only in the
item schema their writes are validated against.  ``build_services`` is called
once by whoever owns the process (a Lambda module, a script, a test) and the
result is passed explicitly to the survey operations.
"""

from __future__ import annotations

from typing import Any, NamedTuple, Optional

import boto3

from .config import Settings, get_settings
from .dynamo_service import DynamoService
from .schemas import AnswerItem, QueryParams, QuestionItem, SurveyItem


class Services(NamedTuple):
    survey: DynamoService[SurveyItem]
    question: DynamoService[QuestionItem]
    answer: DynamoService[AnswerItem]


def build_services(settings: Optional[Settings] = None, table: Any = None) -> Services:
    """
    Args:
        settings: Configuration to read the table name and region from;
            defaults to the process-wide settings.
        table: A ready boto3 ``Table`` (or compatible object) to use instead
            of creating one.
    """
    settings = settings or get_settings()
    if table is None:
        table = boto3.resource("dynamodb", region_name=settings.region).Table(settings.table_name)
    return Services(
        survey=DynamoService(settings.table_name, SurveyItem, QueryParams, table=table),
        question=DynamoService(settings.table_name, QuestionItem, QueryParams, table=table),
        answer=DynamoService(settings.table_name, AnswerItem, QueryParams, table=table),
    )
