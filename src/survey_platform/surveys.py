"""
Survey operations: the application layer between request handlers and the
repositories.

Every function takes the ``Services`` bundle explicitly and accepts request
payloads as plain mappings, validating them before anything is written.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping

from . import keys
from .errors import InvalidTransitionError, NotFoundError, StoreError, SubmissionError, ValidationError
from .models import Answer, Question, Survey, SurveyStatus, can_transition, now_iso
from .projection import project_summary, project_survey, tally_results
from .schemas import (
    CreateSurveyInput,
    QuestionInput,
    StatusChangeInput,
    SubmitResponseInput,
    SurveyPathParams,
    validate,
)
from .services import Services

logger = logging.getLogger(__name__)


def _survey_id(survey_id: Any) -> str:
    return validate(SurveyPathParams, {"surveyId": survey_id}).surveyId


async def create_survey(services: Services, payload: Mapping[str, Any]) -> str:
    """Create a survey in CREATED state and return its id."""
    data = validate(CreateSurveyInput, payload)
    survey = Survey(surveyId=keys.new_id(), title=data.title, description=data.description)
    await services.survey.put(survey.to_item())
    logger.info("survey_created: surveyId=%s", survey.surveyId)
    return survey.surveyId


async def add_question(services: Services, survey_id: Any, payload: Mapping[str, Any]) -> str:
    """
    Attach a question to an existing survey and return the question id.

    Raises:
        ValidationError: If the survey id or the question is malformed.
        NotFoundError: If the survey does not exist.
    """
    survey_id = _survey_id(survey_id)
    data = validate(QuestionInput, payload)
    if await services.survey.get(keys.survey_key(survey_id)) is None:
        raise NotFoundError("Survey not found")

    question = Question(
        surveyId=survey_id,
        questionId=keys.new_id(),
        text=data.text,
        type=data.type,
        options=data.options,
    )
    await services.question.put(question.to_item())
    logger.info("question_added: surveyId=%s questionId=%s", survey_id, question.questionId)
    return question.questionId


async def list_surveys(services: Services) -> List[Dict[str, Any]]:
    items = await services.survey.scan(
        {
            "FilterExpression": f"{keys.SK} = :sk",
            "ExpressionAttributeValues": {":sk": keys.METADATA},
            "ProjectionExpression": f"{keys.PK}, title, createdAt, #st",
            "ExpressionAttributeNames": {"#st": "status"},
        }
    )
    return [project_summary(it) for it in items]


async def get_survey(services: Services, survey_id: Any) -> Dict[str, Any]:
    """
    Fetch a survey with all of its questions in one range query.

    Raises:
        NotFoundError: If the survey has no metadata item.
    """
    survey_id = _survey_id(survey_id)
    items = await services.survey.query(
        {
            "KeyConditionExpression": f"{keys.PK} = :pk",
            "ExpressionAttributeValues": {":pk": keys.survey_pk(survey_id)},
        }
    )
    return project_survey(items)


async def submit_response(services: Services, survey_id: Any, payload: Mapping[str, Any]) -> str:
    """
    Store one response (a batch of answers) and return the response id.

    The answers are written concurrently and all of them are awaited.  If any
    write fails the whole submission fails with a single ``SubmissionError``;
    answers already written are left in place.
    """
    survey_id = _survey_id(survey_id)
    data = validate(SubmitResponseInput, payload)

    seen = set()
    for res in data.responses:
        if res.questionId in seen:
            raise ValidationError([f'"responses": duplicate questionId {res.questionId}'])
        seen.add(res.questionId)

    response_id = keys.new_id()
    created_at = now_iso()
    answers = [
        Answer(
            responseId=response_id,
            questionId=res.questionId,
            surveyId=survey_id,
            answer=res.answer,
            createdAt=created_at,
        )
        for res in data.responses
    ]

    results = await asyncio.gather(
        *(services.answer.put(a.to_item()) for a in answers),
        return_exceptions=True,
    )
    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        logger.error(
            "response_submit_failed: surveyId=%s responseId=%s failed=%d/%d",
            survey_id, response_id, len(failures), len(answers),
        )
        raise SubmissionError(len(answers), len(failures), failures[0]) from failures[0]

    logger.info("response_submitted: surveyId=%s responseId=%s answers=%d", survey_id, response_id, len(answers))
    return response_id


async def change_status(services: Services, survey_id: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Move a survey along CREATED -> PUBLISHED -> CLOSED.

    The write is conditional on the status just read, so of two racing
    changes only one can win; the loser gets ``InvalidTransitionError``.
    """
    survey_id = _survey_id(survey_id)
    requested = validate(StatusChangeInput, payload).status
    key = keys.survey_key(survey_id)

    item = await services.survey.get(key)
    if item is None:
        raise NotFoundError("Survey not found")
    current = SurveyStatus(item["status"])
    if not can_transition(current, requested):
        raise InvalidTransitionError(current.value, requested.value)

    try:
        updated = await services.survey.update(key, {"status": requested.value}, expected={"status": current.value})
    except StoreError as e:
        if e.code == "ConditionalCheckFailedException":
            raise InvalidTransitionError(current.value, requested.value) from e
        raise
    logger.info("survey_status_changed: surveyId=%s %s->%s", survey_id, current.value, requested.value)
    return project_summary(updated)


async def get_results(services: Services, survey_id: Any) -> Dict[str, Any]:
    """Aggregate every stored answer of a survey per question."""
    survey = await get_survey(services, survey_id)
    answers = await services.answer.scan(
        {
            "FilterExpression": f"surveyId = :sid AND begins_with({keys.SK}, :answer)",
            "ExpressionAttributeValues": {":sid": survey["surveyId"], ":answer": keys.ANSWER_PREFIX},
        }
    )
    return tally_results(survey, answers)
