"""
Reassembly of flat table items into the nested views returned to clients.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, Iterable, List

from . import keys
from .errors import NotFoundError
from .models import QuestionType

OTHER = "other"


def project_survey(items: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build the survey view from every item of one survey partition.

    Questions keep the order the items arrive in, which for a range query is
    ascending sort-key order.

    Raises:
        NotFoundError: Unless exactly one METADATA item is present.
    """
    items = list(items)
    metadata = [it for it in items if it.get(keys.SK) == keys.METADATA]
    if len(metadata) != 1:
        raise NotFoundError("Survey not found")
    meta = metadata[0]

    questions = []
    for it in items:
        sk = it.get(keys.SK, "")
        if not sk.startswith(keys.QUESTION_PREFIX):
            continue
        question = {
            "questionId": keys.strip_prefix(sk, keys.QUESTION_PREFIX),
            "text": it.get("text"),
            "type": it.get("type"),
        }
        if "options" in it:
            question["options"] = list(it["options"])
        questions.append(question)

    return {
        "surveyId": keys.strip_prefix(meta[keys.PK], keys.SURVEY_PREFIX),
        "title": meta.get("title"),
        "description": meta.get("description"),
        "status": meta.get("status"),
        "createdAt": meta.get("createdAt"),
        "questions": questions,
    }


def project_summary(item: Dict[str, Any]) -> Dict[str, Any]:
    """Listing row for one survey metadata item."""
    return {
        "id": keys.strip_prefix(item[keys.PK], keys.SURVEY_PREFIX),
        "title": item.get("title"),
        "createdAt": item.get("createdAt"),
        "status": item.get("status"),
    }


def _tally(options: List[str], answers: List[Any]) -> Dict[str, int]:
    counts: Dict[str, int] = OrderedDict((opt, 0) for opt in options)
    counts[OTHER] = 0
    for answer in answers:
        for choice in answer if isinstance(answer, list) else [answer]:
            key = choice if choice in options else OTHER
            counts[key] += 1
    return dict(counts)


def tally_results(survey: Dict[str, Any], answers: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Aggregate answer items against a projected survey.

    Multiple-choice questions get a per-option count (a list answer counts
    once for each option it selects; values outside the options count as
    ``other``).  Free-text questions list the raw answers.  Answers to
    question ids the survey does not know are ignored.
    """
    by_question: Dict[str, List[Any]] = {}
    response_ids = set()
    for it in answers:
        question_id = keys.strip_prefix(it[keys.SK], keys.ANSWER_PREFIX)
        by_question.setdefault(question_id, []).append(it.get("answer"))
        response_ids.add(it[keys.PK])

    results = []
    for q in survey["questions"]:
        given = by_question.get(q["questionId"], [])
        row: Dict[str, Any] = {
            "questionId": q["questionId"],
            "text": q["text"],
            "type": q["type"],
            "responses": len(given),
        }
        if q["type"] == QuestionType.MULTIPLE_CHOICE.value:
            row["tally"] = _tally(q.get("options", []), given)
        else:
            row["answers"] = given
        results.append(row)

    return {
        "surveyId": survey["surveyId"],
        "title": survey["title"],
        "totalResponses": len(response_ids),
        "questions": results,
    }
