import asyncio
import base64
import binascii
import json
import logging

from survey_platform import (
    InvalidTransitionError,
    NotFoundError,
    StoreError,
    SubmissionError,
    ValidationError,
    build_services,
    get_settings,
)
from survey_platform import surveys

# ========= ENV =========
# DynamoDB table must have PK=PK (S) and SK=SK (S)
SETTINGS = get_settings()

logger = logging.getLogger()
logger.setLevel(SETTINGS.log_level)

# Built on first use so the module imports without AWS credentials.
_SERVICES = None


def _services():
    global _SERVICES
    if _SERVICES is None:
        _SERVICES = build_services(SETTINGS)
    return _SERVICES


# ========= HTTP HELPERS =========
def _cors_headers():
    return {
        "Access-Control-Allow-Origin": SETTINGS.allow_origin,
        "Access-Control-Allow-Headers": "Content-Type,Authorization",
        "Access-Control-Allow-Methods": "GET,POST,PUT,OPTIONS",
    }


def _resp(status: int, body) -> dict:
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json", **_cors_headers()},
        "body": json.dumps(body),
    }


def _method(event) -> str:
    return (
        event.get("requestContext", {}).get("http", {}).get("method")
        or event.get("httpMethod")
        or ""
    ).upper()


def _body(event) -> dict:
    raw = event.get("body") or "{}"
    if event.get("isBase64Encoded"):
        raw = base64.b64decode(raw).decode("utf-8", errors="replace")
    return json.loads(raw)


def _survey_id(event):
    return (event.get("pathParameters") or {}).get("surveyId")


def _error_resp(e: Exception, fallback: str) -> dict:
    if isinstance(e, ValidationError):
        return _resp(400, {"message": str(e)})
    if isinstance(e, NotFoundError):
        return _resp(404, {"message": str(e)})
    if isinstance(e, InvalidTransitionError):
        return _resp(409, {"message": str(e)})
    if isinstance(e, SubmissionError):
        if isinstance(e.cause, ValidationError):
            return _resp(400, {"message": f"{e}: {e.cause}"})
        logger.error("SUBMISSION ERROR: %r", e.cause)
        return _resp(500, {"message": fallback})
    if isinstance(e, StoreError):
        logger.error("STORE ERROR: %s %s %s", e.operation, e.code, e.message)
        return _resp(500, {"message": fallback})
    logger.exception("UNHANDLED ERROR: %r", e)
    return _resp(500, {"message": fallback})


def _run(fallback: str, status: int, build):
    """Parse the body if needed, run the operation and map errors to responses."""
    try:
        return _resp(status, asyncio.run(build()))
    except (json.JSONDecodeError, binascii.Error):
        return _resp(400, {"message": "Invalid JSON body"})
    except Exception as e:
        return _error_resp(e, fallback)


# ========= HANDLERS =========
def create(event, context):
    async def op():
        survey_id = await surveys.create_survey(_services(), _body(event))
        return {"message": "Survey created successfully", "id": survey_id}

    return _run("Error creating survey", 201, op)


def add_question(event, context):
    async def op():
        question_id = await surveys.add_question(_services(), _survey_id(event), _body(event))
        return {"message": "Question added successfully", "questionId": question_id}

    return _run("Error adding question", 201, op)


def get_all_surveys(event, context):
    async def op():
        return await surveys.list_surveys(_services())

    return _run("An error occurred while fetching the surveys.", 200, op)


def get_survey(event, context):
    async def op():
        return await surveys.get_survey(_services(), _survey_id(event))

    return _run("Error fetching survey", 200, op)


def submit_response(event, context):
    async def op():
        response_id = await surveys.submit_response(_services(), _survey_id(event), _body(event))
        return {"message": "Response submitted successfully", "responseId": response_id}

    return _run("Error submitting response", 201, op)


def change_status(event, context):
    async def op():
        return await surveys.change_status(_services(), _survey_id(event), _body(event))

    return _run("Error updating survey status", 200, op)


def get_results(event, context):
    async def op():
        return await surveys.get_results(_services(), _survey_id(event))

    return _run("Error fetching results", 200, op)


ROUTES = {
    "POST /surveys": create,
    "GET /surveys": get_all_surveys,
    "GET /surveys/{surveyId}": get_survey,
    "POST /surveys/{surveyId}/questions": add_question,
    "POST /surveys/{surveyId}/responses": submit_response,
    "PUT /surveys/{surveyId}/status": change_status,
    "GET /surveys/{surveyId}/results": get_results,
}


def lambda_handler(event, context):
    # CORS preflight
    if _method(event) == "OPTIONS":
        return {"statusCode": 200, "headers": _cors_headers(), "body": ""}

    handler = ROUTES.get(event.get("routeKey", ""))
    if handler is None:
        return _resp(404, {"message": "Route not found"})
    return handler(event, context)
