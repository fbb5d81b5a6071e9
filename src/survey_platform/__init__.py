"""Survey creation and response collection on a single DynamoDB table."""

from .config import Settings, get_settings
from .dynamo_service import DynamoService
from .errors import (
    InvalidTransitionError,
    NotFoundError,
    StoreError,
    SubmissionError,
    SurveyPlatformError,
    ValidationError,
)
from .services import Services, build_services

__all__ = [
    "DynamoService",
    "InvalidTransitionError",
    "NotFoundError",
    "Services",
    "Settings",
    "StoreError",
    "SubmissionError",
    "SurveyPlatformError",
    "ValidationError",
    "build_services",
    "get_settings",
]
