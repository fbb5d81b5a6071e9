"""
Create the survey table if it does not exist yet.

    SURVEYS_TABLE=SurveyPlatform AWS_REGION=us-east-1 python create_table.py
"""

import logging

import boto3
from botocore.exceptions import ClientError

from survey_platform import get_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("create_table")


def create_table(dynamodb, table_name: str) -> bool:
    """Returns True if the table was created, False if it already existed."""
    try:
        table = dynamodb.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") == "ResourceInUseException":
            return False
        raise
    table.wait_until_exists()
    return True


if __name__ == "__main__":
    settings = get_settings()
    ddb = boto3.resource("dynamodb", region_name=settings.region)
    if create_table(ddb, settings.table_name):
        logger.info("created table %s", settings.table_name)
    else:
        logger.info("table %s already exists", settings.table_name)
