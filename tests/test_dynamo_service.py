import asyncio

import pytest

from survey_platform import DynamoService, StoreError, ValidationError
from survey_platform.schemas import QuestionItem, SurveyItem

from conftest import TABLE_NAME


@pytest.fixture
def service(table):
    return DynamoService(TABLE_NAME, SurveyItem, table=table)


def _key(item):
    return {"PK": item["PK"], "SK": item["SK"]}


def test_service_keeps_configuration(service, table):
    assert service.table_name == TABLE_NAME
    assert service.item_schema is SurveyItem
    assert service.table is table


def test_calls_go_through_client_with_table_name(service, table, survey_item):
    assert service.client is table.meta.client
    asyncio.run(service.put(survey_item))
    asyncio.run(service.get(_key(survey_item)))
    asyncio.run(service.update(_key(survey_item), {"title": "Renamed"}))
    asyncio.run(service.scan())
    asyncio.run(service.delete(_key(survey_item)))
    assert [m for m, _ in table.calls] == ["put_item", "get_item", "update_item", "scan", "delete_item"]
    assert all(kwargs["TableName"] == TABLE_NAME for _, kwargs in table.calls)


def test_unknown_table_is_store_error(table, survey_item):
    service = DynamoService("missing-table", SurveyItem, table=table)
    with pytest.raises(StoreError) as exc:
        asyncio.run(service.put(survey_item))
    assert exc.value.code == "ResourceNotFoundException"


def test_put_then_query_round_trip(service, survey_item):
    stored = asyncio.run(service.put(dict(survey_item)))
    assert stored == survey_item

    items = asyncio.run(
        service.query(
            {
                "KeyConditionExpression": "PK = :pk",
                "ExpressionAttributeValues": {":pk": survey_item["PK"]},
            }
        )
    )
    assert items == [survey_item]


def test_put_invalid_item_never_reaches_table(service, table):
    with pytest.raises(ValidationError) as exc:
        asyncio.run(service.put({"PK": "SURVEY#1", "SK": "METADATA"}))
    assert "Validation failed" in str(exc.value)
    assert table.calls == []


def test_put_question_with_null_options_never_reaches_table(table, survey_item):
    service = DynamoService(TABLE_NAME, QuestionItem, table=table)
    item = {"PK": survey_item["PK"], "SK": "QUESTION#q1", "text": "Why?", "type": "FREE_TEXT", "options": None}
    with pytest.raises(ValidationError):
        asyncio.run(service.put(item))
    assert table.calls == []


def test_put_store_failure(service, table, survey_item):
    table.reject("put_item")
    with pytest.raises(StoreError) as exc:
        asyncio.run(service.put(survey_item))
    assert exc.value.code == "ProvisionedThroughputExceededException"
    assert exc.value.operation == "PutItem"


def test_get_returns_item(service, survey_item):
    asyncio.run(service.put(survey_item))
    assert asyncio.run(service.get(_key(survey_item))) == survey_item


def test_get_missing_returns_none(service):
    assert asyncio.run(service.get({"PK": "SURVEY#nope", "SK": "METADATA"})) is None


def test_get_rejects_empty_key(service, table):
    with pytest.raises(ValidationError):
        asyncio.run(service.get({"PK": "", "SK": "METADATA"}))
    assert table.calls == []


def test_get_store_failure_propagates(service, table):
    table.reject("get_item", "InternalServerError")
    with pytest.raises(StoreError):
        asyncio.run(service.get({"PK": "SURVEY#1", "SK": "METADATA"}))


def test_update_builds_set_expression(service, table, survey_item):
    asyncio.run(service.put(survey_item))
    updated = asyncio.run(service.update(_key(survey_item), {"PK": "ignored", "title": "New title"}))

    assert updated["title"] == "New title"
    assert updated["PK"] == survey_item["PK"]
    method, kwargs = table.calls[-1]
    assert method == "update_item"
    assert kwargs["UpdateExpression"] == "SET #title = :title"
    assert kwargs["ExpressionAttributeNames"] == {"#title": "title"}
    assert kwargs["ExpressionAttributeValues"] == {":title": "New title"}
    assert kwargs["ConditionExpression"] == "attribute_exists(PK)"
    assert kwargs["ReturnValues"] == "ALL_NEW"


def test_update_rejects_invalid_partial(service, table, survey_item):
    asyncio.run(service.put(survey_item))
    with pytest.raises(ValidationError):
        asyncio.run(service.update(_key(survey_item), {"status": "DONE"}))
    with pytest.raises(ValidationError):
        asyncio.run(service.update(_key(survey_item), {"PK": "only-key"}))
    assert [m for m, _ in table.calls] == ["put_item"]


def test_update_missing_item_is_store_error(service):
    with pytest.raises(StoreError) as exc:
        asyncio.run(service.update({"PK": "SURVEY#nope", "SK": "METADATA"}, {"title": "x"}))
    assert exc.value.code == "ConditionalCheckFailedException"


def test_update_with_expected_value(service, survey_item):
    asyncio.run(service.put(survey_item))
    with pytest.raises(StoreError):
        asyncio.run(service.update(_key(survey_item), {"status": "CLOSED"}, expected={"status": "PUBLISHED"}))
    out = asyncio.run(service.update(_key(survey_item), {"status": "PUBLISHED"}, expected={"status": "CREATED"}))
    assert out["status"] == "PUBLISHED"


def test_delete_is_idempotent(service, table, survey_item):
    asyncio.run(service.put(survey_item))
    asyncio.run(service.delete(_key(survey_item)))
    asyncio.run(service.delete(_key(survey_item)))
    asyncio.run(service.delete({"PK": "SURVEY#never", "SK": "METADATA"}))
    assert table.items == {}


def test_query_rejects_foreign_table(service, table):
    with pytest.raises(ValidationError) as exc:
        asyncio.run(
            service.query(
                {
                    "TableName": "other-table",
                    "KeyConditionExpression": "PK = :pk",
                    "ExpressionAttributeValues": {":pk": "SURVEY#1"},
                }
            )
        )
    assert '"TableName"' in str(exc.value)
    assert table.calls == []


def test_query_requires_condition_and_values(service, table):
    with pytest.raises(ValidationError) as exc:
        asyncio.run(service.query({}))
    assert '"KeyConditionExpression"' in str(exc.value)
    assert '"ExpressionAttributeValues"' in str(exc.value)
    assert table.calls == []


def test_query_no_match_is_empty(service):
    items = asyncio.run(
        service.query({"KeyConditionExpression": "PK = :pk", "ExpressionAttributeValues": {":pk": "SURVEY#x"}})
    )
    assert items == []


def test_query_follows_pages(service, table, survey_item):
    asyncio.run(service.put(survey_item))
    for n in range(3):
        table.items[(survey_item["PK"], f"QUESTION#{n}")] = {
            "PK": survey_item["PK"],
            "SK": f"QUESTION#{n}",
            "text": "q",
            "type": "FREE_TEXT",
        }
    table.page_size = 2

    items = asyncio.run(
        service.query({"KeyConditionExpression": "PK = :pk", "ExpressionAttributeValues": {":pk": survey_item["PK"]}})
    )
    assert [it["SK"] for it in items] == ["METADATA", "QUESTION#0", "QUESTION#1", "QUESTION#2"]
    assert len([m for m, _ in table.calls if m == "query"]) == 2
    assert table.calls[-1][1]["TableName"] == TABLE_NAME


def test_scan_empty_table(service):
    assert asyncio.run(service.scan()) == []
    items = asyncio.run(
        service.scan({"FilterExpression": "SK = :sk", "ExpressionAttributeValues": {":sk": "METADATA"}})
    )
    assert items == []


def test_scan_validates_params(service, table):
    with pytest.raises(ValidationError):
        asyncio.run(service.scan({"FilterExpression": "SK = :sk"}))
    with pytest.raises(ValidationError):
        asyncio.run(service.scan({"Limit": 5}))
    assert table.calls == []
