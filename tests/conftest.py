import copy
import re
import types

import pytest
from botocore.exceptions import ClientError

from survey_platform import Settings, build_services

TABLE_NAME = "test-table"

_BEGINS_WITH = re.compile(r"^begins_with\((\S+?),\s*(:\w+)\)$")
_EXISTS = re.compile(r"^attribute_exists\((\S+?)\)$")


def _client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": f"{code} (injected)"}}, operation)


def _matches(item, expr, names, values):
    names = names or {}
    for part in expr.split(" AND "):
        part = part.strip()
        m = _BEGINS_WITH.match(part)
        if m:
            attr = names.get(m.group(1), m.group(1))
            if not str(item.get(attr, "")).startswith(values[m.group(2)]):
                return False
            continue
        m = _EXISTS.match(part)
        if m:
            if names.get(m.group(1), m.group(1)) not in item:
                return False
            continue
        attr, placeholder = [s.strip() for s in part.split("=")]
        if item.get(names.get(attr, attr)) != values[placeholder]:
            return False
    return True


def _project(item, projection, names):
    if not projection:
        return copy.deepcopy(item)
    names = names or {}
    wanted = [names.get(p.strip(), p.strip()) for p in projection.split(",")]
    return {k: copy.deepcopy(item[k]) for k in wanted if k in item}


class FakeTable:
    """In-memory stand-in for a boto3 DynamoDB Table with a PK/SK key schema."""

    def __init__(self, name=TABLE_NAME):
        self.name = name
        self.meta = types.SimpleNamespace(client=self)
        self.items = {}
        self.calls = []
        self.page_size = None
        self._rejections = {}

    def reject(self, method, code="ProvisionedThroughputExceededException", when=None):
        """Make ``method`` raise a ClientError, for every call or when ``when(kwargs)`` is true."""
        self._rejections[method] = (code, when)

    def _enter(self, method, operation, kwargs):
        self.calls.append((method, kwargs))
        if kwargs.get("TableName") != self.name:
            raise _client_error("ResourceNotFoundException", operation)
        if method in self._rejections:
            code, when = self._rejections[method]
            if when is None or when(kwargs):
                raise _client_error(code, operation)

    def _page(self, results, kwargs):
        start = 0
        if "ExclusiveStartKey" in kwargs:
            esk = kwargs["ExclusiveStartKey"]
            keys_ = [(it["PK"], it["SK"]) for it in results]
            start = keys_.index((esk["PK"], esk["SK"])) + 1
        if self.page_size is None:
            return {"Items": results[start:]}
        page = results[start:start + self.page_size]
        resp = {"Items": page}
        if start + self.page_size < len(results):
            resp["LastEvaluatedKey"] = {"PK": page[-1]["PK"], "SK": page[-1]["SK"]}
        return resp

    def put_item(self, **kwargs):
        self._enter("put_item", "PutItem", kwargs)
        item = kwargs["Item"]
        self.items[(item["PK"], item["SK"])] = copy.deepcopy(item)
        return {}

    def get_item(self, **kwargs):
        self._enter("get_item", "GetItem", kwargs)
        key = kwargs["Key"]
        item = self.items.get((key["PK"], key["SK"]))
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def update_item(self, **kwargs):
        self._enter("update_item", "UpdateItem", kwargs)
        key = kwargs["Key"]
        names = kwargs.get("ExpressionAttributeNames", {})
        values = kwargs.get("ExpressionAttributeValues", {})
        current = self.items.get((key["PK"], key["SK"]))
        cond = kwargs.get("ConditionExpression")
        if cond and not _matches(current or {}, cond, names, values):
            raise _client_error("ConditionalCheckFailedException", "UpdateItem")
        item = copy.deepcopy(current) if current else dict(key)
        assignments = kwargs["UpdateExpression"][len("SET "):]
        for assignment in assignments.split(","):
            name, placeholder = [s.strip() for s in assignment.split("=")]
            item[names.get(name, name)] = copy.deepcopy(values[placeholder])
        self.items[(key["PK"], key["SK"])] = item
        return {"Attributes": copy.deepcopy(item)}

    def delete_item(self, **kwargs):
        self._enter("delete_item", "DeleteItem", kwargs)
        key = kwargs["Key"]
        self.items.pop((key["PK"], key["SK"]), None)
        return {}

    def query(self, **kwargs):
        self._enter("query", "Query", kwargs)
        names = kwargs.get("ExpressionAttributeNames")
        values = kwargs["ExpressionAttributeValues"]
        results = [
            it for it in self.items.values()
            if _matches(it, kwargs["KeyConditionExpression"], names, values)
        ]
        results.sort(key=lambda it: it["SK"], reverse=kwargs.get("ScanIndexForward") is False)
        results = [_project(it, kwargs.get("ProjectionExpression"), names) for it in results]
        return self._page(results, kwargs)

    def scan(self, **kwargs):
        self._enter("scan", "Scan", kwargs)
        names = kwargs.get("ExpressionAttributeNames")
        results = list(self.items.values())
        if kwargs.get("FilterExpression"):
            results = [
                it for it in results
                if _matches(it, kwargs["FilterExpression"], names, kwargs["ExpressionAttributeValues"])
            ]
        # keep key attributes so pages can be resumed
        projection = kwargs.get("ProjectionExpression")
        results = [
            {**_project(it, projection, names), "PK": it["PK"], "SK": it["SK"]} if projection else copy.deepcopy(it)
            for it in results
        ]
        return self._page(results, kwargs)


@pytest.fixture
def table():
    return FakeTable()


@pytest.fixture
def settings():
    return Settings(table_name=TABLE_NAME)


@pytest.fixture
def services(settings, table):
    return build_services(settings, table=table)


@pytest.fixture
def survey_item():
    return {
        "PK": "SURVEY#0b4f6c1e-2f3a-4c5d-9e8f-1a2b3c4d5e6f",
        "SK": "METADATA",
        "title": "Team health",
        "description": "Quarterly check-in",
        "status": "CREATED",
        "createdAt": "2024-05-01T12:00:00Z",
    }
