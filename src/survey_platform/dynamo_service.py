"""
Validation-gated DynamoDB repository.

``DynamoService`` wraps one DynamoDB table and exposes put/get/update/delete/
query/scan.  Each service is bound at construction to the schema of the item
kind it writes and to the shared query/scan schemas; every operation validates
its input completely before the table is touched, so a rejected request never
leaves a partial write behind.

Items are addressed by their composite ``{"PK": ..., "SK": ...}`` key for all
operations.  boto3 calls are blocking, so each one goes through the table's
thread-safe low-level client in a worker thread and is a single await from the
caller's point of view.  Failures are not retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Type, TypeVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from . import keys
from .errors import StoreError, ValidationError
from .schemas import ItemKey, QueryParams, ScanParams, validate, validate_partial

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

Item = Dict[str, Any]

KEY_ATTRIBUTES = (keys.PK, keys.SK)


class DynamoService(Generic[ModelT]):
    """Repository for one item kind stored in a single DynamoDB table."""

    def __init__(
        self,
        table_name: str,
        item_schema: Type[ModelT],
        query_schema: Type[BaseModel] = QueryParams,
        scan_schema: Type[BaseModel] = ScanParams,
        table: Any = None,
        region_name: Optional[str] = None,
    ) -> None:
        self.table_name = table_name
        self.item_schema = item_schema
        self.query_schema = query_schema
        self.scan_schema = scan_schema
        if table is None:
            table = boto3.resource("dynamodb", region_name=region_name).Table(table_name)
        self.table = table
        # resources are not thread-safe; the low-level client is, and it keeps
        # the resource's attribute (de)serialization hooks
        self.client = table.meta.client

    async def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, TableName=self.table_name, **kwargs)
        except ClientError as e:
            err = e.response.get("Error", {})
            code = err.get("Code", "")
            logger.warning("%s on %s failed: %s", operation, self.table_name, code)
            raise StoreError(operation, code, err.get("Message", "")) from e
        except BotoCoreError as e:
            logger.warning("%s on %s failed: %r", operation, self.table_name, e)
            raise StoreError(operation, type(e).__name__, str(e)) from e

    def _check_table(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        requested = params.get("TableName", self.table_name)
        if requested != self.table_name:
            raise ValidationError([f'"TableName": must be {self.table_name!r}'])
        return {**params, "TableName": self.table_name}

    async def put(self, item: Item) -> Item:
        """
        Store a new item.

        Args:
            item: Complete item, including its ``PK`` and ``SK`` attributes.
        Returns:
            The item, unchanged.
        Raises:
            ValidationError: If the item does not match the item schema.
            StoreError: If DynamoDB rejects the write.
        """
        validate(self.item_schema, item)
        await self._call("PutItem", self.client.put_item, Item=item)
        return item

    async def get(self, key: Mapping[str, str]) -> Optional[Item]:
        """Fetch an item by key; returns None when it does not exist."""
        validate(ItemKey, key)
        resp = await self._call("GetItem", self.client.get_item, Key=dict(key))
        return resp.get("Item")

    async def update(
        self,
        key: Mapping[str, str],
        updates: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Item:
        """
        Overwrite individual attributes of an existing item.

        Key attributes in ``updates`` are ignored.  The remaining attributes are
        validated against the item schema with every field optional.

        Args:
            key: ``{"PK": ..., "SK": ...}`` of the item.
            updates: Attributes to set.
            expected: Attribute values the stored item must currently hold.
        Returns:
            The item as it is after the update.
        Raises:
            ValidationError: If the key or the updates are malformed.
            StoreError: If the item does not exist, an expected value does not
                match, or DynamoDB fails.
        """
        validate(ItemKey, key)
        fields = {k: v for k, v in updates.items() if k not in KEY_ATTRIBUTES}
        if not fields:
            raise ValidationError(['"updates": at least one non-key attribute is required'])
        validate_partial(self.item_schema, fields)

        names = {f"#{k}": k for k in fields}
        values = {f":{k}": v for k, v in fields.items()}
        conditions = [f"attribute_exists({keys.PK})"]
        for k, v in (expected or {}).items():
            names[f"#e_{k}"] = k
            values[f":e_{k}"] = v
            conditions.append(f"#e_{k} = :e_{k}")

        resp = await self._call(
            "UpdateItem",
            self.client.update_item,
            Key=dict(key),
            UpdateExpression="SET " + ", ".join(f"#{k} = :{k}" for k in fields),
            ConditionExpression=" AND ".join(conditions),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
            ReturnValues="ALL_NEW",
        )
        return resp.get("Attributes", {})

    async def delete(self, key: Mapping[str, str]) -> None:
        """Delete an item.  Deleting a key that does not exist is not an error."""
        validate(ItemKey, key)
        await self._call("DeleteItem", self.client.delete_item, Key=dict(key))

    async def query(self, params: Mapping[str, Any]) -> List[Item]:
        """
        Range query on one partition.

        ``TableName`` may be omitted; if given it must name this service's
        table.  Pages are followed until DynamoDB reports no more results.
        """
        params = self._check_table(params)
        validate(self.query_schema, params)
        return await self._collect("Query", self.client.query, params)

    async def scan(self, params: Optional[Mapping[str, Any]] = None) -> List[Item]:
        """Full-table read, optionally filtered; validated like ``query``."""
        params = self._check_table(params or {})
        validate(self.scan_schema, params)
        return await self._collect("Scan", self.client.scan, params)

    async def _collect(self, operation: str, fn: Callable[..., Any], params: Dict[str, Any]) -> List[Item]:
        # _call supplies TableName
        kwargs = {k: v for k, v in params.items() if k != "TableName" and v is not None}
        resp = await self._call(operation, fn, **kwargs)
        items: List[Item] = list(resp.get("Items", []))
        while "LastEvaluatedKey" in resp:
            resp = await self._call(operation, fn, ExclusiveStartKey=resp["LastEvaluatedKey"], **kwargs)
            items.extend(resp.get("Items", []))
        return items
