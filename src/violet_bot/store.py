"""
Entry store backed by a DynamoDB table with `uuid` as the only key.

Single-key operations only; concurrent writers for the same uuid are
last-write-wins, except that a terminal status is never replaced.
"""

from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Any, Protocol

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError

from . import aws
from .errors import EntryNotFoundError, StoreError
from .logs import log_event
from .models import EntryRecord, Status
from .validation import serialize, validate_entry

logger = logging.getLogger(__name__)

_SER = TypeSerializer()
_DESER = TypeDeserializer()


class EntryStore(Protocol):
    def get(self, uuid: str) -> EntryRecord: ...

    def put(self, record: EntryRecord) -> None: ...

    def mark(
        self,
        uuid: str,
        *,
        status: Status | None = None,
        reconciled_at: dt.datetime | None = None,
        comment_id: int | None = None,
    ) -> bool: ...

    def append_output(self, uuid: str, key: str, value: dict[str, Any]) -> bool: ...

    def list_undone(self) -> list[str]: ...


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == int(value) else float(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _dynamo(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_dynamo(v) for v in value]
    return value


def to_item(record: EntryRecord) -> dict[str, Any]:
    return {k: _SER.serialize(_dynamo(v)) for k, v in serialize(record).items()}


def from_item(item: dict[str, Any]) -> EntryRecord:
    raw = {k: _plain(_DESER.deserialize(v)) for k, v in item.items()}
    return validate_entry(EntryRecord, raw)


class DynamoEntryStore:
    def __init__(self, table_name: str, region: str) -> None:
        self.table_name = table_name
        self.region = region

    def _ddb(self):
        return aws.client("dynamodb", self.region)

    def get(self, uuid: str) -> EntryRecord:
        try:
            r = self._ddb().get_item(
                TableName=self.table_name,
                Key={"uuid": {"S": uuid}},
                ConsistentRead=True,
            )
        except ClientError as e:
            raise StoreError(f"get_item failed: {aws.error_code(e)}") from e
        item = r.get("Item")
        if not item:
            raise EntryNotFoundError(uuid)
        return from_item(item)

    def put(self, record: EntryRecord) -> None:
        try:
            self._ddb().put_item(TableName=self.table_name, Item=to_item(record))
        except ClientError as e:
            raise StoreError(f"put_item failed: {aws.error_code(e)}") from e
        log_event(logger, "store_put", uuid=record.uuid, status=record.status.value)

    def mark(
        self,
        uuid: str,
        *,
        status: Status | None = None,
        reconciled_at: dt.datetime | None = None,
        comment_id: int | None = None,
    ) -> bool:
        """Update bookkeeping attributes only; `entry` and identity are untouched.

        A stored terminal status is never overwritten: when `status` is given
        and the record already holds success/failure, nothing is written and
        False is returned.
        """
        names: dict[str, str] = {"#u": "uuid"}
        values: dict[str, Any] = {}
        sets: list[str] = []
        for attr, value in (
            ("status", status.value if status is not None else None),
            ("reconciled_at", reconciled_at.isoformat() if reconciled_at is not None else None),
            ("comment_id", comment_id),
        ):
            if value is None:
                continue
            names[f"#{attr}"] = attr
            values[f":{attr}"] = _SER.serialize(value)
            sets.append(f"#{attr} = :{attr}")
        if not sets:
            return True
        condition = "attribute_exists(#u)"
        if status is not None:
            condition += " AND (attribute_not_exists(#status) OR #status = :undone)"
            values[":undone"] = {"S": Status.undone.value}
        try:
            self._ddb().update_item(
                TableName=self.table_name,
                Key={"uuid": {"S": uuid}},
                UpdateExpression="SET " + ", ".join(sets),
                ConditionExpression=condition,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            if aws.error_code(e) != "ConditionalCheckFailedException":
                raise StoreError(f"update_item failed: {aws.error_code(e)}") from e
            if status is not None and self._exists(uuid):
                log_event(logger, "store_mark_terminal_kept", uuid=uuid, status=status.value)
                return False
            raise EntryNotFoundError(uuid) from e
        log_event(logger, "store_marked", uuid=uuid, status=status.value if status else None)
        return True

    def _exists(self, uuid: str) -> bool:
        try:
            r = self._ddb().get_item(
                TableName=self.table_name,
                Key={"uuid": {"S": uuid}},
                ConsistentRead=True,
                ProjectionExpression="#u",
                ExpressionAttributeNames={"#u": "uuid"},
            )
        except ClientError as e:
            raise StoreError(f"get_item failed: {aws.error_code(e)}") from e
        return bool(r.get("Item"))

    def append_output(self, uuid: str, key: str, value: dict[str, Any]) -> bool:
        """Set entry.<key> only if absent. False when the condition failed."""
        try:
            self._ddb().update_item(
                TableName=self.table_name,
                Key={"uuid": {"S": uuid}},
                UpdateExpression="SET #e.#k = :v",
                ConditionExpression="attribute_exists(#u) AND attribute_not_exists(#e.#k)",
                ExpressionAttributeNames={"#e": "entry", "#k": key, "#u": "uuid"},
                ExpressionAttributeValues={":v": _SER.serialize(_dynamo(value))},
            )
        except ClientError as e:
            if aws.error_code(e) == "ConditionalCheckFailedException":
                return False
            raise StoreError(f"update_item failed: {aws.error_code(e)}") from e
        log_event(logger, "store_output_appended", uuid=uuid, key=key)
        return True

    def list_undone(self) -> list[str]:
        """uuids of records whose last rendered status is still undone."""
        ddb = self._ddb()
        params: dict[str, Any] = {
            "TableName": self.table_name,
            "FilterExpression": "#s = :u",
            "ProjectionExpression": "#id",
            "ExpressionAttributeNames": {"#s": "status", "#id": "uuid"},
            "ExpressionAttributeValues": {":u": {"S": Status.undone.value}},
        }
        out: list[str] = []
        while True:
            try:
                r = ddb.scan(**params)
            except ClientError as e:
                raise StoreError(f"scan failed: {aws.error_code(e)}") from e
            out.extend(it["uuid"]["S"] for it in r.get("Items") or [])
            last = r.get("LastEvaluatedKey")
            if not last:
                return out
            params["ExclusiveStartKey"] = last
