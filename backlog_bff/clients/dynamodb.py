"""
DynamoDB-backed token and favorite storage.

Two independent tables are used: one keyed by ``userId`` holding the latest
token, and one keyed by a generated favorite ``id`` with a global secondary
index on ``userId``. Each favorite also has a guard item that makes the
(user, item) pair unique.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from backlog_bff.clients.stores import DuplicateFavoriteError, TokenCipher
from backlog_bff.clients.token_records import token_from_record, token_to_record
from backlog_bff.core.config import StorageSettings
from backlog_bff.models.favorite import Favorite
from backlog_bff.models.oauth import AuthToken

logger = logging.getLogger(__name__)

USER_ID_INDEX = "UserID-index"

_serializer = TypeSerializer()


def _guard_key(user_id: str, item_id: str) -> str:
    return f"fav#{user_id}#{item_id}"


def _serialize(item: Dict[str, Any]) -> Dict[str, Any]:
    """Low-level attribute map for client calls such as ``transact_write_items``."""
    return {name: _serializer.serialize(value) for name, value in item.items()}


def create_resource(settings: StorageSettings) -> Any:
    """Build a DynamoDB service resource from storage settings."""
    kwargs: Dict[str, Any] = {"region_name": settings.dynamodb_region}
    if settings.dynamodb_endpoint_url:
        kwargs["endpoint_url"] = settings.dynamodb_endpoint_url
    return boto3.resource("dynamodb", **kwargs)


def ensure_tables(resource: Any, settings: StorageSettings) -> None:
    """Create the token and favorite tables when they do not exist yet."""
    client = resource.meta.client
    existing = set(client.list_tables().get("TableNames", []))

    if settings.tokens_table_name in existing:
        logger.info("Table %s already exists", settings.tokens_table_name)
    else:
        client.create_table(
            TableName=settings.tokens_table_name,
            AttributeDefinitions=[{"AttributeName": "userId", "AttributeType": "S"}],
            KeySchema=[{"AttributeName": "userId", "KeyType": "HASH"}],
            BillingMode="PAY_PER_REQUEST",
        )
        client.get_waiter("table_exists").wait(TableName=settings.tokens_table_name)
        logger.info("Created table %s", settings.tokens_table_name)

    if settings.favorites_table_name in existing:
        logger.info("Table %s already exists", settings.favorites_table_name)
    else:
        client.create_table(
            TableName=settings.favorites_table_name,
            AttributeDefinitions=[
                {"AttributeName": "id", "AttributeType": "S"},
                {"AttributeName": "userId", "AttributeType": "S"},
            ],
            KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": USER_ID_INDEX,
                    "KeySchema": [{"AttributeName": "userId", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        client.get_waiter("table_exists").wait(TableName=settings.favorites_table_name)
        logger.info("Created table %s", settings.favorites_table_name)


class DynamoDBTokenStore:
    """Latest token per user, with access and refresh tokens encrypted."""

    def __init__(
        self,
        settings: StorageSettings,
        *,
        cipher: TokenCipher,
        resource: Optional[Any] = None,
    ) -> None:
        self._resource = resource or create_resource(settings)
        self._table = self._resource.Table(settings.tokens_table_name)
        self._cipher = cipher

    def save(self, token: AuthToken) -> None:
        if not token.user_id:
            raise ValueError("Token must be bound to a user before it is stored")
        self._table.put_item(Item=token_to_record(token, self._cipher))

    def find(self, user_id: str) -> AuthToken | None:
        response = self._table.get_item(Key={"userId": user_id})
        record = response.get("Item")
        if not record:
            return None
        return token_from_record(record, self._cipher)

    def delete(self, user_id: str) -> None:
        self._table.delete_item(Key={"userId": user_id})


class DynamoDBFavoriteStore:
    """Favorites table queried through the ``UserID-index`` GSI.

    GSI reads are eventually consistent, so uniqueness is not decided there.
    Every favorite is written together with a guard item keyed
    ``fav#<userId>#<itemId>`` in one transaction; the guard is read with a
    consistent ``get_item``. Guard items carry no ``userId`` and so never
    appear in the index.
    """

    def __init__(self, settings: StorageSettings, *, resource: Optional[Any] = None) -> None:
        self._resource = resource or create_resource(settings)
        self._table_name = settings.favorites_table_name
        self._table = self._resource.Table(self._table_name)
        self._client = self._resource.meta.client

    def find_by_user(self, user_id: str) -> list[Favorite]:
        return [self._to_favorite(item) for item in self._query(user_id)]

    def exists(self, user_id: str, item_id: str) -> bool:
        return self._get_guard(user_id, item_id) is not None

    def save(self, favorite: Favorite) -> None:
        guard = {
            "id": _guard_key(favorite.user_id, favorite.item_id),
            "favoriteId": favorite.id,
        }
        record = {
            "id": favorite.id,
            "userId": favorite.user_id,
            "itemId": favorite.item_id,
            "createdAt": favorite.created_at.isoformat(),
        }
        try:
            self._client.transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self._table_name,
                            "Item": _serialize(guard),
                            "ConditionExpression": "attribute_not_exists(#id)",
                            "ExpressionAttributeNames": {"#id": "id"},
                        }
                    },
                    {"Put": {"TableName": self._table_name, "Item": _serialize(record)}},
                ]
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "TransactionCanceledException":
                raise DuplicateFavoriteError(
                    f"Item {favorite.item_id} is already a favorite of user {favorite.user_id}."
                ) from exc
            raise

    def delete(self, user_id: str, item_id: str) -> None:
        guard = self._get_guard(user_id, item_id)
        if guard is None:
            return
        self._client.transact_write_items(
            TransactItems=[
                {
                    "Delete": {
                        "TableName": self._table_name,
                        "Key": _serialize({"id": guard["favoriteId"]}),
                    }
                },
                {
                    "Delete": {
                        "TableName": self._table_name,
                        "Key": _serialize({"id": guard["id"]}),
                    }
                },
            ]
        )

    def _get_guard(self, user_id: str, item_id: str) -> Dict[str, Any] | None:
        response = self._table.get_item(
            Key={"id": _guard_key(user_id, item_id)}, ConsistentRead=True
        )
        return response.get("Item")

    def _query(self, user_id: str) -> Iterator[Dict[str, Any]]:
        """Yield raw items for a user across every result page."""
        kwargs: Dict[str, Any] = {
            "IndexName": USER_ID_INDEX,
            "KeyConditionExpression": Key("userId").eq(user_id),
        }
        while True:
            response = self._table.query(**kwargs)
            yield from response.get("Items", [])
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return
            kwargs["ExclusiveStartKey"] = last_key

    @staticmethod
    def _to_favorite(item: Dict[str, Any]) -> Favorite:
        created_at = datetime.fromisoformat(item["createdAt"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Favorite(
            id=item["id"],
            user_id=item["userId"],
            item_id=item["itemId"],
            created_at=created_at,
        )


__all__ = [
    "DynamoDBFavoriteStore",
    "DynamoDBTokenStore",
    "USER_ID_INDEX",
    "create_resource",
    "ensure_tables",
]
