"""
Subscription store backed by the DynamoDB resource table.

Active Subscriptions are found through a sparse global secondary index keyed
on ``_subscriptionStatus``; only Subscription items with status ``active``
carry that attribute.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional, Protocol

import boto3

from fhir_subscription_stream.parsing.change_records import (
    TENANT_ID_FIELD,
    unmarshall_image,
)

if TYPE_CHECKING:
    from mypy_boto3_dynamodb import DynamoDBClient

logger = logging.getLogger(__name__)

ACTIVE_SUBSCRIPTIONS_INDEX = "activeSubscriptions"
SUBSCRIPTION_STATUS_FIELD = "_subscriptionStatus"


class SubscriptionStore(Protocol):  # pylint: disable=too-few-public-methods
    """Source of raw active Subscription records."""

    def get_active_subscriptions(
        self, tenant_id: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """Return the raw active Subscription resources."""
        ...  # pylint: disable=unnecessary-ellipsis


class DynamoSubscriptionStore:
    """
    Reads active Subscriptions from the resource table.

    Args:
        table_name: Name of the resource table
        client: Low-level DynamoDB client; one is created when omitted
        region: Region used when creating the client
        index_name: Name of the active subscriptions index
    """

    def __init__(
        self,
        table_name: str,
        client: Optional["DynamoDBClient"] = None,
        region: Optional[str] = None,
        index_name: str = ACTIVE_SUBSCRIPTIONS_INDEX,
    ):
        if not table_name:
            raise ValueError("table_name is required")
        self.table_name = table_name
        self.index_name = index_name
        self._client: Any = client or boto3.client(
            "dynamodb", region_name=region
        )

    def get_active_subscriptions(
        self, tenant_id: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """
        Return every active Subscription, optionally for a single tenant.

        Raises:
            botocore.exceptions.ClientError: If the query fails
        """
        query: dict[str, Any] = {
            "TableName": self.table_name,
            "IndexName": self.index_name,
            "KeyConditionExpression": "#status = :active",
            "ExpressionAttributeNames": {
                "#status": SUBSCRIPTION_STATUS_FIELD
            },
            "ExpressionAttributeValues": {":active": {"S": "active"}},
        }
        if tenant_id is not None:
            query["FilterExpression"] = "#tenant = :tenant"
            query["ExpressionAttributeNames"]["#tenant"] = TENANT_ID_FIELD
            query["ExpressionAttributeValues"][":tenant"] = {"S": tenant_id}

        subscriptions: list[dict[str, Any]] = []
        paginator = self._client.get_paginator("query")
        for page in paginator.paginate(**query):
            subscriptions.extend(
                unmarshall_image(item) for item in page.get("Items", [])
            )

        logger.info(
            "Loaded active subscriptions",
            extra={
                "count": len(subscriptions),
                "table_name": self.table_name,
                "tenant_id": tenant_id,
            },
        )
        return subscriptions


__all__ = [
    "ACTIVE_SUBSCRIPTIONS_INDEX",
    "DynamoSubscriptionStore",
    "SUBSCRIPTION_STATUS_FIELD",
    "SubscriptionStore",
]
