"""
Data models for subscription stream matching.
"""

import base64
import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from boto3.dynamodb.types import Binary

from fhir_subscription_stream.errors import BatchDispatchError, DispatchError
from fhir_subscription_stream.predicates import PredicateExpression


class EventType(str, Enum):
    """DynamoDB stream event names."""

    INSERT = "INSERT"
    MODIFY = "MODIFY"
    REMOVE = "REMOVE"


class SearchParamType(str, Enum):
    """FHIR search parameter types."""

    TOKEN = "token"
    STRING = "string"
    REFERENCE = "reference"
    DATE = "date"
    NUMBER = "number"
    QUANTITY = "quantity"
    URI = "uri"
    COMPOSITE = "composite"
    SPECIAL = "special"


@dataclass(frozen=True)
class CompiledSearchParam:
    """Where a search parameter's value lives inside a resource."""

    resource_type: str
    path: str
    type: SearchParamType = SearchParamType.TOKEN


@dataclass(frozen=True)
class TokenSearchValue:
    """A token search value split into its system and code parts."""

    system: Optional[str] = None
    code: Optional[str] = None
    explicit_no_system_property: bool = False


@dataclass(frozen=True)
class ChangeRecord:
    """An eligible resource change taken from a stream record."""

    event_type: EventType
    tenant_id: Optional[str]
    resource: Mapping[str, Any]
    event_id: Optional[str] = None

    @property
    def reference(self) -> str:
        """Relative reference of the changed resource, e.g. Patient/123."""
        return f"{self.resource.get('resourceType')}/{self.resource.get('id')}"


@dataclass(frozen=True)
class Subscription:  # pylint: disable=too-many-instance-attributes
    """An active Subscription with its criteria compiled."""

    id: str
    tenant_id: Optional[str]
    criteria: PredicateExpression
    channel_type: str
    channel_endpoint: Optional[str] = None
    channel_header: tuple[str, ...] = ()
    channel_payload: Optional[str] = None


def _json_default(value: object) -> object:
    # DynamoDB numbers unmarshal to Decimal
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, Binary):
        value = value.value
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(
        f"Object of type {type(value).__name__} is not JSON serializable"
    )


@dataclass(frozen=True)
class Notification:  # pylint: disable=too-many-instance-attributes
    """A subscription match waiting to be published."""

    subscription_id: str
    tenant_id: Optional[str]
    matched_resource: Mapping[str, Any]
    channel_type: str
    channel_endpoint: Optional[str] = None
    channel_header: tuple[str, ...] = ()
    channel_payload: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        """Convert to the outbound notification wire schema."""
        return {
            "subscriptionId": self.subscription_id,
            "tenantId": self.tenant_id,
            "matchedResource": dict(self.matched_resource),
            "channelType": self.channel_type,
            "endpoint": self.channel_endpoint,
            "channelHeader": list(self.channel_header),
            "channelPayload": self.channel_payload,
        }

    def to_message(self) -> str:
        """Serialize the notification as an SNS message body."""
        return json.dumps(self.to_dict(), default=_json_default)


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one PublishBatch call."""

    batch_index: int
    size: int
    successful: int = 0
    failed_ids: tuple[str, ...] = ()
    error: Optional[DispatchError] = None

    @property
    def ok(self) -> bool:
        """Whether every entry in the batch was accepted."""
        return self.error is None and not self.failed_ids


@dataclass
class DispatchResult:
    """Outcome of a dispatch cycle across all batches."""

    batches: list[BatchResult] = field(default_factory=list)

    @property
    def sent(self) -> int:
        """Number of entries the transport accepted."""
        return sum(batch.successful for batch in self.batches)

    @property
    def failed_batches(self) -> list[BatchResult]:
        """Batches that raised or reported failed entries."""
        return [batch for batch in self.batches if not batch.ok]

    @property
    def batch_sizes(self) -> list[int]:
        """Sizes of the batches in partition order."""
        return [
            batch.size
            for batch in sorted(self.batches, key=lambda b: b.batch_index)
        ]

    def raise_for_failures(self) -> None:
        """
        Raise if any batch failed.

        Raises:
            BatchDispatchError: Listing one DispatchError per failed batch
        """
        failures: list[DispatchError] = []
        for batch in self.failed_batches:
            if batch.error is not None:
                failures.append(batch.error)
            else:
                failures.append(
                    DispatchError(
                        f"{len(batch.failed_ids)} of {batch.size} entries "
                        f"rejected in batch {batch.batch_index}",
                        batch.batch_index,
                    )
                )
        if failures:
            raise BatchDispatchError(
                f"{len(failures)} of {len(self.batches)} notification "
                "batches failed",
                failures,
            )


@dataclass(frozen=True)
class MatchResult:
    """Response structure for one match cycle."""

    status_code: int
    received_records: int
    eligible_records: int
    active_subscriptions: int
    notifications: int
    sent_notifications: int

    def to_dict(self) -> dict[str, int]:
        """Convert to AWS Lambda-compatible dictionary."""
        return {
            "statusCode": self.status_code,
            "received_records": self.received_records,
            "eligible_records": self.eligible_records,
            "active_subscriptions": self.active_subscriptions,
            "notifications": self.notifications,
            "sent_notifications": self.sent_notifications,
        }


__all__ = [
    "BatchResult",
    "ChangeRecord",
    "CompiledSearchParam",
    "DispatchResult",
    "EventType",
    "MatchResult",
    "Notification",
    "SearchParamType",
    "Subscription",
    "TokenSearchValue",
]
