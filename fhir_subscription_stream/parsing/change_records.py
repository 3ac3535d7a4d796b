"""
Change record parsing for DynamoDB stream records.

Reduces a raw stream batch to the created or updated FHIR resources that can
trigger Subscription notifications.
"""

import logging
from typing import Any, Iterable, Mapping, Optional

from boto3.dynamodb.types import TypeDeserializer

from fhir_subscription_stream.models import ChangeRecord, EventType
from fhir_subscription_stream.stream_types import (
    DynamoDBItem,
    DynamoDBStreamRecord,
    MetricsRecorder,
)

logger = logging.getLogger(__name__)

ELIGIBLE_EVENT_TYPES = frozenset({EventType.INSERT, EventType.MODIFY})

TENANT_ID_FIELD = "_tenantId"

# Type deserializer for converting DynamoDB JSON format to Python types
_deserializer = TypeDeserializer()


def unmarshall_image(image: DynamoDBItem) -> dict[str, Any]:
    """Convert a stream image from DynamoDB JSON to Python types."""
    return {k: _deserializer.deserialize(v) for k, v in image.items()}


def is_resource_shaped(item: Mapping[str, Any]) -> bool:
    """Whether an item carries a resource type and a logical id."""
    return bool(item.get("resourceType")) and bool(item.get("id"))


def parse_change_record(
    record: DynamoDBStreamRecord, metrics: Optional[MetricsRecorder] = None
) -> Optional[ChangeRecord]:
    """
    Parse a stream record into a ChangeRecord.

    Returns None for REMOVE events, records without a NewImage and images that
    are not resource shaped.
    """
    try:
        event_type = EventType(record.get("eventName"))
    except ValueError:
        logger.warning(
            "Unknown stream event name",
            extra={"event_name": record.get("eventName")},
        )
        return None

    if event_type not in ELIGIBLE_EVENT_TYPES:
        return None

    new_image = (record.get("dynamodb") or {}).get("NewImage")
    if not new_image:
        return None

    try:
        resource = unmarshall_image(new_image)
    except (TypeError, ValueError, AttributeError, ArithmeticError):
        logger.exception(
            "Failed to unmarshall stream image",
            extra={
                "event_id": record.get("eventID"),
                "available_fields": list(new_image.keys()),
            },
        )
        if metrics:
            metrics.count("ChangeRecordParseError", 1)
        return None

    if not is_resource_shaped(resource):
        return None

    tenant_id = resource.get(TENANT_ID_FIELD)
    return ChangeRecord(
        event_type=event_type,
        tenant_id=str(tenant_id) if tenant_id is not None else None,
        resource=resource,
        event_id=record.get("eventID"),
    )


def filter_eligible_records(
    records: Iterable[DynamoDBStreamRecord],
    metrics: Optional[MetricsRecorder] = None,
) -> list[ChangeRecord]:
    """
    Keep the created and updated resources of a stream batch, in order.
    """
    eligible: list[ChangeRecord] = []
    received = 0
    for record in records:
        received += 1
        change = parse_change_record(record, metrics)
        if change is not None:
            eligible.append(change)

    if metrics:
        metrics.count("StreamRecordsReceived", received)
        metrics.count("EligibleChangeRecords", len(eligible))

    return eligible


__all__ = [
    "ELIGIBLE_EVENT_TYPES",
    "TENANT_ID_FIELD",
    "filter_eligible_records",
    "is_resource_shaped",
    "parse_change_record",
    "unmarshall_image",
]
