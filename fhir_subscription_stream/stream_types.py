"""
TypedDict definitions for DynamoDB stream events and SNS batch publishing.

Provides type-safe structures for the records consumed and the entries
produced by the matcher to reduce usage of `Any` throughout the codebase.
"""

from typing import Literal, Mapping, Protocol, TypedDict

# =============================================================================
# DynamoDB Stream Record Types
# =============================================================================

# A DynamoDB item is a mapping of attribute names to attribute values in
# DynamoDB JSON, e.g. {"id": {"S": "abc"}}.
DynamoDBItem = dict[str, dict[str, object]]

EventName = Literal["INSERT", "MODIFY", "REMOVE"]


class StreamRecordDynamoDB(TypedDict, total=False):
    """The 'dynamodb' portion of a DynamoDB stream record."""

    Keys: DynamoDBItem
    NewImage: DynamoDBItem
    OldImage: DynamoDBItem
    SequenceNumber: str
    SizeBytes: int
    StreamViewType: Literal[
        "KEYS_ONLY", "NEW_IMAGE", "OLD_IMAGE", "NEW_AND_OLD_IMAGES"
    ]
    ApproximateCreationDateTime: int


class DynamoDBStreamRecord(TypedDict, total=False):
    """A single record from a DynamoDB stream event."""

    eventID: str
    eventName: EventName
    eventVersion: str
    eventSource: Literal["aws:dynamodb"]
    awsRegion: str
    dynamodb: StreamRecordDynamoDB
    eventSourceARN: str


class DynamoDBStreamEvent(TypedDict):
    """DynamoDB stream event passed to Lambda handlers."""

    Records: list[DynamoDBStreamRecord]


# =============================================================================
# SNS Publish Types
# =============================================================================


class MessageAttributeValue(TypedDict):
    """SNS message attribute value."""

    DataType: str
    StringValue: str


class PublishBatchEntry(TypedDict):
    """One entry of an SNS PublishBatch request."""

    Id: str
    Message: str
    MessageAttributes: dict[str, MessageAttributeValue]


# =============================================================================
# Metrics Protocol
# =============================================================================


class MetricsRecorder(Protocol):  # pylint: disable=too-few-public-methods
    """Minimal protocol for metrics clients."""

    def count(
        self,
        name: str,
        value: int,
        dimensions: Mapping[str, str] | None = None,
    ) -> object:
        """Record a count metric."""
        return None


__all__ = [
    "DynamoDBItem",
    "DynamoDBStreamEvent",
    "DynamoDBStreamRecord",
    "EventName",
    "MessageAttributeValue",
    "MetricsRecorder",
    "PublishBatchEntry",
    "StreamRecordDynamoDB",
]
