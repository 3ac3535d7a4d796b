"""Shared fixtures for fhir_subscription_stream unit tests."""

from typing import Any, Mapping, Optional

import pytest
from fhir_subscription_stream.search.registry import SearchParametersRegistry


class MockMetrics:
    """Mock metrics recorder for testing."""

    def __init__(self) -> None:
        self.counts: list[tuple[str, int, Optional[Mapping[str, str]]]] = []

    def count(
        self,
        name: str,
        value: int,
        dimensions: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.counts.append((name, value, dimensions))

    def total(self, name: str) -> int:
        return sum(value for n, value, _ in self.counts if n == name)


@pytest.fixture
def mock_metrics() -> MockMetrics:
    """Provide a MockMetrics instance for testing."""
    return MockMetrics()


@pytest.fixture
def registry() -> SearchParametersRegistry:
    """Search parameter registry with the built-in definitions."""
    return SearchParametersRegistry("4.0.1")


def make_subscription_record(
    subscription_id: str = "sub-1",
    criteria: str = "Observation?code=http://example.org|active",
    tenant_id: Optional[str] = "tenant-1",
    channel_type: str = "rest-hook",
    **overrides: Any,
) -> dict[str, Any]:
    """Raw Subscription resource as returned by the store."""
    record: dict[str, Any] = {
        "resourceType": "Subscription",
        "id": subscription_id,
        "status": "active",
        "criteria": criteria,
        "reason": "test",
        "channel": {
            "type": channel_type,
            "endpoint": "https://subscriber.example.com/hook",
            "payload": "application/fhir+json",
            "header": ["Authorization: Bearer token"],
        },
        "_subscriptionStatus": "active",
    }
    if tenant_id is not None:
        record["_tenantId"] = tenant_id
    record.update(overrides)
    return record


def make_stream_record(
    event_name: str = "INSERT",
    new_image: Optional[dict[str, Any]] = None,
    event_id: str = "event-1",
) -> dict[str, Any]:
    """DynamoDB stream record with a DynamoDB JSON NewImage."""
    dynamodb: dict[str, Any] = {
        "Keys": {"id": {"S": "obs-1"}, "vid": {"N": "1"}},
        "StreamViewType": "NEW_AND_OLD_IMAGES",
    }
    if new_image is not None:
        dynamodb["NewImage"] = new_image
    return {
        "eventID": event_id,
        "eventName": event_name,
        "eventSource": "aws:dynamodb",
        "awsRegion": "us-west-2",
        "dynamodb": dynamodb,
    }


def observation_image(
    resource_id: str = "obs-1",
    tenant_id: Optional[str] = "tenant-1",
    system: str = "http://example.org",
    code: str = "active",
) -> dict[str, Any]:
    """Observation NewImage in DynamoDB JSON."""
    image: dict[str, Any] = {
        "resourceType": {"S": "Observation"},
        "id": {"S": resource_id},
        "vid": {"N": "1"},
        "status": {"S": "final"},
        "documentStatus": {"S": "AVAILABLE"},
        "code": {
            "M": {
                "coding": {
                    "L": [
                        {
                            "M": {
                                "system": {"S": system},
                                "code": {"S": code},
                            }
                        }
                    ]
                }
            }
        },
    }
    if tenant_id is not None:
        image["_tenantId"] = {"S": tenant_id}
    return image


__all__ = [
    "MockMetrics",
    "make_stream_record",
    "make_subscription_record",
    "mock_metrics",
    "observation_image",
    "registry",
]
