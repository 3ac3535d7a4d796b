"""Integration tests for NotificationDispatcher against moto SNS."""

import json

import boto3
import pytest

from fhir_subscription_stream.errors import BatchDispatchError
from fhir_subscription_stream.models import Notification
from fhir_subscription_stream.sns_publisher import NotificationDispatcher

from .conftest import REGION, TopicQueue


def _notification(i: int) -> Notification:
    return Notification(
        subscription_id=f"sub-{i}",
        tenant_id=None,
        matched_resource={"resourceType": "Patient", "id": f"p-{i}"},
        channel_type="rest-hook",
        channel_endpoint="https://example.com/hook",
    )


@pytest.mark.integration
def test_dispatch_delivers_every_notification(
    topic_queue: TopicQueue,
) -> None:
    dispatcher = NotificationDispatcher(
        boto3.client("sns", region_name=REGION)
    )

    result = dispatcher.dispatch(
        [_notification(i) for i in range(23)], topic_queue.topic_arn
    )

    assert result.batch_sizes == [10, 10, 3]
    assert result.sent == 23
    result.raise_for_failures()

    envelopes = topic_queue.receive_all(23)
    bodies = [json.loads(e["Message"]) for e in envelopes]
    assert sorted(b["subscriptionId"] for b in bodies) == sorted(
        f"sub-{i}" for i in range(23)
    )
    assert {b["channelType"] for b in bodies} == {"rest-hook"}


@pytest.mark.integration
def test_dispatch_to_missing_topic_fails_every_batch(
    topic_queue: TopicQueue,
) -> None:
    dispatcher = NotificationDispatcher(
        boto3.client("sns", region_name=REGION)
    )
    missing_topic = topic_queue.topic_arn + "-missing"

    result = dispatcher.dispatch(
        [_notification(i) for i in range(12)], missing_topic
    )

    assert result.sent == 0
    assert [b.batch_index for b in result.failed_batches] == [0, 1]
    with pytest.raises(BatchDispatchError):
        result.raise_for_failures()
