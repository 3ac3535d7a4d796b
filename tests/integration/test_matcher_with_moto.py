"""End-to-end tests for StreamSubscriptionMatcher against moto."""

import json

import pytest

from fhir_subscription_stream.config import MatcherConfig
from fhir_subscription_stream.matcher import StreamSubscriptionMatcher

from ..unit.conftest import (
    MockMetrics,
    make_stream_record,
    make_subscription_record,
    observation_image,
)
from .conftest import REGION, TopicQueue, put_subscription


@pytest.mark.integration
def test_stream_batch_notifies_matching_subscriptions(
    resource_table: str, topic_queue: TopicQueue
) -> None:
    put_subscription(
        resource_table,
        make_subscription_record(
            "S1",
            criteria="Observation?code=http://example.org|active",
            tenant_id="T1",
        ),
    )
    put_subscription(
        resource_table,
        make_subscription_record(
            "S2",
            criteria="Observation?code=http://example.org|inactive",
            tenant_id="T1",
        ),
    )
    put_subscription(
        resource_table,
        make_subscription_record(
            "S3", criteria="Observation", tenant_id="T2"
        ),
    )
    metrics = MockMetrics()
    matcher = StreamSubscriptionMatcher.from_config(
        MatcherConfig(
            topic_arn=topic_queue.topic_arn,
            table_name=resource_table,
            region=REGION,
        ),
        metrics=metrics,
    )

    result = matcher.match(
        {
            "Records": [
                make_stream_record(
                    "INSERT", observation_image("R1", tenant_id="T1")
                ),
                make_stream_record(
                    "REMOVE", observation_image("R2", tenant_id="T2")
                ),
            ]
        }
    )

    assert result.active_subscriptions == 3
    assert result.notifications == 1
    assert result.sent_notifications == 1

    (envelope,) = topic_queue.receive_all(1)
    body = json.loads(envelope["Message"])
    assert body["subscriptionId"] == "S1"
    assert body["tenantId"] == "T1"
    assert body["matchedResource"]["id"] == "R1"
    assert "_tenantId" not in body["matchedResource"]
    assert body["endpoint"] == "https://subscriber.example.com/hook"
    assert metrics.total("SNSMessagesSuccessful") == 1
