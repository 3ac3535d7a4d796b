"""Shared moto fixtures for fhir_subscription_stream integration tests."""

import json
from dataclasses import dataclass
from typing import Any, Iterator

import boto3
import pytest
from moto import mock_aws

from fhir_subscription_stream.subscriptions.store import (
    ACTIVE_SUBSCRIPTIONS_INDEX,
    SUBSCRIPTION_STATUS_FIELD,
)

REGION = "us-east-1"


@dataclass
class TopicQueue:
    """An SNS topic with an SQS queue subscribed to it."""

    topic_arn: str
    queue_url: str
    sqs: Any

    def receive_all(self, expected: int) -> list[dict[str, Any]]:
        """Drain the queue, returning the decoded SNS envelopes."""
        envelopes: list[dict[str, Any]] = []
        empty_polls = 0
        while len(envelopes) < expected and empty_polls < 3:
            response = self.sqs.receive_message(
                QueueUrl=self.queue_url, MaxNumberOfMessages=10
            )
            messages = response.get("Messages", [])
            if not messages:
                empty_polls += 1
                continue
            for message in messages:
                envelopes.append(json.loads(message["Body"]))
                self.sqs.delete_message(
                    QueueUrl=self.queue_url,
                    ReceiptHandle=message["ReceiptHandle"],
                )
        return envelopes


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fake credentials so boto3 never reaches a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


@pytest.fixture
def mocked_aws(aws_credentials: None) -> Iterator[None]:
    """Run the test inside a moto mock."""
    with mock_aws():
        yield


@pytest.fixture
def resource_table(mocked_aws: None) -> str:
    """
    Creates a resource table with the sparse active subscriptions index and
    returns its name.
    """
    dynamodb = boto3.resource("dynamodb", region_name=REGION)
    table_name = "resource-db-test"
    table = dynamodb.create_table(
        TableName=table_name,
        KeySchema=[
            {"AttributeName": "id", "KeyType": "HASH"},
            {"AttributeName": "vid", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "vid", "AttributeType": "N"},
            {"AttributeName": SUBSCRIPTION_STATUS_FIELD, "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
        GlobalSecondaryIndexes=[
            {
                "IndexName": ACTIVE_SUBSCRIPTIONS_INDEX,
                "KeySchema": [
                    {
                        "AttributeName": SUBSCRIPTION_STATUS_FIELD,
                        "KeyType": "HASH",
                    },
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
    )
    table.meta.client.get_waiter("table_exists").wait(TableName=table_name)
    return table_name


@pytest.fixture
def topic_queue(mocked_aws: None) -> TopicQueue:
    """Creates a topic whose messages land in an SQS queue."""
    sns = boto3.client("sns", region_name=REGION)
    sqs = boto3.client("sqs", region_name=REGION)

    topic_arn = sns.create_topic(Name="subscription-notifications")[
        "TopicArn"
    ]
    queue_url = sqs.create_queue(QueueName="subscription-notifications")[
        "QueueUrl"
    ]
    queue_arn = sqs.get_queue_attributes(
        QueueUrl=queue_url, AttributeNames=["QueueArn"]
    )["Attributes"]["QueueArn"]
    sns.subscribe(TopicArn=topic_arn, Protocol="sqs", Endpoint=queue_arn)
    return TopicQueue(topic_arn=topic_arn, queue_url=queue_url, sqs=sqs)


def put_subscription(table_name: str, record: dict[str, Any]) -> None:
    """Store a raw Subscription resource the way the resource table does."""
    table = boto3.resource("dynamodb", region_name=REGION).Table(table_name)
    table.put_item(Item={"vid": 1, **record})


__all__ = ["REGION", "TopicQueue", "put_subscription"]
