"""Unit tests for matcher configuration."""

import pytest
from pytest_mock import MockerFixture
from fhir_subscription_stream.config import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_POOL_CONNECTIONS,
    DEFAULT_REGION,
    EndpointMode,
    MatcherConfig,
    TransportConfig,
    build_sns_client,
)
from fhir_subscription_stream.subscriptions.parser import (
    InvalidSubscriptionPolicy,
)

TOPIC_ARN = "arn:aws:sns:us-west-2:123456789012:subscriptions"

BASE_ENV = {
    "SUBSCRIPTIONS_TOPIC_ARN": TOPIC_ARN,
    "RESOURCE_TABLE": "resource-db-dev",
}


@pytest.mark.unit
def test_from_env_defaults() -> None:
    config = MatcherConfig.from_env(dict(BASE_ENV))

    assert config.topic_arn == TOPIC_ARN
    assert config.table_name == "resource-db-dev"
    assert config.region == DEFAULT_REGION
    assert config.fhir_version == "4.0.1"
    assert config.refresh_interval_ms == 60_000
    assert config.use_keyword_sub_fields is True
    assert config.invalid_subscription_policy is InvalidSubscriptionPolicy.SKIP
    assert config.transport == TransportConfig()
    assert config.transport.endpoint_url is None


@pytest.mark.unit
def test_from_env_overrides() -> None:
    env = {
        **BASE_ENV,
        "AWS_REGION": "us-east-1",
        "FHIR_VERSION": "3.0.1",
        "SUBSCRIPTION_CACHE_REFRESH_MS": "5000",
        "USE_KEYWORD_SUB_FIELDS": "false",
        "INVALID_SUBSCRIPTION_POLICY": "ABORT",
        "TRANSPORT_MODE": "Offline",
        "TRANSPORT_ENDPOINT": "http://localhost:4566",
        "TRANSPORT_MAX_POOL_CONNECTIONS": "20",
        "TRANSPORT_MAX_ATTEMPTS": "4",
    }

    config = MatcherConfig.from_env(env)

    assert config.region == "us-east-1"
    assert config.fhir_version == "3.0.1"
    assert config.refresh_interval_ms == 5000
    assert config.use_keyword_sub_fields is False
    assert (
        config.invalid_subscription_policy is InvalidSubscriptionPolicy.ABORT
    )
    assert config.transport.mode is EndpointMode.OFFLINE
    assert config.transport.endpoint_url == "http://localhost:4566"
    assert config.transport.max_pool_connections == 20
    assert config.transport.max_attempts == 4


@pytest.mark.unit
@pytest.mark.parametrize(
    "missing", ["SUBSCRIPTIONS_TOPIC_ARN", "RESOURCE_TABLE"]
)
def test_from_env_requires_topic_and_table(missing: str) -> None:
    env = dict(BASE_ENV)
    del env[missing]

    with pytest.raises(ValueError, match="must be set"):
        MatcherConfig.from_env(env)


@pytest.mark.unit
def test_unknown_policy_is_rejected() -> None:
    with pytest.raises(ValueError):
        MatcherConfig.from_env(
            {**BASE_ENV, "INVALID_SUBSCRIPTION_POLICY": "ignore"}
        )


@pytest.mark.unit
def test_offline_mode_requires_endpoint() -> None:
    with pytest.raises(ValueError, match="endpoint"):
        TransportConfig(mode=EndpointMode.OFFLINE)


@pytest.mark.unit
def test_production_mode_ignores_endpoint() -> None:
    transport = TransportConfig(endpoint="http://localhost:4566")
    assert transport.endpoint_url is None


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs", [{"max_pool_connections": 0}, {"max_attempts": 0}]
)
def test_transport_limits_must_be_positive(kwargs: dict[str, int]) -> None:
    with pytest.raises(ValueError):
        TransportConfig(**kwargs)  # type: ignore[arg-type]


@pytest.mark.unit
def test_build_sns_client_applies_transport_settings(
    mocker: MockerFixture,
) -> None:
    transport = TransportConfig(
        mode=EndpointMode.OFFLINE,
        endpoint="http://localhost:4566",
        max_pool_connections=25,
        max_attempts=3,
    )

    client = mocker.patch("fhir_subscription_stream.config.boto3.client")
    build_sns_client(transport, "us-east-1")

    args, kwargs = client.call_args
    assert args == ("sns",)
    assert kwargs["region_name"] == "us-east-1"
    assert kwargs["endpoint_url"] == "http://localhost:4566"
    boto_config = kwargs["config"]
    assert boto_config.max_pool_connections == 25
    assert boto_config.retries == {"max_attempts": 3, "mode": "standard"}


@pytest.mark.unit
def test_build_sns_client_defaults(mocker: MockerFixture) -> None:
    client = mocker.patch("fhir_subscription_stream.config.boto3.client")
    build_sns_client(TransportConfig(), DEFAULT_REGION)

    kwargs = client.call_args.kwargs
    assert kwargs["endpoint_url"] is None
    assert kwargs["config"].max_pool_connections == (
        DEFAULT_MAX_POOL_CONNECTIONS
    )
    assert kwargs["config"].retries["max_attempts"] == DEFAULT_MAX_ATTEMPTS
