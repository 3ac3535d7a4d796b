"""
Configuration for the subscription matcher.

Everything is passed in at construction time. `MatcherConfig.from_env` is
the only place that reads the environment and is meant for the Lambda
entrypoint.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config

from fhir_subscription_stream.cache import DEFAULT_REFRESH_INTERVAL_MS
from fhir_subscription_stream.subscriptions.parser import (
    InvalidSubscriptionPolicy,
)

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-west-2"
DEFAULT_MAX_POOL_CONNECTIONS = 150
DEFAULT_MAX_ATTEMPTS = 2


class EndpointMode(str, Enum):
    """Where transport clients send requests."""

    PRODUCTION = "production"
    OFFLINE = "offline"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class TransportConfig:
    """Settings handed to the SNS client.

    Attributes:
        mode: PRODUCTION uses the regional AWS endpoint, OFFLINE uses
            `endpoint` (e.g. a LocalStack URL)
        endpoint: Endpoint URL, required in OFFLINE mode
        max_pool_connections: Connection pool size of the client
        max_attempts: Total attempts per request, including the first
    """

    mode: EndpointMode = EndpointMode.PRODUCTION
    endpoint: Optional[str] = None
    max_pool_connections: int = DEFAULT_MAX_POOL_CONNECTIONS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.mode is EndpointMode.OFFLINE and not self.endpoint:
            raise ValueError("endpoint is required in offline mode")
        if self.max_pool_connections < 1:
            raise ValueError("max_pool_connections must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be positive")

    @property
    def endpoint_url(self) -> Optional[str]:
        """Endpoint override for boto3, None for the default endpoint."""
        if self.mode is EndpointMode.OFFLINE:
            return self.endpoint
        return None

    @classmethod
    def from_env(
        cls, env: Optional[Dict[str, str]] = None
    ) -> "TransportConfig":
        """Create TransportConfig from environment variables.

        Args:
            env: Optional dict of environment variables (uses os.environ if
                None)
        """
        env = env if env is not None else dict(os.environ)
        return cls(
            mode=EndpointMode(
                env.get(
                    "TRANSPORT_MODE", EndpointMode.PRODUCTION.value
                ).lower()
            ),
            endpoint=env.get("TRANSPORT_ENDPOINT") or None,
            max_pool_connections=int(
                env.get(
                    "TRANSPORT_MAX_POOL_CONNECTIONS",
                    DEFAULT_MAX_POOL_CONNECTIONS,
                )
            ),
            max_attempts=int(
                env.get("TRANSPORT_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)
            ),
        )


@dataclass(frozen=True)
class MatcherConfig:  # pylint: disable=too-many-instance-attributes
    """Settings for a StreamSubscriptionMatcher.

    Attributes:
        topic_arn: SNS topic notifications are published to
        table_name: Resource table holding the Subscription resources
        region: AWS region of the table and topic
        fhir_version: FHIR version used to interpret search parameters
        refresh_interval_ms: Age after which active subscriptions reload
        use_keyword_sub_fields: Compile criteria against keyword sub-fields
        invalid_subscription_policy: Skip or abort on a bad Subscription
        transport: SNS client settings
    """

    topic_arn: str
    table_name: str
    region: str = DEFAULT_REGION
    fhir_version: str = "4.0.1"
    refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS
    use_keyword_sub_fields: bool = True
    invalid_subscription_policy: InvalidSubscriptionPolicy = (
        InvalidSubscriptionPolicy.SKIP
    )
    transport: TransportConfig = field(default_factory=TransportConfig)

    def __post_init__(self) -> None:
        if not self.topic_arn:
            raise ValueError("topic_arn is required")
        if not self.table_name:
            raise ValueError("table_name is required")

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "MatcherConfig":
        """Create MatcherConfig from environment variables.

        Raises:
            ValueError: If a required variable is missing or a value is
                invalid
        """
        env = env if env is not None else dict(os.environ)

        topic_arn = env.get("SUBSCRIPTIONS_TOPIC_ARN", "").strip()
        table_name = env.get("RESOURCE_TABLE", "").strip()
        if not topic_arn or not table_name:
            logger.error(
                "Missing matcher configuration",
                extra={
                    "has_topic_arn": bool(topic_arn),
                    "has_table_name": bool(table_name),
                },
            )
            raise ValueError(
                "SUBSCRIPTIONS_TOPIC_ARN and RESOURCE_TABLE must be set"
            )

        return cls(
            topic_arn=topic_arn,
            table_name=table_name,
            region=env.get("AWS_REGION") or DEFAULT_REGION,
            fhir_version=env.get("FHIR_VERSION") or "4.0.1",
            refresh_interval_ms=int(
                env.get(
                    "SUBSCRIPTION_CACHE_REFRESH_MS",
                    DEFAULT_REFRESH_INTERVAL_MS,
                )
            ),
            use_keyword_sub_fields=_parse_bool(
                env.get("USE_KEYWORD_SUB_FIELDS", "true")
            ),
            invalid_subscription_policy=InvalidSubscriptionPolicy(
                env.get(
                    "INVALID_SUBSCRIPTION_POLICY",
                    InvalidSubscriptionPolicy.SKIP.value,
                ).lower()
            ),
            transport=TransportConfig.from_env(env),
        )


def build_sns_client(transport: TransportConfig, region: str) -> Any:
    """Create an SNS client with the transport's pool and retry limits."""
    return boto3.client(
        "sns",
        region_name=region,
        endpoint_url=transport.endpoint_url,
        config=Config(
            max_pool_connections=transport.max_pool_connections,
            retries={
                "max_attempts": transport.max_attempts,
                "mode": "standard",
            },
        ),
    )


__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_MAX_POOL_CONNECTIONS",
    "DEFAULT_REGION",
    "EndpointMode",
    "MatcherConfig",
    "TransportConfig",
    "build_sns_client",
]
