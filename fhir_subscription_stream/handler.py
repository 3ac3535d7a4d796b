"""
Lambda entrypoint for the subscription matcher.

The matcher is built once per container so the active subscriptions cache
survives between invocations.
"""

import logging
from typing import Any, Dict, Optional

from fhir_subscription_stream.config import MatcherConfig
from fhir_subscription_stream.matcher import StreamSubscriptionMatcher

logger = logging.getLogger(__name__)

_matcher: Optional[StreamSubscriptionMatcher] = None


def get_matcher() -> StreamSubscriptionMatcher:
    """Return the container's matcher, building it on first use."""
    global _matcher  # pylint: disable=global-statement
    if _matcher is None:
        config = MatcherConfig.from_env()
        logger.info(
            "Subscription matcher configuration",
            extra={
                "topic_arn": config.topic_arn,
                "table_name": config.table_name,
                "region": config.region,
                "fhir_version": config.fhir_version,
                "refresh_interval_ms": config.refresh_interval_ms,
                "invalid_subscription_policy": (
                    config.invalid_subscription_policy.value
                ),
                "transport_mode": config.transport.mode.value,
            },
        )
        _matcher = StreamSubscriptionMatcher.from_config(config)
    return _matcher


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Match a DynamoDB stream batch against the active Subscriptions.

    Errors are re-raised so the stream retries the batch.

    Args:
        event: DynamoDB stream event
        context: Lambda context
    """
    if "Records" not in event:
        logger.warning(
            "Received event without Records field",
            extra={"event_keys": list(event.keys())},
        )
        return {
            "statusCode": 400,
            "error": "Invalid event structure: missing Records",
        }

    try:
        result = get_matcher().match(event)  # type: ignore[arg-type]
    except Exception:
        logger.exception(
            "Subscription matcher failed",
            extra={
                "request_id": getattr(context, "aws_request_id", None),
            },
        )
        raise

    return result.to_dict()


__all__ = ["get_matcher", "lambda_handler"]
