"""
Subscription record parsing.

Turns raw Subscription resources, as returned by the subscription store, into
Subscription entities with compiled criteria.
"""

import logging
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from fhir_subscription_stream.errors import (
    InvalidSearchParameterError,
    SubscriptionParseError,
)
from fhir_subscription_stream.models import Subscription
from fhir_subscription_stream.search.criteria import compile_criteria
from fhir_subscription_stream.search.registry import SearchParameterMetadata
from fhir_subscription_stream.stream_types import MetricsRecorder

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "active"


class InvalidSubscriptionPolicy(str, Enum):
    """What a refresh does when one Subscription record cannot be parsed."""

    SKIP = "skip"
    ABORT = "abort"


def _channel_header(raw: object, subscription_id: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return (raw,)
    if isinstance(raw, (list, tuple)) and all(
        isinstance(header, str) for header in raw
    ):
        return tuple(raw)
    raise SubscriptionParseError(
        "channel.header must be a list of strings", subscription_id
    )


def parse_subscription(
    record: Mapping[str, Any],
    metadata: SearchParameterMetadata,
    use_keyword_sub_fields: bool = True,
) -> Subscription:
    """
    Parse one raw Subscription resource.

    Raises:
        SubscriptionParseError: If the record is not an active Subscription or
            its criteria or channel are invalid
    """
    subscription_id = record.get("id")
    if not subscription_id:
        raise SubscriptionParseError("Subscription record has no id")
    subscription_id = str(subscription_id)

    if record.get("resourceType") != "Subscription":
        raise SubscriptionParseError(
            f"Expected a Subscription, got {record.get('resourceType')!r}",
            subscription_id,
        )
    if record.get("status") != ACTIVE_STATUS:
        raise SubscriptionParseError(
            f"Subscription/{subscription_id} is not active "
            f"(status={record.get('status')!r})",
            subscription_id,
        )

    criteria = record.get("criteria")
    if not isinstance(criteria, str) or not criteria:
        raise SubscriptionParseError(
            f"Subscription/{subscription_id} has no criteria",
            subscription_id,
        )
    try:
        compiled = compile_criteria(criteria, metadata, use_keyword_sub_fields)
    except InvalidSearchParameterError as exc:
        raise SubscriptionParseError(
            f"Subscription/{subscription_id} has invalid criteria "
            f"{criteria!r}: {exc}",
            subscription_id,
        ) from exc

    channel = record.get("channel")
    if not isinstance(channel, Mapping) or not channel.get("type"):
        raise SubscriptionParseError(
            f"Subscription/{subscription_id} has no channel type",
            subscription_id,
        )

    tenant_id = record.get("_tenantId")
    return Subscription(
        id=subscription_id,
        tenant_id=str(tenant_id) if tenant_id is not None else None,
        criteria=compiled,
        channel_type=str(channel["type"]),
        channel_endpoint=channel.get("endpoint"),
        channel_header=_channel_header(
            channel.get("header"), subscription_id
        ),
        channel_payload=channel.get("payload"),
    )


def parse_subscriptions(
    records: Iterable[Mapping[str, Any]],
    metadata: SearchParameterMetadata,
    policy: InvalidSubscriptionPolicy = InvalidSubscriptionPolicy.SKIP,
    use_keyword_sub_fields: bool = True,
    metrics: Optional[MetricsRecorder] = None,
) -> list[Subscription]:
    """
    Parse every record, applying `policy` to the ones that fail.

    Raises:
        SubscriptionParseError: On the first bad record when the policy is
            ABORT
    """
    subscriptions: list[Subscription] = []
    for record in records:
        try:
            subscriptions.append(
                parse_subscription(record, metadata, use_keyword_sub_fields)
            )
        except SubscriptionParseError as exc:
            if metrics:
                metrics.count(
                    "SubscriptionParseError", 1, {"policy": policy.value}
                )
            if policy is InvalidSubscriptionPolicy.ABORT:
                logger.error(
                    "Aborting subscription refresh on invalid record",
                    extra={"subscription_id": exc.subscription_id},
                )
                raise
            logger.exception(
                "Skipping invalid subscription",
                extra={"subscription_id": exc.subscription_id},
            )
    return subscriptions


__all__ = [
    "ACTIVE_STATUS",
    "InvalidSubscriptionPolicy",
    "parse_subscription",
    "parse_subscriptions",
]
