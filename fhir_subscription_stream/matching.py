"""
Matching of changed resources against active Subscriptions.
"""

from typing import Any, Mapping, Sequence

from fhir_subscription_stream.models import (
    ChangeRecord,
    Notification,
    Subscription,
)


def _public_fields(resource: Mapping[str, Any]) -> dict[str, Any]:
    # Underscore-prefixed attributes are storage bookkeeping, not FHIR.
    return {k: v for k, v in resource.items() if not k.startswith("_")}


def matches(subscription: Subscription, record: ChangeRecord) -> bool:
    """Whether a changed resource satisfies a Subscription."""
    return (
        subscription.tenant_id == record.tenant_id
        and subscription.criteria.evaluate(record.resource)
    )


def build_notification(
    subscription: Subscription, record: ChangeRecord
) -> Notification:
    """Build the notification for a matching pair."""
    return Notification(
        subscription_id=subscription.id,
        tenant_id=subscription.tenant_id,
        matched_resource=_public_fields(record.resource),
        channel_type=subscription.channel_type,
        channel_endpoint=subscription.channel_endpoint,
        channel_header=subscription.channel_header,
        channel_payload=subscription.channel_payload,
    )


def match_subscriptions(
    records: Sequence[ChangeRecord],
    subscriptions: Sequence[Subscription],
) -> list[Notification]:
    """
    Return one notification per matching (subscription, record) pair.

    Neither argument is modified, so the same inputs always give the same
    notifications.
    """
    return [
        build_notification(subscription, record)
        for subscription in subscriptions
        for record in records
        if matches(subscription, record)
    ]


__all__ = ["build_notification", "match_subscriptions", "matches"]
