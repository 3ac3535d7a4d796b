"""Subscription parsing and loading."""

from fhir_subscription_stream.subscriptions.parser import (
    InvalidSubscriptionPolicy,
    parse_subscription,
    parse_subscriptions,
)
from fhir_subscription_stream.subscriptions.store import (
    ACTIVE_SUBSCRIPTIONS_INDEX,
    DynamoSubscriptionStore,
    SubscriptionStore,
)

__all__ = [
    "ACTIVE_SUBSCRIPTIONS_INDEX",
    "DynamoSubscriptionStore",
    "InvalidSubscriptionPolicy",
    "SubscriptionStore",
    "parse_subscription",
    "parse_subscriptions",
]
