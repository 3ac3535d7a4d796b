"""
Stream subscription matcher.

Matches DynamoDB stream batches against the active Subscriptions and
publishes an SNS message for each match.
"""

import json
import logging
from typing import Optional

from fhir_subscription_stream.cache import CachedAsyncValue
from fhir_subscription_stream.config import MatcherConfig, build_sns_client
from fhir_subscription_stream.matching import match_subscriptions
from fhir_subscription_stream.models import MatchResult, Subscription
from fhir_subscription_stream.parsing.change_records import (
    filter_eligible_records,
)
from fhir_subscription_stream.search.registry import (
    SearchParameterMetadata,
    SearchParametersRegistry,
)
from fhir_subscription_stream.sns_publisher import NotificationDispatcher
from fhir_subscription_stream.stream_types import (
    DynamoDBStreamEvent,
    MetricsRecorder,
)
from fhir_subscription_stream.subscriptions.parser import parse_subscriptions
from fhir_subscription_stream.subscriptions.store import (
    DynamoSubscriptionStore,
    SubscriptionStore,
)

logger = logging.getLogger(__name__)


class StreamSubscriptionMatcher:
    """
    Composes the filter, the subscription cache, the match engine and the
    dispatcher.

    Args:
        store: Source of raw active Subscriptions
        config: Matcher settings
        metadata: Search parameter metadata; built from the config when
            omitted
        dispatcher: Notification dispatcher; one publishing through an SNS
            client built from the config when omitted
        metrics: Optional metrics recorder
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        store: SubscriptionStore,
        config: MatcherConfig,
        *,
        metadata: Optional[SearchParameterMetadata] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        metrics: Optional[MetricsRecorder] = None,
    ):
        self.store = store
        self.config = config
        self.metrics = metrics
        self.metadata = metadata or SearchParametersRegistry(
            config.fhir_version
        )
        self.dispatcher = dispatcher or NotificationDispatcher(
            build_sns_client(config.transport, config.region),
            max_workers=config.transport.max_pool_connections,
            metrics=metrics,
        )
        self.active_subscriptions: CachedAsyncValue[list[Subscription]] = (
            CachedAsyncValue(
                self._load_active_subscriptions,
                refresh_interval_ms=config.refresh_interval_ms,
                name="active-subscriptions",
            )
        )

    @classmethod
    def from_config(
        cls,
        config: MatcherConfig,
        metrics: Optional[MetricsRecorder] = None,
    ) -> "StreamSubscriptionMatcher":
        """Build a matcher backed by the DynamoDB resource table."""
        store = DynamoSubscriptionStore(
            config.table_name, region=config.region
        )
        return cls(store, config, metrics=metrics)

    def close(self) -> None:
        """Stop the active subscriptions cache worker."""
        self.active_subscriptions.close()

    def _load_active_subscriptions(self) -> list[Subscription]:
        logger.info("Refreshing cache of active subscriptions")
        subscriptions = parse_subscriptions(
            self.store.get_active_subscriptions(),
            self.metadata,
            policy=self.config.invalid_subscription_policy,
            use_keyword_sub_fields=self.config.use_keyword_sub_fields,
            metrics=self.metrics,
        )
        logger.info(
            "Found active subscriptions",
            extra={"count": len(subscriptions)},
        )
        return subscriptions

    def match(self, event: DynamoDBStreamEvent) -> MatchResult:
        """
        Run one match cycle for a stream batch.

        Raises:
            CacheLoadError: If the active subscriptions were never loaded
                and loading them failed
            BatchDispatchError: If any notification batch failed; the other
                batches were still published
        """
        records = event.get("Records", [])
        logger.info(
            "DynamoDB records in event", extra={"count": len(records)}
        )
        eligible = filter_eligible_records(records, self.metrics)
        logger.info(
            "FHIR resource create/update records",
            extra={"count": len(eligible)},
        )

        # One snapshot per cycle; a concurrent refresh swaps the reference.
        subscriptions = self.active_subscriptions.get()
        notifications = match_subscriptions(eligible, subscriptions)

        logger.info(
            "Summary of notifications: %s",
            json.dumps(
                [
                    {
                        "subscriptionId": f"Subscription/{n.subscription_id}",
                        "resourceId": (
                            f"{n.matched_resource.get('resourceType')}/"
                            f"{n.matched_resource.get('id')}"
                        ),
                    }
                    for n in notifications
                ]
            ),
        )
        if self.metrics:
            self.metrics.count("NotificationsMatched", len(notifications))

        result = self.dispatcher.dispatch(
            notifications, self.config.topic_arn
        )
        logger.info(
            "Notifications sent",
            extra={"count": result.sent, "batches": len(result.batches)},
        )
        result.raise_for_failures()

        return MatchResult(
            status_code=200,
            received_records=len(records),
            eligible_records=len(eligible),
            active_subscriptions=len(subscriptions),
            notifications=len(notifications),
            sent_notifications=result.sent,
        )


__all__ = ["StreamSubscriptionMatcher"]
