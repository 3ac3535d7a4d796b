"""
SNS publishing utilities for subscription notifications.
"""

# pylint: disable=broad-exception-caught

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Optional, Sequence

from fhir_subscription_stream.errors import DispatchError
from fhir_subscription_stream.models import (
    BatchResult,
    DispatchResult,
    Notification,
)
from fhir_subscription_stream.stream_types import (
    MetricsRecorder,
    PublishBatchEntry,
)

logger = logging.getLogger(__name__)

# PublishBatch accepts at most 10 entries per request.
SNS_MAX_BATCH_SIZE = 10

DEFAULT_MAX_WORKERS = 150


def chunk_notifications(
    notifications: Sequence[Notification], size: int = SNS_MAX_BATCH_SIZE
) -> list[list[Notification]]:
    """Split notifications into consecutive batches of at most `size`."""
    if size < 1 or size > SNS_MAX_BATCH_SIZE:
        raise ValueError(f"size must be between 1 and {SNS_MAX_BATCH_SIZE}")
    return [
        list(notifications[i : i + size])
        for i in range(0, len(notifications), size)
    ]


def build_batch_entries(
    batch: Sequence[Notification],
) -> list[PublishBatchEntry]:
    """Build PublishBatch entries; ids are unique within the batch."""
    return [
        {
            "Id": uuid.uuid4().hex,
            "Message": notification.to_message(),
            "MessageAttributes": {
                "channelType": {
                    "DataType": "String",
                    "StringValue": notification.channel_type,
                },
            },
        }
        for notification in batch
    ]


class NotificationDispatcher:
    """
    Publishes notifications to an SNS topic in concurrent batches.

    Args:
        sns_client: boto3 SNS client
        max_workers: Upper bound on concurrent PublishBatch calls
        metrics: Optional metrics recorder
    """

    def __init__(
        self,
        sns_client: Any,
        max_workers: int = DEFAULT_MAX_WORKERS,
        metrics: Optional[MetricsRecorder] = None,
    ):
        self._sns = sns_client
        self.max_workers = max_workers
        self.metrics = metrics

    def publish_batch(
        self, topic_arn: str, batch_index: int, batch: Sequence[Notification]
    ) -> BatchResult:
        """
        Publish a single batch.

        Raises:
            DispatchError: If the entries cannot be built or the
                PublishBatch call fails
        """
        try:
            entries = build_batch_entries(batch)
            response = self._sns.publish_batch(
                TopicArn=topic_arn, PublishBatchRequestEntries=entries
            )
        except Exception as exc:
            raise DispatchError(
                f"Failed to publish batch {batch_index} to {topic_arn}: {exc}",
                batch_index,
            ) from exc

        failed = tuple(
            str(entry.get("Id")) for entry in response.get("Failed", [])
        )
        if failed:
            logger.warning(
                "SNS rejected entries in batch",
                extra={
                    "batch_index": batch_index,
                    "failed": len(failed),
                    "codes": [
                        entry.get("Code") for entry in response["Failed"]
                    ],
                },
            )
        return BatchResult(
            batch_index=batch_index,
            size=len(batch),
            successful=len(response.get("Successful", [])),
            failed_ids=failed,
        )

    def dispatch(
        self, notifications: Sequence[Notification], topic_arn: str
    ) -> DispatchResult:
        """
        Publish every notification, one PublishBatch call per batch.

        All batches are in flight at the same time and a failing batch does
        not stop the others. Failures are reported in the returned
        DispatchResult, never retried here.
        """
        batches = chunk_notifications(notifications)
        result = DispatchResult()
        if not batches:
            return result

        workers = min(len(batches), self.max_workers)
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="sns-publish"
        ) as executor:
            futures = {
                executor.submit(self.publish_batch, topic_arn, i, batch): (
                    i,
                    batch,
                )
                for i, batch in enumerate(batches)
            }

            for future in as_completed(futures):
                batch_index, batch = futures[future]
                try:
                    result.batches.append(future.result())
                except DispatchError as exc:
                    logger.exception(
                        "Notification batch failed",
                        extra={
                            "batch_index": batch_index,
                            "batch_size": len(batch),
                        },
                    )
                    result.batches.append(
                        BatchResult(
                            batch_index=batch_index,
                            size=len(batch),
                            error=exc,
                        )
                    )

        result.batches.sort(key=lambda b: b.batch_index)
        failed_entries = sum(
            b.size if b.error else len(b.failed_ids) for b in result.batches
        )
        logger.info(
            "Dispatched notifications",
            extra={
                "batches": len(batches),
                "sent": result.sent,
                "failed": failed_entries,
            },
        )
        if self.metrics:
            self.metrics.count("SNSMessagesSuccessful", result.sent)
            if failed_entries:
                self.metrics.count("SNSMessagesFailed", failed_entries)
        return result


__all__ = [
    "DEFAULT_MAX_WORKERS",
    "NotificationDispatcher",
    "SNS_MAX_BATCH_SIZE",
    "build_batch_entries",
    "chunk_notifications",
]
