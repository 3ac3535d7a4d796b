"""Custom exceptions for subscription stream matching."""


class SubscriptionStreamError(Exception):
    """Base exception for all fhir_subscription_stream errors."""


class InvalidSearchParameterError(SubscriptionStreamError):
    """Raised when a search parameter, value or modifier cannot be compiled."""


class SubscriptionParseError(SubscriptionStreamError):
    """
    Raised when a raw Subscription record cannot be turned into a
    Subscription.
    """

    def __init__(self, message: str, subscription_id: str | None = None):
        super().__init__(message)
        self.subscription_id = subscription_id


class CacheLoadError(SubscriptionStreamError):
    """Raised to callers blocked on a first cache load that failed."""


class DispatchError(SubscriptionStreamError):
    """Raised when a notification batch could not be published."""

    def __init__(self, message: str, batch_index: int | None = None):
        super().__init__(message)
        self.batch_index = batch_index


class BatchDispatchError(DispatchError):
    """Raised when one or more batches of a dispatch cycle failed."""

    def __init__(self, message: str, failures: list[DispatchError]):
        super().__init__(message)
        self.failures = failures


__all__ = [
    "BatchDispatchError",
    "CacheLoadError",
    "DispatchError",
    "InvalidSearchParameterError",
    "SubscriptionParseError",
    "SubscriptionStreamError",
]
