"""
FHIR Subscription matching for DynamoDB resource streams.

This package owns change record parsing, criteria compilation, the active
subscriptions cache, in-memory matching and SNS notification publishing so
the stream Lambda can stay minimal.
"""

__version__ = "0.1.0"

from fhir_subscription_stream.cache import CachedAsyncValue, CacheState
from fhir_subscription_stream.config import (
    EndpointMode,
    MatcherConfig,
    TransportConfig,
    build_sns_client,
)
from fhir_subscription_stream.errors import (
    BatchDispatchError,
    CacheLoadError,
    DispatchError,
    InvalidSearchParameterError,
    SubscriptionParseError,
    SubscriptionStreamError,
)
from fhir_subscription_stream.matcher import StreamSubscriptionMatcher
from fhir_subscription_stream.matching import (
    build_notification,
    match_subscriptions,
)
from fhir_subscription_stream.models import (
    BatchResult,
    ChangeRecord,
    CompiledSearchParam,
    DispatchResult,
    EventType,
    MatchResult,
    Notification,
    SearchParamType,
    Subscription,
    TokenSearchValue,
)
from fhir_subscription_stream.parsing import filter_eligible_records
from fhir_subscription_stream.predicates import (
    AllOf,
    AnyOf,
    MultiMatch,
    MustNotExist,
    PredicateExpression,
    Term,
)
from fhir_subscription_stream.search import (
    SearchParametersRegistry,
    compile_criteria,
    compile_token_query,
    parse_token_search_value,
)
from fhir_subscription_stream.sns_publisher import (
    SNS_MAX_BATCH_SIZE,
    NotificationDispatcher,
)
from fhir_subscription_stream.subscriptions import (
    DynamoSubscriptionStore,
    InvalidSubscriptionPolicy,
    parse_subscription,
    parse_subscriptions,
)

__all__ = [
    "__version__",
    "AllOf",
    "AnyOf",
    "BatchDispatchError",
    "BatchResult",
    "CacheLoadError",
    "CacheState",
    "CachedAsyncValue",
    "ChangeRecord",
    "CompiledSearchParam",
    "DispatchError",
    "DispatchResult",
    "DynamoSubscriptionStore",
    "EndpointMode",
    "EventType",
    "InvalidSearchParameterError",
    "InvalidSubscriptionPolicy",
    "MatchResult",
    "MatcherConfig",
    "MultiMatch",
    "MustNotExist",
    "Notification",
    "NotificationDispatcher",
    "PredicateExpression",
    "SNS_MAX_BATCH_SIZE",
    "SearchParamType",
    "SearchParametersRegistry",
    "StreamSubscriptionMatcher",
    "Subscription",
    "SubscriptionParseError",
    "SubscriptionStreamError",
    "Term",
    "TokenSearchValue",
    "TransportConfig",
    "build_notification",
    "build_sns_client",
    "compile_criteria",
    "compile_token_query",
    "filter_eligible_records",
    "match_subscriptions",
    "parse_subscription",
    "parse_subscriptions",
    "parse_token_search_value",
]
