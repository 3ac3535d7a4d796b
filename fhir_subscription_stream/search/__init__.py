"""Search criteria compilation for token search parameters."""

from fhir_subscription_stream.search.criteria import (
    compile_criteria,
    parse_criteria,
)
from fhir_subscription_stream.search.registry import (
    SearchParameterMetadata,
    SearchParametersRegistry,
)
from fhir_subscription_stream.search.token_query import (
    FIELDS_WITHOUT_KEYWORD,
    SUPPORTED_TOKEN_MODIFIERS,
    TOKEN_CODE_OVERRIDES,
    compile_token_query,
    parse_token_search_value,
)

__all__ = [
    "FIELDS_WITHOUT_KEYWORD",
    "SUPPORTED_TOKEN_MODIFIERS",
    "SearchParameterMetadata",
    "SearchParametersRegistry",
    "TOKEN_CODE_OVERRIDES",
    "compile_criteria",
    "compile_token_query",
    "parse_criteria",
    "parse_token_search_value",
]
