"""
Subscription criteria compilation.

Criteria are FHIR search URLs relative to the server base, e.g.
``Observation?code=http://loinc.org|1234-5&status=final``. The compiled
predicate requires the resource type, every parameter (AND) and, within a
parameter, any of its comma-separated values (OR).
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl

from fhir_subscription_stream.errors import InvalidSearchParameterError
from fhir_subscription_stream.models import SearchParamType
from fhir_subscription_stream.predicates import (
    KEYWORD_SUFFIX,
    PredicateExpression,
    Term,
    all_of,
    any_of,
)
from fhir_subscription_stream.search.registry import SearchParameterMetadata
from fhir_subscription_stream.search.token_query import (
    compile_token_query,
    parse_token_search_value,
)

# Result parameters change how results are returned, not which resources
# match, so they are ignored when matching.
IGNORED_PARAMETERS = frozenset(
    {"_count", "_sort", "_include", "_revinclude", "_format", "_elements"}
)


@dataclass(frozen=True)
class CriteriaParameter:
    """One ``name[:modifier]=value`` pair of a criteria string."""

    name: str
    value: str
    modifier: Optional[str] = None


def parse_criteria(criteria: str) -> tuple[str, list[CriteriaParameter]]:
    """
    Split a criteria string into its resource type and parameters.

    Raises:
        InvalidSearchParameterError: If no resource type is present
    """
    if not criteria or not criteria.strip():
        raise InvalidSearchParameterError("Criteria must not be empty")

    resource_type, _, query = criteria.strip().lstrip("/").partition("?")
    if not resource_type or not resource_type[0].isupper():
        raise InvalidSearchParameterError(
            f"Criteria must start with a resource type: {criteria!r}"
        )

    params: list[CriteriaParameter] = []
    for key, value in parse_qsl(query, keep_blank_values=True):
        name, _, modifier = key.partition(":")
        if name in IGNORED_PARAMETERS:
            continue
        params.append(
            CriteriaParameter(
                name=name, value=value, modifier=modifier or None
            )
        )
    return resource_type, params


def _compile_parameter(
    resource_type: str,
    param: CriteriaParameter,
    metadata: SearchParameterMetadata,
    use_keyword_sub_fields: bool,
) -> PredicateExpression:
    definition = metadata.get_search_parameter(resource_type, param.name)
    if definition is None:
        raise InvalidSearchParameterError(
            f"Invalid search parameter '{param.name}' for resource type "
            f"{resource_type}"
        )
    if definition.type != SearchParamType.TOKEN:
        raise InvalidSearchParameterError(
            f"Unsupported search parameter type '{definition.type.value}' "
            f"for '{param.name}'"
        )

    compiled_paths = definition.paths_for(resource_type)
    if not compiled_paths:
        raise InvalidSearchParameterError(
            f"Search parameter '{param.name}' has no path on {resource_type}"
        )

    value_clauses = []
    for raw_value in param.value.split(","):
        token = parse_token_search_value(raw_value)
        value_clauses.append(
            any_of(
                [
                    compile_token_query(
                        compiled, token, use_keyword_sub_fields, param.modifier
                    )
                    for compiled in compiled_paths
                ]
            )
        )
    return any_of(value_clauses)


def compile_criteria(
    criteria: str,
    metadata: SearchParameterMetadata,
    use_keyword_sub_fields: bool = True,
) -> PredicateExpression:
    """
    Compile a criteria string into a single predicate expression.

    Raises:
        InvalidSearchParameterError: If the criteria or any parameter is
            invalid or unsupported
    """
    resource_type, params = parse_criteria(criteria)
    type_field = (
        f"resourceType{KEYWORD_SUFFIX}"
        if use_keyword_sub_fields
        else "resourceType"
    )
    clauses: list[PredicateExpression] = [Term(type_field, resource_type)]
    clauses.extend(
        _compile_parameter(
            resource_type, param, metadata, use_keyword_sub_fields
        )
        for param in params
    )
    return all_of(clauses)


__all__ = [
    "CriteriaParameter",
    "IGNORED_PARAMETERS",
    "compile_criteria",
    "parse_criteria",
]
