"""
Token search parameter compilation.

Token search parameters are used for many different field types (Coding,
CodeableConcept, Identifier, ContactPoint, code, uri, string, boolean) and the
field type is not known from the SearchParameter alone, so the compiled
predicate matches against every field variant the value could live in.
Non-existent fields are simply ignored.
See: https://www.hl7.org/fhir/search.html#token
"""

import logging
from typing import Mapping, Optional

from fhir_subscription_stream.errors import InvalidSearchParameterError
from fhir_subscription_stream.models import (
    CompiledSearchParam,
    TokenSearchValue,
)
from fhir_subscription_stream.predicates import (
    KEYWORD_SUFFIX,
    MultiMatch,
    MustNotExist,
    PredicateExpression,
    Term,
    all_of,
)

logger = logging.getLogger(__name__)

# Fields that have no keyword sub-field in the index mapping.
FIELDS_WITHOUT_KEYWORD = frozenset({"id"})

SUPPORTED_TOKEN_MODIFIERS: frozenset[str] = frozenset()

# (path, code) pairs that require literal equality instead of a multi_match,
# e.g. "order" would otherwise also match "original-order".
TOKEN_CODE_OVERRIDES: Mapping[tuple[str, str], PredicateExpression] = {
    ("intent", "order"): Term("intent", "order"),
    ("intent", "original-order"): Term("intent", "original-order"),
}


def parse_token_search_value(raw: str) -> TokenSearchValue:
    """
    Parse a token search value.

    Supported forms are ``code``, ``system|code``, ``|code`` (code with no
    system) and ``system|`` (any code in the system).

    Raises:
        InvalidSearchParameterError: If the value is empty
    """
    if raw is None or raw == "" or raw == "|":
        raise InvalidSearchParameterError(
            f"Invalid token search value: {raw!r}"
        )

    if "|" not in raw:
        return TokenSearchValue(code=raw)

    system, code = raw.split("|", 1)
    if system == "":
        return TokenSearchValue(code=code, explicit_no_system_property=True)
    return TokenSearchValue(system=system, code=code or None)


def compile_token_query(
    compiled: CompiledSearchParam,
    value: TokenSearchValue,
    use_keyword_sub_fields: bool,
    modifier: Optional[str] = None,
) -> PredicateExpression:
    """
    Compile a token search value into a predicate expression.

    Args:
        compiled: Path of the search parameter within the resource
        value: Parsed token search value
        use_keyword_sub_fields: Append the keyword suffix to field names
        modifier: Search modifier, e.g. ``text`` in ``code:text``

    Raises:
        InvalidSearchParameterError: If the modifier is not supported or the
            value produces no clause
    """
    if modifier and modifier not in SUPPORTED_TOKEN_MODIFIERS:
        raise InvalidSearchParameterError(
            f"Unsupported token search modifier: {modifier}"
        )

    path = compiled.path
    use_keyword_suffix = (
        use_keyword_sub_fields and path not in FIELDS_WITHOUT_KEYWORD
    )
    suffix = KEYWORD_SUFFIX if use_keyword_suffix else ""
    clauses: list[PredicateExpression] = []

    if value.system is not None:
        clauses.append(
            MultiMatch(
                fields=(
                    f"{path}.system{suffix}",  # Coding, Identifier
                    f"{path}.coding.system{suffix}",  # CodeableConcept
                ),
                query=value.system,
            )
        )

    if value.code is not None:
        override = TOKEN_CODE_OVERRIDES.get((path, value.code))
        if override is not None:
            clauses.append(override)
        else:
            fields = [
                f"{path}.code{suffix}",  # Coding
                f"{path}.coding.code{suffix}",  # CodeableConcept
                f"{path}.value{suffix}",  # Identifier, ContactPoint
                f"{path}{suffix}",  # code, uri, string, boolean
            ]
            # booleans get no keyword sub-field
            if use_keyword_suffix:
                fields.append(path)
            clauses.append(MultiMatch(fields=tuple(fields), query=value.code))

    if value.explicit_no_system_property:
        clauses.append(MustNotExist(f"{path}.system"))

    if not clauses:
        raise InvalidSearchParameterError(
            f"Token search value for '{path}' has neither system nor code"
        )

    logger.debug(
        "Compiled token query",
        extra={"path": path, "clauses": len(clauses)},
    )
    return all_of(clauses)


__all__ = [
    "FIELDS_WITHOUT_KEYWORD",
    "SUPPORTED_TOKEN_MODIFIERS",
    "TOKEN_CODE_OVERRIDES",
    "compile_token_query",
    "parse_token_search_value",
]
