"""
Search parameter metadata.

Resolves a (resource type, parameter name) pair to the paths the parameter
searches. The built-in table covers the token parameters commonly used in
Subscription criteria; implementation guides add or override definitions.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Protocol

from fhir_subscription_stream.models import (
    CompiledSearchParam,
    SearchParamType,
)

logger = logging.getLogger(__name__)

SUPPORTED_FHIR_VERSIONS = ("4.0.1", "3.0.1")

# Parameters defined on Resource apply to every resource type.
ANY_RESOURCE = "Resource"


@dataclass(frozen=True)
class SearchParameterDefinition:
    """A search parameter and the compiled paths it searches."""

    name: str
    type: SearchParamType
    base: tuple[str, ...]
    compiled: tuple[CompiledSearchParam, ...]

    def paths_for(
        self, resource_type: str
    ) -> tuple[CompiledSearchParam, ...]:
        """Compiled paths that apply to the given resource type."""
        return tuple(
            c
            for c in self.compiled
            if c.resource_type in (resource_type, ANY_RESOURCE)
        )


# pylint: disable-next=too-few-public-methods
class SearchParameterMetadata(Protocol):
    """Resolves search parameters for a resource type."""

    def get_search_parameter(
        self, resource_type: str, name: str
    ) -> Optional[SearchParameterDefinition]:
        """Return the definition of `name` on `resource_type`, if any."""
        ...  # pylint: disable=unnecessary-ellipsis


def _token(name: str, base: Iterable[str], path: str) -> dict[str, Any]:
    base = list(base)
    return {
        "name": name,
        "type": "token",
        "base": base,
        "compiled": [{"resourceType": rt, "path": path} for rt in base],
    }


_BASE_DEFINITIONS: list[dict[str, Any]] = [
    _token("_id", [ANY_RESOURCE], "id"),
    _token("_tag", [ANY_RESOURCE], "meta.tag"),
    _token("_security", [ANY_RESOURCE], "meta.security"),
    _token(
        "identifier",
        [
            "Patient",
            "Practitioner",
            "Organization",
            "Encounter",
            "Observation",
            "ServiceRequest",
            "MedicationRequest",
        ],
        "identifier",
    ),
    _token("active", ["Patient", "Practitioner", "Organization"], "active"),
    _token("gender", ["Patient", "Practitioner"], "gender"),
    _token("language", ["Patient"], "communication.language"),
    _token(
        "status",
        [
            "Observation",
            "Encounter",
            "ServiceRequest",
            "MedicationRequest",
            "DiagnosticReport",
            "Subscription",
        ],
        "status",
    ),
    _token(
        "code",
        ["Observation", "Condition", "Procedure", "ServiceRequest"],
        "code",
    ),
    _token("category", ["Observation", "Condition"], "category"),
    _token("intent", ["ServiceRequest", "MedicationRequest"], "intent"),
    _token("class", ["Encounter"], "class"),
    _token("clinical-status", ["Condition"], "clinicalStatus"),
    _token("telecom", ["Patient", "Practitioner"], "telecom"),
]


def _parse_definition(raw: Mapping[str, Any]) -> SearchParameterDefinition:
    return SearchParameterDefinition(
        name=raw["name"],
        type=SearchParamType(raw["type"]),
        base=tuple(raw.get("base", ())),
        compiled=tuple(
            CompiledSearchParam(
                resource_type=c["resourceType"],
                path=c["path"],
                type=SearchParamType(raw["type"]),
            )
            for c in raw.get("compiled", ())
        ),
    )


class SearchParametersRegistry:
    """
    In-memory search parameter registry.

    Args:
        fhir_version: FHIR version the definitions are interpreted for
        compiled_implementation_guides: Extra definitions, in the same shape
            as the built-in table, that add or replace parameters
    """

    def __init__(
        self,
        fhir_version: str = "4.0.1",
        compiled_implementation_guides: Optional[
            Iterable[Mapping[str, Any]]
        ] = None,
    ):
        if fhir_version not in SUPPORTED_FHIR_VERSIONS:
            raise ValueError(
                f"Unsupported FHIR version: {fhir_version}. "
                f"Expected one of {', '.join(SUPPORTED_FHIR_VERSIONS)}"
            )
        self.fhir_version = fhir_version
        self._by_type: dict[str, dict[str, SearchParameterDefinition]] = {}

        for raw in _BASE_DEFINITIONS:
            self._register(_parse_definition(raw))

        guides = list(compiled_implementation_guides or [])
        for raw in guides:
            self._register(_parse_definition(raw))
        if guides:
            logger.info(
                "Loaded implementation guide search parameters",
                extra={"count": len(guides), "fhir_version": fhir_version},
            )

    def _register(self, definition: SearchParameterDefinition) -> None:
        for resource_type in definition.base:
            self._by_type.setdefault(resource_type, {})[
                definition.name
            ] = definition

    def get_search_parameter(
        self, resource_type: str, name: str
    ) -> Optional[SearchParameterDefinition]:
        """Return the definition of `name` on `resource_type`, if any."""
        definition = self._by_type.get(resource_type, {}).get(name)
        if definition is None:
            definition = self._by_type.get(ANY_RESOURCE, {}).get(name)
        return definition


__all__ = [
    "ANY_RESOURCE",
    "SUPPORTED_FHIR_VERSIONS",
    "SearchParameterDefinition",
    "SearchParameterMetadata",
    "SearchParametersRegistry",
]
