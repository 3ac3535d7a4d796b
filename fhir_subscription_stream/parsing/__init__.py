"""DynamoDB stream parsing utilities."""

from fhir_subscription_stream.parsing.change_records import (
    ELIGIBLE_EVENT_TYPES,
    filter_eligible_records,
    is_resource_shaped,
    parse_change_record,
    unmarshall_image,
)

__all__ = [
    "ELIGIBLE_EVENT_TYPES",
    "filter_eligible_records",
    "is_resource_shaped",
    "parse_change_record",
    "unmarshall_image",
]
