"""Filter objects for BugSnag error and event queries.

A filter object maps a field ``display_id`` to a list of predicates::

    {
        "error.status": [{"type": "eq", "value": "open"}],
        "event.since": [{"type": "eq", "value": "7d"}],
    }

Entries are combined with AND semantics by the API. Predicates for one field
are encoded as repeated ``filters[<field>][][type]`` / ``filters[<field>][][value]``
query parameters.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

from .errors import InvalidArgumentError
from .models import EventField

FILTER_TYPES = ("eq", "ne", "empty")

FilterObject = Dict[str, List[Dict[str, Any]]]

DEFAULT_ERROR_FILTERS: FilterObject = {
    "event.since": [{"type": "eq", "value": "30d"}],
    "error.status": [{"type": "eq", "value": "open"}],
}


def parse_filters(raw: Optional[Mapping[str, Any]]) -> FilterObject:
    """Validate the shape of a filter object and return a normalized copy.

    Field names are not checked here; see :func:`validate_filter_keys`.

    Raises:
        InvalidArgumentError: If the object, a predicate list or a predicate
            is malformed.
    """
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise InvalidArgumentError("Filters must be an object mapping field names to predicate lists.")

    parsed: FilterObject = {}
    for field_name, predicates in raw.items():
        if not isinstance(field_name, str) or not field_name:
            raise InvalidArgumentError("Filter field names must be non-empty strings.")
        if not isinstance(predicates, list):
            raise InvalidArgumentError(f"Filter '{field_name}' must be a list of predicates.")

        normalized: List[Dict[str, Any]] = []
        for predicate in predicates:
            if not isinstance(predicate, Mapping):
                raise InvalidArgumentError(f"Filter '{field_name}' contains a predicate that is not an object.")
            filter_type = predicate.get("type")
            if filter_type not in FILTER_TYPES:
                raise InvalidArgumentError(
                    f"Filter '{field_name}' has unsupported type {filter_type!r}; "
                    f"expected one of {', '.join(FILTER_TYPES)}."
                )
            value = predicate.get("value")
            if not isinstance(value, (str, bool, int, float)):
                raise InvalidArgumentError(f"Filter '{field_name}' predicate value must be a string, number or boolean.")
            normalized.append({"type": filter_type, "value": value})
        parsed[field_name] = normalized

    return parsed


def validate_filter_keys(filters: Mapping[str, Any], event_fields: Iterable[EventField]) -> None:
    """Reject the first filter key that is not a known event field.

    Raises:
        InvalidArgumentError: ``Invalid filter key: <key>``.
    """
    valid_keys = {event_field.display_id for event_field in event_fields}
    for key in filters:
        if key not in valid_keys:
            raise InvalidArgumentError(f"Invalid filter key: {key}")


def merge_filters(*layers: Optional[Mapping[str, List[Dict[str, Any]]]]) -> FilterObject:
    """Merge filter objects; later layers replace whole fields of earlier ones."""
    merged: FilterObject = {}
    for layer in layers:
        if layer:
            for key, predicates in layer.items():
                merged[key] = [dict(predicate) for predicate in predicates]
    return merged


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_query_params(filters: Mapping[str, List[Dict[str, Any]]]) -> List[Tuple[str, str]]:
    """Encode a filter object as an ordered list of query parameter pairs."""
    params: List[Tuple[str, str]] = []
    for field_name, predicates in filters.items():
        for predicate in predicates:
            params.append((f"filters[{field_name}][][type]", str(predicate["type"])))
            params.append((f"filters[{field_name}][][value]", _format_value(predicate["value"])))
    return params


def to_query_string(filters: Mapping[str, List[Dict[str, Any]]]) -> str:
    """Encode a filter object as a URL query string (without a leading ``?``)."""
    return urlencode(to_query_params(filters))
