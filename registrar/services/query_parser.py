"""Turns a flat map of HTTP query parameters into a validated ``QuerySpec``.

Malformed pagination values fall back to defaults. A malformed filter key or
an unknown operator rejects the whole query.
"""

from __future__ import annotations

import re
from typing import Mapping

from registrar.schemas.query import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    FILTER_OPERATORS,
    MAX_LIMIT,
    MAX_PAGE,
    RESERVED_PARAMS,
    FilterClause,
    QuerySpec,
    SortKey,
)

FIELD_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")
_FILTER_KEY_RE = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_.]*)(?:\[(?P<op>[^\[\]]*)\])?$")
_DIGITS_RE = re.compile(r"^\d+$")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")


class QueryParseError(ValueError):
    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


def _decode_brackets(key: str) -> str:
    return key.replace("%5B", "[").replace("%5b", "[").replace("%5D", "]").replace("%5d", "]")


def _snake_case(name: str) -> str:
    """``profileData.contactPhone`` -> ``profile_data.contact_phone``, one segment at a time."""
    return ".".join(_CAMEL_BOUNDARY_RE.sub(r"_\1", part).lower() for part in name.split("."))


def _split_csv(raw: str | None) -> list[str]:
    return [item.strip() for item in str(raw or "").split(",") if item.strip()]


def _parse_positive_int(raw: str | None, default: int) -> int:
    text = str(raw or "").strip()
    if not _DIGITS_RE.fullmatch(text):
        return default
    return int(text)


def _parse_page(raw: str | None) -> int:
    return min(max(_parse_positive_int(raw, DEFAULT_PAGE), 1), MAX_PAGE)


def _parse_limit(raw: str | None) -> int:
    return min(max(_parse_positive_int(raw, DEFAULT_LIMIT), 1), MAX_LIMIT)


def _parse_sort(raw: str | None, descriptor) -> list[SortKey]:
    keys: list[SortKey] = []
    seen: set[str] = set()
    for token in _split_csv(raw):
        direction = "asc"
        if token.startswith("-"):
            direction = "desc"
            token = token[1:].strip()
        elif token.startswith("+"):
            token = token[1:].strip()
        if not FIELD_NAME_RE.fullmatch(token):
            continue
        token = _snake_case(token)
        if token in seen:
            continue
        seen.add(token)
        keys.append(SortKey(field=token, direction=direction))
    if not keys:
        keys.append(descriptor.default_sort)
    return keys


def _parse_projection(raw: str | None) -> frozenset[str] | None:
    fields = frozenset(_snake_case(token) for token in _split_csv(raw) if FIELD_NAME_RE.fullmatch(token))
    return fields or None


def _parse_search(raw: str | None) -> str | None:
    text = str(raw or "").strip()
    return text or None


def _parse_filter(key: str, value: str) -> FilterClause:
    match = _FILTER_KEY_RE.fullmatch(_decode_brackets(key).strip())
    if match is None:
        raise QueryParseError(f'Malformed filter parameter "{key}"')
    field = _snake_case(match.group("field"))
    op = match.group("op")
    if field in RESERVED_PARAMS:
        raise QueryParseError(f'"{field}" cannot be used as a filter')
    if op is None:
        op = "eq"
    elif op not in FILTER_OPERATORS:
        raise QueryParseError(f'Unsupported filter operator "{op}" for field "{field}"')
    if op == "in":
        items = _split_csv(value)
        if not items:
            raise QueryParseError(f'Filter "{field}[in]" requires at least one value')
        return FilterClause(field=field, op=op, value=tuple(items))
    return FilterClause(field=field, op=op, value=value)


def parse(raw_params: Mapping[str, str], descriptor) -> QuerySpec:
    """Build a ``QuerySpec`` for ``descriptor`` from raw query parameters.

    Raises ``QueryParseError`` for filter keys that are malformed or carry an
    operator outside ``eq, ne, gt, gte, lt, lte, in``.
    """
    params = {_decode_brackets(str(key)): "" if value is None else str(value) for key, value in raw_params.items()}
    filters = [_parse_filter(key, value) for key, value in params.items() if key not in RESERVED_PARAMS]
    return QuerySpec(
        filters=filters,
        search=_parse_search(params.get("search")),
        sort=_parse_sort(params.get("sort"), descriptor),
        projection=_parse_projection(params.get("fields")),
        page=_parse_page(params.get("page")),
        limit=_parse_limit(params.get("limit")),
    )
