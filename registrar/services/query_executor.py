from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from sqlalchemy import asc, desc, or_
from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.orm import Query, Session

from registrar.schemas.query import FilterClause, QuerySpec
from registrar.schemas.resources import RelationSpec, ResourceDescriptor, ResourceRegistry
from registrar.services.field_access import filter_by_allowed

logger = logging.getLogger(__name__)

RANGE_OPERATORS = frozenset({"gt", "gte", "lt", "lte"})
RANGE_TYPES = (int, float, Decimal, date, datetime)


class PredicateError(ValueError):
    pass


class OperationCancelled(Exception):
    pass


@dataclass(frozen=True)
class QueryResult:
    records: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    # Set when a filter could not be turned into a predicate; records is then empty.
    predicate_error: str | None = None


def check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelled()


def serialize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: serialize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def row_to_dict(row: Any, hidden: Iterable[str] = ()) -> dict[str, Any]:
    hidden = set(hidden)
    mapper = sa_inspect(type(row))
    return {
        column.key: serialize_value(getattr(row, column.key))
        for column in mapper.columns
        if column.key not in hidden
    }


def _bad_filter_value(field_name: str, kind: str) -> PredicateError:
    return PredicateError(f'Invalid {kind} value for filter "{field_name}"')


def _column_python_type(column) -> type | None:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def _coerce_bool(field_name: str, value):
    text = str(value or "").strip().lower()
    if text in {"1", "true", "yes", "y"}:
        return True
    if text in {"0", "false", "no", "n"}:
        return False
    raise _bad_filter_value(field_name, "boolean")


def _coerce_number(field_name: str, value, python_type):
    text = str(value).strip()
    if not text:
        raise _bad_filter_value(field_name, "number")
    try:
        return python_type(text)
    except (ValueError, TypeError, InvalidOperation):
        raise _bad_filter_value(field_name, "number")


def _coerce_date(field_name: str, value):
    text = str(value or "").strip()
    try:
        # Accept either YYYY-MM-DD or a full ISO datetime and take its date part.
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise _bad_filter_value(field_name, "date")


def _coerce_datetime(field_name: str, value):
    text = str(value or "").strip()
    try:
        if _is_date_only_literal(text):
            # Date-only filter value for timestamp columns -> start of the day.
            parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
        else:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise _bad_filter_value(field_name, "datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce_filter_value(field_name: str, python_type, value):
    if python_type is uuid.UUID:
        try:
            return uuid.UUID(str(value or "").strip())
        except ValueError:
            raise _bad_filter_value(field_name, "id")
    if python_type is bool:
        return _coerce_bool(field_name, value)
    if python_type in {int, float, Decimal}:
        return _coerce_number(field_name, value, python_type)
    if python_type is datetime:
        return _coerce_datetime(field_name, value)
    if python_type is date:
        return _coerce_date(field_name, value)
    return str(value)


def _is_date_only_literal(text: str) -> bool:
    if not text or "T" in text or " " in text:
        return False
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        return False


def _filter_expression(descriptor: ResourceDescriptor, clause: FilterClause, visible: frozenset[str]):
    column = descriptor.columns.get(clause.field)
    if column is None or clause.field not in visible:
        raise PredicateError(f'Unknown filter field "{clause.field}"')
    if clause.field in descriptor.json_fields:
        raise PredicateError(f'Field "{clause.field}" cannot be filtered')
    python_type = _column_python_type(column)
    if clause.op in RANGE_OPERATORS and python_type not in RANGE_TYPES:
        raise PredicateError(f'Operator "{clause.op}" is not supported for field "{clause.field}"')

    attr = getattr(descriptor.model, clause.field)
    if clause.op == "in":
        return attr.in_([_coerce_filter_value(clause.field, python_type, item) for item in clause.value])
    value = _coerce_filter_value(clause.field, python_type, clause.value)
    if python_type is datetime and clause.op in {"eq", "ne"} and _is_date_only_literal(str(clause.value).strip()):
        day_expr = (attr >= value) & (attr < value + timedelta(days=1))
        return day_expr if clause.op == "eq" else ~day_expr
    if clause.op == "eq":
        return attr == value
    if clause.op == "ne":
        return attr != value
    if clause.op == "gt":
        return attr > value
    if clause.op == "gte":
        return attr >= value
    if clause.op == "lt":
        return attr < value
    return attr <= value


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _apply_search(query: Query, descriptor: ResourceDescriptor, term: str | None, visible: frozenset[str]) -> Query:
    fields = sorted(descriptor.searchable_fields & visible)
    if not term or not fields:
        return query
    pattern = f"%{_escape_like(term)}%"
    return query.filter(or_(*(getattr(descriptor.model, name).ilike(pattern, escape="\\") for name in fields)))


def _apply_sort(query: Query, descriptor: ResourceDescriptor, spec: QuerySpec, visible: frozenset[str]) -> Query:
    columns = descriptor.columns
    json_fields = descriptor.json_fields
    sorted_by: set[str] = set()
    for key in spec.sort:
        if key.field not in columns or key.field not in visible or key.field in json_fields:
            continue
        attr = getattr(descriptor.model, key.field)
        query = query.order_by(asc(attr) if key.direction == "asc" else desc(attr))
        sorted_by.add(key.field)
    if "id" not in sorted_by:
        query = query.order_by(asc(descriptor.model.id))
    return query


def _get_path(record: dict[str, Any], path: str) -> Any:
    parent, dot, child = path.partition(".")
    value = record.get(parent)
    if not dot:
        return value
    return value.get(child) if isinstance(value, dict) else None


def _set_path(record: dict[str, Any], path: str, value: Any) -> None:
    parent, dot, child = path.partition(".")
    if not dot:
        record[parent] = value
    elif isinstance(record.get(parent), dict):
        record[parent] = {**record[parent], child: value}


def _as_uuid(value: Any) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _relation_ids(records: list[dict[str, Any]], relation: RelationSpec) -> set[uuid.UUID]:
    ids: set[uuid.UUID] = set()
    for record in records:
        value = _get_path(record, relation.local_field)
        for item in value if isinstance(value, list) else [value]:
            parsed = _as_uuid(item) if item is not None else None
            if parsed is not None:
                ids.add(parsed)
    return ids


def expand_relations(
    db: Session,
    records: list[dict[str, Any]],
    descriptor: ResourceDescriptor,
    registry: ResourceRegistry,
    *,
    cancel_event: threading.Event | None = None,
) -> list[dict[str, Any]]:
    """Replace relation ids in ``records`` with the target's projected fields, in place.

    One batched lookup per relation. Ids that do not resolve become ``None``.
    """
    for relation in descriptor.relations:
        ids = _relation_ids(records, relation)
        if not ids:
            continue
        target = registry[relation.target_resource]
        check_cancelled(cancel_event)
        rows = db.query(target.model).filter(target.model.id.in_(ids)).all()
        projected = {"id"} | set(relation.projected_fields)
        found = {
            str(row.id): filter_by_allowed(row_to_dict(row, target.hidden_fields), projected) for row in rows
        }
        for record in records:
            value = _get_path(record, relation.local_field)
            if value is None:
                continue
            if isinstance(value, list):
                expanded = [found.get(str(_as_uuid(item))) for item in value]
            else:
                expanded = found.get(str(_as_uuid(value)))
            _set_path(record, relation.local_field, expanded)
    return records


def execute(
    db: Session,
    spec: QuerySpec,
    descriptor: ResourceDescriptor,
    registry: ResourceRegistry,
    *,
    base_query: Query | None = None,
    visible_fields: frozenset[str] | None = None,
    cancel_event: threading.Event | None = None,
) -> QueryResult:
    """Run ``spec`` against ``descriptor``'s table and return one page plus the total match count.

    ``visible_fields`` limits which top-level fields may be filtered, searched and
    sorted on. A filter that cannot be turned into a predicate yields an empty
    result with ``predicate_error`` set instead of raising.
    """
    visible = descriptor.readable_fields if visible_fields is None else visible_fields & descriptor.readable_fields
    query = base_query if base_query is not None else db.query(descriptor.model)
    try:
        for clause in spec.filters:
            query = query.filter(_filter_expression(descriptor, clause, visible))
    except PredicateError as exc:
        logger.warning("predicate_failed resource=%s error=%s", descriptor.name, exc)
        return QueryResult(predicate_error=str(exc))
    query = _apply_search(query, descriptor, spec.search, visible)

    check_cancelled(cancel_event)
    total = query.count()
    query = _apply_sort(query, descriptor, spec, visible)
    check_cancelled(cancel_event)
    rows = query.offset(spec.offset).limit(spec.limit).all()

    records = [row_to_dict(row, descriptor.hidden_fields) for row in rows]
    if spec.projection is not None:
        records = [filter_by_allowed(record, {"id"} | spec.projection) for record in records]
    expand_relations(db, records, descriptor, registry, cancel_event=cancel_event)
    return QueryResult(records=records, total=total)
