from __future__ import annotations

import threading
import uuid
from typing import Any

from sqlalchemy.orm import Session

from registrar.core.security import hash_password
from registrar.models.choices import USER_CODE_PREFIXES
from registrar.models.user import User
from registrar.schemas.records import RecordValidationError, validate_record
from registrar.schemas.resources import ResourceDescriptor, ResourceRegistry
from registrar.services.query_executor import check_cancelled
from registrar.services.user_codes import generate_user_code

from .errors import _bad_request, _not_found, _validation_failed

MIN_PASSWORD_LENGTH = 8
STUDENT_REFERENCE_FIELDS = {"academic_record": "student_id", "attendance": "student_id"}


def _body_or_400(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise _bad_request("Request body must be a JSON object")
    return payload


def _parse_id_or_400(descriptor: ResourceDescriptor, row_id: Any) -> uuid.UUID:
    try:
        return uuid.UUID(str(row_id).strip())
    except (TypeError, ValueError):
        raise _bad_request(f"Invalid {descriptor.label} ID format", str(row_id))


def _load_row_or_404(
    db: Session,
    descriptor: ResourceDescriptor,
    row_id: Any,
    cancel_event: threading.Event | None = None,
):
    pk = _parse_id_or_400(descriptor, row_id)
    check_cancelled(cancel_event)
    row = db.get(descriptor.model, pk)
    if row is None:
        raise _not_found(descriptor.label)
    return row


def _permitted_or_400(body: dict[str, Any], permitted: dict[str, Any]) -> dict[str, Any]:
    if body and not permitted:
        raise _bad_request("No permitted fields to write", ", ".join(sorted(body)))
    return permitted


def _apply_user_fields(db: Session, payload: dict[str, Any], *, creating: bool) -> dict[str, Any]:
    data = dict(payload)
    if "password" in data:
        raw_password = str(data.pop("password") or "")
        if len(raw_password) < MIN_PASSWORD_LENGTH:
            raise _validation_failed([f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"])
        data["password_hash"] = hash_password(raw_password)
    if isinstance(data.get("email"), str):
        data["email"] = data["email"].strip().lower()
    if creating and not str(data.get("user_code") or "").strip() and data.get("role") in USER_CODE_PREFIXES:
        data["user_code"] = generate_user_code(db, data["role"])
    return data


def _prepare_payload(db: Session, descriptor: ResourceDescriptor, payload: dict[str, Any], *, creating: bool):
    if descriptor.name == "user":
        return _apply_user_fields(db, payload, creating=creating)
    return dict(payload)


def _merge_record(stored: dict[str, Any], changes: dict[str, Any], json_fields: frozenset[str]) -> dict[str, Any]:
    merged = dict(stored)
    for key, value in changes.items():
        current = stored.get(key)
        if key in json_fields and isinstance(value, dict) and isinstance(current, dict):
            merged[key] = {**current, **value}
        else:
            merged[key] = value
    return merged


def _validated_values(descriptor: ResourceDescriptor, record: dict[str, Any]) -> dict[str, Any]:
    try:
        validated = validate_record(descriptor.write_schema, record)
    except RecordValidationError as exc:
        raise _validation_failed(exc.messages)
    columns = descriptor.columns
    return {key: value for key, value in validated.storage_values(descriptor.json_fields).items() if key in columns}


def _reference_ids(values: dict[str, Any], local_field: str) -> list[str]:
    parent, dot, child = local_field.partition(".")
    value = values.get(parent)
    if dot:
        value = value.get(child) if isinstance(value, dict) else None
    if value is None:
        return []
    return [str(item) for item in (value if isinstance(value, list) else [value]) if item is not None]


def _ensure_references_or_400(
    db: Session,
    descriptor: ResourceDescriptor,
    registry: ResourceRegistry,
    values: dict[str, Any],
    cancel_event: threading.Event | None = None,
) -> None:
    problems: list[str] = []
    for relation in descriptor.relations:
        target = registry[relation.target_resource]
        ids = {uuid.UUID(item) for item in _reference_ids(values, relation.local_field)}
        if not ids:
            continue
        check_cancelled(cancel_event)
        found = {row_id for (row_id,) in db.query(target.model.id).filter(target.model.id.in_(ids)).all()}
        if ids - found:
            problems.append(f"{relation.local_field} references a {target.label} that does not exist")

    student_field = STUDENT_REFERENCE_FIELDS.get(descriptor.name)
    if student_field and values.get(student_field) is not None:
        check_cancelled(cancel_event)
        student = db.get(User, values[student_field])
        if student is not None and student.role != "student":
            problems.append(f"{student_field} must reference a student")
    if problems:
        raise _validation_failed(problems)
