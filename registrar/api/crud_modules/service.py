from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Callable, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from registrar.schemas.resources import ResourceDescriptor, ResourceRegistry
from registrar.schemas.results import CrudResult, ErrorKind, Failure, Pagination, Success
from registrar.services import query_parser
from registrar.services.field_access import READ, FieldPolicy, filter_by_allowed
from registrar.services.query_executor import (
    OperationCancelled,
    check_cancelled,
    execute,
    expand_relations,
    row_to_dict,
)

from .access import _actor_role, _is_own, authorize
from .errors import CrudError, _bad_request, _forbidden, _integrity_error
from .payloads import (
    _body_or_400,
    _ensure_references_or_400,
    _load_row_or_404,
    _merge_record,
    _permitted_or_400,
    _prepare_payload,
    _validated_values,
)

logger = logging.getLogger(__name__)

_FAILURE_VERBS = {"list": "fetch", "read": "fetch", "create": "create", "update": "update", "delete": "delete"}


class ResourceHandlers:
    """The five CRUD operations for one resource.

    Every operation takes the request session and the actor (``{"sub", "role"}``)
    and returns a ``Success`` or ``Failure``; it never raises for expected
    errors.
    """

    def __init__(self, descriptor: ResourceDescriptor, registry: ResourceRegistry, policy: FieldPolicy):
        self.descriptor = descriptor
        self.registry = registry
        self.policy = policy

    def list(
        self,
        db: Session,
        actor: dict,
        raw_params: Mapping[str, str],
        cancel_event: threading.Event | None = None,
    ) -> CrudResult:
        return self._run(db, "list", lambda: self._list(db, actor, raw_params, cancel_event))

    def get_one(self, db: Session, actor: dict, row_id: str, cancel_event: threading.Event | None = None) -> CrudResult:
        return self._run(db, "read", lambda: self._get_one(db, actor, row_id, cancel_event))

    def create(self, db: Session, actor: dict, body: Any, cancel_event: threading.Event | None = None) -> CrudResult:
        return self._run(db, "create", lambda: self._create(db, actor, body, cancel_event))

    def update(
        self,
        db: Session,
        actor: dict,
        row_id: str,
        body: Any,
        cancel_event: threading.Event | None = None,
    ) -> CrudResult:
        return self._run(db, "update", lambda: self._update(db, actor, row_id, body, cancel_event))

    def delete(self, db: Session, actor: dict, row_id: str, cancel_event: threading.Event | None = None) -> CrudResult:
        return self._run(db, "delete", lambda: self._delete(db, actor, row_id, cancel_event))

    def _run(self, db: Session, action: str, operation: Callable[[], CrudResult]) -> CrudResult:
        try:
            return operation()
        except CrudError as exc:
            db.rollback()
            return exc.to_failure()
        except OperationCancelled:
            db.rollback()
            logger.info("crud_cancelled resource=%s action=%s", self.descriptor.name, action)
            return Failure(ErrorKind.CANCELLED, "Request cancelled")
        except Exception:
            db.rollback()
            logger.exception("crud_failed resource=%s action=%s", self.descriptor.name, action)
            return Failure(ErrorKind.INTERNAL, f"Failed to {_FAILURE_VERBS[action]} {self.descriptor.label}")

    def _read_mask(self, actor: dict, record: dict[str, Any], own: bool) -> dict[str, Any]:
        fields = self.policy.allowed_fields(_actor_role(actor), self.descriptor.name, READ, own=own)
        return filter_by_allowed(record, fields)

    def _commit(self, db: Session, cancel_event: threading.Event | None) -> None:
        check_cancelled(cancel_event)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise _integrity_error(exc)

    def _list(self, db: Session, actor: dict, raw_params: Mapping[str, str], cancel_event) -> CrudResult:
        descriptor = self.descriptor
        decision = authorize(self.policy, actor, descriptor, "list")
        try:
            spec = query_parser.parse(raw_params, descriptor)
        except query_parser.QueryParseError as exc:
            raise _bad_request("Invalid query parameters", exc.detail)

        base_query = db.query(descriptor.model)
        visible = decision.fields
        if decision.owner_scoped:
            visible = self.policy.allowed_fields(_actor_role(actor), descriptor.name, READ, own=True)
            try:
                actor_id = uuid.UUID(str(actor.get("sub") or ""))
            except ValueError:
                raise _forbidden(f"Not authorized to list {descriptor.label}")
            base_query = base_query.filter(getattr(descriptor.model, descriptor.owner_field) == actor_id)

        result = execute(
            db,
            spec,
            descriptor,
            self.registry,
            base_query=base_query,
            visible_fields=frozenset(path.split(".", 1)[0] for path in visible),
            cancel_event=cancel_event,
        )
        records = [
            self._read_mask(actor, record, decision.owner_scoped or _is_own(actor, descriptor, record))
            for record in result.records
        ]
        return Success(data=records, meta=Pagination.build(total=result.total, page=spec.page, limit=spec.limit))

    def _get_one(self, db: Session, actor: dict, row_id: str, cancel_event) -> CrudResult:
        descriptor = self.descriptor
        row = _load_row_or_404(db, descriptor, row_id, cancel_event)
        decision = authorize(self.policy, actor, descriptor, "read", row)
        record = row_to_dict(row, descriptor.hidden_fields)
        expand_relations(db, [record], descriptor, self.registry, cancel_event=cancel_event)
        return Success(data=filter_by_allowed(record, decision.fields))

    def _create(self, db: Session, actor: dict, body: Any, cancel_event) -> CrudResult:
        descriptor = self.descriptor
        body = _body_or_400(body)
        decision = authorize(self.policy, actor, descriptor, "create", body)
        permitted = _permitted_or_400(body, filter_by_allowed(body, decision.fields))

        prepared = _prepare_payload(db, descriptor, permitted, creating=True)
        values = _validated_values(descriptor, prepared)
        _ensure_references_or_400(db, descriptor, self.registry, values, cancel_event)

        row = descriptor.model(**{key: value for key, value in values.items() if value is not None})
        db.add(row)
        self._commit(db, cancel_event)
        db.refresh(row)
        logger.info("crud_created resource=%s id=%s actor=%s", descriptor.name, row.id, actor.get("sub"))
        record = self._read_mask(actor, row_to_dict(row, descriptor.hidden_fields), _is_own(actor, descriptor, row))
        return Success(data=record, message=f"{descriptor.label} created successfully", status_code=201)

    def _update(self, db: Session, actor: dict, row_id: str, body: Any, cancel_event) -> CrudResult:
        descriptor = self.descriptor
        body = _body_or_400(body)
        row = _load_row_or_404(db, descriptor, row_id, cancel_event)
        decision = authorize(self.policy, actor, descriptor, "update", row)
        permitted = _permitted_or_400(body, filter_by_allowed(body, decision.fields))

        changes = _prepare_payload(db, descriptor, permitted, creating=False)
        merged = _merge_record(row_to_dict(row), changes, descriptor.json_fields)
        values = _validated_values(descriptor, merged)
        _ensure_references_or_400(db, descriptor, self.registry, values, cancel_event)

        for key in changes:
            if key in values:
                setattr(row, key, values[key])
        self._commit(db, cancel_event)
        db.refresh(row)
        logger.info("crud_updated resource=%s id=%s actor=%s", descriptor.name, row.id, actor.get("sub"))
        record = self._read_mask(actor, row_to_dict(row, descriptor.hidden_fields), decision.own)
        return Success(data=record, message=f"{descriptor.label} updated successfully")

    def _delete(self, db: Session, actor: dict, row_id: str, cancel_event) -> CrudResult:
        descriptor = self.descriptor
        row = _load_row_or_404(db, descriptor, row_id, cancel_event)
        authorize(self.policy, actor, descriptor, "delete", row)
        db.delete(row)
        self._commit(db, cancel_event)
        logger.info("crud_deleted resource=%s id=%s actor=%s", descriptor.name, row_id, actor.get("sub"))
        return Success(message=f"{descriptor.label} deleted successfully")


def build_crud_handlers(registry: ResourceRegistry, policy: FieldPolicy) -> dict[str, ResourceHandlers]:
    return {name: ResourceHandlers(descriptor, registry, policy) for name, descriptor in registry.items()}
