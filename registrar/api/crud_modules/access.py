from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from registrar.schemas.resources import ResourceDescriptor
from registrar.services.field_access import READ, WRITE, FieldPolicy

from .errors import _forbidden

CRUD_ACTIONS = frozenset({"list", "read", "create", "update", "delete"})
READ_ACTIONS = frozenset({"list", "read"})
CATALOGUE_ROLE_ACTIONS = {"admin": CRUD_ACTIONS, "teacher": READ_ACTIONS, "student": READ_ACTIONS}

# Per-resource RBAC: resource -> role -> actions.
ROLE_ACTIONS: MappingProxyType = MappingProxyType(
    {
        "user": {
            "admin": CRUD_ACTIONS,
            "teacher": frozenset({"list", "read", "update"}),
            "student": frozenset({"list", "read", "update"}),
        },
        "department": CATALOGUE_ROLE_ACTIONS,
        "program": CATALOGUE_ROLE_ACTIONS,
        "course": CATALOGUE_ROLE_ACTIONS,
        "academic_record": {
            "admin": CRUD_ACTIONS,
            "teacher": frozenset({"list", "read", "create", "update"}),
            "student": READ_ACTIONS,
        },
        "attendance": {
            "admin": CRUD_ACTIONS,
            "teacher": CRUD_ACTIONS,
            "student": READ_ACTIONS,
        },
    }
)

_ACTION_VERBS = {"list": "list", "read": "view", "create": "create", "update": "update", "delete": "delete"}


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an authorization check.

    ``fields`` is the read allow-list for ``list``/``read`` and the write
    allow-list for ``create``/``update``/``delete``.
    """

    own: bool
    fields: frozenset[str]
    owner_scoped: bool = False


def _actor_role(actor: dict) -> str:
    return str(actor.get("role") or "").strip().lower()


def _allowed_actions(role: str, resource: str) -> frozenset[str]:
    return frozenset(ROLE_ACTIONS.get(resource, {}).get(role, frozenset()))


def _is_own(actor: dict, descriptor: ResourceDescriptor, record: Any) -> bool:
    if descriptor.owner_field is None or record is None:
        return False
    if isinstance(record, dict):
        owner = record.get(descriptor.owner_field)
    else:
        owner = getattr(record, descriptor.owner_field, None)
    if isinstance(owner, dict):
        # relation already expanded
        owner = owner.get("id")
    actor_id = str(actor.get("sub") or "").strip()
    return bool(actor_id) and owner is not None and str(owner) == actor_id


def authorize(
    policy: FieldPolicy,
    actor: dict,
    descriptor: ResourceDescriptor,
    action: str,
    record: Any = None,
) -> AccessDecision:
    """Single authorization decision for ``action`` on ``descriptor``.

    ``record`` is the stored row for read/update/delete and the request body
    for create. Raises a Forbidden ``CrudError`` when the role may not perform
    the action at all, or may only perform it on its own records and this one
    is not.
    """
    role = _actor_role(actor)
    verb = _ACTION_VERBS.get(action, action)
    if action not in _allowed_actions(role, descriptor.name):
        raise _forbidden(f"Not authorized to {verb} {descriptor.label}")

    if action == "list":
        fields = policy.allowed_fields(role, descriptor.name, READ, own=False)
        scoped = not policy.has_blanket(role, descriptor.name, READ)
        if scoped and (descriptor.owner_field is None or not policy.entries(role, descriptor.name, READ)):
            raise _forbidden(f"Not authorized to {verb} {descriptor.label}")
        return AccessDecision(own=False, fields=fields, owner_scoped=scoped)

    own = _is_own(actor, descriptor, record)
    fields = policy.allowed_fields(role, descriptor.name, READ if action == "read" else WRITE, own=own)
    if not fields:
        raise _forbidden(f"Not authorized to {verb} this {descriptor.label}")
    return AccessDecision(own=own, fields=fields)
