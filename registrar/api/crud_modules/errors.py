from __future__ import annotations

import re

from sqlalchemy.exc import IntegrityError

from registrar.schemas.results import ErrorKind, Failure

# sqlite: "UNIQUE constraint failed: users.username"
# postgres: "DETAIL:  Key (username)=(bob) already exists."
_SQLITE_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w., ]+)")
_POSTGRES_UNIQUE_RE = re.compile(r"Key \((?P<columns>[^)]+)\)=")


class CrudError(Exception):
    def __init__(self, kind: ErrorKind, error: str, detail: str | list[str] | None = None):
        super().__init__(error)
        self.kind = kind
        self.error = error
        self.detail = detail

    def to_failure(self) -> Failure:
        return Failure(kind=self.kind, error=self.error, detail=self.detail)


def _bad_request(error: str, detail: str | None = None) -> CrudError:
    return CrudError(ErrorKind.BAD_REQUEST, error, detail)


def _forbidden(error: str) -> CrudError:
    return CrudError(ErrorKind.FORBIDDEN, error)


def _not_found(label: str) -> CrudError:
    return CrudError(ErrorKind.NOT_FOUND, f"{label} not found")


def _validation_failed(messages: list[str]) -> CrudError:
    return CrudError(ErrorKind.VALIDATION_FAILED, "Validation failed", messages)


def _duplicate_columns(exc: IntegrityError) -> str | None:
    message = str(exc.orig)
    match = _SQLITE_UNIQUE_RE.search(message)
    if match is not None:
        return ", ".join(part.strip().rsplit(".", 1)[-1] for part in match.group("columns").split(","))
    if "duplicate key" in message:
        match = _POSTGRES_UNIQUE_RE.search(message)
        if match is not None:
            return ", ".join(part.strip() for part in match.group("columns").split(","))
    return None


def _integrity_error(exc: IntegrityError) -> CrudError:
    columns = _duplicate_columns(exc)
    if columns:
        return CrudError(ErrorKind.DUPLICATE_VALUE, "Duplicate field value entered", columns)
    return _bad_request("Data constraint violated")
