from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from registrar.core.deps import get_current_actor
from registrar.db.session import get_db
from registrar.schemas.results import CrudResult, ErrorKind, Failure, Success

from .descriptors import _normalize_resource_name
from .meta import resources_meta
from .service import ResourceHandlers

DISCONNECT_POLL_SECONDS = 0.05

router = APIRouter()


def get_crud_handlers(request: Request) -> dict[str, ResourceHandlers]:
    return request.app.state.crud_handlers


def _respond(result: CrudResult) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.to_body())


async def _run_handler(request: Request, operation: Callable[[threading.Event], CrudResult]) -> CrudResult:
    """Run a blocking handler in the threadpool, cancelling it if the client goes away."""
    cancel_event = threading.Event()
    task = asyncio.ensure_future(run_in_threadpool(operation, cancel_event))
    while not task.done():
        await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
        if not task.done() and await request.is_disconnected():
            cancel_event.set()
    return task.result()


async def _dispatch(
    request: Request,
    handlers: dict[str, ResourceHandlers],
    resource: str,
    call: Callable[[ResourceHandlers, threading.Event], CrudResult],
) -> JSONResponse:
    resource_handlers = handlers.get(_normalize_resource_name(resource))
    if resource_handlers is None:
        return _respond(Failure(ErrorKind.NOT_FOUND, "Resource not found", resource))
    return _respond(await _run_handler(request, lambda cancel_event: call(resource_handlers, cancel_event)))


@router.get("/meta/resources")
def list_resources_meta(request: Request, actor: dict = Depends(get_current_actor)):
    state = request.app.state
    return _respond(Success(data=resources_meta(state.resource_registry, state.field_policy, actor)))


@router.get("/{resource}")
async def list_records(
    resource: str,
    request: Request,
    db: Session = Depends(get_db),
    actor: dict = Depends(get_current_actor),
    handlers: dict[str, ResourceHandlers] = Depends(get_crud_handlers),
):
    raw_params = dict(request.query_params)
    return await _dispatch(request, handlers, resource, lambda h, cancel: h.list(db, actor, raw_params, cancel))


@router.get("/{resource}/{row_id}")
async def get_record(
    resource: str,
    row_id: str,
    request: Request,
    db: Session = Depends(get_db),
    actor: dict = Depends(get_current_actor),
    handlers: dict[str, ResourceHandlers] = Depends(get_crud_handlers),
):
    return await _dispatch(request, handlers, resource, lambda h, cancel: h.get_one(db, actor, row_id, cancel))


@router.post("/{resource}")
async def create_record(
    resource: str,
    request: Request,
    payload: Any = Body(default=None),
    db: Session = Depends(get_db),
    actor: dict = Depends(get_current_actor),
    handlers: dict[str, ResourceHandlers] = Depends(get_crud_handlers),
):
    return await _dispatch(request, handlers, resource, lambda h, cancel: h.create(db, actor, payload, cancel))


@router.api_route("/{resource}/{row_id}", methods=["PUT", "PATCH"])
async def update_record(
    resource: str,
    row_id: str,
    request: Request,
    payload: Any = Body(default=None),
    db: Session = Depends(get_db),
    actor: dict = Depends(get_current_actor),
    handlers: dict[str, ResourceHandlers] = Depends(get_crud_handlers),
):
    return await _dispatch(
        request, handlers, resource, lambda h, cancel: h.update(db, actor, row_id, payload, cancel)
    )


@router.delete("/{resource}/{row_id}")
async def delete_record(
    resource: str,
    row_id: str,
    request: Request,
    db: Session = Depends(get_db),
    actor: dict = Depends(get_current_actor),
    handlers: dict[str, ResourceHandlers] = Depends(get_crud_handlers),
):
    return await _dispatch(request, handlers, resource, lambda h, cancel: h.delete(db, actor, row_id, cancel))
