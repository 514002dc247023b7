import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from registrar.api.crud_modules.descriptors import build_registry
from registrar.api.crud_modules.service import build_crud_handlers
from registrar.api.router import router as api_router
from registrar.core.config import settings
from registrar.core.http_hardening import install_http_hardening
from registrar.schemas.results import ErrorKind, Failure
from registrar.services.field_access import build_field_policy

logger = logging.getLogger(__name__)

resource_registry = build_registry()
field_policy = build_field_policy(resource_registry)

app = FastAPI(title=settings.APP_NAME, version="0.1.0")
app.state.resource_registry = resource_registry
app.state.field_policy = field_policy
app.state.crud_handlers = build_crud_handlers(resource_registry, field_policy)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_http_hardening(app)

app.include_router(api_router, prefix="/api")


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    failure = Failure(ErrorKind.BAD_REQUEST, "Malformed request", [str(err.get("msg")) for err in exc.errors()])
    return JSONResponse(status_code=failure.status_code, content=failure.to_body())


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
    failure = Failure(ErrorKind.INTERNAL, "Internal server error")
    return JSONResponse(status_code=failure.status_code, content=failure.to_body())


@app.get("/health")
def health():
    return {"status": "ok"}
