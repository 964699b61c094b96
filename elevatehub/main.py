# elevatehub/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from elevatehub.core.config import settings
from elevatehub.core.database import init_models
from elevatehub.core.exceptions import AppError, ValidationError
from elevatehub.core.websocket_manager import manager
from elevatehub.routers import (
    admin_router, job_router, message_router, realtime_router, transaction_router, user_router
)
from elevatehub.routers.application_router import (
    router as application_main_router,
    job_application_router,
)
from elevatehub.schemas.common_schema import ErrorResponse

logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DB_AUTO_CREATE:
        await init_models()
        logger.info("Database tables ensured")
    await manager.start()
    yield
    await manager.stop()


app = FastAPI(title="ElevateHub API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error bodies: {"success": false, "message", "errors"?, "code"?} ---

def _error_response(status_code: int, message: str, errors=None, code=None, headers=None) -> JSONResponse:
    body = ErrorResponse(message=message, errors=errors, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return _error_response(exc.status_code, exc.detail, exc.errors, exc.code, exc.headers)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        errors.append({"field": ".".join(location) or "body", "message": err.get("msg", "Invalid value")})
    return _error_response(400, "Validation failed", errors, ValidationError.code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _error_response(500, "Internal server error", code="INTERNAL_ERROR")


@app.get("/")
def read_root():
    return {"success": True, "message": "ElevateHub API is running"}


app.include_router(user_router.router)
app.include_router(admin_router.router)
app.include_router(job_router.router)
app.include_router(application_main_router)
app.include_router(job_application_router)
app.include_router(transaction_router.router)
app.include_router(message_router.router)
app.include_router(realtime_router.router)
