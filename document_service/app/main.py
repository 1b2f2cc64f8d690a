from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import analytics, config, database, documents, exceptions, models, users
from .logger import get_logger

app = FastAPI(title="Document Service")

# Logger
logger = get_logger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    # Create DB tables
    models.Base.metadata.create_all(bind=database.engine)


def error_response(status_code: int, error_code: str, message: str, details=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error_code": error_code,
            "message": message,
            "details": details
        },
        headers=headers
    )


# Reject oversized bodies before they reach a route
@app.middleware("http")
async def limit_upload_size(request: Request, call_next):
    if request.method in ("POST", "PUT"):
        length = request.headers.get("content-length", "")
        if length.isdigit() and int(length) > config.MAX_UPLOAD_SIZE + config.MULTIPART_OVERHEAD:
            exc = exceptions.PayloadTooLargeError(config.MAX_UPLOAD_SIZE)
            logger.warning(f"Rejected {request.method} {request.url.path}: body of {length} bytes")
            return error_response(exc.status_code, exc.error_code, exc.detail)
    return await call_next(request)


# Global exception handlers
@app.exception_handler(exceptions.DocumentServiceException)
async def document_exception_handler(request: Request, exc: exceptions.DocumentServiceException):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{exc.error_code} on {request.method} {request.url.path} - {exc.detail}")
    return error_response(exc.status_code, exc.error_code, exc.detail, exc.details, getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exceptions.field_errors(exc.errors())
    logger.warning(f"Validation error on {request.method} {request.url.path}: {errors}")
    return error_response(400, "VALIDATION_ERROR", "Validation failed", errors)

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
    return error_response(exc.status_code, f"HTTP_{exc.status_code}", exc.detail, headers=getattr(exc, "headers", None))

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
    return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


app.include_router(users.router, prefix=config.API_PREFIX)
app.include_router(documents.router, prefix=config.API_PREFIX)
app.include_router(analytics.router, prefix=config.API_PREFIX)
