"""FastAPI application factory."""

import math
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import get_cors_origins
from ..errors import InvalidInputError, RateLimitedError, SnapFitError
from ..logging_config import bind_request_context, configure_structured_logging, get_logger, log_error
from .routes import router

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def handle_snapfit_error(request: Request, exc: SnapFitError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
        headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after)))
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    error = InvalidInputError(f"Invalid request: {problems}", code="invalid_request")
    return JSONResponse(error.to_dict(), status_code=error.status_code)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log_error(exc, {"method": request.method, "path": request.url.path})
    return JSONResponse({"error": str(exc) or type(exc).__name__, "success": False}, status_code=500)


def create_app() -> FastAPI:
    """Build the API application."""
    configure_structured_logging()

    app = FastAPI(title="SnapFit Photo API", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request with its status and duration under a request id."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        bind_request_context(request_id, method=request.method, path=request.url.path)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
                error=str(e),
            )
            raise

        duration_ms = round((time.perf_counter() - start) * 1000, 1)
        log = logger.warning if response.status_code >= 400 else logger.info
        log("request_completed", status=response.status_code, duration_ms=duration_ms)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.add_exception_handler(SnapFitError, handle_snapfit_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router)

    logger.info("application_created", version=__version__)
    return app
