import logging
import math
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from city_relay.api.chat import router as chat_router
from city_relay.config import cors_origins_from_env
from city_relay.container import ServiceContainer, build_container
from city_relay.errors import RateLimitError, RelayError, format_error
from city_relay.schemas import AVAILABLE_ENDPOINTS, HealthResponse, ServiceInfoResponse
from city_relay.startup_self_check import run_startup_self_check

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _expose_details(request: Request) -> bool:
    container = getattr(request.app.state, "container", None)
    if container is None:
        return False
    return container.settings.expose_error_details


def _internal_error_response(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error trace_id=%s path=%s",
        getattr(request.state, "trace_id", None),
        request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=format_error(exc, expose_details=_expose_details(request)),
    )


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_app: FastAPI):  # type: ignore[no-untyped-def]
        owned = _app.state.container is None
        if owned:
            # raises ConfigError without an upstream credential, aborting startup
            _app.state.container = build_container()
        _app.state.startup_self_check = run_startup_self_check(
            _app.state.container.settings,
            logger=logger,
        )
        _app.state.started_at = _now_iso()
        yield
        if owned:
            _app.state.container.close()
            _app.state.container = None

    app = FastAPI(title="City Guide Relay", version="0.1.0", lifespan=lifespan)
    app.state.container = container

    @app.middleware("http")
    async def attach_trace_id(request: Request, call_next):  # type: ignore[no-untyped-def]
        trace_id = request.headers.get("x-trace-id") or str(uuid4())
        request.state.trace_id = trace_id
        try:
            response = await call_next(request)
        except Exception as exc:
            # answered here so the 500 still passes through CORS
            response = _internal_error_response(request, exc)
        response.headers["x-trace-id"] = trace_id
        return response

    # added last so it wraps the trace middleware
    origins = container.settings.cors_origins if container is not None else cors_origins_from_env()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_model=ServiceInfoResponse)
    def service_info() -> ServiceInfoResponse:
        return ServiceInfoResponse(
            status="Server is running!",
            timestamp=_now_iso(),
            endpoints=["/chat", "/health"],
        )

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="healthy", timestamp=_now_iso())

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        headers = None
        if isinstance(exc, RateLimitError):
            headers = {"Retry-After": str(max(math.ceil(exc.retry_after_sec), 1))}
        return JSONResponse(
            status_code=exc.status_code,
            content=format_error(exc, expose_details=_expose_details(request)),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        if any(item.get("type") == "json_invalid" for item in exc.errors()):
            message = "Request body must be valid JSON"
        else:
            message = "Message is required and must be a non-empty string"
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in {status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED}:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={
                    "error": "Endpoint not found",
                    "availableEndpoints": AVAILABLE_ENDPOINTS,
                },
            )
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return _internal_error_response(request, exc)

    app.include_router(chat_router)
    return app


app = create_app()
