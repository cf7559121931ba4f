"""HTTP boundary for idea engagement.

``create_app()`` builds a FastAPI application exposing the claim registry and
the interaction store as JSON routes. Handlers are plain ``def`` functions,
so FastAPI runs them in its threadpool; each request gets its own session
and nothing else is shared between requests.

Caller identity is read from a trusted header (``X-User-Id`` by default, see
``Settings.user_id_header``) set by the upstream auth layer. Routes that
change state reject anonymous callers with 401 before touching storage.

Every typed error becomes::

    {"error": "<code>", "message": "<text>", "details": {...}}

Example:
    $ ideaengage serve --port 8000
    $ curl -X POST -H 'X-User-Id: alice' localhost:8000/api/ideas/idea-1/claim
"""

import time
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Body, Depends, FastAPI, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlmodel import Session

from ideaengage import __version__
from ideaengage.claims import ClaimRegistry
from ideaengage.config import settings
from ideaengage.database import DatabaseManager
from ideaengage.directory import SqlIdeaCatalog
from ideaengage.errors import EngagementError, Unauthenticated, ValidationError
from ideaengage.interactions import InteractionStore
from ideaengage.interfaces import IClaimRegistry, IInteractionStore
from ideaengage.logging import clear_request_context, logger, set_request_context
from ideaengage.metrics import (
    CONTENT_TYPE_LATEST,
    errors_total,
    generate_metrics_output,
    http_request_duration_seconds,
    http_requests_total,
)
from ideaengage.models import (
    Claim,
    ClaimStatus,
    ClearResult,
    Interaction,
    InteractionState,
    InteractionSummary,
    ProgressUpdate,
    ReleaseResult,
    StatusChange,
)
from ideaengage.telemetry import initialize_telemetry, shutdown_telemetry
from ideaengage.utils import new_request_id, normalize_identifier

# =============================================================================
# Dependencies
# =============================================================================


def get_session(request: Request) -> Generator[Session, None, None]:
    """One session per request, closed when the response is done."""
    with request.app.state.db.session_scope() as session:
        yield session


def get_current_user_id(request: Request) -> Optional[str]:
    """Caller identity from the trusted header, or None when anonymous."""
    return normalize_identifier(request.headers.get(settings.user_id_header))


def require_user_id(user_id: Optional[str] = Depends(get_current_user_id)) -> str:
    """Caller identity, rejecting anonymous requests.

    Raises:
        Unauthenticated: When the identity header is missing or blank
    """
    if user_id is None:
        raise Unauthenticated()
    return user_id


def get_claim_registry(session: Session = Depends(get_session)) -> ClaimRegistry:
    catalog = SqlIdeaCatalog(session) if settings.require_known_ideas else None
    return ClaimRegistry(session, catalog=catalog)


def get_interaction_store(session: Session = Depends(get_session)) -> InteractionStore:
    catalog = SqlIdeaCatalog(session) if settings.require_known_ideas else None
    return InteractionStore(session, catalog=catalog)


# =============================================================================
# Application Factory
# =============================================================================


def create_app(db: DatabaseManager | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        db: Database manager to serve from. When omitted, one is built from
            settings, initialized on startup and closed on shutdown.

    Returns:
        Configured FastAPI instance
    """
    owns_db = db is None
    database = db or DatabaseManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if database.engine is None:
            database.initialize()
        initialize_telemetry()
        logger.info(f"🚀 ideaengage {__version__} serving ({settings.environment.value})")
        yield
        if owns_db:
            database.close()
        if settings.enable_tracing:
            shutdown_telemetry()

    app = FastAPI(
        title="ideaengage",
        description="Idea claims and interaction status",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.db = database

    _register_middleware(app)
    _register_exception_handlers(app)
    _register_routes(app)
    return app


def _register_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """Bind request context for logs and record HTTP metrics."""
        request_id = request.headers.get("X-Request-Id") or new_request_id()
        set_request_context(
            request_id=request_id,
            user_id=normalize_identifier(request.headers.get(settings.user_id_header)),
        )
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-Id"] = request_id
            return response
        finally:
            route = request.scope.get("route")
            path = getattr(route, "path", "<unmatched>")
            labels = {"status": str(status_code), "path": path, "method": request.method}
            http_requests_total.labels(**labels).inc()
            http_request_duration_seconds.labels(**labels).observe(time.perf_counter() - start)
            clear_request_context()


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(EngagementError)
    async def engagement_error_handler(request: Request, exc: EngagementError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError("Request validation failed")
        body = error.to_dict()
        body["details"] = {"errors": jsonable_encoder(exc.errors())}
        return JSONResponse(status_code=error.status_code, content=body)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        errors_total.labels(error_type=type(exc).__name__, component="api").inc()
        logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "Internal server error"},
        )


# =============================================================================
# Routes
# =============================================================================


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "version": __version__}

    if settings.metrics_enabled:

        @app.get("/metrics")
        def metrics() -> Response:
            return Response(generate_metrics_output(), media_type=CONTENT_TYPE_LATEST)

    # ---- Claims -------------------------------------------------------------

    @app.get("/api/ideas/{idea_id}/claim", response_model=ClaimStatus)
    def get_claim_status(
        idea_id: str,
        registry: IClaimRegistry = Depends(get_claim_registry),
    ):
        return registry.get_claim_status(idea_id)

    @app.post("/api/ideas/{idea_id}/claim", response_model=Claim, status_code=201)
    def claim_idea(
        idea_id: str,
        user_id: str = Depends(require_user_id),
        registry: IClaimRegistry = Depends(get_claim_registry),
    ):
        return registry.claim(idea_id, user_id)

    @app.put("/api/ideas/{idea_id}/claim/progress", response_model=Claim)
    def update_claim_progress(
        idea_id: str,
        update: ProgressUpdate,
        user_id: str = Depends(require_user_id),
        registry: IClaimRegistry = Depends(get_claim_registry),
    ):
        return registry.update_progress(idea_id, user_id, update.progress)

    @app.delete("/api/ideas/{idea_id}/claim", response_model=ReleaseResult)
    def release_claim(
        idea_id: str,
        user_id: str = Depends(require_user_id),
        registry: IClaimRegistry = Depends(get_claim_registry),
    ):
        return registry.release(idea_id, user_id)

    @app.get("/api/user/claimed-ideas", response_model=list[Claim])
    def list_claimed_ideas(
        include_released: bool = Query(False, alias="includeReleased"),
        user_id: str = Depends(require_user_id),
        registry: IClaimRegistry = Depends(get_claim_registry),
    ):
        return registry.list_user_claims(user_id, include_released=include_released)

    # ---- Interactions -------------------------------------------------------

    @app.get("/api/ideas/{idea_id}/interaction", response_model=InteractionState)
    def get_interaction(
        idea_id: str,
        user_id: Optional[str] = Depends(get_current_user_id),
        store: IInteractionStore = Depends(get_interaction_store),
    ):
        if user_id is None:
            return InteractionState()
        return InteractionState(status=store.get_status(idea_id, user_id))

    @app.post("/api/ideas/{idea_id}/interaction", response_model=Interaction)
    def set_interaction(
        idea_id: str,
        change: StatusChange,
        user_id: str = Depends(require_user_id),
        store: IInteractionStore = Depends(get_interaction_store),
    ):
        return store.set_status(idea_id, user_id, change.status)

    @app.delete("/api/ideas/{idea_id}/interaction", response_model=ClearResult)
    def clear_interaction(
        idea_id: str,
        status: Optional[str] = Query(None),
        change: Optional[StatusChange] = Body(None),
        user_id: str = Depends(require_user_id),
        store: IInteractionStore = Depends(get_interaction_store),
    ):
        expected = change.status if change is not None else status
        if expected is None:
            raise ValidationError("status is required", field="status")
        return store.clear_status(idea_id, user_id, expected)

    @app.get("/api/ideas/{idea_id}/interactions/summary", response_model=InteractionSummary)
    def interaction_summary(
        idea_id: str,
        store: IInteractionStore = Depends(get_interaction_store),
    ):
        counts = store.tally(idea_id)
        return InteractionSummary(ideaId=idea_id, counts=counts, total=sum(counts.values()))

    @app.get("/api/user/interactions", response_model=list[Interaction])
    def list_interactions(
        status: Optional[str] = Query(None),
        user_id: str = Depends(require_user_id),
        store: IInteractionStore = Depends(get_interaction_store),
    ):
        return store.list_user_interactions(user_id, status=status)


__all__ = [
    "create_app",
    "get_session",
    "get_current_user_id",
    "require_user_id",
    "get_claim_registry",
    "get_interaction_store",
]
