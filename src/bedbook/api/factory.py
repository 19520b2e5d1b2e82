"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from bedbook.domain.errors import (
    BookingValidationError,
    InvalidTransitionError,
    NotFoundError,
    PrematureActionError,
)
from bedbook.observability.context import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from bedbook.observability.logging import get_logger

from .routers import public
from .routes import availability, bookings, dashboard, me, occupants, rooms

logger = get_logger(__name__)


def _error_body(code: str, message: str, **extra) -> dict:
    return {"error": code, "detail": message, **extra}


def _register_error_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses."""

    @app.exception_handler(BookingValidationError)
    async def _validation(request: Request, exc: BookingValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=_error_body("validation_error", exc.message, field=exc.field),
        )

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message, id=exc.identifier),
        )

    @app.exception_handler(InvalidTransitionError)
    async def _transition(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        logger.info(
            "transition refused",
            extra={"extra_fields": {"action": exc.action, "status": exc.current_status}},
        )
        return JSONResponse(
            status_code=409,
            content=_error_body(
                "invalid_transition", exc.message, current_status=exc.current_status
            ),
        )

    @app.exception_handler(PrematureActionError)
    async def _premature(request: Request, exc: PrematureActionError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content=_error_body(
                "premature_action",
                exc.message,
                expected_date=exc.expected_date.isoformat(),
            ),
        )


def create_app() -> FastAPI:
    """Create the bed booking API."""
    app = FastAPI(
        title="Bedbook",
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    _register_error_handlers(app)

    app.include_router(public.router)
    app.include_router(me.router)
    app.include_router(availability.router)
    app.include_router(bookings.router)
    app.include_router(occupants.router)
    app.include_router(rooms.router)
    app.include_router(dashboard.router)

    return app
