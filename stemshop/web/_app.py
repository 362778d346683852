"""
FastAPI application.

    app = create_app(ShopConfig(), session_resolver=MySessions())

POST /checkout/order checks, in order:

    JSON parse (400) → request guard / CSRF (403) → session lookup
        → schema (400, field-path keyed) → identity (401)

then runs the checkout graph. POST /checkout/quote is the same up to
pricing, without writing.
"""

from __future__ import annotations

import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Protocol

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from kungfu import Error, Ok
from pydantic import ValidationError

from stemshop.config import ShopConfig
from stemshop.db import create_database
from stemshop.domain import CheckoutRequest, SessionUser
from stemshop.effects import DigitalDelivery, EmailSender
from stemshop.errors import (
    CheckoutError,
    IdentityError,
    InfrastructureError,
    InsufficientStockError,
    RequestShapeError,
    SecurityError,
)
from stemshop.pipeline import CheckoutDeps, CheckoutService
from stemshop.pricing import SettingsProvider
from stemshop.web._schemas import (
    CheckoutOrderIn,
    CheckoutOrderOut,
    CheckoutQuoteOut,
    ErrorOut,
)

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════════════════════
# Collaborators: Users Implement These
# ═══════════════════════════════════════════════════════════════════════════════


class SessionResolver(Protocol):
    """Authenticated user for the request, or None."""

    async def resolve(self, request: Request) -> SessionUser | None:
        ...


class RequestGuard(Protocol):
    """Raises SecurityError when the request must be refused."""

    async def check(self, request: Request, body: Any) -> None:
        ...


class AnonymousSessionResolver:
    async def resolve(self, request: Request) -> SessionUser | None:
        return None


class NoopGuard:
    async def check(self, request: Request, body: Any) -> None:
        return None


class DoubleSubmitCsrfGuard:
    """Token in the cookie must equal the token in the header (or body csrfToken)."""

    def __init__(self, cookie_name: str = "csrf-token", header_name: str = "x-csrf-token") -> None:
        self._cookie_name = cookie_name
        self._header_name = header_name

    async def check(self, request: Request, body: Any) -> None:
        expected = request.cookies.get(self._cookie_name)
        supplied = request.headers.get(self._header_name)
        if supplied is None and isinstance(body, dict):
            token = body.get("csrfToken")
            supplied = token if isinstance(token, str) else None

        if not expected or not supplied:
            logger.warning("csrf_token_missing", path=request.url.path)
            raise SecurityError()
        if not secrets.compare_digest(expected.encode(), supplied.encode()):
            logger.warning("csrf_token_mismatch", path=request.url.path)
            raise SecurityError()


# ═══════════════════════════════════════════════════════════════════════════════
# Errors → responses
# ═══════════════════════════════════════════════════════════════════════════════


def status_for(error: CheckoutError) -> int:
    match error:
        case RequestShapeError():
            return 400
        case IdentityError():
            return 401
        case SecurityError():
            return 403
        case InsufficientStockError():
            return 409
        case _:
            return 500


def error_response(error: CheckoutError) -> JSONResponse:
    match error:
        case RequestShapeError(field_errors=field_errors):
            body = ErrorOut(message=error.message, error=field_errors)
        case InfrastructureError():
            body = ErrorOut(message="Failed to create order", error=error.code)
        case _:
            body = ErrorOut(message=error.message, error=error.code)
    return JSONResponse(status_code=status_for(error), content=body.model_dump(mode="json", by_alias=True))


def field_errors_from(exc: ValidationError) -> dict[str, str]:
    return {".".join(str(part) for part in err["loc"]): err["msg"] for err in exc.errors()}


# ═══════════════════════════════════════════════════════════════════════════════
# App factory
# ═══════════════════════════════════════════════════════════════════════════════


def create_app(
    config: ShopConfig | None = None,
    *,
    session_resolver: SessionResolver | None = None,
    request_guard: RequestGuard | None = None,
    email_sender: EmailSender | None = None,
    digital_delivery: DigitalDelivery | None = None,
    settings_provider: SettingsProvider | None = None,
) -> FastAPI:
    config = config or ShopConfig()
    sessions = session_resolver or AnonymousSessionResolver()
    guard = request_guard or DoubleSubmitCsrfGuard(config.csrf_cookie_name, config.csrf_header_name)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        session_factory, engine = await create_database(config.database_url)
        deps = CheckoutDeps.from_database(
            session_factory,
            config,
            email_sender=email_sender,
            digital_delivery=digital_delivery,
            settings=settings_provider,
        )
        app.state.checkout = CheckoutService(deps)
        logger.info("app_started", database_url=config.database_url)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(title="stemshop checkout", lifespan=lifespan)

    async def read_checkout(request: Request) -> CheckoutRequest:
        try:
            payload = await request.json()
        except ValueError as e:
            raise RequestShapeError({"body": str(e)}, "Invalid JSON payload") from e

        await guard.check(request, payload)

        try:
            user = await sessions.resolve(request)
        except Exception as e:
            raise InfrastructureError("session lookup failed", e) from e

        try:
            order_in = CheckoutOrderIn.model_validate(payload)
        except ValidationError as e:
            raise RequestShapeError(field_errors_from(e)) from e

        return order_in.to_domain(session_user=user)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/checkout/order")
    async def place_order(request: Request) -> JSONResponse:
        try:
            checkout = await read_checkout(request)
        except CheckoutError as e:
            return error_response(e)

        service: CheckoutService = request.app.state.checkout
        match await service.place_order(checkout):
            case Ok(receipt):
                body = CheckoutOrderOut.from_domain(receipt)
                return JSONResponse(status_code=200, content=body.model_dump(mode="json", by_alias=True))
            case Error(error):
                return error_response(error)

    @app.post("/checkout/quote")
    async def quote(request: Request) -> JSONResponse:
        try:
            checkout = await read_checkout(request)
        except CheckoutError as e:
            return error_response(e)

        service: CheckoutService = request.app.state.checkout
        match await service.quote(checkout):
            case Ok(result):
                body = CheckoutQuoteOut.from_domain(result)
                return JSONResponse(status_code=200, content=body.model_dump(mode="json", by_alias=True))
            case Error(error):
                return error_response(error)

    return app


__all__ = (
    "SessionResolver",
    "RequestGuard",
    "AnonymousSessionResolver",
    "NoopGuard",
    "DoubleSubmitCsrfGuard",
    "status_for",
    "error_response",
    "field_errors_from",
    "create_app",
)
