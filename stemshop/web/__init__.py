"""
Web — FastAPI surface of the checkout.

    from stemshop.web import create_app

    app = create_app(ShopConfig())
"""

from stemshop.web._schemas import (
    CheckoutOrderIn,
    CheckoutOrderOut,
    CheckoutQuoteOut,
    ErrorOut,
)
from stemshop.web._app import (
    SessionResolver,
    RequestGuard,
    AnonymousSessionResolver,
    NoopGuard,
    DoubleSubmitCsrfGuard,
    status_for,
    error_response,
    create_app,
)

__all__ = (
    # Codecs
    "CheckoutOrderIn",
    "CheckoutOrderOut",
    "CheckoutQuoteOut",
    "ErrorOut",
    # App
    "SessionResolver",
    "RequestGuard",
    "AnonymousSessionResolver",
    "NoopGuard",
    "DoubleSubmitCsrfGuard",
    "status_for",
    "error_response",
    "create_app",
)
