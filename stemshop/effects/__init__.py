"""
Effects — post-commit, best-effort work.

    result = await run_best_effort(
        "digital_fulfillment",
        lambda: trigger(order_id, request.items),
        timeout=5.0,
    )

Failures are logged and returned as Error(EffectFailure); they never
undo or fail a committed order.
"""

from stemshop.effects._runner import EffectFailure, run_best_effort
from stemshop.effects._fulfillment import (
    DigitalDelivery,
    LoggingDigitalDelivery,
    FulfillmentOutcome,
    language_preferences,
    DigitalFulfillmentTrigger,
)
from stemshop.effects._notify import (
    CONFIRMATION_TEMPLATE,
    EmailMessage,
    EmailSender,
    LoggingEmailSender,
    build_confirmation,
    NotificationDispatcher,
)

__all__ = (
    # Runner
    "EffectFailure",
    "run_best_effort",
    # Digital fulfillment
    "DigitalDelivery",
    "LoggingDigitalDelivery",
    "FulfillmentOutcome",
    "language_preferences",
    "DigitalFulfillmentTrigger",
    # Notification
    "CONFIRMATION_TEMPLATE",
    "EmailMessage",
    "EmailSender",
    "LoggingEmailSender",
    "build_confirmation",
    "NotificationDispatcher",
)
