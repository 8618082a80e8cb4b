"""
Stripe webhook handling.

Events are verified and stored by the view, then processed
asynchronously by payments.tasks.process_webhook_event, which dispatches
to the handlers registered in payments.webhooks.handlers.
"""

from payments.webhooks.handlers import WEBHOOK_HANDLERS, dispatch_webhook, register_handler
from payments.webhooks.views import stripe_webhook

__all__ = [
    "WEBHOOK_HANDLERS",
    "dispatch_webhook",
    "register_handler",
    "stripe_webhook",
]
