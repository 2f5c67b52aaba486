"""API routes package.

- bookings: post-redirect payment confirmation (pull entry point)
- webhooks: Stripe webhook receiver (push entry point)

All routers are registered in main.py with /api prefix.
"""

from tourbook_api.routes.bookings import router as bookings_router
from tourbook_api.routes.webhooks import router as webhooks_router

__all__ = [
    "bookings_router",
    "webhooks_router",
]
