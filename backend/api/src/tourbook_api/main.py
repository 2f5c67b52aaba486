"""FastAPI application for Tourbook payment reconciliation.

Endpoints:
- GET  /api/ping                    health check
- POST /api/webhooks/stripe         Stripe webhook receiver
- POST /api/booking/confirm-payment post-redirect confirmation
"""

import logging
import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from tourbook.utils.logging import configure_logging
from tourbook_api.exceptions import register_exception_handlers
from tourbook_api.middleware.correlation import CorrelationIdMiddleware
from tourbook_api.routes.bookings import router as bookings_router
from tourbook_api.routes.webhooks import router as webhooks_router

configure_logging(logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Tourbook Payments API",
    description="Payment-to-reservation reconciliation for tour operator booking pages",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get(
        "CORS_ALLOW_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

# /api/* is routed to API Gateway by CloudFront
app.include_router(bookings_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")


@app.get("/api/ping")
async def ping() -> dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "tourbook-payments-api",
    }


# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Run the FastAPI server locally with uvicorn."""
    import uvicorn

    if reload:
        uvicorn.run(
            "tourbook_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["backend/api/src", "backend/tourbook/src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
