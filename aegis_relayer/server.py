"""
HTTP status API for the relayer dashboard.

Endpoints:
    GET  /health               - Health check
    GET  /api/status           - Live relayer state
    POST /api/simulate-intent  - Demo: inject a mock intent
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from web3 import Web3

from .engine import RelayerEngine
from .reporter import status_payload

logger = logging.getLogger(__name__)


class SimulateIntentRequest(BaseModel):
    sender: Optional[str] = None
    receiver: Optional[str] = None
    amount: Optional[str] = None  # in ether


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(engine: RelayerEngine, cors_origin: str = "*") -> FastAPI:
    """
    Build the status API around a running engine

    Args:
        engine: Relayer engine to report on
        cors_origin: Allowed CORS origin for the dashboard

    Returns:
        FastAPI application
    """
    app = FastAPI(title="Aegis Relayer", docs_url=None, redoc_url=None)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[cors_origin],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, "Not found")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request body")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {exc}", exc_info=True)
        return _error(500, "Internal server error")

    @app.get("/health")
    def health():
        return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/api/status")
    def status():
        return status_payload(engine.snapshot())

    @app.post("/api/simulate-intent")
    def simulate_intent(body: SimulateIntentRequest):
        if not body.receiver or not body.amount:
            return _error(400, "receiver and amount are required")

        try:
            amount = Decimal(body.amount.strip())
            if not amount.is_finite() or amount < 0:
                raise ValueError(body.amount)
            amount_wei = int(Web3.to_wei(amount, "ether"))
        except (InvalidOperation, ValueError):
            return _error(400, f"Invalid amount: {body.amount}")

        try:
            intent = engine.inject_intent(body.receiver, amount_wei, sender=body.sender)
        except ValidationError as e:
            return _error(400, f"Invalid intent: {e.error_count()} validation error(s)")

        return {"ok": True, "message": "Intent injected into pool", "intentIndex": intent.intent_index}

    return app
