"""
Domain error taxonomy.

Services raise these instead of HTTPException so the same rules hold when a flow is
driven from the worker or from tests. ``register_exception_handlers`` maps each one to
an HTTP response with a single ``detail`` message.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BakehouseError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BakehouseError):
    """Malformed or missing input, or a requested date that breaks calendar rules"""

    status_code = 400


class StateConflictError(BakehouseError):
    """Entity is not in a status that allows the requested edit or transition"""

    status_code = 409


class NotFoundError(BakehouseError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ExternalDependencyError(BakehouseError):
    """Payment gateway or notification provider failed"""

    status_code = 502


class SignatureError(BakehouseError):
    """Webhook signature or timestamp could not be verified"""

    status_code = 400


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BakehouseError)
    async def bakehouse_error_handler(request: Request, exc: BakehouseError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
        else:
            logger.info(f"⚠️ {request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
