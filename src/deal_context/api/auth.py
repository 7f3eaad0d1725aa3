"""Shared-secret check for callers of the coach API."""

import secrets

import structlog
from fastapi import Header, HTTPException, status

from .config import get_settings

logger = structlog.get_logger(__name__)


def _reject(reason: str) -> HTTPException:
    logger.warning("api.auth_rejected", reason=reason)
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=f"Coach API token rejected: {reason}",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def verify_worker_token(authorization: str | None = Header(default=None)) -> None:
    """
    Require ``Authorization: Bearer <WORKER_API_KEY>`` from the chat service.

    The scheme is matched case-insensitively and the token in constant time.
    An unset WORKER_API_KEY rejects every request.
    """
    if not authorization:
        raise _reject("missing Authorization header")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise _reject("expected a bearer token")

    expected = get_settings().WORKER_API_KEY
    if not expected or not secrets.compare_digest(token.encode(), expected.encode()):
        raise _reject("unknown token")
