"""Request tracking middleware and caller identity."""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Header, HTTPException, Request, status
from jose import JWTError, jwt
from loguru import logger

from .config import settings

USERNAME_CLAIM = "cognito:username"


async def add_request_id(request: Request, call_next):
    """Add request ID to context for tracking.

    Args:
        request: Incoming FastAPI request.
        call_next: Next middleware or handler in chain.

    Returns:
        Response with X-Request-ID header.

    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id

    with logger.contextualize(request_id=request_id):
        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.debug(
            "Request completed",
            status_code=response.status_code,
        )

        return response


def create_token(user_id: str) -> str:
    """Create a JWT token for local development.

    Args:
        user_id: The user identifier to encode in the token.

    Returns:
        Encoded JWT token as string.
    """
    expires_at = datetime.now(UTC) + timedelta(minutes=settings.jwt_expiration_minutes)
    payload = {
        "sub": user_id,
        "exp": expires_at,
        "iat": datetime.now(UTC),
    }
    token: str = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token


def authorizer_claims(event: dict[str, Any] | None) -> dict[str, Any]:
    """Claims verified by the API Gateway Cognito authorizer, if any.

    REST APIs put them under ``authorizer.claims``, HTTP APIs under
    ``authorizer.jwt.claims``.
    """
    if not event:
        return {}
    authorizer = (event.get("requestContext") or {}).get("authorizer") or {}
    return authorizer.get("claims") or (authorizer.get("jwt") or {}).get("claims") or {}


async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
) -> str:
    """Resolve the caller's user id.

    Behind API Gateway the Cognito authorizer has already verified the
    token and the username is read from the Lambda event. Elsewhere a
    locally issued bearer token is expected.

    Raises:
        HTTPException: If no identity can be established.
    """
    claims = authorizer_claims(request.scope.get("aws.event"))
    if claims.get(USERNAME_CLAIM):
        return claims[USERNAME_CLAIM]

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not authorization or not authorization.startswith("Bearer "):
        raise credentials_exception

    try:
        token = authorization.replace("Bearer ", "")
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise credentials_exception from e

    user_id: str | None = payload.get("sub")
    if user_id is None:
        raise credentials_exception
    return user_id
