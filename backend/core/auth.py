"""Bearer token gate for administrator routes."""

import logging
from dataclasses import dataclass

from litestar import Request
from litestar.datastructures import State

from core.errors import AuthenticationError
from core.security import decode_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedAdmin:
    """The administrator a request acts on behalf of."""

    id: str
    username: str | None = None


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


async def provide_current_admin(request: Request, state: State) -> AuthenticatedAdmin:
    """Dependency provider that verifies the bearer token on the request.

    Raising here stops the request before the handler runs.
    """
    token = bearer_token(request.headers.get("Authorization"))
    if not token:
        raise AuthenticationError(detail="Access denied. No token provided.")

    try:
        claims = decode_token(token, state.config.auth.jwt_secret)
    except AuthenticationError as exc:
        logger.info("Rejected bearer token: %s", exc.detail)
        raise

    return AuthenticatedAdmin(id=str(claims["sub"]), username=claims.get("username"))
