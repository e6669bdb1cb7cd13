"""
Per-request GraphQL context and the authentication gate for mutations.
"""

from typing import Any, Dict, Optional

from accounts.credentials import CredentialStore
from accounts.models import User
from catalog.database import CatalogStore
from utilities.errors import InvalidTokenError, UnauthorizedError
from utilities.logger import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header value.

    Returns None for an absent header, another scheme or an empty token.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


async def resolve_current_user(
    authorization: Optional[str],
    credentials: CredentialStore
) -> Optional[User]:
    """
    Resolve the calling user from the request's Authorization header.

    A malformed token is logged and treated as an anonymous request; it never
    produces a user.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        return None

    try:
        return await credentials.resolve_session(token)
    except InvalidTokenError as e:
        logger.warning("Ignoring malformed bearer token", reason=str(e))
        return None


async def build_context(
    authorization: Optional[str],
    catalog: CatalogStore,
    credentials: CredentialStore
) -> Dict[str, Any]:
    """Build the resolver context for one request."""
    return {
        "current_user": await resolve_current_user(authorization, credentials),
        "catalog": catalog,
        "credentials": credentials,
    }


def require_current_user(context: Dict[str, Any]) -> User:
    """
    Return the current user or fail before any write happens.

    Raises:
        UnauthorizedError: If the request is anonymous
    """
    current_user = context.get("current_user")
    if current_user is None:
        raise UnauthorizedError("Not authenticated")
    return current_user
