"""
Maps internal failures to classified GraphQL errors.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from graphql import GraphQLError

from utilities.errors import InternalError, LibraryError, ValidationError
from utilities.logger import get_logger

logger = get_logger(__name__)

USER_INPUT_CLASSIFICATION = "user_input"


def to_graphql_error(exc: LibraryError) -> GraphQLError:
    """
    Convert a LibraryError into the caller-visible error shape.

    Args:
        exc: Classified failure

    Returns:
        GraphQLError whose extensions carry the code and, for validation
        failures, the per-field messages
    """
    extensions: Dict[str, Any] = {"code": exc.code}
    if exc.user_input:
        extensions["classification"] = USER_INPUT_CLASSIFICATION
    if isinstance(exc, ValidationError) and exc.field_errors:
        extensions["errors"] = list(exc.field_errors)
    return GraphQLError(exc.message, extensions=extensions, original_error=exc)


@asynccontextmanager
async def error_boundary(operation: str) -> AsyncIterator[None]:
    """
    Classify every failure raised by a resolver body.

    Args:
        operation: Name of the query or mutation, for logging
    """
    try:
        yield
    except LibraryError as e:
        logger.info("Operation failed", operation=operation, code=e.code, error=e.message)
        raise to_graphql_error(e) from e
    except GraphQLError:
        raise
    except Exception as e:
        logger.error("Unhandled resolver error", operation=operation, error=str(e), exc_info=True)
        raise to_graphql_error(InternalError("Internal server error")) from e
