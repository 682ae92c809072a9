import logging
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar, cast

from chatrooms.application.errors import internal_error

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

logger = logging.getLogger(__name__)


def service_boundary(operation: str) -> Callable[[F], F]:
    """Turn anything a service method raises into a 500 result."""

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            try:
                return await func(self, *args, **kwargs)
            except Exception:
                logger.exception("room %s failed: global catch", operation)
                return internal_error()

        return cast(F, wrapper)

    return decorator
