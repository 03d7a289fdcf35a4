from functools import wraps
from typing import Callable


def async_cached(key_builder: Callable[..., str], ttl: int | None = None):
    """
    Decorator for async service methods. key_builder receives the method's
    args/kwargs without self; the instance must expose a CacheLayer as
    `self.cache`. The wrapped method must return JSON-ready data, which is
    what a cache hit hands back verbatim.
    Example:
      @async_cached(lambda board_id: board_tasks_key(board_id))
      async def list_tasks_by_board(self, board_id): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            key = key_builder(*args, **kwargs)

            # loader closure calls the original method
            async def loader():
                return await fn(self, *args, **kwargs)

            return await self.cache.get(key, loader=loader, ttl=ttl)

        return wrapper

    return decorator
