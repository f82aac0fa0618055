import asyncio
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from hims.client.http import unwrap

T = TypeVar("T")

DEFAULT_DELAY = 0.4
MIN_SEARCH_LENGTH = 2


class Debouncer(Generic[T]):
    """Run a coroutine callback only after calls stop arriving for ``delay`` seconds.

    A call superseded while still waiting resolves to ``None``. Once the
    callback has started it runs to completion.
    """

    def __init__(self, callback: Callable[..., Awaitable[T]], delay: float = DEFAULT_DELAY):
        self.callback = callback
        self.delay = delay
        self._waiting: Optional[asyncio.Task] = None

    def cancel(self) -> None:
        if self._waiting is not None and not self._waiting.done():
            self._waiting.cancel()
        self._waiting = None

    async def _delayed(self, *args, **kwargs) -> T:
        await asyncio.sleep(self.delay)
        self._waiting = None
        return await self.callback(*args, **kwargs)

    async def __call__(self, *args, **kwargs) -> Optional[T]:
        self.cancel()
        task = asyncio.ensure_future(self._delayed(*args, **kwargs))
        self._waiting = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            return None
        return task.result()


class AsyncOptionLoader:
    """Debounced ``{value, label}`` options for a search-as-you-type select"""

    def __init__(
        self,
        search: Callable[[str], Awaitable[Any]],
        label: Callable[[Dict[str, Any]], str],
        value_key: str = "id",
        min_length: int = MIN_SEARCH_LENGTH,
        delay: float = DEFAULT_DELAY,
    ):
        self.search = search
        self.label = label
        self.value_key = value_key
        self.min_length = min_length
        self._debouncer = Debouncer(self._fetch, delay)

    async def _fetch(self, text: str) -> List[Dict[str, Any]]:
        items = unwrap(await self.search(text))
        if not isinstance(items, list):
            return []
        return [{"value": item[self.value_key], "label": self.label(item)} for item in items]

    async def load(self, text: str) -> List[Dict[str, Any]]:
        text = (text or "").strip()
        if len(text) < self.min_length:
            self._debouncer.cancel()
            return []
        return await self._debouncer(text) or []
