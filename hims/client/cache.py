from typing import Any, Awaitable, Callable, Dict, Hashable, Iterable, Optional, Tuple, TypeVar, Union

from loguru import logger

from hims.client.notifications import Notifier

T = TypeVar("T")

Key = Tuple[Hashable, ...]
KeyLike = Union[Hashable, Iterable[Hashable]]


def _as_key(key: KeyLike) -> Key:
    if isinstance(key, tuple):
        return key
    if isinstance(key, (str, bytes)) or not isinstance(key, Iterable):
        return (key,)
    return tuple(key)


class QueryCache:
    """Loader results keyed by tuples such as ``("patients", "page", 1)``.

    Invalidation works on key prefixes: ``invalidate("patients")`` drops every
    key whose first element is ``"patients"``.
    """

    def __init__(self, notifier: Optional[Notifier] = None):
        self.notifier = notifier or Notifier()
        self._entries: Dict[Key, Any] = {}

    def __contains__(self, key: KeyLike) -> bool:
        return _as_key(key) in self._entries

    def keys(self):
        return list(self._entries.keys())

    def get(self, key: KeyLike, default: Any = None) -> Any:
        return self._entries.get(_as_key(key), default)

    def set(self, key: KeyLike, value: Any) -> None:
        self._entries[_as_key(key)] = value

    async def fetch(self, key: KeyLike, loader: Callable[[], Awaitable[T]]) -> T:
        key = _as_key(key)
        if key in self._entries:
            return self._entries[key]
        value = await loader()
        self._entries[key] = value
        return value

    def invalidate(self, *prefixes: KeyLike) -> int:
        dropped = 0
        for prefix in (_as_key(p) for p in prefixes):
            for key in [k for k in self._entries if k[:len(prefix)] == prefix]:
                del self._entries[key]
                dropped += 1
        if dropped:
            logger.debug(f"Invalidated {dropped} cached queries")
        return dropped

    def clear(self) -> None:
        self._entries.clear()

    async def mutate(
        self,
        fn: Callable[[], Awaitable[T]],
        invalidates: Union[KeyLike, Iterable[KeyLike], None] = None,
        success_message: Optional[str] = None,
        error_message: str = "Operation failed",
    ) -> T:
        """Run a write; refresh dependent queries on success.

        ``invalidates`` is a list of key prefixes, or a single prefix given
        as a string or tuple.
        """
        if invalidates is None:
            invalidates = []
        elif isinstance(invalidates, (str, bytes, tuple)):
            invalidates = [invalidates]
        try:
            result = await fn()
        except Exception as e:
            self.notifier.error(getattr(e, "message", None) or error_message)
            raise
        self.invalidate(*invalidates)
        if success_message:
            self.notifier.success(success_message)
        return result


def query_key(name: str, *parts: Hashable, **params: Any) -> Key:
    """Hashable key from a resource name and its query parameters"""
    return (name, *parts, *(item for item in sorted(params.items()) if item[1] is not None))
