from hims.client.cache import QueryCache, query_key
from hims.client.http import ApiClient, ApiError, unwrap
from hims.client.notifications import Notification, Notifier
from hims.client.search import AsyncOptionLoader, Debouncer
from hims.client.services import HimsClient
from hims.client.token_store import TokenStore

__all__ = [
    "ApiClient",
    "ApiError",
    "AsyncOptionLoader",
    "Debouncer",
    "HimsClient",
    "Notification",
    "Notifier",
    "QueryCache",
    "TokenStore",
    "query_key",
    "unwrap",
]
