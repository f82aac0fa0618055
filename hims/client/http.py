"""
Async HTTP client for the HIMS API.

Requests carry the stored bearer token. Every failed request produces exactly
one user-facing notification (several for a 422 with field errors) and then
raises ``ApiError``; nothing is retried.
"""

from pathlib import Path
import re
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

import httpx
from loguru import logger

from hims.client.config import ClientSettings
from hims.client.notifications import Notifier
from hims.client.token_store import TokenStore

SESSION_EXPIRED = "Session expired. Please login again."
FORBIDDEN = "You do not have permission to perform this action."
NOT_FOUND = "Resource not found."
VALIDATION_ERROR = "Validation error"
TOO_MANY_REQUESTS = "Too many requests. Please try again later."
SERVER_ERROR = "Server error. Please try again later."
GENERIC_ERROR = "An error occurred"
NETWORK_ERROR = "Network error. Please check your connection."
UNEXPECTED_ERROR = "An unexpected error occurred"

STATUS_MESSAGES = {
    401: SESSION_EXPIRED,
    403: FORBIDDEN,
    404: NOT_FOUND,
    429: TOO_MANY_REQUESTS,
    500: SERVER_ERROR,
}

UnauthorizedHook = Callable[[], Union[None, Awaitable[None]]]


class ApiError(Exception):
    """A request that did not produce a successful response"""

    def __init__(self, message: str, status_code: Optional[int] = None, data: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.data = data or {}
        super().__init__(message)


def unwrap(payload: Any) -> Any:
    """Accept both ``{data: X}`` and ``{data: {data: X}}``"""
    if isinstance(payload, Mapping) and "data" in payload:
        inner = payload["data"]
        if isinstance(inner, Mapping) and "data" in inner:
            return inner["data"]
        return inner
    return payload


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class ApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token_store: Optional[TokenStore] = None,
        notifier: Optional[Notifier] = None,
        timeout: Optional[float] = None,
        on_unauthorized: Optional[UnauthorizedHook] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = ClientSettings()
        self.token_store = token_store or TokenStore(settings.TOKEN_FILE)
        self.notifier = notifier or Notifier()
        self.on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.API_URL).rstrip("/"),
            timeout=timeout if timeout is not None else settings.TIMEOUT,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        headers = dict(extra or {})
        token = self.token_store.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        files: Any = None,
        data: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            response = await self._client.request(
                method, url, params=params, json=json, files=files, data=data, headers=self._headers(headers)
            )
        except httpx.TransportError as e:
            self.notifier.error(NETWORK_ERROR)
            raise ApiError(NETWORK_ERROR) from e
        except httpx.HTTPError as e:
            self.notifier.error(UNEXPECTED_ERROR)
            raise ApiError(UNEXPECTED_ERROR) from e

        if response.is_error:
            await self._handle_error(response)
        return response

    async def _handle_error(self, response: httpx.Response) -> None:
        status = response.status_code
        body = _json_body(response)
        logger.debug(f"{response.request.method} {response.request.url} -> {status}")

        if status == 422:
            errors = body.get("errors")
            if isinstance(errors, list) and errors:
                for err in errors:
                    msg = err.get("msg") if isinstance(err, dict) else None
                    self.notifier.error(msg or VALIDATION_ERROR)
                message = body.get("message") or VALIDATION_ERROR
            else:
                message = body.get("message") or VALIDATION_ERROR
                self.notifier.error(message)
            raise ApiError(message, status, body)

        message = STATUS_MESSAGES.get(status) or body.get("message") or GENERIC_ERROR
        if status == 401:
            self.token_store.clear()
        self.notifier.error(message)
        if status == 401 and self.on_unauthorized is not None:
            result = self.on_unauthorized()
            if result is not None:
                await result
        raise ApiError(message, status, body)

    async def _json(self, method: str, url: str, **kwargs) -> Any:
        response = await self.request(method, url, **kwargs)
        if not response.content:
            return {}
        return response.json()

    async def get(self, url: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self._json("GET", url, params=params)

    async def post(self, url: str, json: Any = None, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self._json("POST", url, json=json if json is not None else {}, params=params)

    async def put(self, url: str, json: Any = None) -> Any:
        return await self._json("PUT", url, json=json if json is not None else {})

    async def patch(self, url: str, json: Any = None) -> Any:
        return await self._json("PATCH", url, json=json if json is not None else {})

    async def delete(self, url: str) -> Any:
        return await self._json("DELETE", url)

    async def upload_file(
        self,
        url: str,
        content: bytes,
        filename: str,
        field: str = "file",
        content_type: str = "application/octet-stream",
    ) -> Any:
        return await self._json("POST", url, files={field: (filename, content, content_type)})

    async def download_file(
        self,
        url: str,
        destination: Union[str, Path],
        params: Optional[Mapping[str, Any]] = None,
    ) -> Path:
        """Save an attachment; a directory destination keeps the server's filename"""
        response = await self.request("GET", url, params=params)
        target = Path(destination)
        if target.is_dir():
            target = target / self._attachment_name(response, url)
        target.write_bytes(response.content)
        logger.info(f"Downloaded {target.name} ({len(response.content)} bytes)")
        return target

    @staticmethod
    def _attachment_name(response: httpx.Response, url: str) -> str:
        disposition = response.headers.get("content-disposition", "")
        match = re.search(r'filename="?([^";]+)"?', disposition)
        if match:
            return match.group(1)
        return url.rstrip("/").rsplit("/", 1)[-1] or "download"
