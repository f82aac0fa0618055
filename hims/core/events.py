from typing import Optional, Dict, Any
import json
import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from hims.core.security import verify_token


logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every API request with its outcome and the acting user"""

    # Routes that are not logged
    EXCLUDED_ROUTES = [
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json"
    ]

    # Sensitive fields to mask in logs
    SENSITIVE_FIELDS = [
        "password", "token", "secret", "authorization",
        "cookie", "session", "national_id", "id_number"
    ]

    async def dispatch(self, request: Request, call_next):
        if any(request.url.path.startswith(route) for route in self.EXCLUDED_ROUTES):
            return await call_next(request)

        start_time = time.time()
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        user_id = self._get_user_id(request)
        if logger.isEnabledFor(logging.DEBUG):
            payload = await self._get_json_body(request)
            if payload is not None:
                logger.debug(f"[{request_id}] body {json.dumps(self._mask_sensitive_data(payload), default=str)}")

        try:
            response = await call_next(request)
        except Exception:
            processing_time = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] {request.method} {request.url.path} failed after {processing_time:.1f}ms user={user_id}"
            )
            raise

        processing_time = (time.time() - start_time) * 1000
        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            f"[{request_id}] {request.method} {request.url.path} {response.status_code} "
            f"{processing_time:.1f}ms user={user_id}"
        )

        response.headers["X-Request-ID"] = request_id
        return response

    def _get_user_id(self, request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return None

        payload = verify_token(auth_header.split(" ", 1)[1], "access")
        return payload.get("sub") if payload else None

    async def _get_json_body(self, request: Request) -> Optional[Any]:
        if "application/json" not in request.headers.get("content-type", ""):
            return None
        body = await request.body()
        if not body:
            return None
        try:
            return json.loads(body)
        except ValueError:
            return None

    def _mask_sensitive_data(self, data: Any) -> Any:
        """Mask sensitive data in request payloads"""
        if isinstance(data, list):
            return [self._mask_sensitive_data(item) for item in data]
        if not isinstance(data, dict):
            return data

        masked_data: Dict[str, Any] = {}
        for key, value in data.items():
            key_lower = str(key).lower()
            if any(sensitive in key_lower for sensitive in self.SENSITIVE_FIELDS):
                masked_data[key] = "***MASKED***"
            else:
                masked_data[key] = self._mask_sensitive_data(value)
        return masked_data
