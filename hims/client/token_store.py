import json
from pathlib import Path
from typing import Optional, Union

from loguru import logger


class TokenStore:
    """Bearer token persisted as a small JSON file.

    With ``path=None`` the token lives in memory only.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        self._token: Optional[str] = None
        self._loaded = False

    def get(self) -> Optional[str]:
        if not self._loaded:
            self._token = self._read()
            self._loaded = True
        return self._token

    def set(self, token: str) -> None:
        self._token = token
        self._loaded = True
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({"token": token}), encoding="utf-8")

    def clear(self) -> None:
        self._token = None
        self._loaded = True
        if self.path and self.path.exists():
            self.path.unlink()

    def _read(self) -> Optional[str]:
        if not self.path or not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text(encoding="utf-8")).get("token")
        except (ValueError, AttributeError):
            logger.warning(f"Ignoring unreadable token file {self.path}")
            return None
