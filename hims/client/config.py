from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    API_URL: str = "http://localhost:8000/api/v1"
    TIMEOUT: float = 10.0
    TOKEN_FILE: str = str(Path.home() / ".hims" / "token.json")

    model_config = SettingsConfigDict(env_prefix="HIMS_", env_file=".env", extra="ignore")
