from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from dotenv import load_dotenv


def parse_header_pairs(raw: str | None) -> dict[str, str]:
    """Parse ``"Name: value, Other: value"`` into a header dict."""
    headers: dict[str, str] = {}
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        name, sep, value = part.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Malformed header (expected 'Name: value'): {part!r}")
        headers[name.strip()] = value.strip()
    return headers


class Settings(BaseSettings):
    # Logging
    log_level: str = "INFO"

    # Service
    base_url: str = Field(default="http://localhost:8080", validation_alias="PAGERKIT_BASE_URL")
    auth_token: str | None = Field(default=None, validation_alias="PAGERKIT_AUTH_TOKEN")

    # Transport
    timeout_seconds: float = Field(default=10.0, validation_alias="PAGERKIT_TIMEOUT_SECONDS")
    max_attempts: int = Field(default=3, ge=1, validation_alias="PAGERKIT_MAX_ATTEMPTS")
    extra_headers_raw: str | None = Field(default=None, validation_alias="PAGERKIT_EXTRA_HEADERS")

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }

    @property
    def extra_headers(self) -> dict[str, str]:
        return parse_header_pairs(self.extra_headers_raw)

    @classmethod
    def load(cls) -> "Settings":
        load_dotenv(override=False)
        return cls()
