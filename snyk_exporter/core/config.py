"""Exporter configuration loaded from environment variables and CLI overrides."""

from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SNYK_API_URL = "https://snyk.io/api/v1"

LOG_LEVELS = ("debug", "info", "warning", "error")


class Settings(BaseSettings):
    """Validated exporter settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    SNYK_API_URL: str = DEFAULT_SNYK_API_URL
    SNYK_API_TOKEN: SecretStr
    # Comma separated organization IDs; empty means every organization visible to the token.
    SNYK_ORGANIZATIONS: str = ""
    SNYK_INTERVAL_SEC: int = 600
    SNYK_REQUEST_TIMEOUT_SEC: float = 10.0
    SNYK_PAGE_SIZE: int = 1000

    # "skip" drops a failing project/organization; "abort_cycle" ends the cycle on timeouts.
    TRANSPORT_ERROR_POLICY: Literal["skip", "abort_cycle"] = "skip"

    LISTEN_ADDRESS: str = ":9532"
    LOG_LEVEL: str = "info"

    @field_validator("SNYK_API_URL")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("SNYK_API_URL must be set and non-empty")
        s = v.strip().lower()
        if not (s.startswith("http://") or s.startswith("https://")):
            raise ValueError(
                "SNYK_API_URL must use http or https (e.g. https://snyk.io/api/v1)"
            )
        return v.strip().rstrip("/")

    @field_validator("SNYK_API_TOKEN")
    @classmethod
    def validate_api_token(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value() or not v.get_secret_value().strip():
            raise ValueError("SNYK_API_TOKEN must be set and non-empty")
        return SecretStr(v.get_secret_value().strip())

    @field_validator("SNYK_ORGANIZATIONS")
    @classmethod
    def validate_organizations(cls, v: str) -> str:
        return ",".join(part.strip() for part in (v or "").split(",") if part.strip())

    @field_validator("SNYK_INTERVAL_SEC")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v < 1 or v > 86400:
            raise ValueError("SNYK_INTERVAL_SEC must be between 1 and 86400 (1 day)")
        return v

    @field_validator("SNYK_REQUEST_TIMEOUT_SEC")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        if v <= 0 or v > 600:
            raise ValueError(
                "SNYK_REQUEST_TIMEOUT_SEC must be greater than 0 and at most 600"
            )
        return v

    @field_validator("SNYK_PAGE_SIZE")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if v < 1 or v > 1000:
            raise ValueError("SNYK_PAGE_SIZE must be between 1 and 1000")
        return v

    @field_validator("LISTEN_ADDRESS")
    @classmethod
    def validate_listen_address(cls, v: str) -> str:
        host, sep, port = (v or "").strip().rpartition(":")
        if not sep or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(
                "LISTEN_ADDRESS must be host:port or :port (e.g. :9532)"
            )
        return v.strip()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        normalized = (v or "").strip().lower()
        if normalized not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {list(LOG_LEVELS)}")
        return normalized

    @property
    def organization_ids(self) -> list[str]:
        """Organization allow-list as a list; empty when all organizations are scraped."""
        if not self.SNYK_ORGANIZATIONS:
            return []
        return self.SNYK_ORGANIZATIONS.split(",")

    @property
    def listen_host(self) -> str:
        host = self.LISTEN_ADDRESS.rpartition(":")[0]
        return host or "0.0.0.0"

    @property
    def listen_port(self) -> int:
        return int(self.LISTEN_ADDRESS.rpartition(":")[2])
