import json
import re
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate bare hosts and comma separated values so a
    # misconfigured deployment still starts.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if not raw or raw == "[]":
                return []
            if raw == "*":
                return ["*"]

    parts = [p for p in re.split(r"[,\s]+", raw) if p]
    origins: list[str] = []
    for part in parts:
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
            continue
        # Browsers send the scheme in the Origin header.
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    seen: set[str] = set()
    result: list[str] = []
    for origin in origins:
        if origin in seen:
            continue
        seen.add(origin)
        result.append(origin)
    return result


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    Rate limit presets are read once when the application is created; they
    are not mutable at runtime.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Rate limiting presets (window lengths in seconds)
    # strict: authentication-style and expensive endpoints
    rate_limit_strict_requests: int = 5
    rate_limit_strict_window_seconds: float = 15 * 60
    # standard: general API endpoints
    rate_limit_standard_requests: int = 100
    rate_limit_standard_window_seconds: float = 15 * 60
    # Use the first X-Forwarded-For hop as client address. Only safe behind a
    # proxy that sets the header; disable when clients connect directly.
    rate_limit_trust_forwarded_for: bool = True

    # AI classifier (OpenAI-compatible chat completions endpoint)
    llm_api_key: str = ""
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai"
    llm_model: str = "gemini-2.5-flash-lite"
    llm_temperature: float = 0.3
    classifier_timeout: float = 30.0  # Upper bound for a single classifier call
    mock_provider: bool = Field(default=False, validation_alias="INTAKE_MOCK_PROVIDER")

    # Knowledge base dataset (empty = packaged dataset)
    knowledge_base_path: str = ""

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 10.0
    httpx_read_timeout: float = 60.0
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # CORS settings
    # NoDecode keeps values like "43.163.94.63" from failing JSON decoding.
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("rate_limit_strict_requests", "rate_limit_standard_requests")
    @classmethod
    def validate_rate_limit_non_negative(cls, v: int) -> int:
        """A limit of 0 is allowed and rejects every request."""
        if v < 0:
            raise ValueError("Rate limit values must not be negative")
        return v

    @field_validator(
        "rate_limit_strict_window_seconds",
        "rate_limit_standard_window_seconds",
    )
    @classmethod
    def validate_window_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Rate limit windows must be positive")
        return v

    @field_validator(
        "classifier_timeout",
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "httpx_write_timeout",
        "httpx_pool_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("llm_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("llm_temperature must be between 0 and 2")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
