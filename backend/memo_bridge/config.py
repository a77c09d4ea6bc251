"""
Memo Bridge Backend — Application Configuration
================================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types and choices, and provides a default `settings` object.
Who:   Passed explicitly into create_app() and MemoService.
When:  Loaded once at process start; never mutated afterwards.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The three credentials (API_TOKEN, SCRAPBOX_PROJECT, SCRAPBOX_SID) default
    to empty so the module imports cleanly; validate_required() reports them
    at startup.
    """

    # ── Inbound authentication ────────────────────────────────────────────
    # Clients must send `Authorization: Bearer <api_token>`
    api_token: str = Field(default="", description="Shared secret for inbound requests")

    # ── Scrapbox upstream ─────────────────────────────────────────────────
    scrapbox_project: str = Field(default="", description="Target Scrapbox project name")

    # What: Value of the `connect.sid` cookie of a logged-in browser session
    # How to obtain: browser devtools → Application → Cookies → scrapbox.io
    scrapbox_sid: str = Field(default="", description="Scrapbox session cookie value")

    scrapbox_base_url: str = Field(default="https://scrapbox.io")

    # What: Which upstream contract is used to obtain the CSRF token
    #   page     → scrape the project page (meta tag, inline script, Set-Cookie)
    #   user_api → read `csrfToken` from /api/users/me JSON
    csrf_strategy: Literal["page", "user_api"] = Field(default="page")

    # What: When False, a missing token is sent as "no token" instead of failing
    csrf_token_required: bool = Field(default=True)

    # What: Submission encoding of the import request
    #   json      → application/json body
    #   multipart → form field `import-file` carrying import.json
    import_encoding: Literal["json", "multipart"] = Field(default="json")

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @field_validator("scrapbox_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def validate_required(self) -> None:
        """
        What:  Checks that the credentials needed to serve a request are set.
        When:  Called during app startup (lifespan).
        Raises: ValueError listing every missing setting.
        """
        errors = []
        if not self.api_token:
            errors.append("API_TOKEN is not set. Inbound requests will all be rejected.")
        if not self.scrapbox_project:
            errors.append("SCRAPBOX_PROJECT is not set.")
        if not self.scrapbox_sid:
            errors.append(
                "SCRAPBOX_SID is not set. Copy the connect.sid cookie "
                "from a logged-in browser session."
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


settings = Settings()
