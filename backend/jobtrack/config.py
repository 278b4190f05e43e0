"""Application configuration with Pydantic Settings validation."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _as_bool(v: object) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "on"}
    return bool(v)


class AppConfig(BaseSettings):
    """All application settings, loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Mailbox (IMAP) ────────────────────────────────────
    # Credentials may be blank at startup; a scan then fails with
    # AuthorizationRequiredError instead of the server refusing to boot.
    imap_host: str = ""
    imap_port: int = 993
    email_username: str = ""
    email_password: SecretStr = SecretStr("")
    email_folder: str = "INBOX"
    imap_timeout_sec: int = 30
    imap_gmail_raw_search: Optional[bool] = None  # None = auto-detect from host

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite:///jobtrack.db"

    # ── Scanning ──────────────────────────────────────────
    max_scan_emails: int = Field(200, ge=1, le=1000)
    scan_concurrency: int = Field(4, ge=1, le=32)
    default_days_back: int = Field(7, ge=1)
    body_excerpt_chars: int = 500

    # ── LLM ───────────────────────────────────────────────
    llm_enabled: bool = True
    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_api_key: SecretStr = SecretStr("")
    openai_api_key: SecretStr = SecretStr("")  # backward compat
    llm_timeout_sec: int = 45
    llm_body_chars: int = 1000
    cost_input_per_mtok: float = 0.15
    cost_output_per_mtok: float = 0.60

    # ── Server ────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # ── Logging ───────────────────────────────────────────
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # ── Validators ────────────────────────────────────────
    @field_validator("llm_enabled", mode="before")
    @classmethod
    def parse_bool(cls, v: object) -> bool:
        return _as_bool(v)

    @field_validator("imap_gmail_raw_search", mode="before")
    @classmethod
    def parse_optional_bool(cls, v: object) -> Optional[bool]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return _as_bool(v)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def ensure_string(cls, v: object) -> str:
        return str(v).strip()

    @model_validator(mode="after")
    def _resolve_api_key(self) -> "AppConfig":
        """Fall back to OPENAI_API_KEY if LLM_API_KEY is empty."""
        if not self.llm_api_key.get_secret_value() and self.openai_api_key.get_secret_value():
            self.llm_api_key = self.openai_api_key
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def has_mailbox_credentials(self) -> bool:
        return bool(
            self.imap_host
            and self.email_username
            and self.email_password.get_secret_value()
        )

    @property
    def use_gmail_raw_search(self) -> bool:
        """Whether the IMAP server understands Gmail's X-GM-RAW search."""
        if self.imap_gmail_raw_search is not None:
            return self.imap_gmail_raw_search
        return self.imap_host.lower().endswith("gmail.com")


def get_config() -> AppConfig:
    """Load and return validated application config."""
    return AppConfig()
