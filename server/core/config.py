"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000, ge=1, le=65535)
    debug: bool = Field(default=False)
    # The WhatsApp session is per-process, so only a single worker is valid
    workers: int = Field(default=1, ge=1, le=1)

    # Security
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Relay endpoint (Google Apps Script web app that decides replies)
    relay_url: Optional[str] = Field(default=None)
    relay_timeout: float = Field(default=30.0, gt=0, le=300)

    # WhatsApp session bridge (JSON-RPC over WebSocket)
    session_rpc_url: str = Field(default="ws://localhost:9400/ws/rpc")
    session_connect_timeout: float = Field(default=10.0, gt=0, le=120)
    # None = wait for the bridge as long as it takes
    session_command_timeout: Optional[float] = Field(default=None, gt=0)

    # Messaging
    bulk_send_delay: float = Field(default=2.0, ge=0, le=60)
    country_code: str = Field(default="91", min_length=1, max_length=4)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("country_code")
    @classmethod
    def validate_country_code(cls, v):
        """Country code is matched against digit-only phone strings."""
        if not v.isdigit():
            raise ValueError("country_code must contain digits only")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def relay_enabled(self) -> bool:
        return bool(self.relay_url)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "forbid",
        "env_parse_none_str": "none",
    }
