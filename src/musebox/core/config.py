"""Configuration management for the MuseBox prompt studio.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the MUSEBOX_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (MUSEBOX_* prefix)
2. .env file in the project root
3. Default values defined in MuseboxConfig

Example .env file:
    MUSEBOX_API_KEY=your-gemini-api-key
    MUSEBOX_DEMO_DELAY_SECONDS=1.5
    MUSEBOX_PREMIUM_FALLBACK=true
    MUSEBOX_DATA_DIR=data

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
The FastAPI application reads it once when it builds its :class:`Studio`.

Demo Mode
---------
When ``api_key`` is not set (or ``demo_mode`` is true) every generation call
takes the demo/mock path: after ``demo_delay_seconds`` a placeholder image
from a small fixed gallery is returned and the remote model is never
contacted.  This keeps the studio usable without a live backend.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MuseboxConfig(BaseSettings):
    """Main configuration for the MuseBox studio.

    Attributes
    ----------
    Credentials:
        api_key : str | None
            Key for the remote generation service.  ``None`` forces demo mode.

    Dispatch Policy:
        demo_mode : bool
            Always substitute mock results, even when a key is configured
        demo_delay_seconds : float
            Artificial delay applied to every mock result
        premium_fallback : bool
            Retry once on the base-tier model when the premium model is
            denied.  When False the permission error is surfaced directly.
        request_timeout_ms : int
            HTTP timeout handed to the SDK client

    Randomizer:
        random_presence_probability : float
            Probability that optional text/image fields are filled during a
            random spawn

    Paths:
        data_dir : Path
            Directory holding the persisted session files

    Server:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn (1024-65535)
        log_level : str
            Root logging level applied by the CLI entry point
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MUSEBOX_",
        case_sensitive=False,
    )

    # Credentials
    api_key: str | None = Field(
        default=None,
        description="API key for the remote generation service (None = demo mode)",
    )

    # Dispatch policy
    demo_mode: bool = Field(
        default=False,
        description="Force the demo/mock path for every generation",
    )
    demo_delay_seconds: float = Field(
        default=1.5,
        description="Artificial delay before a mock result is returned",
        ge=0.0,
        le=30.0,
    )
    premium_fallback: bool = Field(
        default=True,
        description="Fall back to the base model when the premium model is denied",
    )
    request_timeout_ms: int = Field(
        default=120_000,
        description="HTTP timeout for remote calls in milliseconds",
        ge=1_000,
    )

    # Randomizer
    random_presence_probability: float = Field(
        default=0.5,
        description="Inclusion probability for optional fields during random spawn",
        ge=0.0,
        le=1.0,
    )

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for persisted session state",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level for the CLI entry point",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the data directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def has_credentials(self) -> bool:
        """Whether a non-blank API key is configured."""
        return bool(self.api_key and self.api_key.strip())


# Global configuration instance
# Loads values from environment variables (MUSEBOX_* prefix) and .env file.
config = MuseboxConfig()
