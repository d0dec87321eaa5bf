# smooth_operator/config.py

"""Configuration management for Smooth Operator."""

import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class SmoothOperatorConfig(BaseSettings):
    """Configuration settings for Smooth Operator."""

    # Screengrasp.com API key, only needed for the AI-backed endpoints
    SCREENGRASP_API_KEY: Optional[str] = None

    # Attach to an already running server instead of starting one
    SERVER_URL: Optional[str] = None

    # Managed server installation
    SERVER_INSTALL_DIR: Optional[str] = None
    SERVER_BUNDLE_DIR: Optional[str] = None  # defaults to smooth_operator/assets
    SERVER_EXECUTABLE: str = "smooth-operator-server.exe"

    # Startup / shutdown timing
    STARTUP_TIMEOUT_MS: int = 30000  # shared by port handshake and readiness probe
    POLL_INTERVAL_MS: int = 100
    SHUTDOWN_GRACE_MS: int = 5000

    # Per-request HTTP timeout in seconds (AI endpoints can be slow)
    REQUEST_TIMEOUT: float = 100.0

    # Logging configuration
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None
    DISABLE_DEFAULT_LOGGING: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def INSTALL_DIR(self) -> Path:
        """Get the directory the server bundle is extracted into."""
        if self.SERVER_INSTALL_DIR:
            return Path(self.SERVER_INSTALL_DIR)
        if os.name == "nt" and os.environ.get("APPDATA"):
            app_data = Path(os.environ["APPDATA"])
        elif os.environ.get("XDG_DATA_HOME"):
            app_data = Path(os.environ["XDG_DATA_HOME"])
        else:
            app_data = Path.home() / ".local" / "share"
        return app_data / "SmoothOperator" / "AgentToolsServer"

    @property
    def BUNDLE_DIR(self) -> Path:
        """Get the directory holding the bundled server archive and marker."""
        if self.SERVER_BUNDLE_DIR:
            return Path(self.SERVER_BUNDLE_DIR)
        return Path(__file__).parent / "assets"


# Create a global config instance
config = SmoothOperatorConfig()
