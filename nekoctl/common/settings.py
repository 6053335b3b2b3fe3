"""Application settings singleton - single source of truth for configuration

This module provides a singleton Settings class that consolidates:
1. Protocol-level constants shared with the host
2. Session tuning constants (timeouts, defaults)
3. Runtime configuration from config.yml

Usage:
    from nekoctl.common.settings import settings

    # Initialize once at startup with loaded config
    config = ConfigLoader.config_load()
    settings.initialize(config)

    # Use anywhere in the application
    await asyncio.wait_for(ready, timeout=settings.CONNECT_TIMEOUT_SEC)

Session state is never kept here; every NekoSession owns its own.
"""

from typing import Optional

from nekoctl.common.config import Config
from nekoctl.common.types import DEFAULT_DISPLAY_NAME, DEFAULT_VIDEO_HEIGHT, DEFAULT_VIDEO_WIDTH


class Settings:
    """Singleton settings manager combining config.yml and protocol constants"""

    _instance: Optional["Settings"] = None

    def __new__(cls) -> "Settings":
        """Ensure only one Settings instance exists"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Initialize settings singleton (only runs once)"""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._config: Optional[Config] = None

    def initialize(self, config: Config) -> None:
        """
        Initialize with loaded configuration

        Args:
            config: Loaded application configuration.
        """
        self._config = config

    # =========================================================================
    # Session Constants
    # =========================================================================

    CONNECT_TIMEOUT_SEC: float = 10.0
    """Deadline for the host offer after connect() starts (seconds)

    Covers channel opening, authentication and the wait for the host's
    session-description offer.
    """

    DEFAULT_VIDEO_WIDTH: int = DEFAULT_VIDEO_WIDTH
    """Video width reported before the host sends its resolution (pixels)"""

    DEFAULT_VIDEO_HEIGHT: int = DEFAULT_VIDEO_HEIGHT
    """Video height reported before the host sends its resolution (pixels)"""

    DEFAULT_DISPLAY_NAME: str = DEFAULT_DISPLAY_NAME
    """Display name sent with identity when none is configured"""

    DEFAULT_ICE_SERVER_URLS: tuple[str, ...] = ("stun:stun.l.google.com:19302",)
    """ICE servers used when the host offer carries none"""

    # =========================================================================
    # Client Constants
    # =========================================================================

    DEFAULT_RECONNECT_MAX_ATTEMPTS: int = 5
    """Reconnect attempts per outage"""

    DEFAULT_RECONNECT_DELAY_SEC: float = 2.0
    """Base reconnect delay (seconds); attempt N waits N times this"""

    # =========================================================================
    # Runtime Configuration Access
    # =========================================================================

    @property
    def config(self) -> Config:
        """
        Get loaded configuration object

        Returns:
            Loaded configuration.

        Raises:
            RuntimeError: If initialize() has not been called.
        """
        if self._config is None:
            raise RuntimeError("Settings not initialized. Call settings.initialize(config) first.")
        return self._config


# Global singleton instance
settings = Settings()
"""Global settings singleton instance

Import this anywhere in the application:
    from nekoctl.common.settings import settings
"""
