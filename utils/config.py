"""
Configuration management.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List


def _split_origins(value: str) -> List[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    allowed_origins: List[str] = field(
        default_factory=lambda: _split_origins(
            os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
        )
    )

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    # Data
    data_dir: str = field(default_factory=lambda: os.getenv("DATA_DIR", "./data"))

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def configure_logging(self) -> None:
        """Set up root logging at the configured level."""
        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "allowed_origins": self.allowed_origins,
            "log_level": self.log_level,
            "data_dir": self.data_dir,
        }
