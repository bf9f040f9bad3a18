"""
Configuration management for pubky.

Handles:
- Relay selection for homeserver resolution
- Default homeserver
- Network timeouts and cache sizing
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .network.relay import DEFAULT_RELAY

logger = logging.getLogger(__name__)

# Default paths
DEFAULT_DATA_DIR = Path.home() / ".pubky"

DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_CACHE_MAX_ENTRIES = 1024


@dataclass
class Config:
    """
    Main pubky configuration.

    Stored at ~/.pubky/config.json
    """
    # Paths
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)

    # Resolution
    relay_url: Optional[str] = DEFAULT_RELAY  # None = use the record store directly
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES

    # Homeserver used when signup/login get no explicit URL
    homeserver_url: Optional[str] = None

    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.json"

    def ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> dict:
        return {
            "relay_url": self.relay_url,
            "cache_max_entries": self.cache_max_entries,
            "homeserver_url": self.homeserver_url,
            "request_timeout": self.request_timeout,
        }

    def save(self) -> None:
        """Save configuration to disk."""
        self.ensure_data_dir()

        with open(self.config_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.debug(f"Configuration saved to {self.config_path}")

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> "Config":
        """Load configuration from disk."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        config_path = data_dir / "config.json"

        if not config_path.exists():
            return cls(data_dir=data_dir)

        with open(config_path, 'r') as f:
            data = json.load(f)

        return cls(
            data_dir=data_dir,
            relay_url=data.get("relay_url", DEFAULT_RELAY),
            cache_max_entries=data.get("cache_max_entries", DEFAULT_CACHE_MAX_ENTRIES),
            homeserver_url=data.get("homeserver_url"),
            request_timeout=data.get("request_timeout", DEFAULT_REQUEST_TIMEOUT),
        )

    @classmethod
    def exists(cls, data_dir: Optional[Path] = None) -> bool:
        """Check if configuration exists."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        return (data_dir / "config.json").exists()


# Global config instance
_config: Optional[Config] = None


def get_config(data_dir: Optional[Path] = None) -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load(data_dir)
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
