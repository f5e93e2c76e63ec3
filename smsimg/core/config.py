"""
smsimg configuration.

Provides sensible defaults with override capability.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional
import json
import os

from pydantic import BaseModel, Field, ConfigDict


PROTOCOL_PREFIX = "[SMSIMG]"
FRAGMENT_SIZE = 1200
MAX_DIMENSION = 400
JPEG_QUALITY = 50
SETTLE_DELAY = 8.0
PACING_DELAY = 1.0
RECONNECT_INTERVAL = 3.0

DEFAULT_RELAY_HOST = "localhost"
DEFAULT_RELAY_PORT = 8080


class BroadcastPolicy(str, Enum):
    """Who receives a message the relay forwards."""

    EXCLUDE_SENDER = "exclude_sender"
    INCLUDE_SENDER = "include_sender"


class SmsImgConfig(BaseModel):
    """
    Configuration for an smsimg endpoint or relay.

    Environment variables override defaults (SMSIMG_* prefix).
    """

    # Relay / bulk channel
    relay_host: str = DEFAULT_RELAY_HOST
    relay_port: int = DEFAULT_RELAY_PORT
    relay_url: Optional[str] = None
    broadcast_policy: BroadcastPolicy = BroadcastPolicy.EXCLUDE_SENDER
    reconnect_interval: float = RECONNECT_INTERVAL

    # Narrow channel
    prefix: str = PROTOCOL_PREFIX
    pacing_delay: float = PACING_DELAY

    # Codec
    fragment_size: int = FRAGMENT_SIZE
    max_dimension: int = MAX_DIMENSION
    quality: int = JPEG_QUALITY

    # Receiver
    settle_delay: float = SETTLE_DELAY
    downloads_dir: Path = Field(default_factory=lambda: Path.home() / ".smsimg" / "downloads")

    # Logging
    log_level: str = "INFO"

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def model_post_init(self, __context):
        """Apply environment variable overrides."""
        self._apply_env_overrides()
        if self.relay_url is None:
            self.relay_url = f"ws://{self.relay_host}:{self.relay_port}"

    def _apply_env_overrides(self):
        """Override config from environment variables."""
        env_map = {
            "SMSIMG_RELAY_HOST": ("relay_host", str),
            "SMSIMG_RELAY_PORT": ("relay_port", int),
            "SMSIMG_RELAY_URL": ("relay_url", str),
            "SMSIMG_BROADCAST_POLICY": ("broadcast_policy", BroadcastPolicy),
            "SMSIMG_SETTLE_DELAY": ("settle_delay", float),
            "SMSIMG_PACING_DELAY": ("pacing_delay", float),
            "SMSIMG_RECONNECT_INTERVAL": ("reconnect_interval", float),
            "SMSIMG_DOWNLOADS_DIR": ("downloads_dir", Path),
            "SMSIMG_LOG_LEVEL": ("log_level", str),
        }

        for env_var, (attr, type_fn) in env_map.items():
            value = os.environ.get(env_var)
            if value is not None:
                setattr(self, attr, type_fn(value))

    def to_dict(self) -> dict[str, Any]:
        """Export config to dictionary."""
        return {
            "relay_url": self.relay_url,
            "broadcast_policy": self.broadcast_policy.value,
            "prefix": self.prefix,
            "fragment_size": self.fragment_size,
            "max_dimension": self.max_dimension,
            "quality": self.quality,
            "settle_delay": self.settle_delay,
            "pacing_delay": self.pacing_delay,
            "reconnect_interval": self.reconnect_interval,
            "downloads_dir": str(self.downloads_dir),
            "log_level": self.log_level,
        }

    def save(self, path: Path) -> None:
        """Save config to file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> "SmsImgConfig":
        """Load config from file."""
        with open(path) as f:
            data = json.load(f)

        return cls(
            relay_url=data.get("relay_url"),
            broadcast_policy=BroadcastPolicy(
                data.get("broadcast_policy", BroadcastPolicy.EXCLUDE_SENDER.value)
            ),
            prefix=data.get("prefix", PROTOCOL_PREFIX),
            fragment_size=data.get("fragment_size", FRAGMENT_SIZE),
            max_dimension=data.get("max_dimension", MAX_DIMENSION),
            quality=data.get("quality", JPEG_QUALITY),
            settle_delay=data.get("settle_delay", SETTLE_DELAY),
            pacing_delay=data.get("pacing_delay", PACING_DELAY),
            reconnect_interval=data.get("reconnect_interval", RECONNECT_INTERVAL),
            downloads_dir=Path(data.get("downloads_dir", Path.home() / ".smsimg" / "downloads")),
            log_level=data.get("log_level", "INFO"),
        )

    @classmethod
    def development(cls) -> "SmsImgConfig":
        """Create development config with short timers."""
        return cls(
            settle_delay=1.0,
            pacing_delay=0.1,
            reconnect_interval=1.0,
            log_level="DEBUG",
        )
