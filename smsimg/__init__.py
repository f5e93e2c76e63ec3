"""
smsimg - dual-channel image transport.

Images travel as a full payload over a WebSocket relay (the bulk channel)
while a small witness subset travels by SMS (the narrow channel). The
receiver only reconstructs an image when both channels agree on its
fragment count and checksum.

Quick Start:
    from smsimg import Endpoint, SmsImgConfig

    endpoint = Endpoint.over_relay("+15550100", SmsImgConfig())
    await endpoint.start()
    await endpoint.send("+15550199", "photo.jpg")
"""

from .core.config import SmsImgConfig, BroadcastPolicy
from .core.exceptions import SmsImgError
from .client.client import Endpoint
from .server.server import RelayServer

__version__ = "0.1.0"

__all__ = [
    "Endpoint",
    "RelayServer",
    "SmsImgConfig",
    "BroadcastPolicy",
    "SmsImgError",
    "__version__",
]
