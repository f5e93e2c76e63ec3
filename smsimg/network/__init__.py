"""
Networking for both channels.

This package provides:
- BulkChannel: relay connection with fixed-delay reconnection
- RelayHub: broadcast hub used by the relay server
- NarrowChannelAdapter: SMS framing and witness sending
- Narrow transports: loopback (in-process) and relay-simulated SMS
"""

from .bulk import BulkChannel, ChannelStatus
from .relay import RelayHub
from .narrow import (
    NarrowTransport,
    LoopbackNetwork,
    LoopbackNarrowTransport,
    RelayNarrowTransport,
    NarrowChannelAdapter,
    witness_indices,
)

__all__ = [
    "BulkChannel",
    "ChannelStatus",
    "RelayHub",
    "NarrowTransport",
    "LoopbackNetwork",
    "LoopbackNarrowTransport",
    "RelayNarrowTransport",
    "NarrowChannelAdapter",
    "witness_indices",
]
