"""Relay server for the bulk channel."""

from .server import RelayServer, main

__all__ = ["RelayServer", "main"]
