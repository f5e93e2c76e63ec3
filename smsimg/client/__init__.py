"""Endpoint and command-line client."""

from .client import Endpoint

__all__ = ["Endpoint"]
