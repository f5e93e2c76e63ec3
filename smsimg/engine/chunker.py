"""
Payload fragmenter for the narrow channel.

This module provides:
- Fragment: one fixed-size slice of a text payload
- PayloadFragmenter: split a payload into ordered fragments
"""

from typing import Iterator

from pydantic import BaseModel, ConfigDict

from ..core.config import FRAGMENT_SIZE


class Fragment(BaseModel):
    """A single slice of a payload."""

    sequence: int
    total: int
    data: str

    model_config = ConfigDict(arbitrary_types_allowed=True)


class PayloadFragmenter:
    """
    Splits text payloads into fixed-size fragments.

    The last fragment may be shorter; the fragment count is
    ceil(len(payload) / fragment_size).
    """

    def __init__(self, fragment_size: int = FRAGMENT_SIZE) -> None:
        """
        Initialize fragmenter.

        Args:
            fragment_size: Maximum characters per fragment
        """
        if fragment_size <= 0:
            raise ValueError("fragment_size must be positive")
        self.fragment_size = fragment_size

    def count(self, payload: str) -> int:
        """Number of fragments a payload splits into."""
        return (len(payload) + self.fragment_size - 1) // self.fragment_size

    def chunk_iter(self, payload: str) -> Iterator[Fragment]:
        """
        Split a payload into fragments lazily.

        Args:
            payload: Text to split

        Yields:
            Fragment objects in order
        """
        total = self.count(payload)

        for i in range(total):
            start = i * self.fragment_size
            yield Fragment(
                sequence=i,
                total=total,
                data=payload[start:start + self.fragment_size]
            )


def fragment(payload: str, fragment_size: int = FRAGMENT_SIZE) -> list[str]:
    """
    Split a payload into ordered fixed-size slices.

    Args:
        payload: Text to split
        fragment_size: Maximum characters per slice

    Returns:
        List of slices whose concatenation is the payload
    """
    return [f.data for f in PayloadFragmenter(fragment_size).chunk_iter(payload)]

