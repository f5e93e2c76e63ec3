"""
Image collaborators for the sender and receiver.

This module provides:
- ImageResizer: the resize interface the sender pipeline depends on
- PillowResizer: default resizer (bounding box, JPEG quality)
- ReconstructedImage: a verified image produced by the receiver
"""

import asyncio
import base64
import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse, unquote

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class MediaError(Exception):
    """Base exception for image handling errors."""
    pass


class ImageNotFoundError(MediaError):
    """Image file does not exist."""
    pass


class UnsupportedImageError(MediaError):
    """File could not be decoded as an image."""
    pass


def uri_to_path(uri: str | Path) -> Path:
    """
    Resolve a file URI or plain path to a Path.

    Args:
        uri: 'file:///...' URI or filesystem path

    Returns:
        Filesystem path
    """
    if isinstance(uri, Path):
        return uri
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., '1.5 KB')
    """
    for unit in ["B", "KB", "MB", "GB"]:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}" if size_bytes != int(size_bytes) else f"{int(size_bytes)} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


class ImageResizer(ABC):
    """Reduces an image to fit a bounding box."""

    @abstractmethod
    async def resize(
        self,
        uri: str,
        max_width: int,
        max_height: int,
        quality: int
    ) -> bytes:
        """
        Resize an image.

        Args:
            uri: Source image path or file URI
            max_width: Bounding box width
            max_height: Bounding box height
            quality: JPEG quality (0-100)

        Returns:
            Encoded bytes of the reduced image
        """


class PillowResizer(ImageResizer):
    """
    Resizer backed by Pillow.

    Keeps the aspect ratio, never upscales, and re-encodes as JPEG.
    """

    async def resize(
        self,
        uri: str,
        max_width: int,
        max_height: int,
        quality: int
    ) -> bytes:
        return await asyncio.to_thread(
            self.resize_sync, uri, max_width, max_height, quality
        )

    def resize_sync(
        self,
        uri: str,
        max_width: int,
        max_height: int,
        quality: int
    ) -> bytes:
        path = uri_to_path(uri)
        if not path.is_file():
            raise ImageNotFoundError(f"Image not found: {path}")

        try:
            with Image.open(path) as img:
                img = img.convert("RGB")
                img.thumbnail((max_width, max_height), Image.LANCZOS)
                out = io.BytesIO()
                img.save(out, format="JPEG", quality=quality, optimize=True)
        except UnidentifiedImageError as e:
            raise UnsupportedImageError(f"Not an image: {path}") from e
        except (OSError, Image.DecompressionBombError) as e:
            raise UnsupportedImageError(f"Cannot decode image {path}: {e}") from e

        data = out.getvalue()
        logger.debug(f"Resized {path.name} to {img.width}x{img.height} ({format_file_size(len(data))})")
        return data


class ReconstructedImage(BaseModel):
    """A received image that passed the final checksum gate."""

    canonical: str
    checksum: str
    encrypted: bool = False
    saved_path: Optional[Path] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def data(self) -> bytes:
        """Decoded image bytes."""
        return base64.b64decode(self.canonical)

    @property
    def data_uri(self) -> str:
        return "data:image/jpeg;base64," + self.canonical

    @property
    def size_formatted(self) -> str:
        return format_file_size(len(self.data))

    def save(self, directory: Path, filename: Optional[str] = None) -> Path:
        """
        Save the image to disk.

        Args:
            directory: Directory to save to
            filename: Optional filename override

        Returns:
            Path to saved file
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        save_name = filename or f"smsimg_{self.checksum[:12]}.jpg"
        save_path = directory / save_name

        # Avoid overwriting
        if save_path.exists():
            stem = save_path.stem
            suffix = save_path.suffix
            counter = 1
            while save_path.exists():
                save_path = directory / f"{stem}_{counter}{suffix}"
                counter += 1

        with open(save_path, "wb") as f:
            f.write(self.data)

        self.saved_path = save_path
        logger.info(f"Saved image to {save_path}")
        return save_path

    def __repr__(self) -> str:
        return f"ReconstructedImage({self.checksum[:12]}..., {self.size_formatted})"
