"""Shared fixtures for smsimg tests."""

import socket

import pytest
import pytest_asyncio
from PIL import Image

from smsimg.engine.media import ImageResizer
from smsimg.server.server import RelayServer


class FixedResizer(ImageResizer):
    """Resizer that returns fixed bytes and records its calls."""

    def __init__(self, data: bytes = bytes(range(256)) * 3) -> None:
        self.data = data
        self.calls = []

    async def resize(self, uri, max_width, max_height, quality):
        self.calls.append((uri, max_width, max_height, quality))
        return self.data


@pytest.fixture
def resizer():
    return FixedResizer()


@pytest.fixture
def sample_image(tmp_path):
    """An 800x600 PNG on disk."""
    path = tmp_path / "photo.png"
    Image.effect_noise((800, 600), 64).convert("RGB").save(path)
    return path


@pytest.fixture
def free_port():
    """A TCP port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest_asyncio.fixture
async def relay_server():
    """Relay on an ephemeral localhost port."""
    server = RelayServer(host="127.0.0.1", port=0)
    await server.start()
    yield server
    await server.stop()
