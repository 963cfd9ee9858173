import asyncio
import io
import random

import pytest
from PIL import Image

from autotoon.server import create_app


def noise_png(size=(256, 256), seed=0) -> bytes:
    """A PNG that does not compress, so it clears the minimum payload size."""
    rnd = random.Random(seed)
    img = Image.frombytes("RGB", size, rnd.randbytes(size[0] * size[1] * 3))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def solid_image(size, fmt="PNG", mode="RGB", color=(200, 30, 30)) -> bytes:
    if mode == "RGBA":
        color = color + (128,)
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


class FakeClient:
    """
    Stand-in for GAIC.

    `text` maps a prompt to a reply (or an exception to raise); `images` is a
    queue of results for successive image calls: bytes, None or an exception.
    When the queue runs dry every call returns a valid noise PNG.
    """

    def __init__(self, text=None, images=None, text_delay=None):
        self.text = text or (lambda prompt: "generated text")
        self.images = list(images or [])
        self.text_delay = text_delay
        self.text_calls = []
        self.image_calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_text(self, prompt: str) -> str:
        self.text_calls.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.text_delay:
                await asyncio.sleep(self.text_delay(prompt))
            result = self.text(prompt)
        finally:
            self.in_flight -= 1
        if isinstance(result, Exception):
            raise result
        return result

    async def generate_image(self, prompt: str):
        self.image_calls.append(prompt)
        result = self.images.pop(0) if self.images else noise_png(seed=len(self.image_calls))
        if isinstance(result, Exception):
            raise result
        return result


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def app(tmp_path, fake_client, no_sleep):
    app = create_app(
        TESTING=True,
        GEMINI_API_KEY="test-key",
        GENERATED_DIR=tmp_path / "generated",
        LIBRARY_DIR=tmp_path / "library",
        SETTINGS_DIR=tmp_path / "settings",
        CLIENT_FACTORY=lambda: fake_client,
        SLEEP=no_sleep,
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()
