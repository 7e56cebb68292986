import base64
import io
from types import SimpleNamespace

import pytest
from PIL import Image

from utils.media_validation import validate_image_bytes


class FakeResponses:
    """Stand-in for `AsyncOpenAI().responses` that records every call."""

    def __init__(self, text="RISK LEVEL: LOW\nHealthy pink mucosa.", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            id=f"resp_{len(self.calls)}",
            output=[
                SimpleNamespace(
                    type="message",
                    content=[SimpleNamespace(type="output_text", text=self.text)],
                )
            ],
            usage=SimpleNamespace(input_tokens=120, output_tokens=48),
        )


class FakeOpenAIClient:
    def __init__(self, text="RISK LEVEL: LOW\nHealthy pink mucosa.", error=None):
        self.responses = FakeResponses(text=text, error=error)


def make_image_bytes(fmt="PNG", size=(32, 24), color=(200, 90, 90)):
    img = Image.new("RGB", size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def image_factory():
    return make_image_bytes


@pytest.fixture
def client_factory():
    return FakeOpenAIClient


@pytest.fixture
def fake_client():
    return FakeOpenAIClient()


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def png_b64(png_bytes):
    return base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def png_data_uri(png_b64):
    return f"data:image/png;base64,{png_b64}"


@pytest.fixture
def bmp_bytes():
    return make_image_bytes("BMP")


@pytest.fixture
def validated_png(png_bytes):
    return validate_image_bytes(png_bytes)
