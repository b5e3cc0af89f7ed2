"""
Shared fakes: images, OCR providers, transports and a frozen clock.
"""

import asyncio
import io

import pytest
from PIL import Image

from gradebot.models import ImageAsset, RecognizedText
from gradebot.services.ocr import OCRProvider
from gradebot.services.transport import InferenceTransport, TransportResponse


def make_image_bytes(size=(200, 100), color="white", fmt="PNG") -> bytes:
    img = Image.new("RGB", size, color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_asset(size=(200, 100), mime_type="image/png", fmt="PNG") -> ImageAsset:
    return ImageAsset.from_bytes(make_image_bytes(size, fmt=fmt), mime_type, "page.png")


def ok_body(content="ok", model="model-a", provider="fake", inp=10, out=5, total=None, latency=42) -> dict:
    return {
        "content": content,
        "usage": {
            "inputTokens": inp,
            "outputTokens": out,
            "totalTokens": inp + out if total is None else total,
        },
        "model": model,
        "provider": provider,
        "latency": latency,
    }


class FakeProvider(OCRProvider):
    """Returns a canned result, or raises it when it is an exception."""

    def __init__(self, name, result=None, delay=0.0):
        self.name = name
        self.result = result if result is not None else RecognizedText()
        self.delay = delay
        self.calls = []
        self.released = 0

    async def recognize(self, image, language_code, options=None):
        self.calls.append((image, language_code, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    async def release(self):
        self.released += 1


class FakeTransport(InferenceTransport):
    """
    replies maps model -> TransportResponse | Exception | ("sleep", seconds).
    Unlisted models answer 200 with ok_body(model=model).
    """

    provider = "fake"

    def __init__(self, replies=None):
        self.replies = replies or {}
        self.calls = []
        self.cancelled = []

    async def send(self, prompt, config, model):
        self.calls.append((prompt, config, model))
        reply = self.replies.get(model)
        if isinstance(reply, tuple) and reply[0] == "sleep":
            try:
                await asyncio.sleep(reply[1])
            except asyncio.CancelledError:
                self.cancelled.append(model)
                raise
            return TransportResponse(status_code=200, body=ok_body(model=model))
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            return TransportResponse(status_code=200, body=ok_body(model=model))
        return reply


class FrozenClock:
    """Time stands still unless a test moves it."""

    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def asset():
    return make_asset()


@pytest.fixture
def clock():
    return FrozenClock()
