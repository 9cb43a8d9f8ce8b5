"""
Pytest configuration and fixtures for storyboard tests.
"""
import asyncio
import os
import pytest
import tempfile
from pathlib import Path
from typing import List, Optional
from unittest.mock import AsyncMock

# Set test environment before importing storyboard modules
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="storyboard-tests-")
os.environ["GOOGLE_API_KEY"] = "test-google-key"
os.environ["DATA_DIR"] = _TEST_DATA_DIR
os.environ["AUTO_EXPORT"] = "false"
os.environ["DEBUG"] = "true"

from storyboard.models import AspectRatio, Character, ImageBlob  # noqa: E402
from storyboard.providers.exceptions import RenderFailure  # noqa: E402

# 1x1 PNG
PNG_BYTES = (
    b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01'
    b'\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde\x00\x00'
    b'\x00\x0cIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18'
    b'\xd8N\x00\x00\x00\x00IEND\xaeB`\x82'
)


class FakeGateway:
    """
    In-memory stand-in for GeminiGateway.

    Records every call and the peak number of concurrent render calls.
    `plan_gate` / `render_gate` (asyncio.Event) hold calls open until set.
    Prompts containing any string in `fail_on` raise RenderFailure.
    """

    def __init__(
        self,
        characters: Optional[List[Character]] = None,
        scenes: Optional[List[str]] = None,
        render_delay: float = 0.0,
        fail_on=(),
    ):
        self.characters = characters or []
        self.scenes = scenes
        self.render_delay = render_delay
        self.fail_on = set(fail_on)
        self.extract_error: Optional[Exception] = None
        self.plan_error: Optional[Exception] = None
        self.plan_gate: Optional[asyncio.Event] = None
        self.render_gate: Optional[asyncio.Event] = None

        self.extract_calls: List[str] = []
        self.plan_calls: List[tuple] = []
        self.render_calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def extract_characters(self, script: str) -> List[Character]:
        self.extract_calls.append(script)
        if self.extract_error:
            raise self.extract_error
        return list(self.characters)

    async def plan_scenes(self, script: str, characters: List[Character], count: int) -> List[str]:
        self.plan_calls.append((script, list(characters), count))
        if self.plan_gate is not None:
            await self.plan_gate.wait()
        if self.plan_error:
            raise self.plan_error
        if self.scenes is not None:
            return list(self.scenes)[:count]
        return [f"Scene number {i + 1}" for i in range(count)]

    async def render_image(self, prompt, references=None, aspect_ratio=AspectRatio.WIDESCREEN) -> ImageBlob:
        self.render_calls.append((prompt, list(references or []), aspect_ratio))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.render_delay)
            if self.render_gate is not None:
                await self.render_gate.wait()
            if any(marker in prompt for marker in self.fail_on):
                raise RenderFailure("fake", "No image data in response")
            return ImageBlob(PNG_BYTES)
        finally:
            self.in_flight -= 1


async def wait_until(predicate, timeout: float = 2.0):
    """Yield to the event loop until predicate() is true."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def png_image():
    return ImageBlob(PNG_BYTES)


@pytest.fixture
def sample_characters():
    """Two extracted characters without portraits."""
    return [
        Character(name="Mina", age="17", gender="female", appearance="short black bob, round glasses"),
        Character(name="Joon", age="18", gender="male", appearance="tall, messy brown hair, school blazer"),
    ]


@pytest.fixture
def finalized_characters(sample_characters, png_image):
    """Same cast, each with a reference portrait."""
    return [c.with_reference(png_image) for c in sample_characters]


@pytest.fixture
def sample_script():
    return (
        "Mina waits at the bus stop in the rain. Joon runs up with an umbrella. "
        "They share it and walk to school. At the gate, Mina smiles."
    )


@pytest.fixture
def fake_gateway(sample_characters):
    return FakeGateway(characters=sample_characters)


@pytest.fixture
def mock_gateway(png_image):
    """AsyncMock gateway for call-argument assertions."""
    gateway = AsyncMock()
    gateway.render_image = AsyncMock(return_value=png_image)
    gateway.plan_scenes = AsyncMock(return_value=[])
    gateway.extract_characters = AsyncMock(return_value=[])
    return gateway
