"""Shared pytest fixtures for MuseBox tests."""

from __future__ import annotations

import random
import shutil
import tempfile
from pathlib import Path
from types import SimpleNamespace
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest

from musebox.core.config import MuseboxConfig
from musebox.core.dispatcher import RequestDispatcher
from musebox.core.models import GeneratedArtifact, GenerationConfig, ModelId
from musebox.core.studio import Studio

# Opaque payload; transports only base64-encode it.
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> MuseboxConfig:
    """Demo-mode configuration (no API key, no delay) in a temporary data dir."""
    return MuseboxConfig(
        _env_file=None,
        api_key=None,
        demo_mode=False,
        demo_delay_seconds=0.0,
        premium_fallback=True,
        data_dir=temp_dir / "data",
    )


@pytest.fixture
def live_config(temp_dir: Path) -> MuseboxConfig:
    """Configuration with an API key, so dispatches take the live path."""
    return MuseboxConfig(
        _env_file=None,
        api_key="test-key",
        demo_mode=False,
        demo_delay_seconds=0.0,
        premium_fallback=True,
        data_dir=temp_dir / "live-data",
    )


def make_content_response(data: bytes = PNG_BYTES, mime_type: str | None = "image/png"):
    """Fake ``generate_content`` response with one inline image part."""
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


def make_images_response(data: bytes | None = b"jpeg-bytes"):
    """Fake ``generate_images`` response with one generated image."""
    return SimpleNamespace(
        generated_images=[SimpleNamespace(image=SimpleNamespace(image_bytes=data))]
    )


@pytest.fixture
def content_response():
    """Factory for fake ``generate_content`` responses."""
    return make_content_response


@pytest.fixture
def images_response():
    """Factory for fake ``generate_images`` responses."""
    return make_images_response


@pytest.fixture
def fake_client() -> MagicMock:
    """SDK client double whose async model calls return successful responses."""
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=make_content_response())
    client.aio.models.generate_images = AsyncMock(return_value=make_images_response())
    return client


@pytest.fixture
def live_dispatcher(live_config: MuseboxConfig, fake_client: MagicMock) -> RequestDispatcher:
    return RequestDispatcher(
        live_config,
        client_factory=lambda cfg: fake_client,
        rng=random.Random(3),
    )


@pytest.fixture
def studio(test_config: MuseboxConfig) -> Studio:
    """Studio in demo mode with a seeded random source."""
    return Studio(test_config, rng=random.Random(7))


@pytest.fixture
def live_studio(live_config: MuseboxConfig, live_dispatcher: RequestDispatcher) -> Studio:
    return Studio(live_config, dispatcher=live_dispatcher, rng=random.Random(7))


@pytest.fixture
def sample_config() -> GenerationConfig:
    return GenerationConfig(
        prompt="a lighthouse at dusk",
        global_style="watercolor",
        negative_prompt="text",
        model_id=ModelId.PRO_IMAGE,
        seed=42,
    )


@pytest.fixture
def sample_artifact(sample_config: GenerationConfig) -> GeneratedArtifact:
    return GeneratedArtifact(
        url="data:image/png;base64,AAAA",
        source_prompt=sample_config.prompt,
        config_snapshot=sample_config,
        model_used=sample_config.model_id,
    )


@pytest.fixture
def test_client(studio: Studio) -> Generator:
    """FastAPI TestClient bound to a demo-mode studio."""
    from fastapi.testclient import TestClient

    from musebox.api.main import app

    app.state.studio = studio
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.state.studio = None
