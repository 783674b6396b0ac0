"""Shared fixtures for the background removal API tests."""

import base64
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from bgremove import imaging
from bgremove.config import Settings
from bgremove.main import create_app


def _png_b64(size=(8, 6), color=(200, 30, 30)) -> str:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def png_b64():
    """Small red RGB PNG as base64."""
    return _png_b64()


@pytest.fixture
def fake_remover(monkeypatch):
    """Replace rembg with a converter that makes the image RGBA."""
    calls = []

    def remove(image, model="u2net"):
        calls.append((image.size, model))
        return image.convert("RGBA")

    monkeypatch.setattr(imaging, "remove_background", remove)
    return calls


@pytest.fixture
def settings():
    return Settings(predict_delay=0, rembg_model="u2netp")


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c
