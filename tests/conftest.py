"""Shared fixtures: small RGBA source images written to a temp folder."""
from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image


SOURCE_COLOR = (200, 30, 30, 255)


@pytest.fixture
def make_image(tmp_path: Path):
    """Return a factory that writes a solid-colour PNG and returns its path."""

    def _make(name: str = "button.png", size: tuple[int, int] = (32, 32), color=SOURCE_COLOR) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGBA", size, color).save(path)
        return path

    return _make


@pytest.fixture
def button(make_image) -> Path:
    return make_image()
