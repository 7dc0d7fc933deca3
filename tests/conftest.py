"""Pytest configuration and fixtures."""

import numpy as np
import pytest


def solid_image(height, width, color, alpha=255):
    """RGBA image filled with one color."""
    image = np.zeros((height, width, 4), dtype=np.uint8)
    image[..., :3] = color
    image[..., 3] = alpha
    return image


@pytest.fixture
def solid_red():
    """4x4 fully opaque red image."""
    return solid_image(4, 4, (255, 0, 0))


@pytest.fixture
def transparent_block():
    """10x10 opaque image whose top-left 5x5 block is fully transparent."""
    image = solid_image(10, 10, (40, 120, 200))
    image[:5, :5, 3] = 0
    return image


@pytest.fixture
def two_tone():
    """32x32 image, left half blue, right half orange."""
    image = solid_image(32, 32, (30, 60, 220))
    image[:, 16:, :3] = (240, 140, 20)
    return image


@pytest.fixture
def random_rgba():
    """24x20 random image with a few transparent and translucent pixels."""
    rng = np.random.default_rng(7)
    image = rng.integers(0, 256, size=(24, 20, 4), dtype=np.uint8)
    image[..., 3] = 255
    image[3:6, 4:9, 3] = 0
    image[15:18, 10:14, 3] = 90
    return image


@pytest.fixture
def make_solid():
    """Factory for solid RGBA images."""
    return solid_image
