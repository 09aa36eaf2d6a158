"""
Test configuration and fixtures for palette_extract tests.
"""
import io
from typing import Sequence

import numpy as np
import pytest
from PIL import Image

RED = (255, 0, 0)
BLUE = (0, 0, 255)


def solid_image(height: int, width: int, rgb: Sequence[int], alpha: int = 255) -> np.ndarray:
    """(H, W, 4) uint8 image filled with a single colour."""
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[..., :3] = rgb
    img[..., 3] = alpha
    return img


@pytest.fixture
def make_solid():
    return solid_image


@pytest.fixture
def red_blue_halves():
    """4x4 image: top two rows red, bottom two rows blue."""
    img = solid_image(4, 4, RED)
    img[2:, :, :3] = BLUE
    return img


@pytest.fixture
def block_and_noise():
    """
    20x20 image: a 10x10 block of colour A in the top-left corner and 100
    isolated pixels of colour B on a checkerboard in the bottom half.
    Everything else is transparent.
    """
    colour_a = (200, 30, 30)
    colour_b = (30, 30, 200)
    img = np.zeros((20, 20, 4), dtype=np.uint8)
    img[:10, :10, :3] = colour_a
    img[:10, :10, 3] = 255
    for y in range(10, 20):
        for x in range(20):
            if (x + y) % 2 == 0:
                img[y, x, :3] = colour_b
                img[y, x, 3] = 255
    return img, colour_a, colour_b


@pytest.fixture
def noisy_image():
    """Deterministic 24x24 image with a few colour regions plus noise."""
    rng = np.random.default_rng(1234)
    img = np.zeros((24, 24, 4), dtype=np.uint8)
    img[..., 3] = 255
    img[:12, :12, :3] = (220, 40, 40)
    img[:12, 12:, :3] = (40, 200, 60)
    img[12:, :, :3] = (30, 60, 210)
    noise = rng.integers(-20, 21, size=(24, 24, 3))
    img[..., :3] = np.clip(img[..., :3].astype(np.int64) + noise, 0, 255).astype(np.uint8)
    img[20:, 20:, 3] = 0
    return img


@pytest.fixture
def truncated_png():
    """Writer for a noisy 64x64 PNG cut in half: the header parses, the data does not."""

    def _write(path):
        rng = np.random.default_rng(3)
        arr = rng.integers(0, 256, size=(64, 64, 4), dtype=np.uint8)
        buf = io.BytesIO()
        Image.fromarray(arr, mode="RGBA").save(buf, format="PNG")
        data = buf.getvalue()
        path.write_bytes(data[: len(data) // 2])
        return path

    return _write
