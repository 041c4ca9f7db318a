"""Pytest fixtures for live-wire tests."""

import os
import tempfile

import cv2
import numpy as np
import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def flat_image():
    """A 5x5 zero-variance RGB image."""
    return np.full((5, 5, 3), 128, dtype=np.uint8)


@pytest.fixture
def flat_gray_image():
    """A larger flat single-channel image for search tests."""
    return np.full((9, 9), 128, dtype=np.uint8)


@pytest.fixture
def vertical_edge_image():
    """20x20 grayscale step edge: columns 0-9 are 0, columns 10-19 are 100."""
    img = np.zeros((20, 20), dtype=np.uint8)
    img[:, 10:] = 100
    return img


@pytest.fixture
def square_image():
    """White 60x60 RGB image with a filled black square from (20, 20) to (40, 40)."""
    img = np.ones((60, 60, 3), dtype=np.uint8) * 255
    cv2.rectangle(img, (20, 20), (40, 40), (0, 0, 0), -1)
    return img


@pytest.fixture
def default_config():
    """Create default live-wire configuration."""
    from livewire.config import LiveWireConfig
    return LiveWireConfig()


@pytest.fixture
def flat_cost_matrix():
    """Cost matrix of a flat 30x30 image: every interior pixel costs the same."""
    from livewire.features.cost_matrix import build_cost_matrix
    return build_cost_matrix(np.full((30, 30), 90, dtype=np.uint8))


@pytest.fixture
def square_cost_matrix(square_image):
    from livewire.features.cost_matrix import build_cost_matrix
    return build_cost_matrix(square_image)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def synthetic_input_file(temp_dir, square_image):
    """Write the square image to disk for pipeline tests."""
    path = os.path.join(temp_dir, "square.png")
    cv2.imwrite(path, cv2.cvtColor(square_image, cv2.COLOR_RGB2BGR))
    return path
