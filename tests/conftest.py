"""
Pytest configuration and shared fixtures for Image Studio tests.

This module provides shared fixtures and configuration for all test modules.
"""

import pytest
import numpy as np
from studio_core.errors import AssetDecodeError
from studio_core.layers import LayerStore


@pytest.fixture
def sample_image():
    """
    Create a simple opaque test raster (RGBA).

    Returns:
        np.ndarray: 100x100 RGBA image, red left half, blue right half
    """
    img = np.zeros((100, 100, 4), dtype=np.uint8)
    img[:, :50] = [255, 0, 0, 255]
    img[:, 50:] = [0, 0, 255, 255]
    return img


@pytest.fixture
def alpha_mask():
    """
    Transparent mask with an opaque square; opacity lives in the alpha channel.

    Returns:
        np.ndarray: 100x100 RGBA, alpha 255 in rows 20-39, cols 30-59
    """
    mask = np.zeros((100, 100, 4), dtype=np.uint8)
    mask[20:40, 30:60] = [255, 255, 255, 255]
    return mask


@pytest.fixture
def luminance_mask():
    """
    Opaque black/white mask; opacity lives in brightness.

    Returns:
        np.ndarray: 100x100 RGBA, white in rows 20-39, cols 30-59, black elsewhere
    """
    mask = np.zeros((100, 100, 4), dtype=np.uint8)
    mask[:, :, 3] = 255
    mask[20:40, 30:60, :3] = 255
    return mask


@pytest.fixture
def layer_store():
    return LayerStore()


@pytest.fixture
def fake_decoder():
    """
    Build a decoder that resolves asset sources from a dict.

    Unknown sources raise AssetDecodeError, the same way an unreachable or
    corrupt asset does in production.
    """
    def factory(assets):
        def decode(asset):
            source = asset if isinstance(asset, str) else asset.source
            if source not in assets:
                raise AssetDecodeError(f"cannot decode {source}")
            return assets[source]
        return decode
    return factory


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
