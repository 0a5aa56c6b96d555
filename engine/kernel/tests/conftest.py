"""
Engine kernel test configuration.

Kernel tests are synchronous and need no event loop. Sample component
sources live in preview_samples.py.
"""

import pytest

from engine.kernel.types import PreviewConfig


@pytest.fixture
def config():
    return PreviewConfig()
