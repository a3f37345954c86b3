"""
Test Configuration
==================

Pytest fixtures and test configuration for frame_extractor.
"""

import pytest

from frame_extractor.stream.frame import Frame


class FakeClock:
    """Manually advanced time source for FrameGate."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Provide a fake clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def mono_frame():
    """Provide a 10x10 mono8 frame with a 100-byte buffer."""
    return Frame(
        data=bytes(range(100)),
        encoding="mono8",
        width=10,
        height=10,
        step=10,
        stamp=1000.0,
    )


@pytest.fixture
def bgr_frame():
    """Provide a 4x2 bgr8 frame."""
    return Frame(
        data=bytes(range(24)),
        encoding="bgr8",
        width=4,
        height=2,
        step=12,
        stamp=1000.0,
    )


@pytest.fixture
def empty_frame():
    """Provide a frame with no pixel data."""
    return Frame(data=b"", encoding="mono8", width=10, height=10, stamp=1000.0)


@pytest.fixture
def sample_image_message():
    """Provide a sample image topic message."""
    return {
        "seq": 7,
        "stamp": 1707321234.567,
        "width": 2,
        "height": 1,
        "encoding": "mono8",
        "step": 2,
        "data": "AP8=",
    }
