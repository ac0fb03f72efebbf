"""
Sensory Dashboard Testing Configuration
Pytest fixtures and test setup
"""
import os
import sys
from pathlib import Path

import numpy as np
import pytest
import pytest_asyncio

# Keep test runs from writing log files or probing audio hardware
os.environ.setdefault("SENSORY_LOG_TO_FILE", "false")
os.environ.setdefault("SENSORY_OUTPUT_BACKEND", "null")

# Add src to Python path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from sensory.core.audio_engine import AudioEngine  # noqa: E402
from sensory.core.config import SensorySettings  # noqa: E402
from sensory.core.exceptions import OutputDeviceError  # noqa: E402


class FakeOutputDevice:
    """Output device that only renders when a test pulls a block"""

    def __init__(self, sample_rate, channels, buffer_size, render):
        self.sample_rate = sample_rate
        self.channels = channels
        self.buffer_size = buffer_size
        self.render = render
        self.state = "suspended"
        self.frames_rendered = 0
        self.resume_error = None
        self.resume_calls = 0
        self.close_calls = 0

    @property
    def current_time(self):
        return self.frames_rendered / self.sample_rate

    def start(self):
        self.resume()

    def suspend(self):
        if self.state == "running":
            self.state = "suspended"

    def resume(self):
        self.resume_calls += 1
        if self.state == "closed":
            raise OutputDeviceError("Output device is closed")
        if self.resume_error is not None:
            raise self.resume_error
        self.state = "running"

    def close(self):
        self.close_calls += 1
        self.state = "closed"

    def pull(self, frame_count=None):
        """Render one block the way a device callback would"""
        frame_count = frame_count or self.buffer_size
        block = self.render(frame_count)
        self.frames_rendered += frame_count
        return block


class FakeOutputFactory:
    """Records every device the engine opens"""

    def __init__(self):
        self.devices = []

    def __call__(self, sample_rate, channels, buffer_size, render):
        device = FakeOutputDevice(sample_rate, channels, buffer_size, render)
        self.devices.append(device)
        return device

    @property
    def device(self):
        return self.devices[-1] if self.devices else None


@pytest.fixture
def test_settings():
    """Small sample rate and short buffers keep generation fast"""
    return SensorySettings(
        SAMPLE_RATE=8000,
        BUFFER_SIZE=256,
        SOUND_BUFFER_SECONDS=1.0,
        ANALYSER_FFT_SIZE=512,
        SPECTRUM_BAR_COUNT=32,
        SPECTRUM_STREAM_INTERVAL_MS=10,
        FADE_OUT_DEFAULT_MS=20.0,
        LOG_TO_FILE=False,
        OUTPUT_BACKEND="null",
    )


@pytest.fixture
def rng():
    """Seeded random source"""
    return np.random.default_rng(1234)


@pytest.fixture
def output_factory():
    return FakeOutputFactory()


@pytest.fixture
def engine(test_settings, output_factory, rng):
    """Uninitialized engine wired to a fake output device"""
    return AudioEngine(test_settings, output_factory=output_factory, rng=rng)


@pytest_asyncio.fixture
async def initialized_engine(engine):
    await engine.initialize()
    yield engine
    if engine.is_initialized:
        engine.dispose()


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
