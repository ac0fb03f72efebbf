"""
Unit tests for output devices and backend selection
"""
import threading
from unittest.mock import patch

import numpy as np
import pytest

from sensory.core import output_device
from sensory.core.exceptions import OutputDeviceError
from sensory.core.environment import (
    CI_MARKERS,
    AudioCapability,
    EnvironmentType,
    detect_output_environment,
    has_audio_hardware,
)
from sensory.core.output_device import NullOutputDevice, create_output_device


class CountingRender:
    def __init__(self):
        self.calls = 0
        self.rendered = threading.Event()

    def __call__(self, frame_count):
        self.calls += 1
        self.rendered.set()
        return np.zeros((frame_count, 2), dtype=np.float32)


@pytest.mark.unit
class TestNullOutputDevice:
    """Test the paced mock device"""

    def test_starts_suspended(self):
        device = NullOutputDevice(8000, 2, 256, CountingRender())

        assert device.state == "suspended"
        assert device.current_time == 0.0

    def test_resume_pulls_blocks(self):
        render = CountingRender()
        device = NullOutputDevice(8000, 2, 256, render)

        try:
            device.resume()
            assert device.state == "running"
            assert render.rendered.wait(timeout=2.0)
        finally:
            device.close()

        assert render.calls >= 1
        assert device.current_time > 0.0

    def test_suspend_and_close(self):
        device = NullOutputDevice(8000, 2, 256, CountingRender())
        device.start()

        device.suspend()
        assert device.state == "suspended"

        device.close()
        assert device.state == "closed"

        with pytest.raises(OutputDeviceError):
            device.resume()

    def test_close_is_idempotent(self):
        device = NullOutputDevice(8000, 2, 256, CountingRender())

        device.close()
        device.close()

        assert device.state == "closed"

    def test_render_errors_do_not_stop_loop(self):
        calls = []
        recovered = threading.Event()

        def render(frame_count):
            calls.append(frame_count)
            if len(calls) == 1:
                raise RuntimeError("glitch")
            recovered.set()
            return np.zeros((frame_count, 2), dtype=np.float32)

        device = NullOutputDevice(8000, 2, 64, render)
        try:
            device.start()
            assert recovered.wait(timeout=2.0)
        finally:
            device.close()


@pytest.mark.unit
class TestBackendSelection:
    """Test create_output_device"""

    def test_null_backend(self):
        device = create_output_device(8000, 2, 256, CountingRender(), backend="null")

        assert isinstance(device, NullOutputDevice)
        assert device.sample_rate == 8000

    def test_unknown_backend_rejected(self):
        with pytest.raises(OutputDeviceError):
            create_output_device(8000, 2, 256, CountingRender(), backend="alsa")

    def test_auto_falls_back_without_hardware(self):
        with patch.object(output_device, "has_audio_hardware", return_value=False):
            device = create_output_device(8000, 2, 256, CountingRender(), backend="auto")

        assert isinstance(device, NullOutputDevice)

    def test_forced_pyaudio_without_library_fails(self):
        with patch.object(output_device, "PYAUDIO_AVAILABLE", False):
            with pytest.raises(OutputDeviceError):
                create_output_device(8000, 2, 256, CountingRender(), backend="pyaudio")


@pytest.mark.unit
class TestEnvironmentDetection:
    """Test host probing for output capability"""

    @pytest.fixture(autouse=True)
    def fresh_detection(self):
        detect_output_environment.cache_clear()
        yield
        detect_output_environment.cache_clear()

    def test_ci_runner_gets_mock_output(self, monkeypatch):
        monkeypatch.setenv("GITHUB_ACTIONS", "true")

        environment = detect_output_environment()

        assert environment.environment_type is EnvironmentType.CI_CD
        assert environment.audio_capability is AudioCapability.MOCK
        assert has_audio_hardware() is False

    def test_container_gets_mock_output(self, monkeypatch):
        for name in CI_MARKERS + ("JENKINS_URL",):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("CONTAINER", "true")

        environment = detect_output_environment()

        assert environment.environment_type is EnvironmentType.CONTAINER
        assert environment.to_dict()["audio_capability"] == "mock"

    def test_detection_is_cached(self, monkeypatch):
        monkeypatch.setenv("CI", "true")

        assert detect_output_environment() is detect_output_environment()
