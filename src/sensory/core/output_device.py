"""
Sensory Dashboard Output Devices
Real PyAudio output and a paced mock device for hosts without audio hardware
"""

import logging
import threading
import time
import uuid
from typing import Callable, Optional, Protocol

import numpy as np

try:
    import pyaudio
    PYAUDIO_AVAILABLE = True
except ImportError:
    pyaudio = None
    PYAUDIO_AVAILABLE = False

from .environment import has_audio_hardware
from .exceptions import OutputDeviceError

logger = logging.getLogger(__name__)

RenderCallback = Callable[[int], np.ndarray]

STATE_SUSPENDED = "suspended"
STATE_RUNNING = "running"
STATE_CLOSED = "closed"


class OutputDevice(Protocol):
    """What the engine needs from an output device"""

    sample_rate: int
    state: str

    @property
    def current_time(self) -> float:
        ...

    def start(self) -> None:
        ...

    def suspend(self) -> None:
        ...

    def resume(self) -> None:
        ...

    def close(self) -> None:
        ...


OutputDeviceFactory = Callable[[int, int, int, RenderCallback], OutputDevice]


class _FrameClock:
    """Device time derived from the number of frames handed to the hardware"""

    def __init__(self, sample_rate: int):
        self.sample_rate = sample_rate
        self.frames_rendered = 0

    @property
    def current_time(self) -> float:
        return self.frames_rendered / self.sample_rate


class PyAudioOutputDevice(_FrameClock):
    """Float32 stereo output stream driven by a PyAudio callback"""

    def __init__(self, sample_rate: int, channels: int, buffer_size: int, render: RenderCallback):
        super().__init__(sample_rate)
        if not PYAUDIO_AVAILABLE:
            raise OutputDeviceError("PyAudio is not installed")

        self.channels = channels
        self.buffer_size = buffer_size
        self.state = STATE_SUSPENDED
        self._render = render

        try:
            self._pyaudio = pyaudio.PyAudio()
            self._stream = self._pyaudio.open(
                format=pyaudio.paFloat32,
                channels=channels,
                rate=sample_rate,
                output=True,
                frames_per_buffer=buffer_size,
                stream_callback=self._audio_callback,
                start=False,
            )
        except Exception as e:
            raise OutputDeviceError(f"Failed to open output stream: {e}") from e

        logger.info(f"PyAudio output opened: {sample_rate}Hz, {buffer_size} buffer, {channels}ch")

    def _audio_callback(self, in_data, frame_count, time_info, status):
        if status:
            logger.warning(f"Audio output status: {status}")

        try:
            block = self._render(frame_count)
        except Exception as e:
            logger.error(f"Error in audio callback: {e}")
            block = np.zeros((frame_count, self.channels), dtype=np.float32)

        self.frames_rendered += frame_count
        return (np.ascontiguousarray(block, dtype=np.float32).tobytes(), pyaudio.paContinue)

    def start(self) -> None:
        self.resume()

    def suspend(self) -> None:
        if self.state == STATE_RUNNING:
            self._stream.stop_stream()
            self.state = STATE_SUSPENDED

    def resume(self) -> None:
        if self.state == STATE_CLOSED:
            raise OutputDeviceError("Output device is closed")
        if self.state == STATE_SUSPENDED:
            try:
                self._stream.start_stream()
            except Exception as e:
                raise OutputDeviceError(f"Failed to start output stream: {e}") from e
            self.state = STATE_RUNNING

    def close(self) -> None:
        if self.state == STATE_CLOSED:
            return
        try:
            self._stream.stop_stream()
            self._stream.close()
        finally:
            self._pyaudio.terminate()
            self.state = STATE_CLOSED
        logger.info("PyAudio output closed")


class NullOutputDevice(_FrameClock):
    """
    Mock output for cloud, container and CI hosts

    Pulls blocks from the render callback at real-time pace on a background
    thread and discards them, so the graph clock, fades and the analyser
    behave exactly as with hardware.
    """

    def __init__(self, sample_rate: int, channels: int, buffer_size: int, render: RenderCallback):
        super().__init__(sample_rate)
        self.channels = channels
        self.buffer_size = buffer_size
        self.state = STATE_SUSPENDED
        self._render = render
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._run_event = threading.Event()

    def _render_loop(self) -> None:
        frame_duration = self.buffer_size / self.sample_rate
        next_deadline = time.monotonic()
        try:
            while not self._stop_event.is_set():
                if not self._run_event.wait(timeout=0.1):
                    next_deadline = time.monotonic()
                    continue

                try:
                    self._render(self.buffer_size)
                except Exception as e:
                    logger.error(f"Error in mock render loop: {e}")
                self.frames_rendered += self.buffer_size

                next_deadline += frame_duration
                delay = next_deadline - time.monotonic()
                if delay > 0:
                    time.sleep(delay)
                else:
                    next_deadline = time.monotonic()
        finally:
            logger.debug("Mock render loop exited")

    def start(self) -> None:
        self.resume()

    def suspend(self) -> None:
        if self.state == STATE_RUNNING:
            self._run_event.clear()
            self.state = STATE_SUSPENDED

    def resume(self) -> None:
        if self.state == STATE_CLOSED:
            raise OutputDeviceError("Output device is closed")
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._render_loop,
                name=f"MockOutput-{uuid.uuid4().hex[:8]}",
                daemon=True,
            )
            self._thread.start()
        self._run_event.set()
        self.state = STATE_RUNNING

    def close(self) -> None:
        if self.state == STATE_CLOSED:
            return
        self._stop_event.set()
        self._run_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None
        self.state = STATE_CLOSED


def create_output_device(
    sample_rate: int,
    channels: int,
    buffer_size: int,
    render: RenderCallback,
    backend: str = "auto",
) -> OutputDevice:
    """
    Open an output device for the given backend

    ``auto`` uses PyAudio when hardware is detected and falls back to the
    mock device otherwise; ``pyaudio`` and ``null`` force one or the other.
    """
    backend = backend.lower()
    if backend not in ("auto", "pyaudio", "null"):
        raise OutputDeviceError(f"Unknown output backend: {backend}")

    if backend == "pyaudio" or (backend == "auto" and PYAUDIO_AVAILABLE and has_audio_hardware()):
        return PyAudioOutputDevice(sample_rate, channels, buffer_size, render)

    if backend == "auto":
        logger.warning("No audio hardware detected - using mock output device")
    return NullOutputDevice(sample_rate, channels, buffer_size, render)
