"""
Sensory Dashboard Audio Graph
Pull-based render nodes: gain stages, single-use buffer voices and the analyser tap
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from .exceptions import VoiceStateError
from .noise_generators import AudioBuffer

OUTPUT_CHANNELS = 2


class AudioNode:
    """
    Base render node

    Nodes form a tree rooted at the output device. Rendering pulls from the
    root: each node mixes whatever is connected into it, then applies its
    own processing. Blocks are float32 arrays shaped (frames, 2).
    """

    def __init__(self, sample_rate: int):
        self.sample_rate = sample_rate
        self.inputs: List["AudioNode"] = []
        self._destinations: List["AudioNode"] = []

    def connect(self, destination: "AudioNode") -> "AudioNode":
        if destination not in self._destinations:
            destination.inputs.append(self)
            self._destinations.append(destination)
        return destination

    def disconnect(self) -> None:
        for destination in self._destinations:
            if self in destination.inputs:
                destination.inputs.remove(self)
        self._destinations.clear()

    @property
    def is_connected(self) -> bool:
        return bool(self._destinations)

    def _mix_inputs(self, frame_count: int, start_time: float) -> np.ndarray:
        mixed = np.zeros((frame_count, OUTPUT_CHANNELS), dtype=np.float32)
        for node in list(self.inputs):
            mixed += node.render(frame_count, start_time)
        return mixed

    def render(self, frame_count: int, start_time: float) -> np.ndarray:
        return self._mix_inputs(frame_count, start_time)


@dataclass(frozen=True)
class _ExponentialRamp:
    start_value: float
    end_value: float
    start_time: float
    end_time: float

    def values_at(self, times: np.ndarray) -> np.ndarray:
        span = self.end_time - self.start_time
        if span <= 0:
            return np.full(times.shape, self.end_value)
        if self.start_value <= 0:
            # An exponential curve cannot leave zero; hold until the end time
            return np.where(times < self.end_time, self.start_value, self.end_value)

        progress = np.clip((times - self.start_time) / span, 0.0, 1.0)
        ratio = self.end_value / self.start_value
        return self.start_value * np.power(ratio, progress)


class GainStage(AudioNode):
    """Amplitude-scaling node with an automatable gain parameter"""

    def __init__(
        self,
        sample_rate: int,
        value: float = 1.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__(sample_rate)
        self._clock = clock or (lambda: 0.0)
        self._value = float(value)
        self._ramp: Optional[_ExponentialRamp] = None

    @property
    def value(self) -> float:
        """Gain at the current device time"""
        return self.value_at(self._clock())

    @value.setter
    def value(self, value: float) -> None:
        # A direct assignment supersedes any scheduled automation
        self._ramp = None
        self._value = float(value)

    @property
    def is_ramping(self) -> bool:
        return self._ramp is not None and self._clock() < self._ramp.end_time

    def value_at(self, time: float) -> float:
        if self._ramp is None:
            return self._value
        return float(self._ramp.values_at(np.asarray([time]))[0])

    def exponential_ramp_to_value(self, target: float, duration: float) -> None:
        """Schedule an exponential glide from the current value to ``target``"""
        if target <= 0:
            raise ValueError("Exponential ramps need a strictly positive target")
        now = self._clock()
        self._ramp = _ExponentialRamp(
            start_value=self.value_at(now),
            end_value=float(target),
            start_time=now,
            end_time=now + max(duration, 0.0),
        )
        self._value = float(target)

    def values(self, start_time: float, frame_count: int) -> np.ndarray:
        """Per-sample gain curve for one render block"""
        if self._ramp is None:
            return np.full(frame_count, self._value, dtype=np.float32)
        times = start_time + np.arange(frame_count) / self.sample_rate
        return self._ramp.values_at(times).astype(np.float32)

    def render(self, frame_count: int, start_time: float) -> np.ndarray:
        block = self._mix_inputs(frame_count, start_time)
        return block * self.values(start_time, frame_count)[:, np.newaxis]


class VoiceState(Enum):
    PENDING = "pending"
    PLAYING = "playing"
    STOPPED = "stopped"


class Voice(AudioNode):
    """
    One-shot looping player for a shared AudioBuffer

    A voice can be started once. After ``stop()`` it is spent; playing the
    same sound again needs a new voice bound to the same buffer.
    """

    def __init__(self, buffer: AudioBuffer):
        super().__init__(buffer.sample_rate)
        self.buffer = buffer
        self.state = VoiceState.PENDING
        self._position = 0

    @property
    def is_playing(self) -> bool:
        return self.state is VoiceState.PLAYING

    def start(self) -> None:
        if self.state is not VoiceState.PENDING:
            raise VoiceStateError(f"Voice already {self.state.value}; voices are single-use")
        self.state = VoiceState.PLAYING

    def stop(self) -> None:
        self.state = VoiceState.STOPPED

    def render(self, frame_count: int, start_time: float) -> np.ndarray:
        if self.state is not VoiceState.PLAYING:
            return np.zeros((frame_count, OUTPUT_CHANNELS), dtype=np.float32)

        length = self.buffer.length
        indices = (self._position + np.arange(frame_count)) % length
        self._position = (self._position + frame_count) % length

        block = self.buffer.data[:, indices].T
        if block.shape[1] == 1:
            # Mono up-mix to both ears
            block = np.repeat(block, OUTPUT_CHANNELS, axis=1)
        return block


class Analyser(AudioNode):
    """
    Pass-through frequency analysis tap

    Keeps the most recent ``fft_size`` samples of the (mono-summed) signal
    flowing through it. Visual consumers pull snapshots whenever they redraw.
    """

    def __init__(
        self,
        sample_rate: int,
        fft_size: int = 2048,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ):
        super().__init__(sample_rate)
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be below max_decibels")

        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        self._window = np.blackman(fft_size)
        self._history = np.zeros(fft_size, dtype=np.float32)
        self._smoothed = np.zeros(self.frequency_bin_count)
        self._lock = threading.Lock()

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def render(self, frame_count: int, start_time: float) -> np.ndarray:
        block = self._mix_inputs(frame_count, start_time)
        self._capture(block)
        return block

    def _capture(self, block: np.ndarray) -> None:
        mono = block.mean(axis=1).astype(np.float32)
        with self._lock:
            if len(mono) >= self.fft_size:
                self._history = mono[-self.fft_size:].copy()
            else:
                self._history = np.concatenate([self._history[len(mono):], mono])

    def get_float_time_domain_data(self) -> np.ndarray:
        with self._lock:
            return self._history.copy()

    def get_float_frequency_data(self) -> np.ndarray:
        """Smoothed magnitude spectrum in dB, ``frequency_bin_count`` values"""
        samples = self.get_float_time_domain_data()
        spectrum = np.abs(np.fft.rfft(samples * self._window))[:self.frequency_bin_count]
        spectrum /= self.fft_size

        with self._lock:
            tau = self.smoothing_time_constant
            self._smoothed = tau * self._smoothed + (1.0 - tau) * spectrum
            smoothed = self._smoothed.copy()

        return 20.0 * np.log10(np.maximum(smoothed, 1e-12))

    def get_byte_frequency_data(self) -> np.ndarray:
        """Spectrum mapped onto 0-255 between min and max decibels"""
        decibels = self.get_float_frequency_data()
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor((decibels - self.min_decibels) * scale)
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def get_rms_level(self) -> float:
        samples = self.get_float_time_domain_data()
        return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))

    def get_spectrum_bars(self, bar_count: int = 64) -> List[float]:
        """Average adjacent bins into ``bar_count`` bars normalized to 0-1"""
        data = self.get_byte_frequency_data()
        step = len(data) // bar_count
        if step == 0:
            raise ValueError(f"Cannot split {len(data)} bins into {bar_count} bars")
        bars = data[:step * bar_count].reshape(bar_count, step).mean(axis=1) / 255.0
        return [round(float(bar), 4) for bar in bars]
