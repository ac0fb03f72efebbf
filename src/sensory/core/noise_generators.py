"""
Sensory Dashboard Noise Generators
Procedural synthesis of loopable ambience buffers (noise colors, binaural beats, weather)
"""

import time
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from scipy.signal import lfilter

from .logging import engine_logger
from .sound_types import SoundType

DEFAULT_DURATION = 30.0
DEFAULT_LOOP_CROSSFADE = 0.05

# Paul Kellet's economy pink filter as (feedback, input weight) per pole
_KELLET_POLES: Tuple[Tuple[float, float], ...] = (
    (0.99886, 0.0555179),
    (0.99332, 0.0750759),
    (0.96900, 0.1538520),
    (0.86650, 0.3104856),
    (0.55000, 0.5329522),
    (-0.7616, -0.0168980),
)
_KELLET_DIRECT = 0.5362
_KELLET_DELAYED = 0.115926

GeneratorFn = Callable[..., "AudioBuffer"]


@dataclass(frozen=True)
class AudioBuffer:
    """
    Immutable block of float32 samples shaped (channels, frames)

    The sample array is copied on construction and marked read-only so a
    buffer can be shared between any number of voices.
    """
    data: np.ndarray
    sample_rate: int

    def __post_init__(self):
        data = np.array(self.data, dtype=np.float32, copy=True)
        if data.ndim == 1:
            data = data[np.newaxis, :]
        if data.ndim != 2 or data.shape[0] not in (1, 2):
            raise ValueError(f"AudioBuffer expects 1 or 2 channels, got shape {data.shape}")
        if data.shape[1] == 0:
            raise ValueError("AudioBuffer cannot be empty")
        if self.sample_rate <= 0:
            raise ValueError(f"Invalid sample rate: {self.sample_rate}")
        data.setflags(write=False)
        object.__setattr__(self, "data", data)

    @property
    def number_of_channels(self) -> int:
        return self.data.shape[0]

    @property
    def length(self) -> int:
        """Frames per channel"""
        return self.data.shape[1]

    @property
    def duration(self) -> float:
        """Duration in seconds"""
        return self.length / self.sample_rate

    def get_channel_data(self, channel: int) -> np.ndarray:
        return self.data[channel]


def _frame_layout(sample_rate: int, duration: float, loop_crossfade: float) -> Tuple[int, int]:
    """Return (loop frames, tail frames rendered past the loop point)"""
    frames = int(round(sample_rate * duration))
    if frames <= 0:
        raise ValueError(f"Duration {duration}s at {sample_rate}Hz yields no samples")
    tail = min(int(round(sample_rate * max(loop_crossfade, 0.0))), frames)
    return frames, tail


def _resolve_rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()


def _white(rng: np.random.Generator, count: int) -> np.ndarray:
    return rng.uniform(-1.0, 1.0, count)


def _time_axis(count: int, sample_rate: int) -> np.ndarray:
    return np.arange(count) / sample_rate


def _kellet_pink(white: np.ndarray, delayed_tap: bool = True) -> np.ndarray:
    """Unscaled pink noise from white input, one first-order section per pole"""
    pink = white * _KELLET_DIRECT
    for feedback, weight in _KELLET_POLES:
        pink += lfilter([weight], [1.0, -feedback], white)
    if delayed_tap:
        pink[1:] += white[:-1] * _KELLET_DELAYED
    return pink


def _leaky_walk(white: np.ndarray, leak: float) -> np.ndarray:
    """Damped random walk: last = (last + leak * white) / (1 + leak)"""
    damping = 1.0 + leak
    return lfilter([leak / damping], [1.0, -1.0 / damping], white)


def _seal_loop(samples: np.ndarray, frames: int, tail: int, curve: str = "equal_power") -> np.ndarray:
    """
    Fold the rendered tail back over the head of the loop

    After folding, the first sample continues from the last one, so the
    buffer can repeat end-to-end without a click. Filtered noise uses an
    equal-power curve to hold its level; coherent tones and uniform white
    noise use a linear one, which never leaves the range of its inputs.
    """
    looped = samples[:, :frames].copy()
    if tail <= 0:
        return looped

    if curve == "linear":
        fade_in = np.linspace(0.0, 1.0, tail)
        fade_out = 1.0 - fade_in
    else:
        theta = np.linspace(0.0, np.pi / 2, tail)
        fade_in = np.sin(theta)
        fade_out = np.cos(theta)

    looped[:, :tail] = samples[:, :tail] * fade_in + samples[:, frames:frames + tail] * fade_out
    return looped


def generate_white_noise(
    sample_rate: int,
    duration: float = DEFAULT_DURATION,
    rng: Optional[np.random.Generator] = None,
    loop_crossfade: float = DEFAULT_LOOP_CROSSFADE,
) -> AudioBuffer:
    """Uniform white noise in [-1, 1], mono"""
    rng = _resolve_rng(rng)
    frames, tail = _frame_layout(sample_rate, duration, loop_crossfade)
    samples = _white(rng, frames + tail)[np.newaxis, :]
    return AudioBuffer(_seal_loop(samples, frames, tail, curve="linear"), sample_rate)


def generate_pink_noise(
    sample_rate: int,
    duration: float = DEFAULT_DURATION,
    rng: Optional[np.random.Generator] = None,
    loop_crossfade: float = DEFAULT_LOOP_CROSSFADE,
) -> AudioBuffer:
    """Pink noise (-3dB/octave), mono, scaled down to stay clear of clipping"""
    rng = _resolve_rng(rng)
    frames, tail = _frame_layout(sample_rate, duration, loop_crossfade)
    samples = (_kellet_pink(_white(rng, frames + tail)) * 0.11)[np.newaxis, :]
    return AudioBuffer(_seal_loop(samples, frames, tail), sample_rate)


def generate_brown_noise(
    sample_rate: int,
    duration: float = DEFAULT_DURATION,
    rng: Optional[np.random.Generator] = None,
    loop_crossfade: float = DEFAULT_LOOP_CROSSFADE,
) -> AudioBuffer:
    """Brown noise (-6dB/octave) from a damped random walk, mono"""
    rng = _resolve_rng(rng)
    frames, tail = _frame_layout(sample_rate, duration, loop_crossfade)
    samples = (_leaky_walk(_white(rng, frames + tail), 0.02) * 3.5)[np.newaxis, :]
    return AudioBuffer(_seal_loop(samples, frames, tail), sample_rate)


def generate_binaural_beat(
    sample_rate: int,
    base_freq: float = 200.0,
    beat_freq: float = 4.0,
    duration: float = DEFAULT_DURATION,
    loop_crossfade: float = DEFAULT_LOOP_CROSSFADE,
    rng: Optional[np.random.Generator] = None,
) -> AudioBuffer:
    """
    Stereo binaural beat

    Left ear hears ``base_freq``, right ear ``base_freq + beat_freq``; the
    perceived beat runs at ``beat_freq`` Hz. ``rng`` is accepted so every
    generator shares one call signature; the tones are deterministic.
    """
    frames, tail = _frame_layout(sample_rate, duration, loop_crossfade)
    t = _time_axis(frames + tail, sample_rate)
    samples = np.vstack([
        np.sin(2 * np.pi * base_freq * t) * 0.3,
        np.sin(2 * np.pi * (base_freq + beat_freq) * t) * 0.3,
    ])
    return AudioBuffer(_seal_loop(samples, frames, tail, curve="linear"), sample_rate)


def generate_ocean_waves(
    sample_rate: int,
    duration: float = DEFAULT_DURATION,
    rng: Optional[np.random.Generator] = None,
    loop_crossfade: float = DEFAULT_LOOP_CROSSFADE,
) -> AudioBuffer:
    """Slowly swelling brown noise shaped by two sub-audio waves, stereo"""
    rng = _resolve_rng(rng)
    frames, tail = _frame_layout(sample_rate, duration, loop_crossfade)
    total = frames + tail
    t = _time_axis(total, sample_rate)
    wave1 = np.sin(2 * np.pi * 0.15 * t)

    channels = []
    for channel in range(2):
        wave2 = np.sin(2 * np.pi * 0.22 * t + channel * 0.5)
        brown = _leaky_walk(_white(rng, total), 0.01)
        envelope = (wave1 + wave2) * 0.3 + 0.7
        channels.append((brown * envelope + wave1 * 0.2) * 0.4)

    return AudioBuffer(_seal_loop(np.vstack(channels), frames, tail), sample_rate)


def generate_rain(
    sample_rate: int,
    duration: float = DEFAULT_DURATION,
    rng: Optional[np.random.Generator] = None,
    loop_crossfade: float = DEFAULT_LOOP_CROSSFADE,
) -> AudioBuffer:
    """Steady rainfall: independent pink noise per ear with a slow intensity drift"""
    rng = _resolve_rng(rng)
    frames, tail = _frame_layout(sample_rate, duration, loop_crossfade)
    total = frames + tail
    intensity = 0.8 + np.sin(2 * np.pi * 0.05 * _time_axis(total, sample_rate)) * 0.2

    channels = [
        _kellet_pink(_white(rng, total), delayed_tap=False) * intensity * 0.15
        for _ in range(2)
    ]
    return AudioBuffer(_seal_loop(np.vstack(channels), frames, tail), sample_rate)


def thunder_onsets(
    duration: float,
    rng: np.random.Generator,
    first: float = 5.0,
    min_gap: float = 8.0,
    max_gap: float = 18.0,
) -> List[float]:
    """Thunder strike times in seconds, spaced ``min_gap``..``max_gap`` apart"""
    onsets = []
    t = first
    while t < duration:
        onsets.append(t)
        t += min_gap + rng.random() * (max_gap - min_gap)
    return onsets


def generate_thunderstorm(
    sample_rate: int,
    duration: float = DEFAULT_DURATION,
    rng: Optional[np.random.Generator] = None,
    loop_crossfade: float = DEFAULT_LOOP_CROSSFADE,
) -> AudioBuffer:
    """Rain bed with decaying brown-noise rumbles at random onsets, stereo"""
    rng = _resolve_rng(rng)
    frames, tail = _frame_layout(sample_rate, duration, loop_crossfade)
    total = frames + tail
    t = _time_axis(total, sample_rate)

    # Both ears share the strike times
    envelope = np.zeros(total)
    for onset in thunder_onsets(duration, rng):
        since = t - onset
        active = (since > 0) & (since < 3.0)
        envelope[active] += np.exp(-since[active] * 1.5)

    channels = []
    for _ in range(2):
        white = _white(rng, total)
        rain = _kellet_pink(white, delayed_tap=False)
        thunder = _leaky_walk(white, 0.02) * envelope
        channels.append((rain * 0.12 + thunder * 0.3) * 1.2)

    return AudioBuffer(_seal_loop(np.vstack(channels), frames, tail), sample_rate)


def generate_campfire(
    sample_rate: int,
    duration: float = DEFAULT_DURATION,
    rng: Optional[np.random.Generator] = None,
    loop_crossfade: float = DEFAULT_LOOP_CROSSFADE,
) -> AudioBuffer:
    """Crackle, sparse pops and a low rumble under a flickering envelope, stereo"""
    rng = _resolve_rng(rng)
    frames, tail = _frame_layout(sample_rate, duration, loop_crossfade)
    total = frames + tail
    t = _time_axis(total, sample_rate)

    channels = []
    for channel in range(2):
        crackle = _leaky_walk(_white(rng, total), 0.03)
        pops = np.where(rng.random(total) < 0.003, (rng.random(total) - 0.5) * 2, 0.0)
        rumble = np.sin(2 * np.pi * 30 * t + rng.random(total)) * 0.1
        flicker = 0.7 + np.sin(2 * np.pi * 2 * t + channel) * 0.3
        channels.append((crackle * 0.3 + pops * 0.5 + rumble) * flicker * 0.25)

    return AudioBuffer(_seal_loop(np.vstack(channels), frames, tail), sample_rate)


def build_generator_table(
    base_freq: float = 200.0,
    alpha_beat: float = 10.0,
    theta_beat: float = 6.0,
) -> Dict[SoundType, GeneratorFn]:
    """Map every playable sound to its generator"""
    return {
        SoundType.WHITE_NOISE: generate_white_noise,
        SoundType.PINK_NOISE: generate_pink_noise,
        SoundType.BROWN_NOISE: generate_brown_noise,
        SoundType.BINAURAL_ALPHA: partial(generate_binaural_beat, base_freq=base_freq, beat_freq=alpha_beat),
        SoundType.BINAURAL_THETA: partial(generate_binaural_beat, base_freq=base_freq, beat_freq=theta_beat),
        SoundType.OCEAN_WAVES: generate_ocean_waves,
        SoundType.RAIN: generate_rain,
        SoundType.THUNDERSTORM: generate_thunderstorm,
        SoundType.CAMPFIRE: generate_campfire,
    }


def generate_sound(
    sound_type: SoundType,
    sample_rate: int,
    duration: float = DEFAULT_DURATION,
    rng: Optional[np.random.Generator] = None,
    loop_crossfade: float = DEFAULT_LOOP_CROSSFADE,
    generators: Optional[Dict[SoundType, GeneratorFn]] = None,
) -> AudioBuffer:
    """Render one sound type; ``SoundType.NONE`` has no buffer"""
    generators = generators or build_generator_table()
    if sound_type not in generators:
        raise ValueError(f"No generator for sound type: {sound_type.value}")
    return generators[sound_type](
        sample_rate,
        duration=duration,
        rng=rng,
        loop_crossfade=loop_crossfade,
    )


def generate_all_buffers(
    sample_rate: int,
    duration: float = DEFAULT_DURATION,
    rng: Optional[np.random.Generator] = None,
    loop_crossfade: float = DEFAULT_LOOP_CROSSFADE,
    generators: Optional[Dict[SoundType, GeneratorFn]] = None,
) -> Dict[SoundType, AudioBuffer]:
    """Pre-render one buffer per playable sound"""
    generators = generators or build_generator_table()
    rng = _resolve_rng(rng)
    buffers: Dict[SoundType, AudioBuffer] = {}

    for sound_type in SoundType.playable():
        started = time.perf_counter()
        buffer = generate_sound(sound_type, sample_rate, duration, rng, loop_crossfade, generators)
        buffers[sound_type] = buffer
        engine_logger.log_buffer_generated(
            sound=sound_type.value,
            channels=buffer.number_of_channels,
            duration_s=buffer.duration,
            generation_ms=(time.perf_counter() - started) * 1000,
        )

    return buffers


__all__ = [
    "AudioBuffer",
    "DEFAULT_DURATION",
    "DEFAULT_LOOP_CROSSFADE",
    "generate_white_noise",
    "generate_pink_noise",
    "generate_brown_noise",
    "generate_binaural_beat",
    "generate_ocean_waves",
    "generate_rain",
    "generate_thunderstorm",
    "generate_campfire",
    "thunder_onsets",
    "build_generator_table",
    "generate_sound",
    "generate_all_buffers",
]
