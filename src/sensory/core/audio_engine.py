"""
Sensory Dashboard Audio Engine
Three-channel ambient mixer over pre-generated looping sound buffers
"""

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from functools import partial
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np

from .config import SensorySettings, get_settings
from .exceptions import EngineInitializationError, UnknownChannelError
from .graph import OUTPUT_CHANNELS, Analyser, GainStage, Voice
from .logging import engine_logger
from .noise_generators import AudioBuffer, build_generator_table, generate_all_buffers
from .output_device import OutputDevice, OutputDeviceFactory, create_output_device
from .sound_types import SoundType, available_sounds

logger = logging.getLogger(__name__)

CHANNEL_IDS = (1, 2, 3)


def volume_to_gain(volume: float) -> float:
    """Map a 0-100 UI volume onto gain with a squared curve"""
    volume = min(max(float(volume), 0.0), 100.0)
    return (volume / 100.0) ** 2


@dataclass
class MixerChannel:
    """
    One mixer slot

    ``voice is None`` means Idle, a pending voice means Bound and
    ``is_playing`` means Playing.
    """
    channel_id: int
    gain: GainStage
    volume: float
    sound: SoundType = SoundType.NONE
    voice: Optional[Voice] = None
    muted: bool = False
    is_playing: bool = False

    @property
    def has_voice(self) -> bool:
        return self.voice is not None


class AudioEngine:
    """
    Ambient mixer engine

    Owns the output device, the gain graph (channels -> master -> analyser)
    and the buffer cache. Mutations run on the event loop; the device pulls
    rendered blocks from its own thread through ``_render``, so every graph
    change is made under ``_graph_lock``.
    """

    def __init__(
        self,
        settings: Optional[SensorySettings] = None,
        output_factory: Optional[OutputDeviceFactory] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.settings = settings or get_settings()
        self._output_factory = output_factory or partial(
            create_output_device, backend=self.settings.OUTPUT_BACKEND
        )
        self._rng = rng

        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._graph_lock = threading.Lock()

        self._device: Optional[OutputDevice] = None
        self._master: Optional[GainStage] = None
        self._analyser: Optional[Analyser] = None
        self._channels: Dict[int, MixerChannel] = {}
        self._buffers: Dict[SoundType, AudioBuffer] = {}
        self._master_volume = math.sqrt(self.settings.MASTER_GAIN_DEFAULT) * 100.0
        self._fade_token = 0
        self._fade_restore_gain: Optional[float] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def sample_rate(self) -> Optional[int]:
        return self._device.sample_rate if self._device is not None else None

    @property
    def master(self) -> Optional[GainStage]:
        return self._master

    @property
    def channels(self) -> Dict[int, MixerChannel]:
        return dict(self._channels)

    @property
    def buffer_cache(self) -> Mapping[SoundType, AudioBuffer]:
        return MappingProxyType(self._buffers)

    async def initialize(self) -> bool:
        """
        Open the output device, build the graph and pre-render every buffer

        Safe to call repeatedly and from concurrent tasks; only the first
        call does any work. On failure everything created so far is torn
        down and ``EngineInitializationError`` is raised.
        """
        async with self._init_lock:
            if self._initialized:
                return True

            started = time.perf_counter()
            stage = "output_device"
            device: Optional[OutputDevice] = None
            try:
                device = self._output_factory(
                    self.settings.SAMPLE_RATE,
                    self.settings.OUTPUT_CHANNELS,
                    self.settings.BUFFER_SIZE,
                    self._render,
                )

                stage = "graph"
                with self._graph_lock:
                    self._device = device
                    self._build_graph(device.sample_rate)

                stage = "buffers"
                generators = build_generator_table(
                    base_freq=self.settings.BINAURAL_BASE_FREQ,
                    alpha_beat=self.settings.ALPHA_BEAT_FREQ,
                    theta_beat=self.settings.THETA_BEAT_FREQ,
                )
                buffers = await asyncio.to_thread(
                    generate_all_buffers,
                    device.sample_rate,
                    self.settings.SOUND_BUFFER_SECONDS,
                    self._rng,
                    self.settings.LOOP_CROSSFADE_SECONDS,
                    generators,
                )
            except Exception as e:
                engine_logger.log_initialization_failed(stage, str(e))
                self._rollback(device)
                raise EngineInitializationError(
                    f"Audio engine initialization failed during {stage}: {e}"
                ) from e

            self._buffers = buffers
            self._initialized = True

            engine_logger.log_initialized(
                sample_rate=device.sample_rate,
                buffers=len(buffers),
                duration_ms=(time.perf_counter() - started) * 1000,
                backend=type(device).__name__,
            )
            return True

    def _build_graph(self, sample_rate: int) -> None:
        analyser_config = self.settings.get_analyser_config()
        self._analyser = Analyser(
            sample_rate,
            fft_size=analyser_config["fft_size"],
            smoothing_time_constant=analyser_config["smoothing"],
            min_decibels=analyser_config["min_decibels"],
            max_decibels=analyser_config["max_decibels"],
        )
        self._master = GainStage(sample_rate, self.settings.MASTER_GAIN_DEFAULT, clock=self._device_time)
        self._master.connect(self._analyser)
        self._master_volume = math.sqrt(self.settings.MASTER_GAIN_DEFAULT) * 100.0
        self._fade_restore_gain = None

        channel_gain = self.settings.CHANNEL_GAIN_DEFAULT
        self._channels = {}
        for channel_id in CHANNEL_IDS:
            gain = GainStage(sample_rate, channel_gain, clock=self._device_time)
            gain.connect(self._master)
            self._channels[channel_id] = MixerChannel(
                channel_id=channel_id,
                gain=gain,
                volume=math.sqrt(channel_gain) * 100.0,
            )

    def _rollback(self, device: Optional[OutputDevice]) -> None:
        with self._graph_lock:
            self._disconnect_graph()
            self._device = None
            self._buffers = {}
            self._initialized = False

        if device is not None:
            try:
                device.close()
            except Exception as e:
                logger.warning(f"Failed to close output device during rollback: {e}")

    def _disconnect_graph(self) -> None:
        for channel in self._channels.values():
            if channel.voice is not None:
                channel.voice.stop()
                channel.voice.disconnect()
            channel.gain.disconnect()
        if self._master is not None:
            self._master.disconnect()
        if self._analyser is not None:
            self._analyser.disconnect()
        self._channels = {}
        self._master = None
        self._analyser = None

    def dispose(self) -> bool:
        """Stop everything, tear down the graph and close the device"""
        if not self._initialized:
            engine_logger.log_operation_skipped("dispose", "not_initialized")
            return False

        self.stop_all()

        with self._graph_lock:
            self._disconnect_graph()
            device = self._device
            released = len(self._buffers)
            self._device = None
            self._buffers = {}
            self._initialized = False

        # Closed outside the lock: the device thread may be waiting on it
        if device is not None:
            try:
                device.close()
            except Exception as e:
                logger.warning(f"Failed to close output device: {e}")

        engine_logger.log_disposed(released)
        return True

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _device_time(self) -> float:
        device = self._device
        return device.current_time if device is not None else 0.0

    def _render(self, frame_count: int) -> np.ndarray:
        """Pull one interleaved stereo block through the graph"""
        with self._graph_lock:
            if self._analyser is None or self._device is None:
                return np.zeros((frame_count, OUTPUT_CHANNELS), dtype=np.float32)
            block = self._analyser.render(frame_count, self._device.current_time)
        return np.clip(block, -1.0, 1.0)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def _get_channel(self, operation: str, channel_id: int) -> Optional[MixerChannel]:
        if not self._initialized:
            engine_logger.log_operation_skipped(operation, "not_initialized", channel_id=channel_id)
            return None
        channel = self._channels.get(channel_id)
        if channel is None:
            raise UnknownChannelError(channel_id)
        return channel

    def _release_voice(self, channel: MixerChannel) -> None:
        if channel.voice is not None:
            channel.voice.stop()
            channel.voice.disconnect()
            channel.voice = None

    def _bind_voice(self, channel: MixerChannel, buffer: AudioBuffer) -> Voice:
        voice = Voice(buffer)
        voice.connect(channel.gain)
        channel.voice = voice
        return voice

    def load_sound(self, channel_id: int, sound_type: Union[SoundType, str]) -> bool:
        """
        Bind a sound to a channel

        Any existing voice is released. ``SoundType.NONE`` leaves the channel
        idle; any other sound gets a fresh voice which starts right away if
        the channel was playing.
        """
        channel = self._get_channel("load_sound", channel_id)
        if channel is None:
            return False

        sound_type = SoundType.parse(sound_type)

        if sound_type is SoundType.NONE:
            with self._graph_lock:
                self._release_voice(channel)
                channel.sound = SoundType.NONE
                channel.is_playing = False
            engine_logger.log_channel_event("unloaded", channel_id)
            return True

        buffer = self._buffers.get(sound_type)
        if buffer is None:
            engine_logger.log_operation_skipped(
                "load_sound", "buffer_missing", channel_id=channel_id, sound=sound_type.value
            )
            return False

        with self._graph_lock:
            was_playing = channel.is_playing
            self._release_voice(channel)
            voice = self._bind_voice(channel, buffer)
            channel.sound = sound_type
            if was_playing:
                voice.start()

        engine_logger.log_channel_event("loaded", channel_id, sound=sound_type.value, playing=was_playing)
        return True

    def _resume_device(self) -> None:
        device = self._device
        if device is not None and device.state == "suspended":
            device.resume()

    def play_channel(self, channel_id: int) -> bool:
        channel = self._get_channel("play_channel", channel_id)
        if channel is None:
            return False
        if channel.voice is None:
            engine_logger.log_operation_skipped("play_channel", "no_sound_loaded", channel_id=channel_id)
            return False
        if channel.is_playing:
            return True

        try:
            self._resume_device()
        except Exception as e:
            engine_logger.log_channel_error("play_channel", channel_id, str(e))
            return False

        with self._graph_lock:
            channel.voice.start()
            channel.is_playing = True

        engine_logger.log_channel_event("playing", channel_id, sound=channel.sound.value)
        return True

    def stop_channel(self, channel_id: int) -> bool:
        """Stop a channel and rebind a fresh voice so it can be played again"""
        channel = self._get_channel("stop_channel", channel_id)
        if channel is None:
            return False
        if channel.voice is None:
            engine_logger.log_operation_skipped("stop_channel", "no_sound_loaded", channel_id=channel_id)
            return False
        if not channel.is_playing:
            return True

        with self._graph_lock:
            buffer = channel.voice.buffer
            self._release_voice(channel)
            self._bind_voice(channel, buffer)
            channel.is_playing = False

        engine_logger.log_channel_event("stopped", channel_id, sound=channel.sound.value)
        return True

    def _for_each_channel(self, operation: str, action) -> Dict[int, bool]:
        if not self._initialized:
            engine_logger.log_operation_skipped(operation, "not_initialized")
            return {channel_id: False for channel_id in CHANNEL_IDS}

        results = {}
        for channel_id in CHANNEL_IDS:
            try:
                results[channel_id] = action(channel_id)
            except Exception as e:
                engine_logger.log_channel_error(operation, channel_id, str(e))
                results[channel_id] = False
        return results

    def play_all(self) -> Dict[int, bool]:
        """Start channels 1-3 in order; one failing channel never blocks the rest"""
        return self._for_each_channel("play_all", self.play_channel)

    def stop_all(self) -> Dict[int, bool]:
        return self._for_each_channel("stop_all", self.stop_channel)

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    def set_channel_volume(self, channel_id: int, volume: float) -> bool:
        channel = self._get_channel("set_channel_volume", channel_id)
        if channel is None:
            return False
        if not math.isfinite(volume):
            engine_logger.log_operation_skipped(
                "set_channel_volume", "non_finite_volume", channel_id=channel_id, volume=str(volume)
            )
            return False

        volume = min(max(float(volume), 0.0), 100.0)
        with self._graph_lock:
            channel.gain.value = volume_to_gain(volume)
            channel.volume = volume
        return True

    def set_channel_mute(self, channel_id: int, muted: bool) -> bool:
        channel = self._get_channel("set_channel_mute", channel_id)
        if channel is None:
            return False

        if muted:
            gain = 0.0
        elif self.settings.RESTORE_VOLUME_ON_UNMUTE:
            gain = volume_to_gain(channel.volume)
        else:
            gain = self.settings.CHANNEL_GAIN_DEFAULT

        with self._graph_lock:
            channel.gain.value = gain
            channel.muted = bool(muted)

        engine_logger.log_channel_event("muted" if muted else "unmuted", channel_id, gain=gain)
        return True

    def set_master_volume(self, volume: float) -> bool:
        if not self._initialized:
            engine_logger.log_operation_skipped("set_master_volume", "not_initialized")
            return False
        if not math.isfinite(volume):
            engine_logger.log_operation_skipped("set_master_volume", "non_finite_volume", volume=str(volume))
            return False

        volume = min(max(float(volume), 0.0), 100.0)
        with self._graph_lock:
            self._master.value = volume_to_gain(volume)
            self._master_volume = volume
        return True

    async def fade_out(self, duration_ms: Optional[float] = None) -> bool:
        """
        Glide the master down, stop every channel, then restore the master

        A fade started while another is in flight takes over: it keeps the
        level captured by the first fade as its restore target, and the
        superseded fade returns False without stopping or restoring
        anything. The same happens when the engine is disposed (or
        re-initialized) while the fade is waiting.
        """
        if not self._initialized:
            engine_logger.log_operation_skipped("fade_out", "not_initialized")
            return False

        if duration_ms is None:
            duration_ms = self.settings.FADE_OUT_DEFAULT_MS

        master = self._master
        if self._fade_restore_gain is None:
            self._fade_restore_gain = master.value
        restore_gain = self._fade_restore_gain
        self._fade_token += 1
        token = self._fade_token
        engine_logger.log_fade("start", duration_ms, restore_gain)

        if duration_ms > 0:
            with self._graph_lock:
                master.exponential_ramp_to_value(self.settings.FADE_FLOOR_GAIN, duration_ms / 1000.0)
            await asyncio.sleep(duration_ms / 1000.0)

        if not self._initialized or self._master is not master:
            engine_logger.log_fade("aborted", duration_ms, restore_gain)
            return False
        if token != self._fade_token:
            engine_logger.log_fade("superseded", duration_ms, restore_gain)
            return False

        self._fade_restore_gain = None
        self.stop_all()
        with self._graph_lock:
            master.value = restore_gain

        engine_logger.log_fade("complete", duration_ms, restore_gain)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_available_sounds(self) -> List[SoundType]:
        return available_sounds()

    def get_analyser(self) -> Optional[Analyser]:
        return self._analyser if self._initialized else None

    def get_state(self) -> Dict[str, Any]:
        """Snapshot of the mixer for the control surface"""
        device = self._device
        state = {
            "initialized": self._initialized,
            "sample_rate": self.sample_rate,
            "device_state": device.state if device is not None else None,
            "master_volume": round(self._master_volume, 2),
            "master_gain": self._master.value if self._master is not None else None,
            "channels": [],
        }

        for channel_id in CHANNEL_IDS:
            channel = self._channels.get(channel_id)
            if channel is None:
                continue
            state["channels"].append({
                "channel_id": channel_id,
                "sound": channel.sound.value,
                "volume": round(channel.volume, 2),
                "muted": channel.muted,
                "gain": channel.gain.value,
                "playing": channel.is_playing,
                "has_voice": channel.has_voice,
            })

        return state


__all__ = [
    "AudioEngine",
    "MixerChannel",
    "CHANNEL_IDS",
    "volume_to_gain",
]
