"""
Sensory Dashboard Preset Service
Built-in mixer presets, applying and capturing mixer state, and share codes
"""

import base64
import binascii
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from ..core.audio_engine import CHANNEL_IDS, AudioEngine
from ..core.result import Result
from ..core.sound_types import SoundType

logger = logging.getLogger(__name__)

SHARED_PRESET_NAME = "Shared Preset"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ChannelSettings(BaseModel):
    """Per-channel slice of a preset"""
    sound: SoundType = SoundType.NONE
    volume: float = Field(default=0.0, ge=0, le=100)
    muted: bool = False


class Preset(BaseModel):
    """Complete mixer scene"""
    id: str
    name: str
    channel1: ChannelSettings
    channel2: ChannelSettings
    channel3: ChannelSettings
    visualizer_enabled: bool = True
    visualizer_opacity: float = Field(default=30.0, ge=0, le=100)
    created_at: str = Field(default_factory=_now_iso)

    def channel(self, channel_id: int) -> ChannelSettings:
        return getattr(self, f"channel{channel_id}")


def _silent_channel() -> ChannelSettings:
    return ChannelSettings(sound=SoundType.NONE, volume=0, muted=True)


DEFAULT_PRESETS: List[Preset] = [
    Preset(
        id="deep-work",
        name="Deep Work",
        channel1=ChannelSettings(sound=SoundType.BROWN_NOISE, volume=80),
        channel2=ChannelSettings(sound=SoundType.NONE, volume=20),
        channel3=_silent_channel(),
        visualizer_opacity=30,
    ),
    Preset(
        id="calm-focus",
        name="Calm Focus",
        channel1=ChannelSettings(sound=SoundType.PINK_NOISE, volume=40),
        channel2=ChannelSettings(sound=SoundType.BINAURAL_ALPHA, volume=50),
        channel3=_silent_channel(),
        visualizer_opacity=20,
    ),
    Preset(
        id="meditation",
        name="Meditation",
        channel1=ChannelSettings(sound=SoundType.PINK_NOISE, volume=30),
        channel2=ChannelSettings(sound=SoundType.BINAURAL_THETA, volume=60),
        channel3=_silent_channel(),
        visualizer_opacity=15,
    ),
    Preset(
        id="energy-boost",
        name="Energy Boost",
        channel1=ChannelSettings(sound=SoundType.WHITE_NOISE, volume=50),
        channel2=ChannelSettings(sound=SoundType.BINAURAL_ALPHA, volume=70),
        channel3=_silent_channel(),
        visualizer_opacity=40,
    ),
]


def encode_share_code(preset: Preset) -> str:
    """
    Encode a preset as a URL-safe token

    Only the name, channel settings and visualizer options travel; ids and
    timestamps are assigned again on decode.
    """
    payload = {
        "n": preset.name,
        "c1": preset.channel1.model_dump(mode="json"),
        "c2": preset.channel2.model_dump(mode="json"),
        "c3": preset.channel3.model_dump(mode="json"),
        "ve": preset.visualizer_enabled,
        "vo": preset.visualizer_opacity,
    }
    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_share_code(code: str) -> Result[Preset]:
    """Rebuild a preset from a share code; malformed codes yield an error result"""
    try:
        padded = code.strip() + "=" * (-len(code.strip()) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
        if not isinstance(data, dict):
            raise ValueError("Share code payload is not an object")

        preset = Preset(
            id=f"shared-{int(time.time() * 1000)}",
            name=data.get("n") or SHARED_PRESET_NAME,
            channel1=data.get("c1"),
            channel2=data.get("c2"),
            channel3=data.get("c3"),
            visualizer_enabled=data.get("ve", True),
            visualizer_opacity=data.get("vo", 30.0),
        )
        return Result.ok(preset)

    except (binascii.Error, UnicodeError, ValueError, ValidationError) as e:
        logger.warning(f"Failed to decode preset share code: {e}")
        return Result.err(f"Invalid share code: {e}")


class PresetService:
    """Applies presets to a mixer engine and captures its current scene"""

    def __init__(self, engine: AudioEngine, presets: Optional[List[Preset]] = None):
        self.engine = engine
        self._presets = list(presets if presets is not None else DEFAULT_PRESETS)

    def list_presets(self) -> List[Preset]:
        return list(self._presets)

    def get_preset(self, preset_id: str) -> Optional[Preset]:
        for preset in self._presets:
            if preset.id == preset_id:
                return preset
        return None

    def apply_preset(self, preset: Preset) -> Dict[int, bool]:
        """
        Push a preset onto the mixer

        Per channel: load the sound, sync the mute flag and set the volume.
        A channel the preset unmutes is unmuted before its volume is set, so
        the preset level wins over the unmute default; a muted channel gets
        its volume first and is then silenced.

        Returns:
            Map of channel id to whether every step succeeded
        """
        mixer_channels = self.engine.channels
        results = {}
        for channel_id in CHANNEL_IDS:
            settings = preset.channel(channel_id)
            current = mixer_channels.get(channel_id)
            ok = self.engine.load_sound(channel_id, settings.sound)
            if not settings.muted and current is not None and current.muted:
                ok = self.engine.set_channel_mute(channel_id, False) and ok
            ok = self.engine.set_channel_volume(channel_id, settings.volume) and ok
            if settings.muted:
                ok = self.engine.set_channel_mute(channel_id, True) and ok
            results[channel_id] = ok

        logger.info(f"Applied preset '{preset.name}': {results}")
        return results

    def capture_preset(
        self,
        name: str,
        visualizer_enabled: bool = True,
        visualizer_opacity: float = 30.0,
    ) -> Preset:
        """Snapshot the mixer's current channel settings as a new preset"""
        mixer_channels = self.engine.channels
        captured = {}
        for channel_id in CHANNEL_IDS:
            channel = mixer_channels.get(channel_id)
            if channel is None:
                captured[f"channel{channel_id}"] = ChannelSettings()
                continue
            captured[f"channel{channel_id}"] = ChannelSettings(
                sound=channel.sound,
                volume=round(channel.volume, 2),
                muted=channel.muted,
            )

        return Preset(
            id=f"preset-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}",
            name=name,
            visualizer_enabled=visualizer_enabled,
            visualizer_opacity=visualizer_opacity,
            **captured,
        )


__all__ = [
    "ChannelSettings",
    "Preset",
    "DEFAULT_PRESETS",
    "PresetService",
    "encode_share_code",
    "decode_share_code",
]
