"""
Unit tests for presets and share codes
"""
import base64
import json

import pytest

from sensory.core.sound_types import SoundType
from sensory.services.preset_service import (
    DEFAULT_PRESETS,
    ChannelSettings,
    Preset,
    PresetService,
    decode_share_code,
    encode_share_code,
)


def make_code(payload):
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


@pytest.mark.unit
class TestDefaultPresets:
    """Test the built-in preset catalogue"""

    def test_ids_in_order(self):
        assert [preset.id for preset in DEFAULT_PRESETS] == [
            "deep-work", "calm-focus", "meditation", "energy-boost"
        ]

    def test_calm_focus_values(self):
        preset = PresetService(engine=None).get_preset("calm-focus")

        assert preset.channel1 == ChannelSettings(sound=SoundType.PINK_NOISE, volume=40, muted=False)
        assert preset.channel2 == ChannelSettings(sound=SoundType.BINAURAL_ALPHA, volume=50, muted=False)
        assert preset.channel3 == ChannelSettings(sound=SoundType.NONE, volume=0, muted=True)
        assert preset.visualizer_opacity == 20

    def test_unknown_preset(self):
        assert PresetService(engine=None).get_preset("nope") is None


@pytest.mark.unit
class TestShareCodes:
    """Test URL-safe preset sharing"""

    def test_code_is_url_safe_without_padding(self):
        code = encode_share_code(DEFAULT_PRESETS[0])

        assert "=" not in code
        assert "+" not in code and "/" not in code

    def test_encoded_payload_uses_compact_keys(self):
        code = encode_share_code(DEFAULT_PRESETS[0])
        payload = json.loads(base64.urlsafe_b64decode(code + "=" * (-len(code) % 4)))

        assert set(payload) == {"n", "c1", "c2", "c3", "ve", "vo"}
        assert payload["n"] == "Deep Work"
        assert payload["c1"] == {"sound": "Brown Noise", "volume": 80.0, "muted": False}

    def test_decode_rebuilds_preset(self):
        result = decode_share_code(encode_share_code(DEFAULT_PRESETS[3]))

        assert result.is_ok()
        preset = result.unwrap()
        assert preset.id.startswith("shared-")
        assert preset.name == "Energy Boost"
        assert preset.channel2.sound is SoundType.BINAURAL_ALPHA
        assert preset.visualizer_opacity == 40

    def test_decode_defaults_name(self):
        channel = {"sound": "Rain", "volume": 55, "muted": False}
        code = make_code({"n": "", "c1": channel, "c2": channel, "c3": channel, "ve": False, "vo": 10})

        preset = decode_share_code(code).unwrap()

        assert preset.name == "Shared Preset"
        assert preset.visualizer_enabled is False

    @pytest.mark.parametrize("code", [
        "not base64 at all!",
        make_code(["a", "list"]),
        make_code({"n": "Missing channels"}),
        make_code({"n": "Bad sound", "c1": {"sound": "Whale Song", "volume": 1, "muted": False},
                   "c2": {}, "c3": {}}),
    ])
    def test_malformed_codes_return_error(self, code):
        result = decode_share_code(code)

        assert result.is_err()
        assert "Invalid share code" in result.error


@pytest.mark.unit
class TestPresetService:
    """Test applying and capturing presets on a live engine"""

    @pytest.mark.asyncio
    async def test_apply_preset(self, initialized_engine):
        service = PresetService(initialized_engine)

        results = service.apply_preset(service.get_preset("meditation"))

        assert results == {1: True, 2: True, 3: True}
        channels = initialized_engine.channels
        assert channels[1].sound is SoundType.PINK_NOISE
        assert channels[1].gain.value == pytest.approx(0.09)
        assert channels[2].sound is SoundType.BINAURAL_THETA
        assert channels[2].gain.value == pytest.approx(0.36)
        assert channels[3].sound is SoundType.NONE
        assert channels[3].muted
        assert channels[3].gain.value == 0.0

    @pytest.mark.asyncio
    async def test_apply_unmutes_channel_the_preset_leaves_audible(self, initialized_engine):
        service = PresetService(initialized_engine)
        initialized_engine.set_channel_mute(1, True)

        results = service.apply_preset(service.get_preset("deep-work"))

        channel = initialized_engine.channels[1]
        assert results[1] is True
        assert channel.muted is False
        assert channel.gain.value == pytest.approx(0.64)
        assert service.capture_preset("After").channel1.muted is False

    @pytest.mark.asyncio
    async def test_apply_keeps_muted_channel_silent(self, initialized_engine):
        service = PresetService(initialized_engine)
        initialized_engine.set_channel_mute(3, True)

        service.apply_preset(service.get_preset("deep-work"))

        assert initialized_engine.channels[3].muted
        assert initialized_engine.channels[3].gain.value == 0.0

    @pytest.mark.asyncio
    async def test_apply_keeps_playing_channels_playing(self, initialized_engine):
        service = PresetService(initialized_engine)
        initialized_engine.load_sound(1, SoundType.RAIN)
        initialized_engine.play_channel(1)

        service.apply_preset(service.get_preset("deep-work"))

        assert initialized_engine.channels[1].sound is SoundType.BROWN_NOISE
        assert initialized_engine.channels[1].is_playing

    def test_apply_on_uninitialized_engine(self, engine):
        results = PresetService(engine).apply_preset(DEFAULT_PRESETS[0])

        assert results == {1: False, 2: False, 3: False}

    @pytest.mark.asyncio
    async def test_capture_preset(self, initialized_engine):
        service = PresetService(initialized_engine)
        initialized_engine.load_sound(1, SoundType.OCEAN_WAVES)
        initialized_engine.set_channel_volume(1, 65)
        initialized_engine.set_channel_mute(3, True)

        preset = service.capture_preset("Evening", visualizer_enabled=False, visualizer_opacity=12)

        assert isinstance(preset, Preset)
        assert preset.id.startswith("preset-")
        assert preset.name == "Evening"
        assert preset.channel1 == ChannelSettings(sound=SoundType.OCEAN_WAVES, volume=65, muted=False)
        assert preset.channel3.muted
        assert preset.visualizer_enabled is False
        assert preset.visualizer_opacity == 12
