"""
Sensory Dashboard Services
"""

from .preset_service import (
    ChannelSettings,
    Preset,
    DEFAULT_PRESETS,
    PresetService,
    encode_share_code,
    decode_share_code,
)

__all__ = [
    "ChannelSettings",
    "Preset",
    "DEFAULT_PRESETS",
    "PresetService",
    "encode_share_code",
    "decode_share_code",
]
