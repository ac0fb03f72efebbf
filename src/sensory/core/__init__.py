"""
Sensory Dashboard Core Module
Exports the mixer engine, sound catalogue and buffer generators
"""

from .audio_engine import AudioEngine, MixerChannel, CHANNEL_IDS, volume_to_gain
from .noise_generators import AudioBuffer, generate_all_buffers, generate_sound
from .sound_types import SoundType, available_sounds

__all__ = [
    "AudioEngine",
    "MixerChannel",
    "CHANNEL_IDS",
    "volume_to_gain",
    "AudioBuffer",
    "generate_all_buffers",
    "generate_sound",
    "SoundType",
    "available_sounds",
]
