"""
Sound type catalogue for the mixer channels
"""

from enum import Enum
from typing import List, Union


class SoundType(str, Enum):
    """Closed set of sounds a mixer channel can play"""
    NONE = "None"
    BROWN_NOISE = "Brown Noise"
    PINK_NOISE = "Pink Noise"
    WHITE_NOISE = "White Noise"
    BINAURAL_ALPHA = "Binaural Beat (Alpha)"
    BINAURAL_THETA = "Binaural Beat (Theta)"
    OCEAN_WAVES = "Ocean Waves"
    RAIN = "Rain"
    THUNDERSTORM = "Thunderstorm"
    CAMPFIRE = "Campfire"

    @classmethod
    def parse(cls, value: Union["SoundType", str]) -> "SoundType":
        """Accept either a member, its display value or its member name"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            key = str(value).strip().upper().replace(" ", "_")
            if key in cls.__members__:
                return cls.__members__[key]
            raise

    @classmethod
    def playable(cls) -> List["SoundType"]:
        """Every sound that maps to a generated buffer"""
        return [sound for sound in cls if sound is not cls.NONE]


def available_sounds() -> List[SoundType]:
    """Ordered list of selectable sounds, ``None`` first"""
    return list(SoundType)
