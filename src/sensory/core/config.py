"""
Sensory Dashboard Configuration Management
Centralized settings using Pydantic with environment variable support
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SensorySettings(BaseSettings):
    """Sensory Dashboard settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_prefix="SENSORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ============================================================================
    # APPLICATION SETTINGS
    # ============================================================================
    APP_NAME: str = "Sensory Dashboard"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ============================================================================
    # OUTPUT DEVICE SETTINGS
    # ============================================================================
    SAMPLE_RATE: int = Field(default=44100, gt=0)
    BUFFER_SIZE: int = Field(default=512, gt=0)
    OUTPUT_CHANNELS: int = 2
    OUTPUT_BACKEND: str = "auto"  # auto | pyaudio | null

    SUPPORTED_SAMPLE_RATES: List[int] = [8000, 16000, 22050, 44100, 48000, 96000]

    # ============================================================================
    # SYNTHESIS SETTINGS
    # ============================================================================
    SOUND_BUFFER_SECONDS: float = Field(default=30.0, gt=0)
    LOOP_CROSSFADE_SECONDS: float = Field(default=0.05, ge=0)
    BINAURAL_BASE_FREQ: float = 200.0
    ALPHA_BEAT_FREQ: float = 10.0
    THETA_BEAT_FREQ: float = 6.0

    # ============================================================================
    # MIXER SETTINGS
    # ============================================================================
    MASTER_GAIN_DEFAULT: float = Field(default=0.8, ge=0)
    CHANNEL_GAIN_DEFAULT: float = Field(default=0.7, ge=0)
    FADE_OUT_DEFAULT_MS: float = Field(default=10000.0, ge=0)
    FADE_FLOOR_GAIN: float = Field(default=0.001, gt=0)
    # Unmute restores CHANNEL_GAIN_DEFAULT unless this is enabled
    RESTORE_VOLUME_ON_UNMUTE: bool = False

    # ============================================================================
    # ANALYSER SETTINGS
    # ============================================================================
    ANALYSER_FFT_SIZE: int = 2048
    ANALYSER_SMOOTHING: float = Field(default=0.8, ge=0, le=1)
    ANALYSER_MIN_DECIBELS: float = -100.0
    ANALYSER_MAX_DECIBELS: float = -30.0
    SPECTRUM_BAR_COUNT: int = Field(default=64, gt=0)
    SPECTRUM_STREAM_INTERVAL_MS: int = Field(default=33, gt=0)

    # ============================================================================
    # LOGGING SETTINGS
    # ============================================================================
    LOG_TO_FILE: bool = True
    LOG_FILE_PATH: str = "./logs/sensory.log"
    LOG_MAX_SIZE: int = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT: int = 3
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ============================================================================
    # API SETTINGS
    # ============================================================================
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",    # Dashboard dev server
        "http://127.0.0.1:3000",
    ]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.DEBUG

    def get_audio_config(self) -> dict:
        """Get output device configuration dictionary"""
        return {
            "sample_rate": self.SAMPLE_RATE,
            "buffer_size": self.BUFFER_SIZE,
            "channels": self.OUTPUT_CHANNELS,
            "backend": self.OUTPUT_BACKEND,
        }

    def get_mixer_config(self) -> dict:
        """Get mixer defaults dictionary"""
        return {
            "master_gain": self.MASTER_GAIN_DEFAULT,
            "channel_gain": self.CHANNEL_GAIN_DEFAULT,
            "fade_out_ms": self.FADE_OUT_DEFAULT_MS,
            "fade_floor_gain": self.FADE_FLOOR_GAIN,
            "buffer_seconds": self.SOUND_BUFFER_SECONDS,
            "restore_volume_on_unmute": self.RESTORE_VOLUME_ON_UNMUTE,
        }

    def get_analyser_config(self) -> dict:
        """Get analyser configuration dictionary"""
        return {
            "fft_size": self.ANALYSER_FFT_SIZE,
            "smoothing": self.ANALYSER_SMOOTHING,
            "min_decibels": self.ANALYSER_MIN_DECIBELS,
            "max_decibels": self.ANALYSER_MAX_DECIBELS,
        }

    def validate_sample_rate(self, sample_rate: int) -> bool:
        """Validate sample rate against supported values"""
        return sample_rate in self.SUPPORTED_SAMPLE_RATES


@lru_cache()
def get_settings() -> SensorySettings:
    """Get application settings (cached)"""
    return SensorySettings()
