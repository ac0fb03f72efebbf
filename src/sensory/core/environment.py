"""
Sensory Dashboard Environment Detection
Decides whether the mixer can claim a real output device on this host
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Truthy values of any of these mark a CI runner
CI_MARKERS = ("CI", "CONTINUOUS_INTEGRATION", "GITHUB_ACTIONS", "GITLAB_CI", "BUILDKITE")


class EnvironmentType(Enum):
    """Where the backend is running"""
    DESKTOP = "desktop"
    CONTAINER = "container"  # Docker or another cgroup sandbox
    CI_CD = "ci_cd"


class AudioCapability(Enum):
    """Output capability levels"""
    FULL = "full"    # PyAudio found at least one output device
    MOCK = "mock"    # Paced render clock, nothing reaches speakers


@dataclass
class OutputEnvironment:
    """Result of probing the host once at startup"""
    environment_type: EnvironmentType
    audio_capability: AudioCapability
    output_devices: List[str] = field(default_factory=list)
    default_output: Optional[str] = None
    reason: Optional[str] = None

    @property
    def has_audio_hardware(self) -> bool:
        return self.audio_capability is AudioCapability.FULL

    def to_dict(self) -> Dict[str, Any]:
        info = asdict(self)
        info["environment_type"] = self.environment_type.value
        info["audio_capability"] = self.audio_capability.value
        return info


def _running_in_ci() -> bool:
    if os.environ.get("JENKINS_URL"):
        return True
    return any(os.environ.get(name, "").lower() in ("1", "true") for name in CI_MARKERS)


def _running_in_container() -> bool:
    if os.environ.get("CONTAINER") == "true" or os.path.exists("/.dockerenv"):
        return True
    try:
        with open("/proc/1/cgroup", "r") as cgroup:
            return any(marker in cgroup.read() for marker in ("docker", "kubepods", "containerd"))
    except OSError:
        return False


def _probe_output_devices() -> OutputEnvironment:
    """List PyAudio devices that can play sound"""
    try:
        import pyaudio
    except ImportError:
        return OutputEnvironment(
            EnvironmentType.DESKTOP, AudioCapability.MOCK, reason="pyaudio not installed"
        )

    try:
        pa = pyaudio.PyAudio()
        try:
            outputs = []
            for index in range(pa.get_device_count()):
                info = pa.get_device_info_by_index(index)
                if info.get("maxOutputChannels", 0) > 0:
                    outputs.append(info.get("name", f"device {index}"))
            try:
                default_output = pa.get_default_output_device_info().get("name")
            except (IOError, OSError):
                default_output = None
        finally:
            pa.terminate()
    except Exception as e:
        logger.warning(f"Output device probe failed: {e}")
        return OutputEnvironment(EnvironmentType.DESKTOP, AudioCapability.MOCK, reason=str(e))

    if not outputs:
        return OutputEnvironment(
            EnvironmentType.DESKTOP, AudioCapability.MOCK, reason="no output devices"
        )
    return OutputEnvironment(
        EnvironmentType.DESKTOP,
        AudioCapability.FULL,
        output_devices=outputs,
        default_output=default_output,
    )


@lru_cache()
def detect_output_environment() -> OutputEnvironment:
    """Probe the host (cached); CI runners and containers never get a real device"""
    if _running_in_ci():
        environment = OutputEnvironment(EnvironmentType.CI_CD, AudioCapability.MOCK, reason="ci runner")
    elif _running_in_container():
        environment = OutputEnvironment(EnvironmentType.CONTAINER, AudioCapability.MOCK, reason="container")
    else:
        environment = _probe_output_devices()

    logger.info(
        f"Environment detected: {environment.environment_type.value}, "
        f"Audio: {environment.audio_capability.value}"
    )
    return environment


def has_audio_hardware() -> bool:
    """Quick check if a real output device is available"""
    return detect_output_environment().has_audio_hardware
