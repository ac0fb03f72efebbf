"""
Sensory Dashboard Mixer API Routes
REST endpoints for the three-channel mixer engine
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

from ...core.audio_engine import AudioEngine
from ...core.result import Result
from ...core.sound_types import SoundType
from ..dependencies import get_engine, require_initialized

router = APIRouter()


class SoundRequest(BaseModel):
    """Request model for binding a sound to a channel"""
    sound: str


class VolumeRequest(BaseModel):
    """Volume on the 0-100 UI scale; values outside are clamped by the engine"""
    volume: float = Field(..., allow_inf_nan=False)


class MuteRequest(BaseModel):
    muted: bool


class FadeOutRequest(BaseModel):
    duration_ms: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)


class MixerOperationResponse(BaseModel):
    """Response model for mixer operations"""
    success: bool
    message: str
    state: Dict[str, Any]


class BatchOperationResponse(BaseModel):
    """Response model for operations fanned out over every channel"""
    success: bool
    channels: Dict[int, bool]
    state: Dict[str, Any]


class AnalyserResponse(BaseModel):
    """Spectrum snapshot for visual consumers"""
    bars: List[float]
    level: float
    fft_size: int
    frequency_bin_count: int
    sample_rate: int


def _respond(engine: AudioEngine, success: bool, message: str) -> MixerOperationResponse:
    require_initialized(engine)
    return MixerOperationResponse(success=success, message=message, state=engine.get_state())


@router.post("/initialize", response_model=Result[Dict[str, Any]])
async def initialize_engine(engine: AudioEngine = Depends(get_engine)):
    """Bring up the output device and pre-render every sound buffer"""
    await engine.initialize()
    return Result.ok(engine.get_state())


@router.get("/sounds", response_model=List[str])
async def list_sounds(engine: AudioEngine = Depends(get_engine)):
    """Selectable sounds, None first"""
    return [sound.value for sound in engine.get_available_sounds()]


@router.get("/state")
async def get_mixer_state(engine: AudioEngine = Depends(get_engine)) -> Dict[str, Any]:
    return engine.get_state()


@router.post("/channels/{channel_id}/sound", response_model=MixerOperationResponse)
async def load_channel_sound(
    channel_id: int,
    request: SoundRequest,
    engine: AudioEngine = Depends(get_engine)
):
    """Bind a sound to a channel, keeping it playing if it already was"""
    try:
        sound_type = SoundType.parse(request.sound)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown sound: {request.sound}")

    success = engine.load_sound(channel_id, sound_type)
    return _respond(engine, success, f"Channel {channel_id} sound set to {sound_type.value}")


@router.post("/channels/{channel_id}/play", response_model=MixerOperationResponse)
async def play_channel(channel_id: int, engine: AudioEngine = Depends(get_engine)):
    success = engine.play_channel(channel_id)
    return _respond(engine, success, f"Channel {channel_id} playing" if success else "No sound loaded")


@router.post("/channels/{channel_id}/stop", response_model=MixerOperationResponse)
async def stop_channel(channel_id: int, engine: AudioEngine = Depends(get_engine)):
    success = engine.stop_channel(channel_id)
    return _respond(engine, success, f"Channel {channel_id} stopped" if success else "No sound loaded")


@router.put("/channels/{channel_id}/volume", response_model=MixerOperationResponse)
async def set_channel_volume(
    channel_id: int,
    request: VolumeRequest,
    engine: AudioEngine = Depends(get_engine)
):
    success = engine.set_channel_volume(channel_id, request.volume)
    return _respond(engine, success, f"Channel {channel_id} volume updated")


@router.put("/channels/{channel_id}/mute", response_model=MixerOperationResponse)
async def set_channel_mute(
    channel_id: int,
    request: MuteRequest,
    engine: AudioEngine = Depends(get_engine)
):
    success = engine.set_channel_mute(channel_id, request.muted)
    return _respond(engine, success, f"Channel {channel_id} {'muted' if request.muted else 'unmuted'}")


@router.put("/master/volume", response_model=MixerOperationResponse)
async def set_master_volume(request: VolumeRequest, engine: AudioEngine = Depends(get_engine)):
    success = engine.set_master_volume(request.volume)
    return _respond(engine, success, "Master volume updated")


@router.post("/play", response_model=BatchOperationResponse)
async def play_all(engine: AudioEngine = Depends(get_engine)):
    """Start every channel that has a sound bound"""
    require_initialized(engine)
    results = engine.play_all()
    return BatchOperationResponse(success=any(results.values()), channels=results, state=engine.get_state())


@router.post("/stop", response_model=BatchOperationResponse)
async def stop_all(engine: AudioEngine = Depends(get_engine)):
    require_initialized(engine)
    results = engine.stop_all()
    return BatchOperationResponse(success=all(results.values()), channels=results, state=engine.get_state())


@router.post("/fade-out", status_code=202)
async def fade_out(
    background_tasks: BackgroundTasks,
    request: FadeOutRequest = FadeOutRequest(),
    engine: AudioEngine = Depends(get_engine)
) -> Dict[str, Any]:
    """Schedule a master fade; channels stop once the fade completes"""
    require_initialized(engine)
    duration_ms = request.duration_ms
    if duration_ms is None:
        duration_ms = engine.settings.FADE_OUT_DEFAULT_MS

    background_tasks.add_task(engine.fade_out, duration_ms)
    return {"success": True, "message": "Fade-out started", "duration_ms": duration_ms}


@router.post("/dispose")
async def dispose_engine(engine: AudioEngine = Depends(get_engine)) -> Dict[str, Any]:
    """Release the output device and every cached buffer"""
    success = engine.dispose()
    return {"success": success, "state": engine.get_state()}


@router.get("/analyser", response_model=AnalyserResponse)
async def get_analyser_snapshot(
    bars: Optional[int] = None,
    engine: AudioEngine = Depends(get_engine)
):
    analyser = engine.get_analyser()
    if analyser is None:
        raise HTTPException(status_code=409, detail="Audio engine not initialized")

    bar_count = bars or engine.settings.SPECTRUM_BAR_COUNT
    try:
        spectrum = analyser.get_spectrum_bars(bar_count)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return AnalyserResponse(
        bars=spectrum,
        level=analyser.get_rms_level(),
        fft_size=analyser.fft_size,
        frequency_bin_count=analyser.frequency_bin_count,
        sample_rate=analyser.sample_rate,
    )
