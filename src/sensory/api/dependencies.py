"""
Sensory Dashboard API Dependencies
"""

from fastapi import Depends, HTTPException, Request

from ..core.audio_engine import AudioEngine
from ..services.preset_service import PresetService


def get_engine(request: Request) -> AudioEngine:
    """Engine created by the application lifespan"""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Audio engine not available")
    return engine


def require_initialized(engine: AudioEngine) -> None:
    if not engine.is_initialized:
        raise HTTPException(status_code=409, detail="Audio engine not initialized")


def get_preset_service(engine: AudioEngine = Depends(get_engine)) -> PresetService:
    return PresetService(engine)
