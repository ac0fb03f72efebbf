"""
Sensory Dashboard Preset API Routes
Built-in presets, scene capture and share codes
"""

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...core.result import Result
from ...services.preset_service import (
    Preset,
    PresetService,
    decode_share_code,
    encode_share_code,
)
from ..dependencies import get_preset_service, require_initialized

router = APIRouter()


class CaptureRequest(BaseModel):
    """Request model for capturing the current mixer scene"""
    name: str = Field(..., min_length=1, max_length=100)
    visualizer_enabled: bool = True
    visualizer_opacity: float = Field(default=30.0, ge=0, le=100)


class ApplyResponse(BaseModel):
    success: bool
    preset_id: str
    channels: Dict[int, bool]


class ShareCodeRequest(BaseModel):
    code: str


class ShareCodeResponse(BaseModel):
    code: str


@router.get("/", response_model=List[Preset])
async def list_presets(service: PresetService = Depends(get_preset_service)):
    return service.list_presets()


@router.get("/{preset_id}", response_model=Preset)
async def get_preset(preset_id: str, service: PresetService = Depends(get_preset_service)):
    preset = service.get_preset(preset_id)
    if preset is None:
        raise HTTPException(status_code=404, detail=f"Preset not found: {preset_id}")
    return preset


@router.post("/{preset_id}/apply", response_model=ApplyResponse)
async def apply_preset(preset_id: str, service: PresetService = Depends(get_preset_service)):
    """Load a built-in preset onto the mixer"""
    preset = service.get_preset(preset_id)
    if preset is None:
        raise HTTPException(status_code=404, detail=f"Preset not found: {preset_id}")
    require_initialized(service.engine)

    results = service.apply_preset(preset)
    return ApplyResponse(success=all(results.values()), preset_id=preset.id, channels=results)


@router.post("/capture", response_model=Preset)
async def capture_preset(request: CaptureRequest, service: PresetService = Depends(get_preset_service)):
    """Snapshot the current mixer scene as a preset"""
    return service.capture_preset(
        request.name,
        visualizer_enabled=request.visualizer_enabled,
        visualizer_opacity=request.visualizer_opacity,
    )


@router.post("/share", response_model=ShareCodeResponse)
async def share_preset(preset: Preset):
    return ShareCodeResponse(code=encode_share_code(preset))


@router.post("/decode", response_model=Result[Preset])
async def decode_preset(request: ShareCodeRequest):
    result = decode_share_code(request.code)
    if result.is_err():
        raise HTTPException(status_code=400, detail=result.error)
    return result
