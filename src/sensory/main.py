"""
Sensory Dashboard - Ambient Focus Mixer
FastAPI backend with procedural sound synthesis and spectrum streaming
"""

import asyncio
import contextlib
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import numpy as np
import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from .api.routes import mixer, presets
from .api.websocket import spectrum_manager
from .core.audio_engine import AudioEngine
from .core.config import SensorySettings, get_settings
from .core.environment import detect_output_environment
from .core.exceptions import EngineInitializationError, UnknownChannelError
from .core.logging import setup_logging
from .core.output_device import OutputDeviceFactory

logger = logging.getLogger("sensory")


def create_app(
    settings: Optional[SensorySettings] = None,
    output_factory: Optional[OutputDeviceFactory] = None,
    rng: Optional[np.random.Generator] = None,
) -> FastAPI:
    """
    Build the dashboard backend

    Args:
        settings: Application settings (defaults to the cached environment settings)
        output_factory: Output device factory handed to the engine
        rng: Random source for buffer generation
    """
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup and shutdown events"""

        # Startup
        logger.info(f"Starting {settings.APP_NAME} backend...")
        app.state.engine = AudioEngine(settings, output_factory=output_factory, rng=rng)

        yield

        # Shutdown
        logger.info(f"Shutting down {settings.APP_NAME} backend...")
        try:
            if app.state.engine.is_initialized:
                app.state.engine.dispose()
                logger.info("Audio engine disposed")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Procedural ambient sound engine with a three-channel mixer",
        version=settings.APP_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan
    )
    app.state.settings = settings

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Exception handlers
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # Offending inputs are left out; NaN and Infinity cannot be rendered as JSON
        errors = [
            {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
            for error in exc.errors()
        ]
        return JSONResponse(status_code=422, content={"detail": errors})

    @app.exception_handler(UnknownChannelError)
    async def unknown_channel_handler(request: Request, exc: UnknownChannelError):
        return JSONResponse(
            status_code=404,
            content={"error": "Unknown channel", "detail": str(exc), "channel_id": exc.channel_id}
        )

    @app.exception_handler(EngineInitializationError)
    async def initialization_error_handler(request: Request, exc: EngineInitializationError):
        logger.error(f"Engine initialization failed: {exc}")
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": "Audio engine unavailable", "detail": str(exc)}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled exceptions"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)}
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check(request: Request) -> Dict[str, Any]:
        engine: AudioEngine = request.app.state.engine
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "services": {
                "audio_engine": "initialized" if engine.is_initialized else "idle",
            }
        }

    # Application info
    @app.get("/api/info")
    async def app_info() -> Dict[str, Any]:
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "description": "Procedural ambient sound engine",
            "features": [
                "Procedural noise and nature soundscapes",
                "Binaural beats",
                "Three-channel mixer with master fade-out",
                "Spectrum streaming",
                "Shareable presets",
            ],
            "audio": settings.get_audio_config(),
            "environment": detect_output_environment().to_dict(),
        }

    # API Routes
    app.include_router(mixer.router, prefix="/api/mixer", tags=["Mixer"])
    app.include_router(presets.router, prefix="/api/presets", tags=["Presets"])

    # WebSocket endpoints
    @app.websocket("/ws/spectrum")
    async def websocket_spectrum_endpoint(websocket: WebSocket):
        """Stream spectrum frames; clients may send {"type": "ping"}"""
        connection_id = f"spectrum_{uuid.uuid4().hex[:8]}"
        engine: AudioEngine = websocket.app.state.engine

        await spectrum_manager.connect(websocket, connection_id)
        stream_task = asyncio.create_task(spectrum_manager.stream_spectrum(
            connection_id,
            engine,
            settings.SPECTRUM_BAR_COUNT,
            settings.SPECTRUM_STREAM_INTERVAL_MS,
        ))

        try:
            while True:
                message = await websocket.receive_text()
                try:
                    payload = json.loads(message)
                except json.JSONDecodeError:
                    await spectrum_manager.send_error(connection_id, "Invalid JSON")
                    continue

                message_type = payload.get("type") if isinstance(payload, dict) else None
                if message_type == "ping":
                    await spectrum_manager.send_message(connection_id, {"type": "pong", "data": {}})
                else:
                    await spectrum_manager.send_error(connection_id, f"Unknown message type: {message_type}")

        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.error(f"Spectrum WebSocket error: {e}")

        finally:
            stream_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await stream_task
            await spectrum_manager.disconnect(connection_id)

    return app


app = create_app()


if __name__ == "__main__":
    # Development server
    settings = get_settings()
    uvicorn.run(
        "sensory.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
