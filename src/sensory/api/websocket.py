"""
Sensory Dashboard WebSocket Management
Streams spectrum snapshots of the master bus to visualizer clients
"""

import asyncio
import json
from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

from ..core.audio_engine import AudioEngine
from ..core.logging import websocket_logger


def build_spectrum_message(engine: AudioEngine, bar_count: int) -> Dict[str, Any]:
    """Spectrum bars and RMS level; silence while the engine is down"""
    analyser = engine.get_analyser()
    if analyser is None:
        return {"type": "spectrum", "data": {"bars": [0.0] * bar_count, "level": 0.0}}

    return {
        "type": "spectrum",
        "data": {
            "bars": analyser.get_spectrum_bars(bar_count),
            "level": round(analyser.get_rms_level(), 6),
        },
    }


class SpectrumConnectionManager:
    """Manages WebSocket connections for spectrum visualizers"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, connection_id: str):
        """Accept new WebSocket connection"""
        await websocket.accept()

        async with self._lock:
            self.active_connections[connection_id] = websocket

        websocket_logger.log_connection(connection_id)

    async def disconnect(self, connection_id: str, reason: Optional[str] = None):
        async with self._lock:
            self.active_connections.pop(connection_id, None)

        websocket_logger.log_disconnection(connection_id, reason)

    async def send_message(self, connection_id: str, message: dict) -> bool:
        """Send message to specific connection"""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False

        payload = json.dumps(message)
        try:
            await websocket.send_text(payload)
        except (WebSocketDisconnect, RuntimeError):
            await self.disconnect(connection_id, "send_failed")
            return False

        websocket_logger.log_message_sent(connection_id, message.get("type", "unknown"), len(payload))
        return True

    async def send_error(self, connection_id: str, error: str):
        await self.send_message(connection_id, {
            "type": "error",
            "data": {"error": error}
        })

    async def stream_spectrum(
        self,
        connection_id: str,
        engine: AudioEngine,
        bar_count: int,
        interval_ms: int
    ):
        """Push spectrum frames to one connection until it goes away"""
        while connection_id in self.active_connections:
            sent = await self.send_message(connection_id, build_spectrum_message(engine, bar_count))
            if not sent:
                break
            await asyncio.sleep(interval_ms / 1000.0)


spectrum_manager = SpectrumConnectionManager()
