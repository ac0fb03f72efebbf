"""
Unit tests for spectrum WebSocket streaming
Tests connection management and spectrum message building
"""
import json
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import WebSocketDisconnect

from sensory.api.websocket import SpectrumConnectionManager, build_spectrum_message
from sensory.core.sound_types import SoundType


@pytest.fixture
def mock_websocket():
    websocket = Mock()
    websocket.accept = AsyncMock()
    websocket.send_text = AsyncMock()
    return websocket


@pytest.mark.unit
class TestSpectrumConnectionManager:
    """Test WebSocket connection management"""

    @pytest.mark.asyncio
    async def test_connect_accepts_and_registers(self, mock_websocket):
        manager = SpectrumConnectionManager()

        await manager.connect(mock_websocket, "conn_1")

        mock_websocket.accept.assert_awaited_once()
        assert "conn_1" in manager.active_connections

    @pytest.mark.asyncio
    async def test_send_message_serializes_json(self, mock_websocket):
        manager = SpectrumConnectionManager()
        await manager.connect(mock_websocket, "conn_1")

        sent = await manager.send_message("conn_1", {"type": "spectrum", "data": {"level": 0.5}})

        assert sent is True
        payload = json.loads(mock_websocket.send_text.await_args.args[0])
        assert payload == {"type": "spectrum", "data": {"level": 0.5}}

    @pytest.mark.asyncio
    async def test_send_to_unknown_connection(self):
        manager = SpectrumConnectionManager()

        assert await manager.send_message("missing", {"type": "spectrum"}) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [WebSocketDisconnect(), RuntimeError("closed")])
    async def test_failed_send_disconnects(self, mock_websocket, error):
        manager = SpectrumConnectionManager()
        await manager.connect(mock_websocket, "conn_1")
        mock_websocket.send_text.side_effect = error

        assert await manager.send_message("conn_1", {"type": "spectrum"}) is False
        assert "conn_1" not in manager.active_connections

    @pytest.mark.asyncio
    async def test_stream_stops_when_connection_drops(self, mock_websocket, engine):
        manager = SpectrumConnectionManager()
        await manager.connect(mock_websocket, "conn_1")
        mock_websocket.send_text.side_effect = [None, None, RuntimeError("closed")]

        await manager.stream_spectrum("conn_1", engine, bar_count=8, interval_ms=1)

        assert mock_websocket.send_text.await_count == 3
        assert "conn_1" not in manager.active_connections


@pytest.mark.unit
class TestSpectrumMessage:
    """Test spectrum payloads"""

    def test_uninitialized_engine_sends_silence(self, engine):
        message = build_spectrum_message(engine, 16)

        assert message["type"] == "spectrum"
        assert message["data"]["bars"] == [0.0] * 16
        assert message["data"]["level"] == 0.0

    @pytest.mark.asyncio
    async def test_live_engine_sends_bars(self, initialized_engine, output_factory):
        initialized_engine.load_sound(1, SoundType.WHITE_NOISE)
        initialized_engine.play_channel(1)
        for _ in range(2):
            output_factory.device.pull(256)

        message = build_spectrum_message(initialized_engine, 32)

        assert len(message["data"]["bars"]) == 32
        assert message["data"]["level"] > 0.0
        json.dumps(message)
