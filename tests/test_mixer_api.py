"""
Integration tests for the dashboard HTTP and WebSocket surface
"""
import numpy as np
import pytest
from fastapi.testclient import TestClient

from sensory.core.exceptions import OutputDeviceError
from sensory.main import create_app


@pytest.fixture
def client(test_settings, output_factory):
    app = create_app(test_settings, output_factory=output_factory, rng=np.random.default_rng(3))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def live_client(client):
    response = client.post("/api/mixer/initialize")
    assert response.status_code == 200
    return client


@pytest.mark.integration
class TestApplicationEndpoints:
    """Test health and info endpoints"""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["services"]["audio_engine"] == "idle"

    def test_info(self, client):
        data = client.get("/api/info").json()

        assert data["name"] == "Sensory Dashboard"
        assert data["audio"]["sample_rate"] == 8000


@pytest.mark.integration
class TestMixerEndpoints:
    """Test the mixer REST routes"""

    def test_initialize(self, client):
        response = client.post("/api/mixer/initialize")

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["initialized"] is True
        assert len(body["data"]["channels"]) == 3

    def test_initialize_failure_is_503(self, test_settings):
        def broken_factory(*args):
            raise OutputDeviceError("no device")

        app = create_app(test_settings, output_factory=broken_factory)
        with TestClient(app) as client:
            response = client.post("/api/mixer/initialize")

        assert response.status_code == 503
        assert response.json()["success"] is False

    def test_sounds(self, client):
        sounds = client.get("/api/mixer/sounds").json()

        assert sounds[0] == "None"
        assert "Binaural Beat (Alpha)" in sounds
        assert len(sounds) == 10

    def test_operations_before_initialize_are_409(self, client):
        response = client.post("/api/mixer/channels/1/play")

        assert response.status_code == 409

    def test_load_and_play_channel(self, live_client):
        response = live_client.post("/api/mixer/channels/2/sound", json={"sound": "Rain"})
        assert response.status_code == 200
        assert response.json()["success"] is True

        response = live_client.post("/api/mixer/channels/2/play")
        state = response.json()["state"]

        assert response.json()["success"] is True
        assert state["channels"][1]["sound"] == "Rain"
        assert state["channels"][1]["playing"] is True

    def test_unknown_sound_is_422(self, live_client):
        response = live_client.post("/api/mixer/channels/1/sound", json={"sound": "Whale Song"})

        assert response.status_code == 422

    def test_unknown_channel_is_404(self, live_client):
        response = live_client.post("/api/mixer/channels/7/sound", json={"sound": "Rain"})

        assert response.status_code == 404
        assert response.json()["channel_id"] == 7

    def test_volume_and_mute(self, live_client):
        live_client.put("/api/mixer/channels/1/volume", json={"volume": 50})
        state = live_client.get("/api/mixer/state").json()
        assert state["channels"][0]["gain"] == pytest.approx(0.25)

        live_client.put("/api/mixer/channels/1/mute", json={"muted": True})
        state = live_client.get("/api/mixer/state").json()
        assert state["channels"][0]["muted"] is True
        assert state["channels"][0]["gain"] == 0.0

    @pytest.mark.parametrize("path", ["/api/mixer/channels/1/volume", "/api/mixer/master/volume"])
    def test_non_finite_volume_is_422(self, live_client, path):
        response = live_client.put(
            path, content='{"volume": NaN}', headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "volume"]
        assert live_client.get("/api/mixer/state").status_code == 200

    def test_master_volume(self, live_client):
        response = live_client.put("/api/mixer/master/volume", json={"volume": 80})

        assert response.json()["state"]["master_gain"] == pytest.approx(0.64)

    def test_play_all_and_stop_all(self, live_client):
        for channel_id in (1, 2, 3):
            live_client.post(f"/api/mixer/channels/{channel_id}/sound", json={"sound": "Pink Noise"})

        response = live_client.post("/api/mixer/play")
        assert response.json()["channels"] == {"1": True, "2": True, "3": True}

        response = live_client.post("/api/mixer/stop")
        assert response.json()["success"] is True
        assert not any(channel["playing"] for channel in response.json()["state"]["channels"])

    def test_fade_out_runs_in_background(self, live_client):
        live_client.post("/api/mixer/channels/1/sound", json={"sound": "Campfire"})
        live_client.post("/api/mixer/channels/1/play")
        live_client.put("/api/mixer/master/volume", json={"volume": 80})

        response = live_client.post("/api/mixer/fade-out", json={"duration_ms": 10})
        assert response.status_code == 202

        state = live_client.get("/api/mixer/state").json()
        assert state["channels"][0]["playing"] is False
        assert state["master_gain"] == pytest.approx(0.64)

    def test_analyser_snapshot(self, live_client, output_factory):
        live_client.post("/api/mixer/channels/1/sound", json={"sound": "White Noise"})
        live_client.post("/api/mixer/channels/1/play")
        output_factory.device.pull(512)

        data = live_client.get("/api/mixer/analyser", params={"bars": 16}).json()

        assert len(data["bars"]) == 16
        assert data["level"] > 0.0
        assert data["fft_size"] == 512

    def test_analyser_before_initialize(self, client):
        assert client.get("/api/mixer/analyser").status_code == 409

    def test_dispose(self, live_client, output_factory):
        response = live_client.post("/api/mixer/dispose")

        assert response.json()["success"] is True
        assert output_factory.device.state == "closed"
        assert live_client.post("/api/mixer/dispose").json()["success"] is False


@pytest.mark.integration
class TestPresetEndpoints:
    """Test the preset REST routes"""

    def test_list_presets(self, client):
        presets = client.get("/api/presets/").json()

        assert [preset["id"] for preset in presets] == [
            "deep-work", "calm-focus", "meditation", "energy-boost"
        ]

    def test_get_missing_preset(self, client):
        assert client.get("/api/presets/unknown").status_code == 404

    def test_apply_preset(self, live_client):
        response = live_client.post("/api/presets/deep-work/apply")

        assert response.json()["success"] is True
        state = live_client.get("/api/mixer/state").json()
        assert state["channels"][0]["sound"] == "Brown Noise"
        assert state["channels"][0]["gain"] == pytest.approx(0.64)
        assert state["channels"][2]["muted"] is True

    def test_apply_before_initialize_is_409(self, client):
        assert client.post("/api/presets/deep-work/apply").status_code == 409

    def test_capture_share_and_decode(self, live_client):
        live_client.post("/api/presets/calm-focus/apply")
        preset = live_client.post("/api/presets/capture", json={"name": "Mine"}).json()
        assert preset["channel2"]["sound"] == "Binaural Beat (Alpha)"

        code = live_client.post("/api/presets/share", json=preset).json()["code"]
        decoded = live_client.post("/api/presets/decode", json={"code": code}).json()

        assert decoded["success"] is True
        assert decoded["data"]["name"] == "Mine"
        assert decoded["data"]["id"].startswith("shared-")

    def test_decode_invalid_code(self, client):
        response = client.post("/api/presets/decode", json={"code": "%%%"})

        assert response.status_code == 400


@pytest.mark.integration
class TestSpectrumWebSocket:
    """Test spectrum streaming"""

    def test_receives_spectrum_frames(self, live_client):
        with live_client.websocket_connect("/ws/spectrum") as websocket:
            message = websocket.receive_json()

        assert message["type"] == "spectrum"
        assert len(message["data"]["bars"]) == 32

    def test_ping_pong(self, client):
        with client.websocket_connect("/ws/spectrum") as websocket:
            websocket.send_json({"type": "ping"})
            for _ in range(50):
                message = websocket.receive_json()
                if message["type"] == "pong":
                    break

        assert message["type"] == "pong"
