# tests/test_routers.py
# -*- coding: utf-8 -*-
"""HTTP and WebSocket surface, with the orchestrator swapped for one on fakes."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import FakeExtractor, FakeTranscriber
from tripvoice.core.config import settings
from tripvoice.core.errors import ExtractionFailed, PersistenceFailed
from tripvoice.core.pipeline import get_orchestrator
from tripvoice.main import app

PHONE = "9999999999"
IDENTITY_FORM = {"name": "Asha", "phone": PHONE, "id": "user-001"}


@pytest.fixture
def client_for(make_orchestrator):
    def _client(extractor=None, transcriber=None, store=None):
        orchestrator = make_orchestrator(
            extractor=extractor, transcriber=transcriber, store=store
        )
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


def test_health(client_for):
    response = client_for().get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["store_backend"] == "memory"


def test_transcribe_runs_an_audio_turn(client_for):
    client = client_for(
        extractor=FakeExtractor({"intent": "greet", "isGreeting": True}),
        transcriber=FakeTranscriber("namaste"),
    )

    response = client.post(
        "/transcribe",
        files={"file": ("clip.webm", b"\x1aE\xdf\xa3", "audio/webm")},
        data=IDENTITY_FORM,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["transcript"] == "namaste"
    assert body["assetId"] == "greet.mp3"
    assert body["tripState"]["intent"] == "greet"
    assert body["tripState"]["user"] == {"id": "user-001", "name": "Asha", "phone": PHONE}


def test_transcribe_without_file_is_bad_request(client_for):
    response = client_for().post("/transcribe", data=IDENTITY_FORM)
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_transcribe_without_identity_is_bad_request(client_for):
    response = client_for().post(
        "/transcribe",
        files={"file": ("clip.webm", b"abc", "audio/webm")},
        data={"name": "Asha"},
    )
    assert response.status_code == 400
    assert "required" in response.json()["message"]


def test_transcribe_with_empty_file_is_bad_request(client_for):
    response = client_for().post(
        "/transcribe",
        files={"file": ("clip.webm", b"", "audio/webm")},
        data=IDENTITY_FORM,
    )
    assert response.status_code == 400


def test_text_turn_and_session_view(client_for):
    client = client_for(extractor=FakeExtractor({"source": "indore"}))

    response = client.post(
        "/turn",
        json={"user_text": "indore se", "phone": PHONE, "name": "Asha", "id": "user-001"},
    )
    assert response.status_code == 200
    assert response.json()["tripState"]["source"] == "Indore"
    assert response.json()["tripState"]["intent"] == "ask_destination"

    session = client.get(f"/session/{PHONE}")
    assert session.status_code == 200
    assert session.json()["tripState"]["source"] == "Indore"


def test_text_turn_validation(client_for):
    response = client_for().post("/turn", json={"user_text": "", "phone": PHONE})
    assert response.status_code == 422


def test_failed_turn_maps_to_502_and_saves_nothing(client_for):
    client = client_for(extractor=FakeExtractor(ExtractionFailed("model down")))

    response = client.post(
        "/turn",
        json={"user_text": "indore se", "phone": PHONE, "name": "Asha", "id": "user-001"},
    )

    assert response.status_code == 502
    assert response.json() == {
        "success": False,
        "error": "extraction_failed",
        "message": "model down",
    }
    assert client.get(f"/session/{PHONE}").status_code == 404


def test_malformed_extraction_maps_to_502(client_for):
    client = client_for(extractor=FakeExtractor("no json here"))
    response = client.post(
        "/turn",
        json={"user_text": "indore se", "phone": PHONE, "name": "Asha", "id": "user-001"},
    )
    assert response.status_code == 502
    assert response.json()["error"] == "extraction_malformed"


def test_store_outage_maps_to_503(client_for, memory_store):
    class DownStore(type(memory_store)):
        async def _get_raw(self, session_key):
            raise OSError("redis unreachable")

    client = client_for(store=DownStore())

    turn = client.post(
        "/turn",
        json={"user_text": "indore se", "phone": PHONE, "name": "Asha", "id": "user-001"},
    )
    assert turn.status_code == 503
    assert turn.json()["error"] == PersistenceFailed.code
    assert client.get(f"/session/{PHONE}").status_code == 503


def test_unknown_session_is_404(client_for):
    assert client_for().get("/session/0000").status_code == 404


def test_audio_assets(client_for, monkeypatch, tmp_path):
    (tmp_path / "greet.mp3").write_bytes(b"ID3fake")
    monkeypatch.setattr(settings, "audio_dir", tmp_path)
    client = client_for()

    ok = client.get("/audio/greet.mp3")
    assert ok.status_code == 200
    assert ok.content == b"ID3fake"

    assert client.get("/audio/missing.mp3").status_code == 404
    assert client.get("/audio/..%2Fsecret.mp3").status_code == 404


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


def test_ws_ping_and_unknown_frames(client_for):
    client = client_for()
    with client.websocket_connect(f"/ws/session/{PHONE}") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        ws.send_json({"type": "dance"})
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["code"] == "unknown_type"


def test_ws_turn_broadcasts_then_answers(client_for):
    client = client_for(extractor=FakeExtractor({"source": "Indore"}))
    with client.websocket_connect(f"/ws/session/{PHONE}") as ws:
        ws.send_json({"type": "turn", "user_text": "indore se", "name": "Asha", "id": "u1"})

        signal = ws.receive_json()
        assert signal == {
            "type": "AGENT_RESPONSE",
            "intent": "ask_destination",
            "assetId": "ask_destination.mp3",
            "audioUrl": "http://test/audio/ask_destination.mp3",
        }

        result = ws.receive_json()
        assert result["type"] == "turn_result"
        assert result["success"] is True
        assert result["notified"] is True
        assert result["tripState"]["source"] == "Indore"


def test_ws_non_json_frame_keeps_connection(client_for):
    client = client_for()
    with client.websocket_connect(f"/ws/session/{PHONE}") as ws:
        ws.send_text("{not json")
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["code"] == "invalid_frame"

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_ws_invalid_turn_frame(client_for):
    client = client_for()
    with client.websocket_connect(f"/ws/session/{PHONE}") as ws:
        ws.send_json({"type": "turn", "user_text": "hi"})
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["code"] == "invalid_turn"


def test_ws_failed_turn_reports_error_code(client_for):
    client = client_for(extractor=FakeExtractor(ExtractionFailed("model down")))
    with client.websocket_connect(f"/ws/session/{PHONE}") as ws:
        ws.send_json({"type": "turn", "user_text": "hi", "name": "Asha", "id": "u1"})
        frame = ws.receive_json()
        assert frame == {"type": "error", "code": "extraction_failed", "message": "model down"}
