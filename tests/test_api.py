import base64
import json

import pytest
from fastapi.testclient import TestClient

from main import create_app
from utils.app_config import AppConfig
from utils.database_init import AsyncDatabaseInitializer

ORIGIN = "http://localhost:5173"


def _config(**overrides):
    values = dict(openai_api_key="test-key", openai_model="test-model", log_level="WARNING")
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def make_client(tmp_path, fake_client):
    def _make(client=None, **overrides):
        app = create_app(
            config=_config(**overrides),
            openai_client=client or fake_client,
            db_initializer=AsyncDatabaseInitializer(tmp_path),
        )
        return TestClient(app)

    return _make


@pytest.fixture
def api(make_client):
    with make_client() as client:
        yield client


def test_missing_api_key_is_fatal_at_startup(tmp_path, fake_client):
    app = create_app(
        config=_config(openai_api_key=None),
        openai_client=fake_client,
        db_initializer=AsyncDatabaseInitializer(tmp_path),
    )
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        with TestClient(app):
            pass


def test_health(api):
    body = api.get("/health").json()
    assert body["ok"] is True
    assert body["db_initialized"] is True
    assert body["openai_available"] is True


def test_analyze_returns_interpreted_result(api, fake_client, png_data_uri):
    fake_client.responses.text = "The lesion has an irregular border.\nRISK LEVEL: HIGH"

    resp = api.post(
        "/api/analyze",
        json={"image": png_data_uri, "histopathologicalData": {"age": "61", "smoking": "Yes"}},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["risk"] == "high"
    assert body["scanId"] == "resp_1"
    assert body["rawAnalysis"] == fake_client.responses.text
    assert body["cached"] is False
    assert body["fallback"] is False
    assert "Smoking: Yes" in fake_client.responses.calls[0]["input"][1]["content"][0]["text"]


def test_repeat_analysis_is_cached(api, fake_client, png_data_uri):
    api.post("/api/analyze", json={"image": png_data_uri})
    second = api.post("/api/analyze", json={"image": png_data_uri}).json()

    assert second["cached"] is True
    assert len(fake_client.responses.calls) == 1
    assert api.get("/health").json()["cache_entries"] == 1


def test_bmp_is_rejected_before_any_remote_call(api, fake_client, bmp_bytes):
    payload = "data:image/bmp;base64," + base64.b64encode(bmp_bytes).decode("ascii")

    resp = api.post("/api/analyze", json={"image": payload})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid image format"
    assert "image/bmp" in resp.json()["details"]
    assert fake_client.responses.calls == []


def test_missing_image_is_a_bad_request(api):
    resp = api.post("/api/analyze", json={})
    assert resp.status_code == 400
    assert resp.json()["details"] == "No image provided"


def test_network_error_yields_fallback(make_client, client_factory, png_data_uri):
    with make_client(client=client_factory(error=ConnectionError("down"))) as api:
        body = api.post("/api/analyze", json={"image": png_data_uri}).json()
    assert body["risk"] == "low"
    assert body["fallback"] is True


def test_network_error_with_fail_open_disabled_is_502(make_client, client_factory, png_data_uri):
    with make_client(client=client_factory(error=ConnectionError("down")), fail_open=False) as api:
        resp = api.post("/api/analyze", json={"image": png_data_uri})
    assert resp.status_code == 502
    assert resp.json()["error"] == "Analysis unavailable"


def test_unlisted_origin_is_rejected(api):
    resp = api.get("/health", headers={"Origin": "http://evil.example"})
    assert resp.status_code == 403


def test_listed_origin_gets_cors_headers(api):
    resp = api.get("/health", headers={"Origin": ORIGIN})
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == ORIGIN


def test_oversized_body_is_rejected(make_client, png_data_uri):
    with make_client(max_body_bytes=100) as api:
        resp = api.post("/api/analyze", json={"image": png_data_uri})
    assert resp.status_code == 413


def _chunked(payload: bytes, size: int = 64):
    for start in range(0, len(payload), size):
        yield payload[start:start + size]


def test_oversized_chunked_body_is_rejected(make_client, png_data_uri):
    body = json.dumps({"image": png_data_uri}).encode()
    with make_client(max_body_bytes=100) as api:
        resp = api.post(
            "/api/analyze", content=_chunked(body), headers={"Content-Type": "application/json"}
        )
    assert resp.status_code == 413


def test_chunked_body_within_limit_reaches_route(api, png_data_uri):
    body = json.dumps({"image": png_data_uri}).encode()
    resp = api.post("/api/analyze", content=_chunked(body), headers={"Content-Type": "application/json"})
    assert resp.status_code == 200
    assert resp.json()["risk"] == "low"


def test_image_upload_returns_data_uri(api, png_bytes, bmp_bytes):
    ok = api.post("/api/images", files={"image": ("mouth.png", png_bytes, "image/png")})
    assert ok.status_code == 200
    assert ok.json()["mimeType"] == "image/png"
    assert ok.json()["dataUri"].startswith("data:image/png;base64,")

    bad = api.post("/api/images", files={"image": ("mouth.bmp", bmp_bytes, "image/bmp")})
    assert bad.status_code == 400


def test_patient_crud(api):
    headers = {"X-User-Id": "doc-1"}
    created = api.post(
        "/api/patients",
        json={"patientId": "P-100", "name": "Ravi", "age": 47, "panMasala": "yes"},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["pan_masala"] == "Yes"

    duplicate = api.post("/api/patients", json={"patientId": "P-100", "name": "Ravi"}, headers=headers)
    assert duplicate.status_code == 409

    assert api.get("/api/patients/P-100", headers={"X-User-Id": "doc-2"}).status_code == 404

    updated = api.put("/api/patients/P-100", json={"painLevel": "Moderate"}, headers=headers)
    assert updated.json()["pain_level"] == "Moderate"

    listing = api.get("/api/patients", headers=headers).json()
    assert [p["patient_id"] for p in listing] == ["P-100"]

    assert api.delete("/api/patients/P-100", headers=headers).json()["deleted"] is True
    missing = api.get("/api/patients/P-100", headers=headers)
    assert missing.status_code == 404
    assert "not found" in missing.json()["error"]


def test_analysis_is_persisted_for_patient(api, fake_client, png_data_uri):
    headers = {"X-User-Id": "doc-1"}
    api.post("/api/patients", json={"patientId": "P-7", "name": "Meera"}, headers=headers)
    fake_client.responses.text = json.dumps(
        {
            "visual_assessment": {"objective_findings": ["White patch with regular borders"]},
            "classification": {"risk_level": "medium", "confidence": 0.7},
        }
    )

    body = api.post("/api/analyze", json={"image": png_data_uri, "patientId": "P-7"}, headers=headers).json()
    assert body["risk"] == "medium"
    analysis_id = body["analysisId"]

    stored = api.get(f"/api/analyses/{analysis_id}", headers=headers).json()
    assert stored["patientId"] == "P-7"
    assert stored["status"] == "completed"
    assert stored["result"]["findings"][0]["severity"] == "moderate"

    by_scan = api.get(f"/api/analyses/scan/{body['scanId']}", headers=headers).json()
    assert by_scan["id"] == analysis_id

    listing = api.get("/api/analyses", params={"patient_id": "P-7"}, headers=headers).json()
    assert [a["id"] for a in listing] == [analysis_id]

    thumb = api.get(f"/api/analyses/{analysis_id}/thumbnail", headers=headers)
    assert thumb.status_code == 200
    assert thumb.headers["content-type"] == "image/png"


def test_analyze_for_unknown_patient_is_404(api, fake_client, png_data_uri):
    resp = api.post("/api/analyze", json={"image": png_data_uri, "patientId": "nobody"})
    assert resp.status_code == 404
    assert fake_client.responses.calls == []


def test_create_analysis_from_result_payload(api):
    api.post("/api/patients", json={"patientId": "P-1", "name": "Kiran"})
    resp = api.post(
        "/api/analyses",
        json={
            "patientId": "P-1",
            "result": {"risk": "high", "confidence": 0.99, "analysis": "mass", "scanId": "resp_x"},
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["scanId"] == "resp_x"
    assert body["result"]["risk"] == "high"
    assert api.delete(f"/api/analyses/{body['id']}").json()["deleted"] is True


def test_create_analysis_for_unknown_patient_is_404(api):
    resp = api.post("/api/analyses", json={"patientId": "ghost", "result": {"risk": "low"}})
    assert resp.status_code == 404
    assert api.get("/api/analyses").json() == []


def test_renaming_patient_keeps_their_analyses(api, png_data_uri):
    headers = {"X-User-Id": "doc-1"}
    api.post("/api/patients", json={"patientId": "P-1", "name": "Anil"}, headers=headers)
    analysis_id = api.post(
        "/api/analyze", json={"image": png_data_uri, "patientId": "P-1"}, headers=headers
    ).json()["analysisId"]

    resp = api.put("/api/patients/P-1", json={"patientId": "P-2"}, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["patient_id"] == "P-2"
    assert api.get("/api/patients/P-1", headers=headers).status_code == 404
    assert api.get(f"/api/analyses/{analysis_id}", headers=headers).json()["patientId"] == "P-2"


def test_renaming_patient_onto_taken_id_is_409(api):
    api.post("/api/patients", json={"patientId": "P-1", "name": "Anil"})
    api.post("/api/patients", json={"patientId": "P-2", "name": "Lata"})
    resp = api.put("/api/patients/P-1", json={"patientId": "P-2"})
    assert resp.status_code == 409
