from __future__ import annotations

import numpy as np
from fastapi.testclient import TestClient

from realtime_bpm.service import make_app


def test_control_accepts_known_keys_and_rejects_unknown() -> None:
    client = TestClient(make_app())
    r = client.post("/control", json={"continuousAnalysis": True, "stabilizationTime": 5})
    assert r.status_code == 200
    assert r.json()["options"]["continuous_analysis"] is True
    assert r.json()["options"]["stabilization_time"] == 5.0

    r = client.post("/control", json={"bogus": 1})
    assert r.status_code == 422
    m = client.get("/metrics").json()
    assert m["options"]["continuous_analysis"] is True
    assert m["phase"] == "idle"


def test_ingest_impulses_reaches_stable_120() -> None:
    client = TestClient(make_app(buffer_size=4096))
    x = np.zeros(82 * 4096, dtype=np.float32)
    x[::22050] = 1.0
    for i in range(0, x.size, 44100):
        r = client.post("/ingest", json={"sample_rate": 44100, "samples": x[i : i + 44100].tolist()})
        assert r.status_code == 200

    m = client.get("/metrics").json()
    assert m["blocks"] == 82
    assert m["phase"] == "stable"
    assert m["threshold"] == 0.9
    assert m["stable"]["bpm"][0]["tempo"] == 120

    assert client.post("/reset").json()["status"] == "ok"
    m = client.get("/metrics").json()
    assert m["blocks"] == 0
    assert m["stable"] is None
    assert m["phase"] == "warming"
    assert m["threshold"] == 0.3


def test_ingest_accepts_multichannel_frames() -> None:
    client = TestClient(make_app(buffer_size=128))
    frames = np.zeros((256, 2)).tolist()
    r = client.post("/ingest", json={"sample_rate": 48000, "samples": frames})
    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 256
    assert [e["message"] for e in body["events"]] == ["BPM", "BPM"]
    assert client.post("/ingest", json={"sample_rate": 48000, "samples": []}).json() == {
        "status": "empty"
    }
