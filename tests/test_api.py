import json
import time

import pytest
from fastapi.testclient import TestClient

import main
from analyzer import analyze_frames
from errors import NoDataError
from storage import AnalysisStore

from test_reclassifier import FakeProvider


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main, "store", AnalysisStore())
    monkeypatch.setattr(main, "jobs", {})
    return TestClient(main.app)


def _payload(**overrides):
    payload = {
        "video_name": "routine.mp4",
        "duration": 24.0,
        "muscularity_score": 80,
        "symmetry_score": 90,
        "conditioning_score": 70,
        "posing_score": 60,
        "aesthetics_score": 100,
        "measurements": {
            "shoulder_width": 20,
            "waist_width": 15,
            "v_taper_ratio": 1.33,
            "upper_lower_ratio": 1.1,
            "left_right_symmetry": 100,
            "body_fat_percentage": None,
        },
        "detected_poses": [
            {"pose_name": "side-chest", "timestamp": 3, "quality_score": 90, "thumbnail": "abc"},
        ],
    }
    payload.update(overrides)
    return payload


def _wait_for_job(client, job_id, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        status = client.get(f"/api/status/{job_id}").json()
        if status["status"] in ("complete", "error"):
            return status
        time.sleep(0.05)
    raise AssertionError("job did not finish")


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_create_analysis_recomputes_overall(client):
    response = client.post("/api/analyses", json=_payload())
    assert response.status_code == 201

    body = response.json()
    assert body["result"]["overall_score"] == 80
    assert body["result"]["pose_scores"] == {"side-chest": 90}
    assert body["category"] == "bodybuilding"


def test_out_of_range_client_score_is_rejected(client):
    response = client.post("/api/analyses", json=_payload(posing_score=140))
    assert response.status_code == 422


def test_list_get_and_delete(client):
    created = client.post("/api/analyses", json=_payload()).json()

    assert [a["id"] for a in client.get("/api/analyses").json()] == [created["id"]]
    assert client.get(f"/api/analyses/{created['id']}").json()["video_name"] == "routine.mp4"

    assert client.delete(f"/api/analyses/{created['id']}").status_code == 204
    assert client.get(f"/api/analyses/{created['id']}").status_code == 404
    assert client.delete(f"/api/analyses/{created['id']}").status_code == 404


def test_compare_analyses(client):
    previous = client.post("/api/analyses", json=_payload(posing_score=50)).json()
    current = client.post("/api/analyses", json=_payload()).json()

    rows = client.get(f"/api/analyses/{current['id']}/compare/{previous['id']}").json()
    posing = next(r for r in rows if r["metric"] == "Posing")
    assert posing == {"metric": "Posing", "current": 60, "previous": 50, "change": 10}


def test_reclassify_with_unknown_model(client):
    created = client.post("/api/analyses", json=_payload()).json()
    response = client.post(f"/api/analyses/{created['id']}/reclassify", json={"model": "nope"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "UNSUPPORTED_MODEL"


def test_reclassify_replaces_pose_list(client, monkeypatch):
    reply = json.dumps({"poseName": "mostMuscular", "quality": 97, "confidence": 90, "notes": ""})
    monkeypatch.setattr(main, "get_provider", lambda model: FakeProvider({"abc": reply}))
    created = client.post("/api/analyses", json=_payload()).json()

    body = client.post(f"/api/analyses/{created['id']}/reclassify", json={"model": "gpt-4o"}).json()

    assert body["result"]["detected_poses"][0]["pose_name"] == "most-muscular"
    assert body["result"]["pose_scores"] == {"most-muscular": 97}
    assert body["result"]["overall_score"] == created["result"]["overall_score"]


def test_coaching_is_stored(client, monkeypatch):
    reply = json.dumps({"strengths": ["Symmetry"], "trainingFocus": "Posing practice"})
    monkeypatch.setattr(main, "get_provider", lambda model: FakeProvider({"text": reply}))
    created = client.post("/api/analyses", json=_payload()).json()

    feedback = client.post(f"/api/analyses/{created['id']}/coaching", json={"model": "claude-sonnet-4"}).json()

    assert feedback["strengths"] == ["Symmetry"]
    stored = client.get(f"/api/analyses/{created['id']}").json()
    assert stored["coaching_feedback"]["training_focus"] == "Posing practice"


def test_unknown_job(client):
    assert client.get("/api/status/missing").status_code == 404
    assert client.get("/api/results/missing").status_code == 404


def test_video_upload_runs_analysis(client, monkeypatch, routine_frames):
    result = analyze_frames(routine_frames, seed=9)
    monkeypatch.setattr(main, "analyze_video", lambda path: (result, 24.0))

    response = client.post(
        "/api/analyze",
        files={"video": ("routine.mp4", b"not really a video", "video/mp4")},
        data={"category": "classic-physique"},
    )
    status = _wait_for_job(client, response.json()["job_id"])
    assert status["status"] == "complete"

    record = client.get(f"/api/results/{status['job_id']}").json()
    assert record["category"] == "classic-physique"
    assert record["duration"] == 24.0
    assert len(record["result"]["detected_poses"]) == 8


def test_video_without_poses_reports_failure(client, monkeypatch):
    def no_poses(path):
        raise NoDataError()

    monkeypatch.setattr(main, "analyze_video", no_poses)

    response = client.post("/api/analyze", files={"video": ("empty.mp4", b"", "video/mp4")})
    job_id = response.json()["job_id"]
    status = _wait_for_job(client, job_id)

    assert status["status"] == "error"
    assert status["message"] == "analysis failed, no usable pose data detected"
    assert client.get(f"/api/results/{job_id}").status_code == 400


class DeletingProvider(FakeProvider):
    """Drops the record from the store while the model call is in flight."""

    def __init__(self, replies, analysis_id):
        super().__init__(replies)
        self.analysis_id = analysis_id

    def _complete(self, prompt, image=None, max_tokens=1024):
        main.store.delete(self.analysis_id)
        return super()._complete(prompt, image, max_tokens)


def test_reclassify_of_record_deleted_mid_call_is_404(client, monkeypatch):
    created = client.post("/api/analyses", json=_payload()).json()
    reply = json.dumps({"poseName": "mostMuscular", "quality": 97, "confidence": 90, "notes": ""})
    monkeypatch.setattr(main, "get_provider", lambda model: DeletingProvider({"abc": reply}, created["id"]))

    response = client.post(f"/api/analyses/{created['id']}/reclassify", json={"model": "gpt-4o"})

    assert response.status_code == 404


def test_coaching_of_record_deleted_mid_call_is_404(client, monkeypatch):
    created = client.post("/api/analyses", json=_payload()).json()
    reply = json.dumps({"trainingFocus": "Posing practice"})
    monkeypatch.setattr(main, "get_provider", lambda model: DeletingProvider({"text": reply}, created["id"]))

    response = client.post(f"/api/analyses/{created['id']}/coaching", json={"model": "gemini-2.5-flash"})

    assert response.status_code == 404
