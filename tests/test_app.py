"""HTTP surface tests using FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient
from synapse_dj import app as app_module
from synapse_dj.recommender import RecommendationEngine


@pytest.fixture
def client(db, monkeypatch):
    monkeypatch.setattr(app_module, "db", db)
    return TestClient(app_module.app)


class TestRecommendationsEndpoint:
    def test_ranked_results(self, client):
        resp = client.get("/api/tracks/t1/recommendations", params={"user_id": "u1"})
        assert resp.status_code == 200
        recs = resp.json()["recommendations"]
        assert [r["track_id"] for r in recs] == ["t6", "t2", "t5"]
        assert recs[1]["match_reason"].startswith("BPM 129")

    def test_unknown_track_is_empty(self, client):
        resp = client.get("/api/tracks/ghost/recommendations", params={"user_id": "u1"})
        assert resp.status_code == 200
        assert resp.json() == {"recommendations": []}

    def test_profile_param(self, client):
        resp = client.get(
            "/api/tracks/t1/recommendations", params={"user_id": "u1", "profile": "classic"}
        )
        recs = {r["track_id"]: r for r in resp.json()["recommendations"]}
        assert recs["t5"]["match_score"] == 15

    def test_unknown_profile(self, client):
        resp = client.get(
            "/api/tracks/t1/recommendations", params={"user_id": "u1", "profile": "nope"}
        )
        assert resp.status_code == 400

    def test_backend_failure_returns_error(self, client, monkeypatch):
        def boom(self, *args, **kwargs):
            raise ConnectionError("database unreachable")

        monkeypatch.setattr(RecommendationEngine, "recommend", boom)
        resp = client.get("/api/tracks/t1/recommendations", params={"user_id": "u1"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["recommendations"] == []
        assert "unreachable" in body["error"]

    def test_profiles_listed(self, client):
        body = client.get("/api/profiles").json()
        assert "balanced" in body["profiles"]


class TestRelationEndpoints:
    def test_related(self, client):
        related = client.get("/api/tracks/t1/related", params={"user_id": "u1"}).json()["related"]
        assert related[0]["track_id"] == "t6"
        assert related[0]["direction"] == "outgoing"

    def test_with_relations(self, client):
        tracks = client.get("/api/tracks/with-relations", params={"user_id": "u1"}).json()["tracks"]
        assert {t["track_id"] for t in tracks} == {"t1", "t6"}

    def test_create_and_delete_transition(self, client, db):
        resp = client.post("/api/tracks/transitions", json={
            "user_id": "u1", "from_track_id": "t2", "to_track_id": "t1", "rating": 5,
        })
        assert resp.status_code == 200
        tid = resp.json()["transition"]["id"]
        assert tid in db.transitions

        resp = client.delete(f"/api/tracks/transitions/{tid}", params={"user_id": "u1"})
        assert resp.status_code == 200
        assert tid not in db.transitions

    def test_create_missing_track(self, client):
        resp = client.post("/api/tracks/transitions", json={
            "user_id": "u1", "from_track_id": "t1", "to_track_id": "ghost",
        })
        assert resp.status_code == 404

    def test_create_unowned_track(self, client):
        resp = client.post("/api/tracks/transitions", json={
            "user_id": "u1", "from_track_id": "t1", "to_track_id": "t7",
        })
        assert resp.status_code == 400

    def test_delete_unknown(self, client):
        resp = client.delete("/api/tracks/transitions/nope", params={"user_id": "u1"})
        assert resp.status_code == 404

    def test_toggle_relations_hides_release(self, client):
        resp = client.post(
            "/api/records/r2/toggle-relations", json={"user_id": "u1", "enabled": False}
        )
        assert resp.status_code == 200
        assert resp.json()["enabled"] is False

        recs = client.get(
            "/api/tracks/t1/recommendations", params={"user_id": "u1"}
        ).json()["recommendations"]
        assert "t2" not in [r["track_id"] for r in recs]

    def test_toggle_unowned_release(self, client):
        resp = client.post(
            "/api/records/r3/toggle-relations", json={"user_id": "u2", "enabled": False}
        )
        assert resp.status_code == 404


class TestKeysEndpoint:
    def test_camelot(self, client):
        body = client.get("/api/keys/8A/compatible").json()
        assert body["compatible"] == ["7A", "8A", "8B", "9A"]
        assert body["standard"] == "Am"

    def test_standard(self, client):
        body = client.get("/api/keys/Am/compatible").json()
        assert set(body["compatible"]) == {"Am", "Em", "Dm", "C"}
        assert body["camelot"] == "8A"

    def test_unknown(self, client):
        body = client.get("/api/keys/xyz/compatible").json()
        assert body["compatible"] == ["xyz"]
        assert body["camelot"] is None
