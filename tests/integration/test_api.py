"""Integration tests for musebox.api.main — FastAPI REST API endpoints.

All tests use the FastAPI TestClient with a demo-mode Studio (no API key,
no delay, temporary data directory) so the remote service is never
contacted.  Tests cover:

- ``GET /api/config`` — Models, enum domains and defaults.
- ``PATCH /api/studio/config`` and the lock endpoints.
- ``POST /api/generate`` / ``POST /api/spawn`` — Dispatch via the demo path.
- History, style book and storyboard endpoints.
- Storyboard and project downloads.
- ``POST /api/project/load`` — Malformed project files.
- Error mapping (400 / 404 / 422).
"""

from __future__ import annotations

import json

import pytest

from musebox.core.models import ModelId


@pytest.fixture
def generated(test_client):
    """Configure a prompt and generate one artifact; returns the response JSON."""
    test_client.patch("/api/studio/config", json={"prompt": "a paper boat"})
    resp = test_client.post("/api/generate", json={})
    assert resp.status_code == 200
    return resp.json()


# ---------------------------------------------------------------------------
# Configuration endpoint tests.
# ---------------------------------------------------------------------------


class TestGetConfig:
    """Test GET /api/config — application metadata."""

    def test_config_lists_models(self, test_client):
        data = test_client.get("/api/config").json()
        ids = [m["id"] for m in data["models"]]
        assert ids == [m.value for m in ModelId]
        premium = next(m for m in data["models"] if m["isPremium"])
        assert premium["id"] == ModelId.PRO_IMAGE.value

    def test_config_reports_demo_mode(self, test_client):
        data = test_client.get("/api/config").json()
        assert data["demoMode"] is True
        assert data["defaults"]["modelId"] == ModelId.FLASH_IMAGE.value
        assert "focalLength" in data["fields"]


class TestStudioConfig:
    def test_patch_config(self, test_client):
        resp = test_client.patch(
            "/api/studio/config", json={"prompt": "a fox", "lighting": "Golden Hour"}
        )
        assert resp.status_code == 200
        assert resp.json()["lighting"] == "Golden Hour"
        assert test_client.get("/api/studio/config").json()["prompt"] == "a fox"

    def test_invalid_value_is_400(self, test_client):
        resp = test_client.patch("/api/studio/config", json={"aspectRatio": "2:1"})
        assert resp.status_code == 400
        assert resp.json()["detail"]["kind"] == "validation"

    def test_unknown_field_is_400(self, test_client):
        assert test_client.patch("/api/studio/config", json={"bogus": 1}).status_code == 400

    def test_compile_preview(self, test_client):
        overlay = {
            "prompt": "X",
            "perspective": "Aerial View",
            "modelId": ModelId.IMAGEN.value,
        }
        resp = test_client.post("/api/prompt/compile", json={"config": overlay})
        data = resp.json()
        assert data["compiledPrompt"] == "Aerial View shot of X"
        assert data["requestKind"] == "image_batch"


class TestLocks:
    def test_toggle_lock(self, test_client):
        data = test_client.post("/api/studio/locks/seed").json()
        assert data == {"field": "seed", "locked": True, "lockedKeys": ["seed"]}
        assert test_client.post("/api/studio/locks/seed").json()["locked"] is False

    def test_toggle_all(self, test_client):
        locked = test_client.post("/api/studio/locks/toggle-all").json()["lockedKeys"]
        assert "prompt" in locked
        assert test_client.post("/api/studio/locks/toggle-all").json()["lockedKeys"] == []

    def test_apply_and_lock(self, test_client):
        data = test_client.post("/api/studio/locks/seed/apply", json={"value": 1234}).json()
        assert data["locked"] is True
        assert data["config"]["seed"] == 1234

    def test_unknown_lock_field_is_400(self, test_client):
        assert test_client.post("/api/studio/locks/sharpness").status_code == 400


# ---------------------------------------------------------------------------
# Generation endpoint tests.
# ---------------------------------------------------------------------------


class TestGenerate:
    def test_generate_demo_result(self, generated):
        assert generated["success"] is True
        assert generated["artifact"]["isMock"] is True
        assert generated["artifact"]["prompt"] == "a paper boat"
        assert generated["compiledPrompt"] == "a paper boat"
        assert generated["notice"]

    def test_empty_prompt_is_400(self, test_client):
        resp = test_client.post("/api/generate", json={})
        assert resp.status_code == 400
        assert "prompt" in resp.json()["detail"]["message"]

    def test_demo_flag_skips_prompt_check(self, test_client):
        assert test_client.post("/api/generate", json={"demo": True}).status_code == 200

    def test_spawn(self, test_client):
        resp = test_client.post("/api/spawn")
        assert resp.status_code == 200
        data = resp.json()
        assert data["artifact"]["config"] == data["config"]

    def test_studio_snapshot_after_generate(self, test_client, generated):
        data = test_client.get("/api/studio").json()
        assert data["historyCount"] == 1
        assert data["currentArtifactId"] == generated["artifact"]["id"]
        assert data["liveAvailable"] is False


class TestHistory:
    def test_history_newest_first(self, test_client, generated):
        second = test_client.post("/api/generate", json={}).json()
        items = test_client.get("/api/history").json()["items"]
        assert [i["id"] for i in items] == [second["artifact"]["id"], generated["artifact"]["id"]]

    def test_select_and_delete(self, test_client, generated):
        artifact_id = generated["artifact"]["id"]
        assert test_client.post(f"/api/history/{artifact_id}/select").status_code == 200
        assert test_client.delete(f"/api/history/{artifact_id}").status_code == 200
        assert test_client.get("/api/history").json()["currentArtifactId"] is None

    def test_unknown_artifact_is_404(self, test_client):
        assert test_client.delete("/api/history/missing").status_code == 404


# ---------------------------------------------------------------------------
# Style book endpoint tests.
# ---------------------------------------------------------------------------


class TestStyles:
    def test_save_requires_current_artifact(self, test_client):
        assert test_client.post("/api/styles", json={"name": "x"}).status_code == 400

    def test_save_apply_delete(self, test_client, generated):
        preset = test_client.post("/api/styles", json={"name": "Boat"}).json()
        assert "prompt" not in preset["config"]

        test_client.patch("/api/studio/config", json={"prompt": "new"})
        config = test_client.post(f"/api/styles/{preset['id']}/apply").json()
        assert config["prompt"] == "new"

        assert len(test_client.get("/api/styles").json()) == 1
        assert test_client.delete(f"/api/styles/{preset['id']}").status_code == 200
        assert test_client.delete(f"/api/styles/{preset['id']}").status_code == 404

    def test_export_download(self, test_client, generated):
        test_client.post("/api/styles", json={"name": "Boat"})
        resp = test_client.get("/api/styles/export")
        assert "attachment" in resp.headers["content-disposition"]
        assert json.loads(resp.content)[0]["name"] == "Boat"


# ---------------------------------------------------------------------------
# Storyboard endpoint tests.
# ---------------------------------------------------------------------------


class TestStoryboard:
    def test_scene_lifecycle(self, test_client, generated):
        artifact_id = generated["artifact"]["id"]
        scene = test_client.post("/api/storyboard", json={"artifactId": artifact_id}).json()
        assert scene["imageId"] == artifact_id

        updated = test_client.patch(
            f"/api/storyboard/{scene['id']}", json={"script": "Boat drifts."}
        ).json()
        assert updated["script"] == "Boat drifts."
        assert updated["imageId"] == artifact_id

        detached = test_client.delete(f"/api/storyboard/{scene['id']}/image").json()
        assert detached["imageUrl"] is None
        attached = test_client.post(
            f"/api/storyboard/{scene['id']}/image", json={"artifactId": artifact_id}
        ).json()
        assert attached["imageUrl"] == generated["artifact"]["url"]

        assert test_client.delete(f"/api/storyboard/{scene['id']}").status_code == 200
        assert test_client.get("/api/storyboard").json() == []

    def test_text_only_scene(self, test_client):
        scene = test_client.post("/api/storyboard", json={"script": "Title card"}).json()
        assert scene["imageUrl"] is None

    def test_unknown_scene_is_404(self, test_client):
        resp = test_client.patch("/api/storyboard/missing", json={"script": "x"})
        assert resp.status_code == 404

    def test_exports(self, test_client, generated):
        test_client.post("/api/storyboard", json={"artifactId": generated["artifact"]["id"]})

        resp = test_client.get("/api/storyboard/export.json")
        assert resp.json()["projectName"] == "Untitled Project"
        assert len(resp.json()["storyboard"]) == 1

        pdf = test_client.get("/api/storyboard/export.pdf")
        assert pdf.status_code == 200
        assert pdf.headers["content-type"] == "application/pdf"
        assert pdf.content.startswith(b"%PDF")


# ---------------------------------------------------------------------------
# Project endpoint tests.
# ---------------------------------------------------------------------------


class TestProject:
    def test_export_and_load_round_trip(self, test_client, generated):
        resp = test_client.get("/api/project/export", params={"name": "Boat Film"})
        assert 'filename="boat-film.musebox.json"' in resp.headers["content-disposition"]
        document = resp.json()

        test_client.post("/api/project/new")
        assert test_client.get("/api/project").json()["historyCount"] == 0

        loaded = test_client.post("/api/project/load", content=json.dumps(document)).json()
        assert loaded["name"] == "Boat Film"
        assert loaded["historyCount"] == 1
        assert loaded["currentArtifactId"] == generated["artifact"]["id"]

    def test_load_malformed_is_422(self, test_client, generated):
        resp = test_client.post("/api/project/load", content=json.dumps({"name": "x"}))
        assert resp.status_code == 422
        assert resp.json()["detail"]["kind"] == "malformed_project_file"
        assert test_client.get("/api/project").json()["historyCount"] == 1

    def test_load_invalid_json_is_422(self, test_client):
        assert test_client.post("/api/project/load", content=b"not json").status_code == 422

    def test_rename(self, test_client):
        assert test_client.patch("/api/project", json={"name": "Renamed"}).json() == {
            "name": "Renamed"
        }
        assert test_client.patch("/api/project", json={"name": "  "}).status_code == 400

    def test_new_project_keeps_locks(self, test_client):
        test_client.patch("/api/studio/config", json={"prompt": "keep", "seed": 7})
        test_client.post("/api/studio/locks/prompt")
        config = test_client.post("/api/project/new").json()["config"]
        assert config["prompt"] == "keep"
        assert config["seed"] is None


class TestCredentials:
    def test_blank_key_stays_in_demo(self, test_client):
        data = test_client.post("/api/credentials", json={"apiKey": "  "}).json()
        assert data == {"liveAvailable": False, "credentialsVerified": True}
