"""
Integration tests for the HTTP surface.

Runs the FastAPI app in-process against an in-memory database.
"""

import pytest
from fastapi.testclient import TestClient

from coursegate.api.main import create_app
from coursegate.errors import StorageError

LEARNER = {"X-User-Id": "learner-1"}


@pytest.fixture
def client(service):
    return TestClient(create_app(service))


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["courses"] == ["intro"]

    def test_root(self, client):
        assert client.get("/").json()["service"] == "coursegate"


class TestProgressEndpoints:
    def test_heartbeat(self, client):
        response = client.post(
            "/api/progress/intro/heartbeat",
            json={"module_slug": "basics", "lesson_slug": "welcome", "delta_seconds": 500, "scroll_depth": 30},
            headers=LEARNER,
        )
        assert response.status_code == 200
        assert response.json() == {
            "recorded": True,
            "time_spent_seconds": 120,
            "active_time_seconds": 120,
            "max_scroll_depth": 30,
        }

    def test_heartbeat_requires_identity(self, client):
        response = client.post(
            "/api/progress/intro/heartbeat",
            json={"module_slug": "basics", "lesson_slug": "welcome", "delta_seconds": 10},
        )
        assert response.status_code == 422

    def test_negative_heartbeat_rejected(self, client):
        response = client.post(
            "/api/progress/intro/heartbeat",
            json={"module_slug": "basics", "lesson_slug": "welcome", "delta_seconds": -1},
            headers=LEARNER,
        )
        assert response.status_code == 400

    def test_non_finite_heartbeat_rejected(self, client):
        response = client.post(
            "/api/progress/intro/heartbeat",
            content='{"module_slug": "basics", "lesson_slug": "welcome", "delta_seconds": NaN}',
            headers={**LEARNER, "Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_heartbeat_store_outage_is_swallowed(self, client, service, monkeypatch):
        def unavailable(*args, **kwargs):
            raise StorageError("down")

        monkeypatch.setattr(service, "apply_heartbeat", unavailable)
        response = client.post(
            "/api/progress/intro/heartbeat",
            json={"module_slug": "basics", "lesson_slug": "welcome", "delta_seconds": 10},
            headers=LEARNER,
        )
        assert response.status_code == 200
        assert response.json()["recorded"] is False

    def test_course_progress(self, client):
        client.post(
            "/api/progress/intro/heartbeat",
            json={"module_slug": "basics", "lesson_slug": "welcome", "delta_seconds": 30},
            headers=LEARNER,
        )
        response = client.get("/api/progress/intro", headers=LEARNER)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "in_progress"
        assert data["current_lesson_slug"] == "welcome"
        assert data["lessons"][0]["time_spent_seconds"] == 30

    def test_unknown_course(self, client):
        assert client.get("/api/progress/nope", headers=LEARNER).status_code == 404

    def test_complete_lesson_and_navigation(self, client):
        response = client.post(
            "/api/progress/intro/lessons/welcome/complete", json={"module_slug": "basics"}, headers=LEARNER
        )
        assert response.status_code == 200
        assert response.json()["newly_completed"] is True

        nav = client.get("/api/progress/intro/navigation", headers=LEARNER).json()
        assert nav["tree"]["completed_lessons"] == 1
        assert nav["locks"] == {"locked_lessons": [], "locked_knowledge_checks": []}

    def test_lesson_access(self, client):
        client.put("/api/admin/courses/intro/settings", json={"key": "navigation_mode", "value": "linear"})
        response = client.get("/api/progress/intro/modules/basics/lessons/setup/access", headers=LEARNER)
        assert response.status_code == 200
        assert response.json()["locked"] is True


class TestKnowledgeCheckEndpoints:
    def test_draft_resume_submit(self, client):
        base = "/api/progress/intro/modules/basics/check"
        draft = client.post(f"{base}/draft", json={"question_id": "q1", "answer": "b"}, headers=LEARNER)
        assert draft.json() == {"question_id": "q1", "correct": True, "already_completed": False}

        state = client.get(f"{base}/answers", headers=LEARNER).json()
        assert state["status"] == "in_progress"
        assert state["resume_index"] == 1

        answers = [{"question_id": "q1", "answer": "b"}, {"question_id": "q2", "answer": False}]
        result = client.post(base, json={"answers": answers}, headers=LEARNER).json()
        assert (result["correct"], result["total"], result["score_percent"]) == (1, 2, 50)
        assert result["already_completed"] is False

        again = client.post(base, json={"answers": answers}, headers=LEARNER).json()
        assert again["already_completed"] is True
        assert again["score_percent"] == 50

        state = client.get(f"{base}/answers", headers=LEARNER).json()
        assert state["status"] == "completed"
        assert state["result"]["correct"] == 1

    def test_wrong_answer_count(self, client):
        response = client.post(
            "/api/progress/intro/modules/basics/check",
            json={"answers": [{"question_id": "q1", "answer": "b"}]},
            headers=LEARNER,
        )
        assert response.status_code == 400

    def test_unknown_question(self, client):
        response = client.post(
            "/api/progress/intro/modules/basics/check/draft",
            json={"question_id": "q9", "answer": "b"},
            headers=LEARNER,
        )
        assert response.status_code == 400

    def test_submit_store_outage_is_retryable(self, client, service, monkeypatch):
        def unavailable(*args, **kwargs):
            raise StorageError("down")

        monkeypatch.setattr(service, "submit_knowledge_check", unavailable)
        response = client.post(
            "/api/progress/intro/modules/basics/check",
            json={"answers": [{"question_id": "q1", "answer": "b"}, {"question_id": "q2", "answer": True}]},
            headers=LEARNER,
        )
        assert response.status_code == 503


class TestAdminEndpoints:
    def test_dashboard(self, client):
        client.post("/api/admin/courses/intro/enrollments", json={"user_ids": ["learner-1", "learner-2"]})
        client.post(
            "/api/progress/intro/heartbeat",
            json={"module_slug": "basics", "lesson_slug": "welcome", "delta_seconds": 30},
            headers=LEARNER,
        )
        response = client.get("/api/admin/dashboard", params={"course_slug": "intro"})
        assert response.status_code == 200
        data = response.json()
        assert (data["in_progress"], data["not_started"], data["total_users"]) == (1, 1, 2)
        assert [m["module_slug"] for m in data["module_funnel"]] == ["basics", "advanced"]

    def test_dashboard_user_filter(self, client):
        response = client.get(
            "/api/admin/dashboard", params=[("course_slug", "intro"), ("user_id", "a"), ("user_id", "b")]
        )
        assert response.json()["not_started"] == 2

    def test_users_analytics(self, client):
        client.post("/api/admin/courses/intro/enrollments", json={"user_ids": ["learner-1"]})
        data = client.get("/api/admin/courses/intro/users/analytics").json()
        assert data[0]["user_id"] == "learner-1"
        assert [m["module_slug"] for m in data[0]["modules"]] == ["basics", "advanced"]

    def test_unenroll(self, client):
        client.post("/api/admin/courses/intro/enrollments", json={"user_ids": ["learner-1"]})
        assert client.delete("/api/admin/courses/intro/enrollments/learner-1").status_code == 200
        assert client.delete("/api/admin/courses/intro/enrollments/learner-1").status_code == 404

    def test_course_settings(self, client):
        response = client.put(
            "/api/admin/courses/intro/settings", json={"key": "require_knowledge_checks", "value": True}
        )
        assert response.status_code == 200
        assert response.json()["require_knowledge_checks"] is True
        assert client.get("/api/admin/courses/intro/settings").json()["overrides"] == {
            "require_knowledge_checks": "true"
        }

    def test_invalid_setting(self, client):
        response = client.put("/api/admin/courses/intro/settings", json={"key": "theme", "value": "dark"})
        assert response.status_code == 400
