import pytest
from fastapi.testclient import TestClient

from coordinator.request_coordinator import RequestCoordinator
from deps import config
from main import app, get_coordinator

from conftest import FakeAdapter, PHOTOSYNTHESIS_ANSWER


client = TestClient(app)

ASK = {"user_id": "student-1", "session_id": "session-1", "query": "How does photosynthesis work?"}


@pytest.fixture(autouse=True)
def wired(coordinator):
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    yield coordinator
    app.dependency_overrides.clear()


def use_adapters(coordinator, *adapters):
    for name in coordinator.state.orchestrator.available_providers():
        coordinator.state.orchestrator.unregister(name)
    for adapter in adapters:
        coordinator.state.orchestrator.register(adapter)


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_provider_health():
    response = client.get("/health/providers")
    assert response.status_code == 200
    data = response.json()
    assert data["providers"] == {"openai": True}
    assert data["cache"] is True


def test_ask_endpoint():
    response = client.post("/ask", json=ASK)
    assert response.status_code == 200
    data = response.json()
    assert data["response"] == PHOTOSYNTHESIS_ANSWER
    assert data["provider"] == "openai"
    assert data["cached"] is False

    again = client.post("/ask", json=ASK)
    assert again.json()["cached"] is True


def test_ask_with_pii_is_redirected():
    response = client.post("/ask", json={**ASK, "query": "My email is test@example.com"})
    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "safety_filter"
    assert "personal_information" in data["metadata"]["content_warnings"]


def test_ask_validation_error():
    response = client.post("/ask", json={"query": "hi"})
    assert response.status_code == 422


def test_ask_without_providers(wired):
    use_adapters(wired)
    response = client.post("/ask", json=ASK)
    assert response.status_code == 503


def test_ask_provider_failure(wired):
    use_adapters(wired, FakeAdapter("openai", fail=True))
    response = client.post("/ask", json=ASK)
    assert response.status_code == 502
    assert "openai" in response.json()["detail"]


def test_estimate():
    response = client.post("/estimate", json={**ASK, "query": "x" * 40})
    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "openai"
    assert data["estimated_cost"] == pytest.approx(30 * 0.000002)


def test_escalation_lifecycle():
    assigned = client.post(
        "/teachers/assignments", json={"student_id": "student-1", "teacher_id": "teacher-a"}
    )
    assert assigned.status_code == 201

    client.post("/ask", json={**ASK, "query": "I want to hurt someone"})

    active = client.get("/escalations/active", params={"teacher_id": "teacher-a"}).json()
    assert len(active) == 1
    event_id = active[0]["id"]
    assert active[0]["severity"] == "critical"

    forbidden = client.post(
        f"/escalations/{event_id}/resolve", json={"teacher_id": "teacher-b", "resolution": "n/a"}
    )
    assert forbidden.status_code == 403

    resolved = client.post(
        f"/escalations/{event_id}/resolve", json={"teacher_id": "teacher-a", "resolution": "Called parents"}
    )
    assert resolved.status_code == 200
    assert resolved.json()["resolved"] is True

    assert client.get("/escalations/active").json() == []
    history = client.get("/users/student-1/escalations").json()
    assert [e["id"] for e in history] == [event_id]

    metrics = client.get("/escalations/metrics").json()
    assert metrics["total_escalations"] == 1
    assert metrics["resolution_rate"] == 1.0


def test_assign_then_resolve_unassigned_event():
    client.post("/ask", json={**ASK, "query": "I feel hopeless"})
    [event] = client.get("/escalations/active").json()

    assert client.post(f"/escalations/{event['id']}/assign", json={"teacher_id": "teacher-a"}).status_code == 200
    assert client.post(f"/escalations/{event['id']}/assign", json={"teacher_id": "teacher-b"}).status_code == 403


def test_resolve_unknown_escalation():
    response = client.post("/escalations/missing/resolve", json={"teacher_id": "t", "resolution": "r"})
    assert response.status_code == 404


def test_metrics_endpoint():
    client.post("/ask", json=ASK)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "buddyguard" in response.text


def test_cache_admin_requires_token(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_TOKEN", "secret")
    client.post("/ask", json=ASK)

    assert client.delete("/cache/users/student-1").status_code == 401

    headers = {"Authorization": "Bearer secret"}
    assert client.delete("/cache/sessions/other", headers=headers).json() == {"deleted": 0}
    assert client.delete("/cache/users/student-1", headers=headers).json() == {"deleted": 1}
    assert client.delete("/cache", headers=headers).json() == {"deleted": 0}


def test_admin_logs(monkeypatch, tmp_path, wired):
    monkeypatch.setattr(config, "ADMIN_TOKEN", "secret")
    monkeypatch.setattr(config, "LOG_FILE", str(tmp_path / "audit.jsonl"))
    headers = {"Authorization": "Bearer secret"}

    assert client.get("/admin/logs").status_code == 401
    assert client.get("/admin/logs", headers=headers).json()["count"] == 0

    audited = RequestCoordinator(wired.state, failover=True, audit=True)
    app.dependency_overrides[get_coordinator] = lambda: audited
    client.post("/ask", json=ASK)

    data = client.get("/admin/logs", headers=headers, params={"limit": 5}).json()
    assert data["count"] == 1
    assert data["logs"][0]["final_action"] == "filter"


def test_escalation_metrics_with_naive_window():
    client.post("/ask", json={**ASK, "query": "I want to hurt someone"})
    response = client.get("/escalations/metrics", params={"start": "2020-01-01T00:00:00"})
    assert response.status_code == 200
    assert response.json()["total_escalations"] == 1


def test_user_escalations_limit_must_be_positive():
    assert client.get("/users/student-1/escalations", params={"limit": 0}).status_code == 422
    assert client.get("/users/student-1/escalations", params={"limit": -2}).status_code == 422
    assert client.get("/users/student-1/escalations", params={"limit": 1}).status_code == 200
