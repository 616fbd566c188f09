"""Tests for the session endpoints over HTTP."""

import uuid
from datetime import datetime, timezone

import pytest

from fakes import make_session

T0 = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_create_session(client, template):
    resp = await client.post(
        "/api/v1/sessions",
        json={
            "template_id": str(template.id),
            "candidate_name": "Alex Martin",
            "candidate_email": "alex@example.com",
            "position": "Backend Engineer",
        },
    )

    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "scheduled"
    assert data["template_id"] == str(template.id)
    assert data["current_question_index"] == 0


@pytest.mark.asyncio
async def test_create_session_without_template_or_default(client):
    resp = await client.post("/api/v1/sessions", json={"candidate_name": "Alex"})

    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "configuration_error"


@pytest.mark.asyncio
async def test_create_session_with_unknown_template(client):
    resp = await client.post("/api/v1/sessions", json={"template_id": str(uuid.uuid4())})

    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "template_not_found"


@pytest.mark.asyncio
async def test_get_session(client, repo, template):
    session = repo.add_session(make_session(template))

    resp = await client.get(f"/api/v1/sessions/{session.id}")

    assert resp.status_code == 200
    assert resp.json()["candidate_name"] == "Alex Martin"


@pytest.mark.asyncio
async def test_get_unknown_session(client):
    resp = await client.get(f"/api/v1/sessions/{uuid.uuid4()}")

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_start_session_returns_call_config(client, repo, template, voice_client):
    session = repo.add_session(make_session(template))

    resp = await client.post(
        f"/api/v1/sessions/{session.id}/start",
        json={"candidate_name": "Sam Lee", "position": "Data Engineer"},
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["assistant_id"] == "asst_123"
    assert data["max_duration_seconds"] == 1830
    assert data["assistant"]["metadata"]["sessionId"] == str(session.id)
    assert len(voice_client.created) == 1
    assert session.status == "scheduled"


@pytest.mark.asyncio
async def test_start_session_provider_failure(client, repo, template, voice_client):
    voice_client.fail = True
    session = repo.add_session(make_session(template))

    resp = await client.post(
        f"/api/v1/sessions/{session.id}/start",
        json={"candidate_name": "Sam Lee", "position": "Data Engineer"},
    )

    assert resp.status_code == 502
    assert resp.json()["detail"]["code"] == "voice_provider_error"
    assert session.status == "scheduled"


@pytest.mark.asyncio
async def test_start_finished_session_conflicts(client, repo, template):
    session = repo.add_session(make_session(template, status="completed", completed_at=T0))

    resp = await client.post(
        f"/api/v1/sessions/{session.id}/start",
        json={"candidate_name": "Sam Lee", "position": "Data Engineer"},
    )

    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_cancel_is_idempotent(client, repo, template):
    session = repo.add_session(make_session(template))

    first = await client.post(f"/api/v1/sessions/{session.id}/cancel")
    second = await client.post(f"/api/v1/sessions/{session.id}/cancel")

    assert first.json() == {"session_id": str(session.id), "status": "cancelled", "changed": True}
    assert second.json()["changed"] is False


@pytest.mark.asyncio
async def test_cancel_unknown_session(client):
    resp = await client.post(f"/api/v1/sessions/{uuid.uuid4()}/cancel")

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_results_return_stored_analysis(client, repo, template):
    session = repo.add_session(
        make_session(
            template,
            status="completed",
            completed_at=T0,
            overall_score=82.0,
            hiring_recommendation="Yes",
            strengths=["Ownership"],
        )
    )

    resp = await client.get(f"/api/v1/sessions/{session.id}/results")

    assert resp.status_code == 200
    data = resp.json()
    assert data["overall_score"] == 82.0
    assert data["hiring_recommendation"] == "Yes"
    assert data["strengths"] == ["Ownership"]
