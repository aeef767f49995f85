"""HTTP layer tests: routes, identity header, error mapping, camelCase output.

The app is built with ``create_app()`` and exercised through Starlette's
TestClient without entering its context manager, so the lifespan handler
(script loading, DB pool) never runs.  Instead ``app.state`` is populated
directly with a store and an engine backed by MockRepository, and
``get_db`` is overridden to yield an AsyncMock.
"""

import uuid
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm.exc import StaleDataError

from stepwork.engine import StepWorkEngine
from stepwork_server.app import create_app
from stepwork_server.config import ServerSettings
from stepwork_server.dependencies import get_db

# Import mock infrastructure from test_engine
from test_engine import MockRepository

SUBSTANTIVE = "Last Friday I promised my wife I'd be home by six and I was not"
API = "/api/v1"


# =====================================================================
# Fixtures
# =====================================================================


def _build_app(store, repo, settings=None):
    app = create_app(settings or ServerSettings())
    engine = StepWorkEngine(store)
    engine._repo = repo
    app.state.store = store
    app.state.engine = engine

    async def _fake_db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = _fake_db
    return app


@pytest.fixture
def mock_repo():
    return MockRepository()


@pytest.fixture
def client(three_question_store, mock_repo):
    return TestClient(_build_app(three_question_store, mock_repo))


def headers(user_id="u1"):
    return {"X-User-ID": user_id}


def start(client, user_id="u1", **body):
    resp = client.post(
        f"{API}/sessions/start", json={"step": "step1", **body}, headers=headers(user_id),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


# =====================================================================
# Session endpoints
# =====================================================================


class TestSessions:

    def test_start_returns_camel_case(self, client):
        data = start(client, preWalkMood="anxious", bodyNeed="movement")
        assert "sessionId" in data and "session_id" not in data
        assert data["initialQuestion"]["id"] == "q1"
        assert data["initialQuestion"]["phaseTitle"] == "Recognition"
        assert data["isResumed"] is False
        assert data["conversationHistory"] == []

    def test_start_accepts_snake_case_body(self, client, mock_repo):
        start(client, pre_walk_mood="calm")
        row = next(iter(mock_repo._sessions.values()))
        assert row.pre_walk_mood == "calm"

    def test_start_invalid_step(self, client, mock_repo):
        resp = client.post(f"{API}/sessions/start", json={"step": "step7"}, headers=headers())
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid request"
        assert mock_repo._sessions == {}

    def test_missing_user_header(self, client):
        resp = client.post(f"{API}/sessions/start", json={"step": "step1"})
        assert resp.status_code == 401

    def test_blank_user_header(self, client):
        resp = client.post(
            f"{API}/sessions/start", json={"step": "step1"}, headers={"X-User-ID": "   "},
        )
        assert resp.status_code == 401

    def test_resume_flow(self, client):
        assert client.get(f"{API}/sessions/start", headers=headers()).json() == {
            "hasIncompleteSession": False, "session": None,
        }
        data = start(client)
        client.post(
            f"{API}/sessions/answer",
            json={"sessionId": data["sessionId"], "answer": SUBSTANTIVE},
            headers=headers(),
        )

        check = client.get(f"{API}/sessions/start", headers=headers()).json()
        assert check["hasIncompleteSession"] is True
        assert check["session"]["sessionId"] == data["sessionId"]

        resumed = start(client, resumeSession=True)
        assert resumed["isResumed"] is True
        assert resumed["initialQuestion"]["id"] == "q2"

    def test_get_session(self, client):
        data = start(client)
        resp = client.get(f"{API}/sessions/{data['sessionId']}", headers=headers())
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "in_progress"
        assert body["questionsCompleted"] == 0

    def test_get_unknown_session(self, client):
        resp = client.get(f"{API}/sessions/{uuid.uuid4()}", headers=headers())
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Resource not found"

    def test_get_malformed_session_id(self, client):
        resp = client.get(f"{API}/sessions/not-a-uuid", headers=headers())
        assert resp.status_code == 404

    def test_get_other_users_session(self, client):
        data = start(client, user_id="owner")
        resp = client.get(f"{API}/sessions/{data['sessionId']}", headers=headers("u1"))
        assert resp.status_code == 403
        assert data["sessionId"] not in resp.text, "Ids must not leak to the client"

    def test_list_and_delete(self, client):
        first = start(client)
        start(client)
        listed = client.get(f"{API}/sessions", headers=headers()).json()
        assert len(listed) == 2

        resp = client.delete(f"{API}/sessions/{first['sessionId']}", headers=headers())
        assert resp.status_code == 204
        listed = client.get(f"{API}/sessions", headers=headers()).json()
        assert len(listed) == 1
        assert listed[0]["sessionId"] != first["sessionId"]

    def test_list_limit_out_of_range(self, client):
        resp = client.get(f"{API}/sessions?limit=0", headers=headers())
        assert resp.status_code == 400


# =====================================================================
# Answer / completion endpoints
# =====================================================================


class TestAnswerAndComplete:

    def test_answer_flow_to_completion(self, client):
        data = start(client)
        sid = data["sessionId"]
        results = [
            client.post(
                f"{API}/sessions/answer",
                json={"sessionId": sid, "answer": a},
                headers=headers(),
            ).json()
            for a in ("fine", SUBSTANTIVE, SUBSTANTIVE)
        ]
        assert results[0]["hasRedFlags"] is True
        assert results[0]["nextQuestion"]["id"] == "q2"
        assert results[-1]["shouldComplete"] is True
        assert results[-1]["nextQuestion"] is None
        assert results[-1]["analytics"]["questionsCompleted"] == 3

        again = client.post(
            f"{API}/sessions/answer",
            json={"sessionId": sid, "answer": SUBSTANTIVE},
            headers=headers(),
        )
        assert again.status_code == 409

        done = client.post(
            f"{API}/sessions/{sid}/complete", json={"walkDuration": 20}, headers=headers(),
        )
        assert done.status_code == 200
        body = done.json()
        assert body["coinsEarned"] == 20
        assert body["totalCoins"] == 20
        assert body["alreadyCompleted"] is False
        assert body["reflection"]

    def test_answer_after_early_completion_is_conflict(self, client):
        sid = start(client)["sessionId"]
        client.post(
            f"{API}/sessions/answer", json={"sessionId": sid, "answer": SUBSTANTIVE}, headers=headers(),
        )
        done = client.post(
            f"{API}/sessions/{sid}/complete", json={"walkDuration": 5}, headers=headers(),
        )
        assert done.status_code == 200

        resp = client.post(
            f"{API}/sessions/answer", json={"sessionId": sid, "answer": SUBSTANTIVE}, headers=headers(),
        )
        assert resp.status_code == 409
        detail = client.get(f"{API}/sessions/{sid}", headers=headers()).json()
        assert detail["questionsCompleted"] == 1
        assert detail["status"] == "completed"

    def test_complete_without_body(self, client):
        sid = start(client)["sessionId"]
        resp = client.post(f"{API}/sessions/{sid}/complete", headers=headers())
        assert resp.status_code == 200
        assert resp.json()["coinsEarned"] == 0

    def test_negative_duration_rejected(self, client):
        sid = start(client)["sessionId"]
        resp = client.post(
            f"{API}/sessions/{sid}/complete", json={"walkDuration": -5}, headers=headers(),
        )
        assert resp.status_code == 400

    def test_blank_answer_rejected(self, client):
        sid = start(client)["sessionId"]
        resp = client.post(
            f"{API}/sessions/answer", json={"sessionId": sid, "answer": "   "}, headers=headers(),
        )
        assert resp.status_code == 400

    def test_missing_answer_field(self, client):
        sid = start(client)["sessionId"]
        resp = client.post(f"{API}/sessions/answer", json={"sessionId": sid}, headers=headers())
        assert resp.status_code == 400
        assert resp.json()["errors"], "Validation errors should be listed"

    def test_concurrent_update_is_conflict(self, three_question_store):
        class RacingRepository(MockRepository):
            async def save_responses(self, db, session, step_responses):
                raise StaleDataError("version mismatch")

        client = TestClient(_build_app(three_question_store, RacingRepository()))
        sid = start(client)["sessionId"]
        resp = client.post(
            f"{API}/sessions/answer", json={"sessionId": sid, "answer": SUBSTANTIVE}, headers=headers(),
        )
        assert resp.status_code == 409

    def test_unexpected_error_is_500(self, three_question_store):
        class BrokenRepository(MockRepository):
            async def list_by_user(self, db, user_id, *, limit=20, offset=0):
                raise RuntimeError("connection reset")

        app = _build_app(three_question_store, BrokenRepository())
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get(f"{API}/sessions", headers=headers())
        assert resp.status_code == 500
        assert "connection reset" not in resp.text


# =====================================================================
# Proxy secret
# =====================================================================


class TestProxySecret:

    @pytest.fixture
    def guarded(self, three_question_store, mock_repo):
        settings = ServerSettings(trusted_proxy_secret="s3cret")
        return TestClient(_build_app(three_question_store, mock_repo, settings))

    def test_missing_secret(self, guarded):
        resp = guarded.get(f"{API}/sessions", headers=headers())
        assert resp.status_code == 403

    def test_wrong_secret(self, guarded):
        resp = guarded.get(f"{API}/sessions", headers={**headers(), "X-Proxy-Secret": "nope"})
        assert resp.status_code == 403

    def test_matching_secret(self, guarded):
        resp = guarded.get(f"{API}/sessions", headers={**headers(), "X-Proxy-Secret": "s3cret"})
        assert resp.status_code == 200


# =====================================================================
# Reference endpoints
# =====================================================================


class TestReference:

    def test_list_steps(self, client):
        steps = client.get(f"{API}/steps").json()
        assert [s["step"] for s in steps] == ["step1", "step2", "step3"]

    @pytest.mark.parametrize("step", ["step1", "1"])
    def test_step_questions(self, client, step):
        questions = client.get(f"{API}/steps/{step}/questions").json()
        assert [q["id"] for q in questions] == ["q1", "q2", "q3"]
        assert "conditionalFollowUp" not in questions[0], "Branching patterns stay server-side"

    def test_unknown_step_questions(self, client):
        assert client.get(f"{API}/steps/step9/questions").status_code == 400


def test_packaged_step_questions(store, mock_repo):
    client = TestClient(_build_app(store, mock_repo))
    questions = client.get(f"{API}/steps/step1/questions").json()
    assert len(questions) == 21
    assert questions[0]["id"] == "s1_recognition_01"
