"""
Tests for the Flask JSON API.
The WaniKani API is replaced by the fake from conftest, wired in through open_session.
"""
import os
import random
from typing import Any

import pytest
import requests
from unittest.mock import MagicMock

from llm_similar_kanji import db
from llm_similar_kanji.cache import TTLCache
from llm_similar_kanji.errors import ConfigError
from llm_similar_kanji.quiz import QuizSession
from llm_similar_kanji.wanikani import WaniKaniClient

from conftest import API_ROOT


@pytest.fixture
def flask_app(temp_db: Any, monkeypatch: Any, wk_client: WaniKaniClient) -> Any:
    os.environ["TEST_MODE"] = "1"
    # Import app after setting TEST_MODE
    import app as flask_app
    flask_app.app.config["TESTING"] = True
    flask_app.app.config["SECRET_KEY"] = "test-secret"
    monkeypatch.setattr(flask_app, "quiz_session", None)
    monkeypatch.setattr(
        flask_app,
        "open_session",
        lambda refresh=False: QuizSession.start(wk_client, TTLCache(), rng=random.Random(5), refresh=refresh),
    )
    return flask_app


@pytest.fixture
def client(flask_app: Any) -> Any:
    with flask_app.app.test_client() as c:
        with flask_app.app.app_context():
            yield c


def test_round_then_correct_answer(client: Any, flask_app: Any) -> None:
    resp = client.get("/api/round")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["status"] == "success"
    assert sorted(data["round"]["characters"]) == ["本", "木"]
    assert data["round"]["prompt"] == "Tree, Wood"
    assert "correct_character" not in data["round"]

    resp = client.post("/api/answer", json={"character": "木"})
    data = resp.get_json()
    assert data["is_correct"] is True
    assert data["correct_character"] == "木"
    assert flask_app.quiz_session.current is None


def test_wrong_answer_recorded_in_progress(client: Any) -> None:
    client.get("/api/round")
    data = client.post("/api/answer", json={"character": "本"}).get_json()
    assert data["is_correct"] is False

    progress = client.get("/api/progress").get_json()
    assert progress["progress"]["total_reviews"] == 1
    assert progress["progress"]["correct_answers"] == 0
    assert progress["daily"][0]["rounds_answered"] == 1


def test_answer_without_round_is_rejected(client: Any) -> None:
    resp = client.post("/api/answer", json={"character": "木"})
    assert resp.status_code == 409
    assert resp.get_json()["status"] == "error"


def test_second_answer_is_rejected(client: Any) -> None:
    client.get("/api/round")
    client.post("/api/answer", json={"character": "木"})
    resp = client.post("/api/answer", json={"character": "本"})
    assert resp.status_code == 409


def test_answer_requires_character(client: Any) -> None:
    client.get("/api/round")
    resp = client.post("/api/answer", json={})
    assert resp.status_code == 400


def test_no_rounds_is_not_an_error(client: Any, flask_app: Any, monkeypatch: Any) -> None:
    from conftest import FakeWaniKani
    empty = WaniKaniClient("t", http=FakeWaniKani(), api_root=API_ROOT)
    monkeypatch.setattr(flask_app, "open_session", lambda refresh=False: QuizSession.start(empty, TTLCache()))
    resp = client.get("/api/round")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "no_rounds"


def test_fetch_failure_surfaces_error(client: Any, flask_app: Any, monkeypatch: Any) -> None:
    http = MagicMock()
    http.get.side_effect = requests.ConnectionError("offline")
    broken = WaniKaniClient("t", http=http, api_root=API_ROOT)
    monkeypatch.setattr(flask_app, "open_session", lambda refresh=False: QuizSession.start(broken, TTLCache()))
    resp = client.get("/api/round")
    assert resp.status_code == 502
    assert resp.get_json()["status"] == "error"


def test_missing_token_is_reported(client: Any, flask_app: Any, monkeypatch: Any) -> None:
    def no_token(refresh: bool = False) -> QuizSession:
        raise ConfigError("No WaniKani API token found.")
    monkeypatch.setattr(flask_app, "open_session", no_token)
    resp = client.get("/api/round")
    assert resp.status_code == 401


def test_set_key(client: Any, flask_app: Any) -> None:
    assert client.post("/api/key", json={"api_key": "  "}).status_code == 400

    client.get("/api/round")
    assert flask_app.quiz_session is not None
    resp = client.post("/api/key", json={"api_key": "new-token"})
    assert resp.get_json()["status"] == "success"
    assert db.load_api_key() == "new-token"
    assert flask_app.quiz_session is None


def test_refresh_reports_counts(client: Any) -> None:
    data = client.post("/api/refresh").get_json()
    assert data == {"status": "success", "known": 2, "indexed": 1, "eligible": 1}


def test_progress_empty(client: Any) -> None:
    data = client.get("/api/progress").get_json()
    assert data["progress"] is None
