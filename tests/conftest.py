"""Shared fixtures: a throwaway SQLite database and a fake WaniKani API."""
import os
import sys
from typing import Any, Dict, Iterable, List, Optional
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlencode, urlparse

os.environ["TEST_MODE"] = "1"
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from llm_similar_kanji import db
from llm_similar_kanji.wanikani import WaniKaniClient

API_ROOT = "https://api.wanikani.test/v2"


def make_response(body: Any = None, status: int = 200, headers: Optional[Dict[str, str]] = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.json.return_value = body
    return resp


def subject(subject_id: int, character: str, similar: Iterable[int] = (), meanings: Iterable[str] = ()) -> Dict[str, Any]:
    return {
        "id": subject_id,
        "object": "kanji",
        "data": {
            "characters": character,
            "visually_similar_subject_ids": list(similar),
            "meanings": [{"meaning": m, "primary": i == 0} for i, m in enumerate(meanings)],
        },
    }


def assignment(subject_id: int) -> Dict[str, Any]:
    return {
        "id": subject_id * 10,
        "object": "assignment",
        "data": {"subject_id": subject_id, "subject_type": "kanji", "started_at": "2024-01-01T00:00:00Z"},
    }


class FakeWaniKani:
    """Stands in for requests.Session, serving collections in pages of `page_size`."""

    def __init__(self, subjects: Iterable[Dict[str, Any]] = (), assignments: Iterable[Dict[str, Any]] = (), page_size: int = 500):
        self.subjects = {s["id"]: s for s in subjects}
        self.assignments = list(assignments)
        self.page_size = page_size
        self.requests: List[str] = []

    def get(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None) -> MagicMock:
        self.requests.append(url)
        parsed = urlparse(url)
        query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        if parsed.path.endswith("/assignments"):
            records = self.assignments
        else:
            ids = [int(i) for i in query.get("ids", "").split(",") if i]
            records = [self.subjects[i] for i in ids if i in self.subjects]

        page = int(query.get("page", "0"))
        start = page * self.page_size
        chunk = records[start:start + self.page_size]
        next_url = None
        if start + self.page_size < len(records):
            query["page"] = str(page + 1)
            next_url = f"{parsed.scheme}://{parsed.netloc}{parsed.path}?{urlencode(query, safe=',')}"
        return make_response({"object": "collection", "data": chunk, "pages": {"next_url": next_url}})


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Rebind the module-level engine to a fresh SQLite file."""
    test_db = str(tmp_path / "test_similar.db")
    monkeypatch.setenv("LLM_WK_DB", test_db)
    monkeypatch.delenv("WANIKANI_API_KEY", raising=False)
    engine = create_engine(f"sqlite:///{test_db}")
    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(db, "SessionLocal", sessionmaker(bind=engine, expire_on_commit=False))
    db.init_db()
    yield db


@pytest.fixture
def fake_api() -> FakeWaniKani:
    return FakeWaniKani(
        subjects=[
            subject(101, "木", similar=[103], meanings=["Tree", "Wood"]),
            subject(102, "林", similar=[], meanings=["Grove"]),
            subject(103, "本", similar=[101], meanings=["Book"]),
        ],
        assignments=[assignment(101), assignment(102)],
    )


@pytest.fixture
def wk_client(fake_api: FakeWaniKani) -> WaniKaniClient:
    return WaniKaniClient("test-token", http=fake_api, api_root=API_ROOT, sleep=lambda s: None)
