import json
from typing import Any, Dict, List, Optional

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import get_db, init_db, make_engine
from llm_quiz_generator import CompletionClient
from main import app, get_pipeline
from pipeline import QuizPipeline

WIKI_URL = "https://en.wikipedia.org/wiki/Test"
AI_URL = "https://ai.test/v1/chat/completions"


def make_response(status_code: int = 200, text: str = "", json_body: Any = None, url: str = "") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    if json_body is not None:
        text = json.dumps(json_body)
    resp._content = text.encode("utf-8")
    resp.encoding = "utf-8"
    resp.url = url
    return resp


def completion_response(content: str, status_code: int = 200) -> requests.Response:
    return make_response(
        status_code,
        json_body={"choices": [{"message": {"role": "assistant", "content": content}}]},
        url=AI_URL,
    )


class FakeSession:
    """Stands in for requests.Session; records every call and replays canned responses."""

    def __init__(self, get=None, post=None):
        self.get_result = get
        self.post_result = post
        self.calls: List[tuple] = []

    def _reply(self, result):
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self._reply(self.get_result)

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return self._reply(self.post_result)


def paragraph(n: int, ch: str = "x") -> str:
    return ch * n


def article_html(title: Optional[str] = "Test", paragraphs=(), container: bool = True) -> str:
    ps = "".join(f"<p>{p}</p>" for p in paragraphs)
    heading = f'<h1 id="firstHeading">{title}</h1>' if title is not None else ""
    if container:
        content = f'<div id="mw-content-text"><div class="mw-parser-output">{ps}</div></div>'
    else:
        content = f'<div id="content">{ps}</div>'
    return f"<html><body>{heading}{content}</body></html>"


LONG_PARAGRAPHS = [
    "The test article opens with a long paragraph describing its subject in enough detail to pass the filter. " * 2,
    "A second paragraph covers the history of the subject, including several dates, places, and people. " * 2,
    "A third paragraph explains why the subject matters and how it relates to other topics on Wikipedia. " * 2,
]


def quiz_question(i: int = 0, answer: str = "A", **overrides) -> Dict[str, Any]:
    q = {
        "question": f"Question {i}?",
        "options": [f"Option {i}a", f"Option {i}b", f"Option {i}c", f"Option {i}d"],
        "answer": answer,
        "difficulty": "easy",
        "explanation": f"Because the article says so ({i}).",
    }
    q.update(overrides)
    return q


def quiz_dict(n_questions: int = 5, **overrides) -> Dict[str, Any]:
    data = {
        "title": "Test",
        "summary": "A short summary of the test article.",
        "key_entities": {"people": ["Ada"], "organizations": ["ACME"], "locations": ["Paris"]},
        "sections": ["History", "Impact"],
        "quiz": [quiz_question(i, answer="ABCD"[i % 4]) for i in range(n_questions)],
        "related_topics": ["Testing", "Software"],
    }
    data.update(overrides)
    return data


def fenced(data: Any) -> str:
    return "```json\n" + json.dumps(data, indent=2) + "\n```"


@pytest.fixture
def wiki_html() -> str:
    return article_html("Test", LONG_PARAGRAPHS)


@pytest.fixture
def make_pipeline():
    def _make(get=None, post=None, api_key: Optional[str] = "test-key"):
        session = FakeSession(get=get, post=post)
        client = CompletionClient(api_key=api_key, url=AI_URL, model="test-model", session=session)
        return QuizPipeline(client, session=session), session

    return _make


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def use_pipeline():
    """Route /generate-quiz through a pipeline backed by a FakeSession."""

    def _use(pipeline: QuizPipeline):
        app.dependency_overrides[get_pipeline] = lambda: pipeline

    return _use
