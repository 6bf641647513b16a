import json

import pytest
import requests

from conftest import AI_URL, FakeSession, completion_response, fenced, make_response, quiz_dict, quiz_question
from errors import (
    CompletionError,
    MalformedResponseError,
    PaymentRequiredError,
    QuizSchemaError,
    RateLimitError,
)
from llm_quiz_generator import SYSTEM_PROMPT, CompletionClient, build_messages, parse_quiz_response
from models import ArticleText


def _client(session, api_key="secret"):
    return CompletionClient(api_key=api_key, url=AI_URL, model="google/gemini-2.5-flash", session=session)


def test_build_messages_is_system_plus_user():
    article = ArticleText(title="Test", body="Body text.")
    messages = build_messages(article)
    assert messages == [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "Article Title: Test\n\nArticle Content:\nBody text."},
    ]
    assert build_messages(article) == messages


def test_system_prompt_describes_the_task():
    for fragment in ("5-10 multiple-choice", "A, B, C, or D", "easy/medium/hard", "3-8 related", "JSON only"):
        assert fragment in SYSTEM_PROMPT


def test_complete_sends_chat_request():
    session = FakeSession(post=completion_response("hello"))
    messages = [{"role": "user", "content": "hi"}]

    assert _client(session).complete(messages) == "hello"

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", AI_URL)
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["json"] == {"model": "google/gemini-2.5-flash", "messages": messages, "temperature": 0.7}


@pytest.mark.parametrize(
    "status,error,status_code",
    [
        (429, RateLimitError, 429),
        (402, PaymentRequiredError, 402),
        (500, CompletionError, 500),
        (401, CompletionError, 500),
    ],
)
def test_complete_maps_error_statuses(status, error, status_code):
    session = FakeSession(post=make_response(status, "nope", url=AI_URL))
    with pytest.raises(error) as exc:
        _client(session).complete([])
    assert exc.value.status_code == status_code
    assert len(session.calls) == 1


def test_rate_limit_message():
    session = FakeSession(post=make_response(429, "slow down", url=AI_URL))
    with pytest.raises(RateLimitError, match="^Rate limit exceeded"):
        _client(session).complete([])


def test_complete_without_api_key_makes_no_request():
    session = FakeSession(post=completion_response("unused"))
    with pytest.raises(CompletionError, match="not configured"):
        _client(session, api_key=None).complete([])
    assert session.calls == []


def test_complete_network_error():
    session = FakeSession(post=requests.Timeout("timed out"))
    with pytest.raises(CompletionError):
        _client(session).complete([])


def test_complete_unexpected_body():
    session = FakeSession(post=make_response(200, json_body={"choices": []}, url=AI_URL))
    with pytest.raises(CompletionError):
        _client(session).complete([])


@pytest.mark.parametrize("content", [[{"type": "text", "text": "{}"}], None, 42])
def test_complete_non_text_content(content):
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    session = FakeSession(post=make_response(200, json_body=body, url=AI_URL))
    with pytest.raises(CompletionError):
        _client(session).complete([])


def test_parse_fenced_equals_unfenced():
    data = quiz_dict()
    bare = parse_quiz_response(json.dumps(data))
    assert parse_quiz_response(fenced(data)) == bare
    assert parse_quiz_response("```\n" + json.dumps(data) + "\n```") == bare
    assert parse_quiz_response("```json " + json.dumps(data) + " ```") == bare


def test_parse_fence_with_surrounding_chatter():
    text = "Here is your quiz:\n" + fenced(quiz_dict()) + "\nEnjoy!"
    assert parse_quiz_response(text).title == "Test"


@pytest.mark.parametrize("text", ["Sorry, I cannot help with that.", "", None, "{'single': 'quotes'}"])
def test_parse_invalid_json(text):
    with pytest.raises(MalformedResponseError, match="Invalid JSON response from AI"):
        parse_quiz_response(text)


def test_parse_json_that_is_not_an_object():
    with pytest.raises(MalformedResponseError):
        parse_quiz_response("[1, 2, 3]")


def test_parse_returns_structured_payload():
    payload = parse_quiz_response(fenced(quiz_dict(7)))
    assert len(payload.quiz) == 7
    assert payload.key_entities.people == ["Ada"]
    assert payload.quiz[1].answer == "B"
    assert payload.wikipedia_url is None


@pytest.mark.parametrize(
    "bad_question",
    [
        quiz_question(options=["one", "two", "three"]),
        quiz_question(options=["1", "2", "3", "4", "5"]),
        quiz_question(answer="E"),
        quiz_question(answer="none of the above"),
        quiz_question(difficulty="impossible"),
        {"question": "Missing fields?"},
    ],
)
def test_parse_rejects_contract_violations(bad_question):
    data = quiz_dict()
    data["quiz"][0] = bad_question
    with pytest.raises(QuizSchemaError):
        parse_quiz_response(json.dumps(data))


def test_parse_rejects_empty_quiz():
    with pytest.raises(QuizSchemaError):
        parse_quiz_response(json.dumps(quiz_dict(0)))


def test_schema_error_is_a_malformed_response():
    assert issubclass(QuizSchemaError, MalformedResponseError)
    assert QuizSchemaError().status_code == 500


@pytest.mark.parametrize(
    "answer,expected",
    [("a", "A"), (" C ", "C"), ("B)", "B"), ("(D)", "D"), ("Option 0c", "C")],
)
def test_parse_normalizes_answers(answer, expected):
    data = quiz_dict()
    data["quiz"][0] = quiz_question(0, answer=answer)
    assert parse_quiz_response(json.dumps(data)).quiz[0].answer == expected


def test_parse_lowercases_difficulty():
    data = quiz_dict()
    data["quiz"][0] = quiz_question(difficulty="Hard")
    assert parse_quiz_response(json.dumps(data)).quiz[0].difficulty == "hard"


def test_parse_accepts_question_counts_outside_range(caplog):
    payload = parse_quiz_response(json.dumps(quiz_dict(12)))
    assert len(payload.quiz) == 12
    assert "expected 5-10" in caplog.text


def test_parse_fills_missing_title_and_optional_lists():
    data = quiz_dict(title="", key_entities=None, sections=None)
    del data["related_topics"]
    payload = parse_quiz_response(json.dumps(data), fallback_title="Extracted Title")
    assert payload.title == "Extracted Title"
    assert payload.key_entities.locations == []
    assert payload.sections == []
    assert payload.related_topics == []
