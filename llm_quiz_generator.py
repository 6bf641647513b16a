import json
import logging
import re
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from errors import (
    CompletionError,
    MalformedResponseError,
    PaymentRequiredError,
    QuizSchemaError,
    RateLimitError,
)
from models import ArticleText, QuizPayload

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an AI model trained to convert Wikipedia article text into structured educational content.

Your task:
1. Summarize the article (80-120 words)
2. Identify key people, organizations, and locations mentioned
3. Detect major sections or thematic divisions
4. Generate 5-10 multiple-choice quiz questions with:
   - question
   - four answer options (A-D)
   - correct answer (must be one of: A, B, C, or D)
   - difficulty level: easy/medium/hard
   - explanation grounded strictly in the article
5. Suggest 3-8 related Wikipedia topics based on themes in the article

Constraints:
- Use ONLY the article text; do not assume external facts.
- Output MUST be valid JSON following this schema:

{
  "title": "",
  "summary": "",
  "key_entities": {
    "people": [],
    "organizations": [],
    "locations": []
  },
  "sections": [],
  "quiz": [
    {
      "question": "",
      "options": ["", "", "", ""],
      "answer": "",
      "difficulty": "",
      "explanation": ""
    }
  ],
  "related_topics": []
}

Respond with JSON only."""

USER_TEMPLATE = "Article Title: {title}\n\nArticle Content:\n{body}"

MIN_EXPECTED_QUESTIONS = 5
MAX_EXPECTED_QUESTIONS = 10

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


def build_messages(article: ArticleText) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_TEMPLATE.format(title=article.title, body=article.body)},
    ]


class CompletionClient:
    """
    Chat-completion client for an OpenAI-compatible endpoint.

    One POST per call; no retries, no streaming. The bearer credential is
    supplied at construction so nothing here reads process state.
    """

    def __init__(
        self,
        api_key: Optional[str],
        url: str,
        model: str,
        temperature: float = 0.7,
        timeout: float = 120,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.session = session

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "CompletionClient":
        return cls(
            api_key=settings.completion_api_key,
            url=settings.completion_url,
            model=settings.completion_model,
            temperature=settings.temperature,
            timeout=settings.completion_timeout,
            session=session,
        )

    def complete(self, messages: List[Dict[str, str]]) -> str:
        if not self.api_key:
            raise CompletionError("AI API key not configured")

        body = {"model": self.model, "messages": messages, "temperature": self.temperature}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        http = self.session or requests
        try:
            resp = http.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Completion request failed: %s", e)
            raise CompletionError() from e

        if resp.status_code == 429:
            raise RateLimitError()
        if resp.status_code == 402:
            raise PaymentRequiredError()
        if not resp.ok:
            logger.error("AI API error: %s %s", resp.status_code, resp.text[:500])
            raise CompletionError()

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("Unexpected completion response shape: %s", resp.text[:500])
            raise CompletionError() from e
        if not isinstance(content, str):
            logger.error("Completion content is %s, not text", type(content).__name__)
            raise CompletionError()
        return content


def _clean_json_text(text: str) -> str:
    m = _FENCE_RE.search(text)
    return m.group(1) if m else text


def parse_quiz_response(text: Optional[str], fallback_title: Optional[str] = None) -> QuizPayload:
    """
    Pull the quiz JSON out of a completion (fenced or bare) and check it against the quiz contract.

    Raises MalformedResponseError when no JSON object can be parsed and
    QuizSchemaError when the object has the wrong shape.
    """
    try:
        data: Any = json.loads(_clean_json_text(text or ""))
    except json.JSONDecodeError as e:
        logger.error("Failed to parse AI response: %s", (text or "")[:1000])
        raise MalformedResponseError() from e
    if not isinstance(data, dict):
        logger.error("AI response is JSON but not an object: %s", type(data).__name__)
        raise MalformedResponseError()

    if fallback_title and not data.get("title"):
        data["title"] = fallback_title

    try:
        payload = QuizPayload.model_validate(data)
    except ValidationError as e:
        logger.error("AI response failed quiz validation: %s", e)
        raise QuizSchemaError() from e

    count = len(payload.quiz)
    if not MIN_EXPECTED_QUESTIONS <= count <= MAX_EXPECTED_QUESTIONS:
        logger.warning(
            "AI returned %d questions, expected %d-%d; accepting",
            count, MIN_EXPECTED_QUESTIONS, MAX_EXPECTED_QUESTIONS,
        )
    return payload
