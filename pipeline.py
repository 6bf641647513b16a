"""
Article-to-quiz pipeline.

validate -> fetch -> extract -> prompt -> complete -> parse -> attach url.
Each stage finishes before the next starts. The first failing stage ends the
run; nothing partial is returned.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

import requests

from errors import QuizPipelineError
from llm_quiz_generator import CompletionClient, build_messages, parse_quiz_response
from models import QuizPayload
from scraper import extract_article, fetch_html, validate_wikipedia_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuizGenerated:
    payload: QuizPayload
    status_code: int = 200


@dataclass(frozen=True)
class QuizFailed:
    kind: str
    status_code: int
    message: str


PipelineResult = Union[QuizGenerated, QuizFailed]


class QuizPipeline:
    def __init__(
        self,
        client: CompletionClient,
        session: Optional[requests.Session] = None,
        fetch_timeout: float = 20,
    ):
        self.client = client
        self.session = session
        self.fetch_timeout = fetch_timeout

    def run(self, url: Optional[str]) -> PipelineResult:
        try:
            payload = self._generate(url)
        except QuizPipelineError as e:
            logger.error("Quiz generation failed [%s/%d]: %s", e.kind, e.status_code, e.message)
            return QuizFailed(kind=e.kind, status_code=e.status_code, message=e.message)
        return QuizGenerated(payload=payload)

    def _generate(self, url: Optional[str]) -> QuizPayload:
        url = validate_wikipedia_url(url)

        logger.info("Fetching Wikipedia article: %s", url)
        html = fetch_html(url, session=self.session, timeout=self.fetch_timeout)

        article = extract_article(html)
        logger.info("Article extracted, title=%r length=%d", article.title, len(article.body))

        messages = build_messages(article)
        logger.info("Calling completion service (%s)", self.client.model)
        text = self.client.complete(messages)

        payload = parse_quiz_response(text, fallback_title=article.title)
        payload.wikipedia_url = url
        logger.info("Quiz generated successfully with %d questions", len(payload.quiz))
        return payload
