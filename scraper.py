import logging
from typing import Iterable, Optional

import requests
from bs4 import BeautifulSoup
from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from errors import ExtractionError, FetchError, InputValidationError
from models import ArticleText

logger = logging.getLogger(__name__)

DESKTOP_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

ALLOWED_HOST_SUFFIX = ".wikipedia.org"
MIN_PARAGRAPH_CHARS = 50
MAX_ARTICLE_CHARS = 15000
MIN_ARTICLE_CHARS = 500


def validate_wikipedia_url(url: Optional[str]) -> str:
    """
    Anti-SSRF gate: only http(s) URLs on a *.wikipedia.org host get through.

    Returns the URL stripped of surrounding whitespace.
    """
    if not isinstance(url, str) or not url.strip():
        raise InputValidationError("Wikipedia URL is required")
    url = url.strip()
    # requests resolves the host with urllib3, so the gate must read it the same way.
    try:
        parsed = parse_url(url)
    except LocationParseError:
        raise InputValidationError("Invalid URL format") from None
    scheme = (parsed.scheme or "").lower()
    host = (parsed.host or "").lower()
    if not scheme or not host:
        raise InputValidationError("Invalid URL format")

    # A backslash ends the host for urllib3 but not for browsers; userinfo hides the real host.
    if (
        scheme not in ("http", "https")
        or "\\" in url
        or parsed.auth
        or not host.endswith(ALLOWED_HOST_SUFFIX)
    ):
        raise InputValidationError("Invalid Wikipedia URL. Must be from *.wikipedia.org")
    return url


def fetch_html(url: str, session: Optional[requests.Session] = None, timeout: float = 20) -> str:
    """Single GET, no retries. Any transport error or non-2xx status becomes FetchError."""
    http = session or requests
    try:
        resp = http.get(url, headers=DESKTOP_HEADERS, timeout=timeout, allow_redirects=True)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Wikipedia fetch failed for %s: %s", url, e)
        raise FetchError() from e
    return resp.text


def build_body(paragraphs: Iterable[str]) -> str:
    """Drop short fragments (captions, navbox text, stubs), join with blank lines, cap the length."""
    kept = [t.strip() for t in paragraphs if len(t.strip()) > MIN_PARAGRAPH_CHARS]
    return "\n\n".join(kept)[:MAX_ARTICLE_CHARS]


def extract_article(html: str) -> ArticleText:
    soup = BeautifulSoup(html, "html.parser")

    title_el = soup.select_one("#firstHeading")
    title = title_el.get_text(strip=True) if title_el else ""
    title = title or "Unknown Article"

    content_div = soup.select_one("#mw-content-text .mw-parser-output")
    if content_div is None:
        raise ExtractionError("Could not find article content")

    # Citation markers and [edit] links
    for tag in content_div.select("sup.reference, span.mw-editsection"):
        tag.decompose()

    body = build_body(p.get_text() for p in content_div.find_all("p"))
    if len(body) < MIN_ARTICLE_CHARS:
        raise ExtractionError("Article content is too short to generate a meaningful quiz")

    return ArticleText(title=title, body=body)
