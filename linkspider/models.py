from dataclasses import dataclass, field
from typing import Dict, Optional, Any
from urllib.parse import urlsplit


# === ERRORS ===

class SpiderError(Exception):
    """Structural failure of a crawl session (surfaced to the host)."""


class InvalidURL(SpiderError, ValueError):
    """A raw link could not be turned into a crawlable canonical URL."""

    def __init__(self, raw, reason="malformed"):
        super().__init__(f"invalid url {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


class FetchError(SpiderError):
    """Fetching one task failed. Terminal for that task only."""

    def __init__(self, url, reason, status_code=None):
        super().__init__(f"fetch failed for {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


def is_textual_type(content_type: str) -> bool:
    content_type = (content_type or "").lower()
    if not content_type:
        return True
    return (
        content_type.startswith("text/")
        or any(kind in content_type for kind in ("json", "xml", "javascript", "html"))
    )


# === DATA MODEL ===

@dataclass(frozen=True)
class CrawlTask:
    """
    Unit of work owned by the Frontier.
    Created on admission, finished once its fetch + extraction pass completes.
    """
    url: str
    depth: int
    source_url: Optional[str] = None


@dataclass(frozen=True, eq=False)
class FetchedResource:
    """
    Output of the fetch collaborator. Compared and hashed by identity (it carries a headers dict).

    INVARIANT: This object is TRANSIENT.
    It is owned by the worker processing the task and discarded after extraction.
    """
    request_url: str
    content: str
    content_type: str = ""
    status_code: int = 200
    final_url: Optional[str] = None
    headers: Dict[str, Any] = field(default_factory=dict)

    @property
    def base_url(self) -> str:
        # Relative links resolve against the URL that actually served the body
        return self.final_url or self.request_url

    @property
    def path(self) -> str:
        return urlsplit(self.base_url).path

    @property
    def is_html(self) -> bool:
        return "html" in self.content_type.lower()

    @property
    def is_textual(self) -> bool:
        return is_textual_type(self.content_type)


@dataclass(frozen=True)
class ExtractedLink:
    raw_value: str
    attribute_origin: str
    depth: int
    url: str
    source_url: str


@dataclass(frozen=True)
class CrawlResult:
    """Per-task outcome, recorded for every dequeued task."""
    url: str
    depth: int
    status_code: int = 0
    links_found: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
