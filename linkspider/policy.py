"""
Crawl policy: scope rules, depth limit and parser switches for one spider session.

The configured policy is never mutated by a crawl. Every session works on its
own copy from for_session(), which holds that session's seed hosts and scope
counters; seeds are registered on it before any worker runs.
"""

from dataclasses import dataclass, field, replace
from urllib.parse import urlparse
import re
from typing import List, Optional, Tuple
from threading import Lock

import tldextract

from linkspider.core import (
    MAX_DEPTH,
    THREAD_COUNT,
    MAX_DURATION,
    PARSE_COMMENTS,
    PARSE_ROBOTS_TXT,
    PARSE_SITEMAP_XML,
)

# Bundled public suffix snapshot only, no network lookups
_DOMAIN_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def registrable_domain(host: str) -> str:
    extracted = _DOMAIN_EXTRACT(host)
    if not extracted.suffix:
        return extracted.domain.lower() or host.lower()
    return f"{extracted.domain}.{extracted.suffix}".lower()


@dataclass
class CrawlPolicy:
    """
    Central policy for one crawl session.

    Methods:
    - for_session(): fresh copy with only the configured scope and zeroed counters
    - register_seed(url): adds the seed host to the scope
    - is_in_scope(url): single gate used by the frontier
    - eval(url): (allowed, reason) with the reason counted in get_stats()
    - allows_depth(depth): depth limit check (max_depth=None is unlimited)
    """
    max_depth: Optional[int] = MAX_DEPTH
    thread_count: int = THREAD_COUNT
    max_duration: float = MAX_DURATION
    parse_comments: bool = PARSE_COMMENTS
    parse_robots_txt: bool = PARSE_ROBOTS_TXT
    parse_sitemap_xml: bool = PARSE_SITEMAP_XML
    allowed_domains: List[str] = field(default_factory=list)
    include_subdomains: bool = False
    excluded_patterns: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.thread_count < 1:
            raise ValueError(f"thread_count must be at least 1, got {self.thread_count}")
        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError(f"max_depth must not be negative, got {self.max_depth}")
        if self.max_duration < 0:
            raise ValueError(f"max_duration must not be negative, got {self.max_duration}")

        try:
            self._excluded = [re.compile(p, re.IGNORECASE) for p in self.excluded_patterns]
        except re.error as e:
            raise ValueError(f"invalid exclusion pattern: {e}") from e
        self._hosts = {_strip_www(d.lower()) for d in self.allowed_domains}
        self._domains = {registrable_domain(h) for h in self._hosts}
        self._lock = Lock()
        self._stats = {
            "evaluations": 0,
            "allowed": 0,
            "blocked_non_http": 0,
            "blocked_excluded": 0,
            "blocked_domain": 0,
        }

    def for_session(self) -> "CrawlPolicy":
        return replace(self, allowed_domains=list(self.allowed_domains),
                       excluded_patterns=list(self.excluded_patterns))

    def register_seed(self, url: str) -> None:
        host = (urlparse(url).hostname or "").lower()
        if not host:
            return
        with self._lock:
            self._hosts.add(_strip_www(host))
            self._domains.add(registrable_domain(host))

    def allows_depth(self, depth: int) -> bool:
        return self.max_depth is None or depth <= self.max_depth

    def is_in_scope(self, url: str) -> bool:
        allowed, _ = self.eval(url)
        return allowed

    def eval(self, url: str) -> Tuple[bool, str]:
        """
        Evaluate a URL and return (allowed: bool, reason: str).
        Always updates counters exactly once per call.
        """
        reason = self._classify(url)
        with self._lock:
            self._stats["evaluations"] += 1
            self._stats[reason] += 1
        return reason == "allowed", reason

    def _classify(self, url: str) -> str:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            return "blocked_non_http"
        if any(pattern.search(url) for pattern in self._excluded):
            return "blocked_excluded"

        with self._lock:
            hosts = set(self._hosts)
            domains = set(self._domains)
        if not hosts:
            # Nothing registered yet, scope is open
            return "allowed"

        host = _strip_www((parsed.hostname or "").lower())
        if host in hosts:
            return "allowed"
        if self.include_subdomains and registrable_domain(host) in domains:
            return "allowed"
        return "blocked_domain"

    def get_stats(self):
        with self._lock:
            return dict(self._stats)
