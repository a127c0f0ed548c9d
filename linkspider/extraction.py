"""
FILE DESCRIPTION: Resource extractor contract and the ordered chain that runs extractors over one fetched resource.
KEY FUNCTIONS/CLASSES: ResourceExtractor, ExtractorChain, TextFallbackExtractor, RobotsTxtExtractor,
SitemapXmlExtractor
"""

import re
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Tuple

from bs4 import BeautifulSoup

from linkspider.canonicalizer import canonicalize
from linkspider.core import logger
from linkspider.models import ExtractedLink, FetchedResource, InvalidURL

LinkSink = Callable[[ExtractedLink], None]


# === EXTRACTOR CONTRACT ===

class ResourceExtractor(ABC):
    """
    One member of the extractor chain.

    Content-specific extractors decline resources they do not understand;
    generic (fallback) extractors also decline when the resource was already
    consumed by an earlier extractor.
    """
    name = "extractor"

    @abstractmethod
    def can_handle(self, resource: FetchedResource, already_consumed: bool) -> bool:
        pass

    @abstractmethod
    def extract(self, resource: FetchedResource, depth: int, base_url: str, sink: LinkSink) -> bool:
        """Emit the links found in `resource` to `sink`. Returns True if at least one link was found."""
        pass

    def process_url(self, resource, depth, raw, base_url, sink, origin) -> bool:
        """
        Canonicalize one raw value and emit it at depth + 1.
        Invalid values are dropped; returns whether the link was emitted.
        """
        try:
            url = canonicalize(raw, base_url)
        except InvalidURL as e:
            logger.debug(f"[{self.name}] dropped link from {resource.request_url}: {e}")
            return False
        sink(ExtractedLink(
            raw_value=raw,
            attribute_origin=origin,
            depth=depth + 1,
            url=url,
            source_url=resource.request_url,
        ))
        return True


# === CHAIN ===

class ExtractorChain:
    """
    FLOW: Receives a fetched resource -> Asks every extractor, in registration order, if it can handle it ->
    Runs the ones that accept -> Marks the resource consumed once an extractor reports links.
    """

    def __init__(self, extractors: Iterable[ResourceExtractor]):
        self._extractors: Tuple[ResourceExtractor, ...] = tuple(extractors)

    @property
    def extractors(self) -> Tuple[ResourceExtractor, ...]:
        return self._extractors

    def parse(self, resource: FetchedResource, depth: int, sink: LinkSink) -> bool:
        already_consumed = False
        for extractor in self._extractors:
            if not extractor.can_handle(resource, already_consumed):
                logger.debug(f"[{extractor.name}] skipped {resource.request_url} (consumed={already_consumed})")
                continue
            found = extractor.extract(resource, depth, resource.base_url, sink)
            logger.debug(f"[{extractor.name}] parsed {resource.request_url} links_found={found}")
            already_consumed = already_consumed or found
        return already_consumed

    def __len__(self):
        return len(self._extractors)


# === FALLBACK TEXT EXTRACTOR ===

class TextFallbackExtractor(ResourceExtractor):
    """Last chain member: absolute http(s) URLs in any textual body nobody else consumed."""
    name = "text"

    URL_PATTERN = re.compile(r"(?:^|\W)(https?://[^\x00-\x1f\"'\s<>#]+)", re.IGNORECASE)

    def can_handle(self, resource, already_consumed):
        return not already_consumed and resource.is_textual

    def extract(self, resource, depth, base_url, sink):
        found = False
        for match in self.URL_PATTERN.finditer(resource.content or ""):
            found = True
            self.process_url(resource, depth, match.group(1), base_url, sink, "text")
        return found


# === ROBOTS.TXT ===

class RobotsTxtExtractor(ResourceExtractor):
    """Allow/Disallow paths of a robots.txt file."""
    name = "robots.txt"

    DIRECTIVES = ("allow:", "disallow:")

    def can_handle(self, resource, already_consumed):
        return resource.path.lower().endswith("robots.txt")

    def extract(self, resource, depth, base_url, sink):
        found = False
        for line in (resource.content or "").splitlines():
            line = line.split("#", 1)[0].strip()
            lowered = line.lower()
            directive = next((d for d in self.DIRECTIVES if lowered.startswith(d)), None)
            if directive is None:
                continue
            path = line[len(directive):].strip()
            for wildcard in ("*", "$"):
                if wildcard in path:
                    path = path[:path.index(wildcard)]
            if not path:
                continue
            found = True
            self.process_url(resource, depth, path, base_url, sink, directive[:-1])
        return found


# === SITEMAP.XML ===

class SitemapXmlExtractor(ResourceExtractor):
    """<loc> entries of a sitemap (or sitemap index) document."""
    name = "sitemap.xml"

    def can_handle(self, resource, already_consumed):
        return resource.path.lower().endswith("sitemap.xml")

    def extract(self, resource, depth, base_url, sink):
        soup = BeautifulSoup(resource.content or "", "html.parser")
        found = False
        for loc in soup.find_all("loc"):
            value = loc.get_text(strip=True)
            if not value:
                continue
            found = True
            self.process_url(resource, depth, value, base_url, sink, "loc")
        return found

