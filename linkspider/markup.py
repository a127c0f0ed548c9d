"""
FILE DESCRIPTION: Link extraction from HTML-like resources.
Covers link-bearing element attributes, META refresh/location directives, DOCTYPE external
references and (when enabled) the content of HTML comments.
KEY FUNCTIONS/CLASSES: MarkupExtractor
"""

import re

from bs4 import BeautifulSoup, Comment, Doctype

from linkspider.canonicalizer import canonicalize
from linkspider.core import logger
from linkspider.extraction import ResourceExtractor
from linkspider.models import InvalidURL

# Element -> link-bearing attributes
ELEMENT_ATTRIBUTES = (
    ("a", ("href", "ping")),
    ("applet", ("archive", "codebase", "src")),
    ("area", ("href", "ping")),
    ("audio", ("src",)),
    ("embed", ("src",)),
    ("frame", ("src",)),
    ("iframe", ("src",)),
    ("input", ("src",)),
    ("isindex", ("action",)),
    ("link", ("href",)),
    ("object", ("data", "codebase")),
    ("script", ("src",)),
    ("img", ("src", "longdesc", "lowsrc", "dynsrc")),
    ("html", ("manifest",)),
    ("body", ("background",)),
)

# Attributes holding a whitespace separated list of URLs
MULTI_URL_ATTRIBUTES = {"ping"}

META_REDIRECTS = ("refresh", "location")

# e.g. http-equiv="refresh" content="0;URL=http://foo.bar/..."
META_URL_PATTERN = re.compile(r"url\s*=\s*[\"']?([^;'\"]+)", re.IGNORECASE)

# Absolute or scheme-relative URLs written as plain text inside comments
PLAIN_COMMENT_URL_PATTERN = re.compile(r"(?:https?:)?//[^\s\"'<>#()\[\]{}\x00-\x1f]+", re.IGNORECASE)


class MarkupExtractor(ResourceExtractor):
    """
    FLOW: Parses the body with BeautifulSoup -> Resolves the effective base (BASE element) ->
    Scans element attributes and META directives -> Scans comments (policy switch) -> Scans DOCTYPEs ->
    Canonicalizes every raw value against the effective base and emits it.
    """
    name = "html"

    def __init__(self, policy, parser="html.parser"):
        self.policy = policy
        self._parser = parser

    def can_handle(self, resource, already_consumed):
        # Fallback member: only when no more specific extractor consumed the resource
        return not already_consumed and resource.is_html

    def extract(self, resource, depth, base_url, sink):
        soup = self._soup(resource.content)
        base_url = self.resolve_base(soup, base_url)

        found = self._parse_source(resource, soup, depth, base_url, sink)

        if self.policy.parse_comments:
            for comment in [node for node in soup.descendants if isinstance(node, Comment)]:
                found |= self._parse_comment(resource, str(comment), depth, base_url, sink)

        for doctype in [node for node in soup.descendants if isinstance(node, Doctype)]:
            for token in str(doctype).split():
                if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
                    found = True
                    self.process_url(resource, depth, token[1:-1], base_url, sink, "doctype")

        return found

    def resolve_base(self, soup, base_url):
        base = soup.find("base")
        if base is None:
            return base_url
        href = (base.get("href") or "").strip()
        if not href:
            return base_url
        try:
            resolved = canonicalize(href, base_url)
        except InvalidURL as e:
            logger.debug(f"[{self.name}] ignoring BASE element: {e}")
            return base_url
        logger.debug(f"[{self.name}] BASE element changes base url to {resolved}")
        return resolved

    def _soup(self, markup):
        # All attribute values as plain strings, never split into lists
        return BeautifulSoup(markup or "", self._parser, multi_valued_attributes=None)

    def _parse_source(self, resource, soup, depth, base_url, sink) -> bool:
        found = False
        for element_name, attributes in ELEMENT_ATTRIBUTES:
            for element in soup.find_all(element_name):
                for attribute in attributes:
                    found |= self._process_attribute(resource, element, attribute, depth, base_url, sink)

        for meta in soup.find_all("meta"):
            equiv = meta.get("http-equiv")
            content = meta.get("content")
            if equiv is None or content is None:
                continue
            if equiv.strip().lower() not in META_REDIRECTS:
                continue
            match = META_URL_PATTERN.search(content)
            if match:
                found = True
                self.process_url(resource, depth, match.group(1), base_url, sink, f"meta[{equiv.lower()}]")
        return found

    def _process_attribute(self, resource, element, attribute, depth, base_url, sink) -> bool:
        value = element.get(attribute)
        if value is None or not value.strip():
            return False
        origin = f"{element.name}[{attribute}]"
        if attribute not in MULTI_URL_ATTRIBUTES:
            self.process_url(resource, depth, value, base_url, sink, origin)
            return True
        for token in value.split():
            self.process_url(resource, depth, token, base_url, sink, origin)
        return True

    def _parse_comment(self, resource, text, depth, base_url, sink) -> bool:
        if self._parse_source(resource, self._soup(text), depth, base_url, sink):
            return True
        found = False
        for match in PLAIN_COMMENT_URL_PATTERN.finditer(text):
            found = True
            self.process_url(resource, depth, match.group(), base_url, sink, "comment")
        return found
