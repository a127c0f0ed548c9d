"""
FILE DESCRIPTION: URL canonicalization used as the single identity for deduplication.
KEY FUNCTIONS/CLASSES: URLCanonicalizer, canonicalize
"""

import re
from urllib.parse import urljoin, urlsplit, urlunsplit, quote

from linkspider.models import InvalidURL

CRAWLABLE_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

# RFC 3986 unreserved + sub-delims + ':' '@' (and '%' so existing escapes survive)
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = _PATH_SAFE + "?"

_SLASH_RUN = re.compile(r"/{2,}")


class URLCanonicalizer:
    """
    FLOW: Strips the raw value -> Rejects non-crawlable schemes -> Resolves it against the base ->
    Lower-cases scheme and host, drops the default port -> Normalizes the path -> Drops the fragment.
    """

    @staticmethod
    def canonicalize(raw: str, base: str | None = None) -> str:
        if raw is None:
            raise InvalidURL(raw, "missing")
        raw = raw.strip()
        if not raw:
            raise InvalidURL(raw, "empty")

        try:
            scheme = urlsplit(raw).scheme.lower()
        except ValueError as e:
            raise InvalidURL(raw, str(e)) from e
        if scheme and scheme not in CRAWLABLE_SCHEMES:
            raise InvalidURL(raw, f"unsupported scheme {scheme}")

        try:
            absolute = urljoin(base, raw) if base else raw
            parts = urlsplit(absolute)
            port = parts.port
        except ValueError as e:
            raise InvalidURL(raw, str(e)) from e

        scheme = parts.scheme.lower()
        if scheme not in CRAWLABLE_SCHEMES:
            raise InvalidURL(raw, "not an absolute http(s) url")
        host = parts.hostname
        if not host:
            raise InvalidURL(raw, "missing host")

        netloc = f"[{host}]" if ":" in host else host
        if port is not None and port != DEFAULT_PORTS[scheme]:
            netloc = f"{netloc}:{port}"
        if "@" in parts.netloc:
            netloc = f"{parts.netloc.rpartition('@')[0]}@{netloc}"

        path = URLCanonicalizer.normalize_path(parts.path)
        query = quote(parts.query, safe=_QUERY_SAFE)

        return urlunsplit((scheme, netloc, path, query, ""))

    @staticmethod
    def normalize_path(path: str) -> str:
        """Collapse '//' runs, remove '.' / '..' segments and percent-encode unsafe characters."""
        path = _SLASH_RUN.sub("/", path or "")
        if not path.startswith("/"):
            path = "/" + path

        segments = path.split("/")
        output = []
        for segment in segments:
            if segment == ".":
                continue
            if segment == "..":
                # output[0] is the empty root segment and is never popped
                if len(output) > 1:
                    output.pop()
                continue
            output.append(segment)
        if segments[-1] in (".", ".."):
            output.append("")

        path = "/".join(output) or "/"
        return quote(path, safe=_PATH_SAFE)


def canonicalize(raw: str, base: str | None = None) -> str:
    return URLCanonicalizer.canonicalize(raw, base)
