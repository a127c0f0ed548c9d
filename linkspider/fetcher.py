"""
FILE DESCRIPTION: Default fetch collaborator for the spider, built on requests.
KEY FUNCTIONS/CLASSES: HttpFetcher
"""

import time

import requests
import urllib3

from linkspider.core import USER_AGENT, REQUEST_TIMEOUT, VERIFY_TLS, MAX_RETRIES, RETRY_DELAY, logger
from linkspider.models import FetchedResource, FetchError, is_textual_type

RETRYABLE_STATUS = (429, 503)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "max-age=0",
}


class HttpFetcher:
    """
    FLOW: Executes the HTTP request with browser-like headers -> Retries 429/503 and connection
    errors with exponential backoff -> Returns a FetchedResource for 2xx/3xx responses ->
    Raises FetchError for everything else.
    """

    def __init__(self, session=None, timeout=REQUEST_TIMEOUT, user_agent=USER_AGENT, verify=VERIFY_TLS,
                 max_retries=MAX_RETRIES, retry_delay=RETRY_DELAY):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.user_agent = user_agent
        self.verify = verify
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        if not verify:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def fetch(self, url, referer=None) -> FetchedResource:
        headers = dict(DEFAULT_HEADERS, **{"User-Agent": self.user_agent})
        if referer:
            headers["Referer"] = referer

        retry_delay = self.retry_delay
        for attempt in range(self.max_retries + 1):
            try:
                r = self.session.get(url, timeout=self.timeout, headers=headers,
                                     verify=self.verify, allow_redirects=True)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                if attempt < self.max_retries:
                    err_type = "Timeout" if isinstance(e, requests.exceptions.Timeout) else "Connection Error"
                    logger.warning(f"[RETRY {attempt+1}/{self.max_retries}] {err_type} for {url}: {e}. Waiting {retry_delay}s...")
                    time.sleep(retry_delay)
                    retry_delay *= 2
                    continue
                raise FetchError(url, str(e)) from e
            except requests.exceptions.RequestException as e:
                raise FetchError(url, str(e)) from e

            if r.status_code in RETRYABLE_STATUS and attempt < self.max_retries:
                logger.warning(f"[RETRY {attempt+1}/{self.max_retries}] {r.status_code} Error for {url}. Waiting {retry_delay}s...")
                time.sleep(retry_delay)
                retry_delay *= 2
                continue

            if r.status_code >= 400:
                raise FetchError(url, f"http error: {r.status_code}", status_code=r.status_code)

            content_type = r.headers.get("Content-Type", "")
            # Binary bodies are not decoded, no extractor in the chain reads them
            return FetchedResource(
                request_url=url,
                content=r.text if is_textual_type(content_type) else "",
                content_type=content_type,
                status_code=r.status_code,
                final_url=r.url or url,
                headers=dict(r.headers),
            )

        raise FetchError(url, "retries exhausted")
