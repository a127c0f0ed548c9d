"""
FILE DESCRIPTION: Orchestration of one spider session: worker threads, frontier and extractor chain.
KEY FUNCTIONS/CLASSES: Spider, CrawlerWorker, CrawlSummary, build_default_chain
"""

import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional, Set
from urllib.parse import urlsplit, urlunsplit

from linkspider.core import logger
from linkspider.events import EventPublisher, TaskCompleted
from linkspider.extraction import ExtractorChain, RobotsTxtExtractor, SitemapXmlExtractor, TextFallbackExtractor
from linkspider.fetcher import HttpFetcher
from linkspider.frontier import Frontier
from linkspider.markup import MarkupExtractor
from linkspider.canonicalizer import canonicalize
from linkspider.models import CrawlResult, FetchError, SpiderError
from linkspider.policy import CrawlPolicy


def build_default_chain(policy) -> ExtractorChain:
    """Markup first, optional robots.txt / sitemap.xml, plain-text fallback last."""
    extractors = [MarkupExtractor(policy)]
    if policy.parse_robots_txt:
        extractors.append(RobotsTxtExtractor())
    if policy.parse_sitemap_xml:
        extractors.append(SitemapXmlExtractor())
    extractors.append(TextFallbackExtractor())
    return ExtractorChain(extractors)


@dataclass
class CrawlSummary:
    admitted: Set[str]
    results: List[CrawlResult]
    stats: dict
    stopped: bool = False
    failed: List[CrawlResult] = field(default_factory=list)


# === CRAWLER WORKER ===

class CrawlerWorker(threading.Thread):
    """
    FLOW: Main worker loop -> Dequeues a task -> Fetches it -> Runs the extractor chain into a
    task-local list -> Admits every link through the frontier -> Records the result -> Releases the task.
    """

    def __init__(self, spider, name):
        super().__init__(name=name, daemon=True)
        self.spider = spider
        self.frontier = spider.frontier
        self.processed_count = 0
        self.failed_count = 0

    def log(self, level, msg):
        getattr(logger, level)(msg, extra={'context': self.name})

    def run(self):
        self.log("info", "started")
        while not self.spider.is_stopped():
            if self.spider.duration_exceeded():
                self.log("info", "max duration reached, stopping session")
                self.spider.stop()
                break

            task = self.frontier.next_task(timeout=0.2)
            if task is None:
                if self.frontier.is_exhausted():
                    break
                continue

            try:
                result = self.process(task)
            except Exception as e:
                self.log("error", f"Process error for {task.url}: {e}")
                result = CrawlResult(url=task.url, depth=task.depth, error=f"process error: {e}")
            finally:
                self.frontier.complete(task)

            self.processed_count += 1
            if not result.ok:
                self.failed_count += 1
            self.spider.record(result)

        self.log("info", f"finished (processed={self.processed_count}, failed={self.failed_count})")

    def process(self, task) -> CrawlResult:
        try:
            resource = self.spider.fetcher.fetch(task.url, referer=task.source_url)
        except FetchError as e:
            self.log("warning", f"Fetch failed for {task.url}: {e.reason}")
            return CrawlResult(url=task.url, depth=task.depth, status_code=e.status_code or 0, error=e.reason)

        links = []
        self.spider.chain.parse(resource, task.depth, links.append)

        for link in links:
            self.frontier.on_discovered(link.url, link.depth, task.url)

        self.log("info", f"parsed {task.url} (depth={task.depth}, links={len(links)})")
        return CrawlResult(
            url=task.url,
            depth=task.depth,
            status_code=resource.status_code,
            links_found=len(links),
        )


# === SPIDER SESSION ===

class Spider:
    """
    One crawl session.

    A fresh frontier (and therefore a fresh visited set) and a fresh scope
    (policy.for_session(), seeded with this session's hosts) are built on every
    start(); the configured policy is left untouched. Collaborators are
    injected; defaults are the requests fetcher and the default extractor chain.
    """

    def __init__(self, policy: Optional[CrawlPolicy] = None, fetcher=None, chain: Optional[ExtractorChain] = None,
                 publisher: Optional[EventPublisher] = None):
        self.policy = policy or CrawlPolicy()
        self.fetcher = fetcher or HttpFetcher()
        self.chain = chain or build_default_chain(self.policy)
        self.publisher = publisher or EventPublisher()
        self.frontier = None
        self.scope = None
        self.workers: List[CrawlerWorker] = []
        self.results: List[CrawlResult] = []
        self._results_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._started_at = None

    def add_listener(self, event_type, handler) -> None:
        self.publisher.subscribe(event_type, handler)

    # -------------------------------
    # LIFECYCLE
    # -------------------------------
    def start(self, seeds) -> None:
        """Seed a new session and start the worker pool. Raises InvalidURL for a malformed seed."""
        if isinstance(seeds, str):
            seeds = [seeds]
        if self.is_running():
            raise SpiderError("spider session already running")

        seed_urls = [canonicalize(raw) for raw in seeds]

        self._stop_event.clear()
        self.results = []
        self.workers = []
        self.scope = self.policy.for_session()
        self.frontier = Frontier(self.scope, self.publisher)
        self.publisher.start()

        for url in seed_urls:
            self.scope.register_seed(url)
        for url in seed_urls:
            self.frontier.on_discovered(url, 0, None)
            for extra in self._discovery_files(url):
                self.frontier.on_discovered(extra, 0, None)

        self._started_at = time.monotonic()
        logger.info(f"spider started: seeds={len(seed_urls)} threads={self.policy.thread_count} "
                    f"max_depth={self.policy.max_depth}")

        for i in range(self.policy.thread_count):
            worker = CrawlerWorker(self, name=f"Worker-{i + 1}")
            try:
                worker.start()
            except RuntimeError as e:
                logger.error(f"unable to start {worker.name}: {e}")
                self.stop()
                self.wait()
                raise SpiderError(f"unable to start worker threads: {e}") from e
            self.workers.append(worker)

    def _discovery_files(self, seed_url):
        parts = urlsplit(seed_url)
        if self.policy.parse_robots_txt:
            yield urlunsplit((parts.scheme, parts.netloc, "/robots.txt", "", ""))
        if self.policy.parse_sitemap_xml:
            yield urlunsplit((parts.scheme, parts.netloc, "/sitemap.xml", "", ""))

    def stop(self) -> None:
        """Cooperative stop: workers finish their current task and exit."""
        if not self._stop_event.is_set():
            logger.info("spider stop requested")
        self._stop_event.set()

    def is_stopped(self) -> bool:
        return self._stop_event.is_set()

    def is_running(self) -> bool:
        return any(w.is_alive() for w in self.workers)

    def duration_exceeded(self) -> bool:
        if not self.policy.max_duration or self._started_at is None:
            return False
        return time.monotonic() - self._started_at > self.policy.max_duration

    def wait(self, timeout=None) -> bool:
        """
        Join the workers, then flush pending events.
        Returns False if the workers were still running when the timeout expired.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for worker in self.workers:
            remaining = None if deadline is None else max(0, deadline - time.monotonic())
            worker.join(remaining)
        if self.is_running():
            return False
        self.publisher.close()
        if self.frontier is not None:
            memory = self.frontier.get_memory_stats()
            logger.info(f"spider finished: {self.frontier.get_stats()} "
                        f"process_memory={memory['total_process_memory_mb']:.1f}MB")
        return True

    def run(self, seeds, timeout=None) -> CrawlSummary:
        self.start(seeds)
        self.wait(timeout)
        return self.summary()

    # -------------------------------
    # RESULTS
    # -------------------------------
    def record(self, result: CrawlResult) -> None:
        with self._results_lock:
            self.results.append(result)
        self.publisher.publish(TaskCompleted(result=result))

    @property
    def admitted(self) -> Set[str]:
        if self.frontier is None:
            return set()
        with self.frontier.lock:
            return set(self.frontier.visited)

    def summary(self) -> CrawlSummary:
        with self._results_lock:
            results = list(self.results)
        stats = self.frontier.get_stats() if self.frontier is not None else {}
        stats["scope"] = self.scope.get_stats() if self.scope is not None else {}
        return CrawlSummary(
            admitted=self.admitted,
            results=results,
            stats=stats,
            stopped=self.is_stopped(),
            failed=[r for r in results if not r.ok],
        )
