"""
Thread-safe frontier for the spider.
Owns the visited set, the work queue and the count of pending (queued or in-flight) tasks.
Ensures no canonical URL is admitted twice within one session.
"""

from collections import defaultdict
from queue import Queue, Empty
from threading import Lock, Condition
import os

import psutil

from linkspider.canonicalizer import canonicalize
from linkspider.core import logger
from linkspider.events import ResourceDiscovered
from linkspider.models import CrawlTask


class Admission:
    """Outcomes of Frontier.on_discovered()."""
    ENQUEUED = "enqueued"
    DEPTH_EXCEEDED = "depth_exceeded"
    OUT_OF_SCOPE = "out_of_scope"
    DUPLICATE = "duplicate"


class Frontier:
    """
    Thread-safe frontier using a queue, a visited set and a pending counter.
    A task stays pending from admission until complete() is called for it, so the
    frontier is exhausted exactly when nothing is queued and nothing is in flight.
    """

    def __init__(self, policy, publisher=None):
        self.policy = policy
        self.publisher = publisher
        self.queue = Queue()

        # visited / pending / counters guarded by a single lock
        self.lock = Lock()
        self._idle = Condition(self.lock)
        self.visited = set()
        self._pending = 0
        self._counters = defaultdict(int)

    def seed(self, raw_url) -> str:
        """Admit a seed URL at depth 0. Raises InvalidURL for a malformed seed."""
        return self.on_discovered(canonicalize(raw_url), 0, None)

    def on_discovered(self, url, depth, discovered_from=None) -> str:
        """
        Admission control for one canonical URL.
        Depth and scope are read-only checks; the visited check, insert and
        enqueue happen atomically under the lock.
        """
        if not self.policy.allows_depth(depth):
            self._count(Admission.DEPTH_EXCEEDED)
            logger.debug(f"frontier: depth {depth} exceeds limit: {url}")
            return Admission.DEPTH_EXCEEDED

        if not self.policy.is_in_scope(url):
            self._count(Admission.OUT_OF_SCOPE)
            logger.debug(f"frontier: out of scope: {url}")
            return Admission.OUT_OF_SCOPE

        with self.lock:
            if url in self.visited:
                self._counters[Admission.DUPLICATE] += 1
                return Admission.DUPLICATE
            self.visited.add(url)
            self._pending += 1
            self._counters[Admission.ENQUEUED] += 1
            self.queue.put(CrawlTask(url=url, depth=depth, source_url=discovered_from))

        logger.info(f"frontier: queued {url} (depth={depth}, discovered_from={discovered_from})")
        if self.publisher is not None:
            self.publisher.publish(ResourceDiscovered(url=url, depth=depth, discovered_from=discovered_from))
        return Admission.ENQUEUED

    def next_task(self, timeout=0.5):
        """Block up to `timeout` seconds for the next task. Returns None when none arrived."""
        try:
            return self.queue.get(timeout=timeout)
        except Empty:
            return None

    def complete(self, task) -> None:
        """Release the pending slot of a task. This is the only release point."""
        with self.lock:
            self._pending -= 1
            if self._pending <= 0:
                self._pending = 0
                self._idle.notify_all()
        self.queue.task_done()
        logger.debug(f"frontier: completed {task.url}")

    def is_exhausted(self) -> bool:
        with self.lock:
            return self._pending == 0

    def wait_until_exhausted(self, timeout=None) -> bool:
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def _count(self, key):
        with self.lock:
            self._counters[key] += 1

    def get_stats(self):
        with self.lock:
            stats = {
                "queued": self.queue.qsize(),
                "pending": self._pending,
                "visited_count": len(self.visited),
            }
            for key in (Admission.ENQUEUED, Admission.DUPLICATE, Admission.DEPTH_EXCEEDED, Admission.OUT_OF_SCOPE):
                stats[key] = self._counters[key]
        return stats

    def get_memory_stats(self):
        """
        Return memory stats for frontier structures (rough per-entry estimates).
        """
        process = psutil.Process(os.getpid())
        total_memory = process.memory_info().rss / 1024 / 1024  # MB
        with self.lock:
            queue_memory = self.queue.qsize() * 0.1 / 1024  # ~100 bytes per task
            visited_memory = len(self.visited) * 0.05 / 1024  # ~50 bytes per URL string
        return {
            'total_process_memory_mb': total_memory,
            'frontier_memory_mb': queue_memory + visited_memory,
            'queue_memory_mb': queue_memory,
            'visited_memory_mb': visited_memory,
        }
