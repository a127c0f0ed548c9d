"""
Command-line entry point: crawl from one or more seeds and print the admitted URLs.
"""

import argparse
import logging
import sys

from linkspider.core import add_log_file, logger, MAX_DEPTH, THREAD_COUNT, MAX_DURATION, PARSE_COMMENTS
from linkspider.engine import Spider
from linkspider.models import SpiderError
from linkspider.policy import CrawlPolicy


def _depth(value):
    if value.lower() in ("none", "unlimited"):
        return None
    depth = int(value)
    if depth < 0:
        raise argparse.ArgumentTypeError("depth must not be negative")
    return depth


def build_parser():
    parser = argparse.ArgumentParser(prog="linkspider", description="Crawl a site and list every discovered URL.")
    parser.add_argument("seeds", nargs="+", help="Seed URL(s) to start from")
    parser.add_argument("--max-depth", type=_depth, default=MAX_DEPTH, help="Maximum crawl depth ('none' for unlimited)")
    parser.add_argument("--threads", type=int, default=THREAD_COUNT, help="Number of worker threads")
    parser.add_argument("--max-duration", type=float, default=MAX_DURATION, help="Stop after N seconds (0 = no limit)")
    parser.add_argument("--no-comments", dest="parse_comments", action="store_false", default=PARSE_COMMENTS,
                        help="Do not look for links inside HTML comments")
    parser.add_argument("--robots", action="store_true", help="Fetch and parse robots.txt of every seed host")
    parser.add_argument("--sitemap", action="store_true", help="Fetch and parse sitemap.xml of every seed host")
    parser.add_argument("--allow-domain", action="append", default=[], help="Extra in-scope domain (repeatable)")
    parser.add_argument("--include-subdomains", action="store_true", help="Treat subdomains of in-scope domains as in scope")
    parser.add_argument("--exclude", action="append", default=[], help="Regex of URLs to skip (repeatable)")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def policy_from_args(args) -> CrawlPolicy:
    return CrawlPolicy(
        max_depth=args.max_depth,
        thread_count=args.threads,
        max_duration=args.max_duration,
        parse_comments=args.parse_comments,
        parse_robots_txt=args.robots,
        parse_sitemap_xml=args.sitemap,
        allowed_domains=args.allow_domain,
        include_subdomains=args.include_subdomains,
        excluded_patterns=args.exclude,
    )


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.verbose:
        logger.setLevel(logging.DEBUG)
    if args.log_file:
        add_log_file(args.log_file)

    try:
        spider = Spider(policy_from_args(args))
    except ValueError as e:
        logger.error(f"invalid options: {e}")
        return 2

    try:
        summary = spider.run(args.seeds)
    except (SpiderError, ValueError) as e:
        logger.error(f"crawl aborted: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("interrupted, waiting for in-flight tasks")
        spider.stop()
        spider.wait()
        summary = spider.summary()

    for url in sorted(summary.admitted):
        print(url)
    logger.info(f"admitted={len(summary.admitted)} fetched={len(summary.results)} failed={len(summary.failed)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
