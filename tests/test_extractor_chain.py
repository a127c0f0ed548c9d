import unittest
from unittest.mock import MagicMock

from linkspider.engine import build_default_chain
from linkspider.extraction import (
    ExtractorChain,
    ResourceExtractor,
    RobotsTxtExtractor,
    SitemapXmlExtractor,
    TextFallbackExtractor,
)
from linkspider.markup import MarkupExtractor
from linkspider.models import FetchedResource
from linkspider.policy import CrawlPolicy


def resource(body, url="http://example.com/", content_type="text/html"):
    return FetchedResource(request_url=url, content=body, content_type=content_type)


class RecordingExtractor(ResourceExtractor):
    """Accepts everything, records the consumed flag it was offered, emits nothing."""

    def __init__(self, name, result=False, generic=False):
        self.name = name
        self.result = result
        self.generic = generic
        self.offered = []
        self.ran = False

    def can_handle(self, resource, already_consumed):
        self.offered.append(already_consumed)
        return not (self.generic and already_consumed)

    def extract(self, resource, depth, base_url, sink):
        self.ran = True
        return self.result


class TestExtractorChain(unittest.TestCase):
    def test_runs_in_registration_order_and_threads_consumed_flag(self):
        first = RecordingExtractor("first", result=False)
        second = RecordingExtractor("second", result=True)
        third = RecordingExtractor("third", result=False)
        chain = ExtractorChain([first, second, third])

        consumed = chain.parse(resource("x"), 0, lambda link: None)

        self.assertTrue(consumed)
        self.assertEqual(first.offered, [False])
        self.assertEqual(second.offered, [False])
        self.assertEqual(third.offered, [True])
        self.assertTrue(third.ran)

    def test_generic_extractor_declines_after_consumption(self):
        specific = RecordingExtractor("specific", result=True)
        generic = RecordingExtractor("generic", generic=True)
        chain = ExtractorChain([specific, generic])

        chain.parse(resource("x"), 0, lambda link: None)

        self.assertEqual(generic.offered, [True])
        self.assertFalse(generic.ran)

    def test_declining_extractor_is_not_run(self):
        extractor = MagicMock(spec=ResourceExtractor)
        extractor.name = "mock"
        extractor.can_handle.return_value = False
        chain = ExtractorChain([extractor])

        self.assertFalse(chain.parse(resource("x"), 0, lambda link: None))
        extractor.extract.assert_not_called()

    def test_extract_receives_resource_base_url(self):
        extractor = MagicMock(spec=ResourceExtractor)
        extractor.name = "mock"
        extractor.can_handle.return_value = True
        extractor.extract.return_value = False
        redirected = FetchedResource(request_url="http://a/old", content="", content_type="text/html",
                                     final_url="http://a/new/")
        sink = MagicMock()

        ExtractorChain([extractor]).parse(redirected, 2, sink)

        extractor.extract.assert_called_once_with(redirected, 2, "http://a/new/", sink)

    def test_chain_is_fixed_after_construction(self):
        extractors = [RecordingExtractor("a")]
        chain = ExtractorChain(extractors)
        extractors.append(RecordingExtractor("b"))
        self.assertEqual(len(chain), 1)
        self.assertIsInstance(chain.extractors, tuple)


class TestFallbackSuppression(unittest.TestCase):
    def setUp(self):
        self.chain = ExtractorChain([MarkupExtractor(CrawlPolicy()), TextFallbackExtractor()])

    def parse(self, res):
        links = []
        consumed = self.chain.parse(res, 0, links.append)
        return consumed, [link.url for link in links]

    def test_text_fallback_declines_once_markup_found_links(self):
        body = '<a href="/p">see http://other.example.org/plain</a>'
        consumed, urls = self.parse(resource(body))
        self.assertTrue(consumed)
        self.assertEqual(urls, ["http://example.com/p"])

    def test_text_fallback_runs_when_markup_found_nothing(self):
        body = "<p>Visit http://other.example.org/plain today</p>"
        consumed, urls = self.parse(resource(body))
        self.assertTrue(consumed)
        self.assertEqual(urls, ["http://other.example.org/plain"])

    def test_plain_text_body_goes_to_fallback(self):
        consumed, urls = self.parse(resource("go to https://a.org/x and http://b.org/y", content_type="text/plain"))
        self.assertTrue(consumed)
        self.assertEqual(urls, ["https://a.org/x", "http://b.org/y"])

    def test_binary_body_handled_by_nobody(self):
        consumed, urls = self.parse(resource("", content_type="image/png"))
        self.assertFalse(consumed)
        self.assertEqual(urls, [])


class TestTextFallbackExtractor(unittest.TestCase):
    def test_url_must_follow_non_word_character(self):
        links = []
        res = resource("xhttp://no.example/ (http://yes.example/a#frag)", content_type="text/plain")
        TextFallbackExtractor().extract(res, 1, res.base_url, links.append)
        self.assertEqual([(link.url, link.depth) for link in links], [("http://yes.example/a", 2)])

    def test_url_at_start_of_body(self):
        links = []
        res = resource("http://first.example/", content_type="text/plain")
        self.assertTrue(TextFallbackExtractor().extract(res, 0, res.base_url, links.append))
        self.assertEqual(links[0].url, "http://first.example/")


class TestRobotsTxtExtractor(unittest.TestCase):
    BODY = (
        "User-agent: *\n"
        "Disallow: /admin/ # private\n"
        "allow: /public/page.html\n"
        "Disallow: /search*q=\n"
        "Disallow: /*.php$\n"
        "Disallow:\n"
        "Sitemap: http://example.com/sitemap.xml\n"
        "# Disallow: /commented\n"
    )

    def test_handles_robots_path_only(self):
        extractor = RobotsTxtExtractor()
        self.assertTrue(extractor.can_handle(resource("", url="http://example.com/robots.txt", content_type="text/plain"), True))
        self.assertFalse(extractor.can_handle(resource("", url="http://example.com/index.html"), False))

    def test_allow_and_disallow_paths(self):
        links = []
        res = resource(self.BODY, url="http://example.com/robots.txt", content_type="text/plain")
        found = RobotsTxtExtractor().extract(res, 0, res.base_url, links.append)
        self.assertTrue(found)
        self.assertEqual(
            [link.url for link in links],
            [
                "http://example.com/admin/",
                "http://example.com/public/page.html",
                "http://example.com/search",
                "http://example.com/",
            ],
        )
        self.assertEqual([link.attribute_origin for link in links], ["disallow", "allow", "disallow", "disallow"])

    def test_robots_consumes_before_fallback(self):
        chain = ExtractorChain([MarkupExtractor(CrawlPolicy()), RobotsTxtExtractor(), TextFallbackExtractor()])
        links = []
        res = resource(self.BODY, url="http://example.com/robots.txt", content_type="text/plain")
        chain.parse(res, 0, links.append)
        self.assertNotIn("http://example.com/sitemap.xml", [link.url for link in links])


class TestSitemapXmlExtractor(unittest.TestCase):
    BODY = """<?xml version="1.0" encoding="UTF-8"?>
    <urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
      <url><loc>http://example.com/</loc></url>
      <url><loc> http://example.com/about </loc><lastmod>2024-01-01</lastmod></url>
      <url><loc></loc></url>
    </urlset>"""

    def test_loc_entries(self):
        links = []
        res = resource(self.BODY, url="http://example.com/sitemap.xml", content_type="application/xml")
        extractor = SitemapXmlExtractor()
        self.assertTrue(extractor.can_handle(res, False))
        self.assertTrue(extractor.extract(res, 0, res.base_url, links.append))
        self.assertEqual([link.url for link in links], ["http://example.com/", "http://example.com/about"])


class TestDefaultChain(unittest.TestCase):
    def test_default_order(self):
        chain = build_default_chain(CrawlPolicy())
        self.assertEqual([type(e) for e in chain.extractors], [MarkupExtractor, TextFallbackExtractor])

    def test_optional_parsers_sit_between_markup_and_fallback(self):
        chain = build_default_chain(CrawlPolicy(parse_robots_txt=True, parse_sitemap_xml=True))
        self.assertEqual(
            [type(e) for e in chain.extractors],
            [MarkupExtractor, RobotsTxtExtractor, SitemapXmlExtractor, TextFallbackExtractor],
        )


if __name__ == "__main__":
    unittest.main()
