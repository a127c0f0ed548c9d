import unittest

from linkspider.models import CrawlResult, FetchedResource, is_textual_type


class TestFetchedResource(unittest.TestCase):
    def test_hashable_despite_headers(self):
        resource = FetchedResource(request_url="http://a/", content="", headers={"Server": "x"})
        self.assertEqual({resource: 1}[resource], 1)

    def test_identity_equality(self):
        one = FetchedResource(request_url="http://a/", content="")
        two = FetchedResource(request_url="http://a/", content="")
        self.assertEqual(one, one)
        self.assertNotEqual(one, two)

    def test_base_url_prefers_final_url(self):
        resource = FetchedResource(request_url="http://a/old", content="", final_url="http://a/new/page")
        self.assertEqual(resource.base_url, "http://a/new/page")
        self.assertEqual(resource.path, "/new/page")


class TestContentTypes(unittest.TestCase):
    def test_textual_types(self):
        for content_type in ("", "text/plain", "application/json", "application/xml", "application/javascript"):
            with self.subTest(content_type=content_type):
                self.assertTrue(is_textual_type(content_type))
        for content_type in ("image/png", "application/octet-stream"):
            with self.subTest(content_type=content_type):
                self.assertFalse(is_textual_type(content_type))


class TestCrawlResult(unittest.TestCase):
    def test_ok(self):
        self.assertTrue(CrawlResult(url="http://a/", depth=0).ok)
        self.assertFalse(CrawlResult(url="http://a/", depth=0, error="boom").ok)


if __name__ == "__main__":
    unittest.main()
