from linkspider.canonicalizer import canonicalize
from linkspider.engine import Spider, CrawlSummary, build_default_chain
from linkspider.extraction import ExtractorChain, ResourceExtractor
from linkspider.frontier import Admission, Frontier
from linkspider.markup import MarkupExtractor
from linkspider.models import CrawlResult, CrawlTask, ExtractedLink, FetchedResource, FetchError, InvalidURL, SpiderError
from linkspider.policy import CrawlPolicy

__version__ = "0.1.0"
