"""
Broken link checker for static sites. Serves a directory locally, crawls every
link reachable from its root with a pool of concurrent fetchers and reports
the links that fail.
"""
__version__ = "1.0.0"

from linkcrawler.core import check_site, crawl
from linkcrawler.frontier import Frontier
from linkcrawler.report import RunSummary

__all__ = ["check_site", "crawl", "Frontier", "RunSummary"]
