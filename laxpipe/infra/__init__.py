"""
Network and HTML infrastructure shared by all league sources.
"""

from .http import HttpClient
from .parser import HtmlParser
from .retry import RetryPolicy
from .scraper import Scraper

__all__ = ["HttpClient", "HtmlParser", "RetryPolicy", "Scraper"]
