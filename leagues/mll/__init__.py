"""
MLL Plugin - Entry point registration.
"""

from .client import MLLClient, MLLConfig
from .extractor import MLL_YEARS, MLLExtractor

__all__ = ["MLLClient", "MLLConfig", "MLLExtractor", "MLL_YEARS"]
