"""
NLL Plugin - Entry point registration.
"""

from .client import NLLClient, NLLConfig
from .extractor import NLL_SEASONS, NLLExtractor

__all__ = ["NLLClient", "NLLConfig", "NLLExtractor", "NLL_SEASONS"]
