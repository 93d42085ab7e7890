"""
laxpipe – season/entity extraction pipeline for lacrosse league data.
"""

__version__ = "0.1.0"
