"""
League sources. Each sub-package exposes one SourceExtractor subclass.
"""
