"""Streaming extractor that pairs two numeric series out of block-structured XML."""

__version__ = "0.1.0"
