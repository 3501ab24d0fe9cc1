"""Sublingual - batch movie subtitle downloader with NFO caching and survey mode"""

__version__ = "1.0.0"
