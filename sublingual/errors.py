#!/usr/bin/env python3
"""
Exception types shared across the sublingual package
"""


class SublingualError(RuntimeError):
    """Base error type."""


class ConfigError(SublingualError):
    """Configuration problem detected at startup (fatal)."""


class CacheError(SublingualError):
    """NFO sidecar could not be read or written."""


class BudgetExhausted(SublingualError):
    """Flow-control signal: the daily OMDb budget refuses another call."""
