"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: Interval parsing, window boundaries and timestamp normalization
    - tasks: Fire-and-forget task spawning with failure isolation
"""

from core.utils.time import parse_interval, window_open, current_utc_datetime

__all__ = ["parse_interval", "window_open", "current_utc_datetime"]
