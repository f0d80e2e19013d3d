"""
Task modules for background processing.

This package contains all background task implementations.
"""

from . import discovery

__all__ = ["discovery"]
