"""
Operational tooling for the memory store.

Provides the memory-admin command line interface.
"""

from .admin import build_parser, main

__all__ = ["build_parser", "main"]
