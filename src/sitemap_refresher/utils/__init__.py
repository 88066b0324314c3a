"""Utilities for shared application concerns."""

from sitemap_refresher.utils.logging import setup_logging

__all__ = ["setup_logging"]
