"""Wallet crawling subsystem.

Structure:
- base.py: record types, extraction rule, crawl settings
- navigator.py: scoped browser sessions (Playwright) and static HTML snapshots
- spiders/: the two page shapes (credential page -> wallet link, wallet -> credentials)
- runner.py: tiny CLI entrypoint for manual runs

Each spider borrows one navigator session per call and releases it before
returning, so concurrent callers never share a browser.
"""

__all__ = [
    "base",
    "navigator",
]
