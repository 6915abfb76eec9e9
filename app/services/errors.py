"""Error taxonomy for wallet discovery, extraction and persistence."""

from __future__ import annotations


class WalletSyncError(Exception):
    """Base class for every failure surfaced by the wallet sync pipeline."""


class ValidationError(WalletSyncError, ValueError):
    """Missing input or a URL outside the allowed credential domains."""


class LinkNotFound(WalletSyncError):
    """The wallet marker link was absent from a credential page."""


class NavigationError(WalletSyncError):
    """A page failed to load (timeout or transport failure)."""


class SessionError(WalletSyncError):
    """The browser process could not be started or shut down."""


class PersistenceError(WalletSyncError):
    """The store failed for a reason other than an expected dedupe conflict."""
