from __future__ import annotations

import logging
from urllib.parse import urljoin, urlparse

from ..base import WALLET_LINK_SELECTOR, Spider
from ..navigator import NETWORK_IDLE
from app.services.errors import LinkNotFound, NavigationError, SessionError

logger = logging.getLogger(__name__)


def resolve_wallet_url(cert_url: str, href: str) -> str:
    """Make href absolute against the scheme and host of cert_url.

    The certificate page's own path is ignored, so ``/profile/abc/wallet`` and
    ``profile/abc/wallet`` both land at the site root.
    """
    href = (href or "").strip()
    target = urlparse(href)
    if target.scheme and target.netloc:
        return href
    origin = urlparse(cert_url)
    return urljoin(f"{origin.scheme}://{origin.netloc}/", href)


class WalletLinkSpider(Spider):
    """Stage 1: find a credential page's "view all credentials" link.

    The page is loaded under network-idle, then the marker link gets a bounded
    extra wait for late client rendering. A missing link (or one without an
    href) is an error; no URL is ever guessed.
    """

    name = "wallet_link"

    def __init__(
        self,
        navigator,
        *,
        marker_selector: str = WALLET_LINK_SELECTOR,
        link_wait_ms: int = 5000,
    ) -> None:
        self.navigator = navigator
        self.marker_selector = marker_selector
        self.link_wait_ms = int(link_wait_ms)

    def fetch(self, cert_url: str) -> str:
        logger.info("Navigating to certificate: %s", cert_url)
        try:
            with self.navigator.session() as page:
                page.load(cert_url, wait_until=NETWORK_IDLE)
                href = page.find_attribute(self.marker_selector, "href", self.link_wait_ms)
        except (NavigationError, SessionError) as exc:
            logger.error("Discovery error for %s: %s", cert_url, exc)
            raise

        if not (href or "").strip():
            raise LinkNotFound("Public wallet link not found on this certificate page.")
        wallet_url = resolve_wallet_url(cert_url, href)
        logger.info("Discovered wallet %s from %s", wallet_url, cert_url)
        return wallet_url
