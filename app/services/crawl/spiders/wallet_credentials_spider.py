from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..base import CredentialRecord, ExtractionRule, Spider, host_of
from ..navigator import NETWORK_IDLE
from app.services.errors import NavigationError, SessionError

logger = logging.getLogger(__name__)


class WalletCredentialsSpider(Spider):
    """Stage 2: list every credential link on a single wallet page.

    Selection is driven by an ExtractionRule (domain allowlist + identifier
    pattern), applied by parse_anchors() so it can run on any anchor list.

    Note: wallets are read as one static page. Pagination, infinite scroll and
    "load more" buttons are not followed.
    """

    name = "wallet_credentials"

    def __init__(
        self,
        navigator,
        *,
        rule: Optional[ExtractionRule] = None,
        settle_ms: int = 3000,
    ) -> None:
        self.navigator = navigator
        self.rule = rule or ExtractionRule()
        self.settle_ms = int(settle_ms)

    def fetch(self, wallet_url: str) -> List[CredentialRecord]:
        logger.info("Scraping wallet: %s", wallet_url)
        try:
            with self.navigator.session() as page:
                page.load(wallet_url, wait_until=NETWORK_IDLE)
                # Credential cards can render after network-idle fires.
                page.settle(self.settle_ms)
                hrefs = page.all_anchors()
        except (NavigationError, SessionError) as exc:
            logger.error("Wallet scrape error for %s: %s", wallet_url, exc)
            raise

        records = self.parse_anchors(hrefs)
        logger.info("Found %d credential links on %s", len(records), wallet_url)
        return records

    def parse_anchors(self, hrefs: Iterable[str]) -> List[CredentialRecord]:
        unique: Dict[str, str] = {}
        for href in hrefs:
            href = (href or "").strip()
            if not href or href in unique:
                continue
            if not self.rule.host_allowed(href):
                continue
            uuid = self.rule.match_identifier(href)
            if uuid:
                unique[href] = uuid

        return [
            CredentialRecord(credential_uuid=uuid, credential_url=url, issuer_domain=host_of(url))
            for url, uuid in unique.items()
        ]
