"""Wallet discovery, extraction and deduplicated import.

Two workflows sit on top of the crawl spiders and the wallet store:

- ``sync(user_id, wallet_url, auto_sync)``: refresh the linked profile, scrape
  the wallet, insert credentials not seen before.
- ``full_import(user_id, cert_url)``: discover the wallet from one credential
  page, then run the sync body with auto-sync off.

Both are safe to repeat. The profile upsert is idempotent and credentials are
insert-or-ignore, so re-running yields the same stored state.

Usage:
    from app.services.wallet_sync_service import get_wallet_sync_service
    service = get_wallet_sync_service()
    result = service.sync("user-1", "https://www.credential.net/profile/abc/wallet", auto_sync=True)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from app.db.sql_connector import get_engine
from app.db.wallet_store import SqlWalletStore
from app.services.crawl.base import DEFAULT_CREDENTIAL_DOMAINS, UUID_PATTERN, CrawlSettings, host_in_domains
from app.services.crawl.navigator import BrowserNavigator
from app.services.crawl.spiders.wallet_credentials_spider import WalletCredentialsSpider
from app.services.crawl.spiders.wallet_link_spider import WalletLinkSpider
from app.services.errors import ValidationError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_credential_url(url: Optional[str], *, field: str, domains: Iterable[str]) -> str:
    url = (url or "").strip()
    if not url:
        raise ValidationError(f"Missing {field}")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"{field} must be an absolute http(s) URL")
    domains = tuple(domains)
    if not host_in_domains(parsed.hostname or "", domains):
        raise ValidationError(f"Invalid domain. Must be one of: {', '.join(domains)}")
    return url


def _require_user(user_id: Optional[str]) -> str:
    user_id = (user_id or "").strip()
    if not user_id:
        raise ValidationError("Missing userId")
    return user_id


class WalletSyncService:
    def __init__(
        self,
        store,
        *,
        discoverer: WalletLinkSpider,
        extractor: WalletCredentialsSpider,
        allowed_domains: Tuple[str, ...] = DEFAULT_CREDENTIAL_DOMAINS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.discoverer = discoverer
        self.extractor = extractor
        self.allowed_domains = tuple(allowed_domains)
        self.clock = clock

    # --- Workflows ---
    def discover(self, user_id: str, cert_url: str) -> str:
        _require_user(user_id)
        cert_url = validate_credential_url(cert_url, field="certUrl", domains=self.allowed_domains)
        wallet_url = self.discoverer.fetch(cert_url)
        # The marker href may point anywhere; sync would reject an off-domain wallet later.
        return validate_credential_url(wallet_url, field="walletUrl", domains=self.allowed_domains)

    def sync(self, user_id: str, wallet_url: str, auto_sync: bool) -> Dict[str, Any]:
        """Refresh the profile, scrape the wallet and import unseen credentials.

        Returns {total_found, new_imported, records}; new_imported counts only rows
        the store actually inserted.
        """
        user_id = _require_user(user_id)
        wallet_url = validate_credential_url(wallet_url, field="walletUrl", domains=self.allowed_domains)
        return self._sync_body(user_id, wallet_url, bool(auto_sync))

    def full_import(self, user_id: str, cert_url: str) -> Dict[str, Any]:
        user_id = _require_user(user_id)
        wallet_url = self.discover(user_id, cert_url)
        result = self._sync_body(user_id, wallet_url, False)
        return {"wallet_url": wallet_url, "records": result["records"]}

    # --- Read side ---
    def list_credentials(self, user_id: str) -> List[Dict[str, Any]]:
        return self.store.list_credentials(_require_user(user_id))

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get_profile(_require_user(user_id))

    def set_auto_sync(self, user_id: str, enable: bool) -> int:
        return self.store.set_auto_sync(_require_user(user_id), bool(enable))

    # --- Internals ---
    def _sync_body(self, user_id: str, wallet_url: str, auto_sync: bool) -> Dict[str, Any]:
        self.store.upsert_profile(user_id, wallet_url, auto_sync=auto_sync, synced_at=self.clock())

        records = self.extractor.fetch(wallet_url)
        bad = [r.credential_uuid for r in records if not UUID_PATTERN.fullmatch(r.credential_uuid or "")]
        if bad:
            raise ValidationError(f"Extraction rule produced non-UUID identifiers: {bad[:3]}")
        new_imported = 0
        for rec in records:
            new_imported += self.store.insert_credential(user_id, rec, created_at=self.clock())

        logger.info(
            "Synced wallet %s for user %s: %d found, %d new", wallet_url, user_id, len(records), new_imported
        )
        return {"total_found": len(records), "new_imported": new_imported, "records": records}


def build_wallet_sync_service(
    store,
    *,
    navigator=None,
    settings: Optional[CrawlSettings] = None,
    clock: Callable[[], datetime] = _utcnow,
) -> WalletSyncService:
    """Wire spiders and store together; defaults to a headless browser navigator."""
    settings = settings or CrawlSettings.from_env()
    navigator = navigator or BrowserNavigator(
        headless=settings.headless, navigation_timeout_ms=settings.navigation_timeout_ms
    )
    return WalletSyncService(
        store,
        discoverer=WalletLinkSpider(navigator, link_wait_ms=settings.link_wait_ms),
        extractor=WalletCredentialsSpider(navigator, rule=settings.extraction_rule(), settle_ms=settings.settle_ms),
        allowed_domains=settings.credential_domains,
        clock=clock,
    )


def get_wallet_sync_service() -> WalletSyncService:
    return build_wallet_sync_service(SqlWalletStore(get_engine()))
