from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Optional

from app.db.sql_connector import get_engine
from app.db.wallet_store import SqlWalletStore
from app.services.errors import WalletSyncError
from app.services.wallet_sync_service import build_wallet_sync_service
from .base import CrawlSettings, Spider
from .navigator import BrowserNavigator, HtmlNavigator
from .spiders.wallet_credentials_spider import WalletCredentialsSpider
from .spiders.wallet_link_spider import WalletLinkSpider


def _navigator(settings: CrawlSettings, url: str, html_file: Optional[str]):
    """Browser by default; a saved HTML snapshot stands in for ``url`` with --file."""
    if html_file:
        with open(html_file, "r", encoding="utf-8") as f:
            return HtmlNavigator({url: f.read()})
    return BrowserNavigator(headless=settings.headless, navigation_timeout_ms=settings.navigation_timeout_ms)


def _print_json(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Run wallet crawl tasks by hand")
    sub = parser.add_subparsers(dest="cmd", required=True)

    disc = sub.add_parser("discover", help="Find the wallet URL linked from a credential page")
    disc.add_argument("cert_url", help="Public credential page URL")
    disc.add_argument("--file", help="Local HTML snapshot of the credential page")

    ext = sub.add_parser("extract", help="List credential links on a wallet page")
    ext.add_argument("wallet_url", help="Public wallet page URL")
    ext.add_argument("--file", help="Local HTML snapshot of the wallet page")

    syn = sub.add_parser("sync", help="Scrape a wallet and import it for a user")
    syn.add_argument("user_id")
    syn.add_argument("wallet_url")
    syn.add_argument("--auto-sync", action="store_true", help="Mark the profile for automatic re-sync")
    syn.add_argument("--file", help="Local HTML snapshot of the wallet page")

    imp = sub.add_parser("import", help="Discover a wallet from a credential page and import it")
    imp.add_argument("user_id")
    imp.add_argument("cert_url")

    args = parser.parse_args(argv)
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    settings = CrawlSettings.from_env()

    try:
        if args.cmd == "discover":
            spider = WalletLinkSpider(_navigator(settings, args.cert_url, args.file), link_wait_ms=settings.link_wait_ms)
            _print_json({"wallet_url": spider.fetch(args.cert_url)})
            return 0

        if args.cmd == "extract":
            spider = WalletCredentialsSpider(
                _navigator(settings, args.wallet_url, args.file),
                rule=settings.extraction_rule(),
                settle_ms=settings.settle_ms,
            )
            _print_json(Spider.normalize_records(spider.fetch(args.wallet_url)))
            return 0

        store = SqlWalletStore(get_engine())
        store.init_schema()

        if args.cmd == "sync":
            service = build_wallet_sync_service(
                store, navigator=_navigator(settings, args.wallet_url, args.file), settings=settings
            )
            result = service.sync(args.user_id, args.wallet_url, args.auto_sync)
            result["records"] = Spider.normalize_records(result["records"])
            _print_json(result)
            return 0

        if args.cmd == "import":
            service = build_wallet_sync_service(store, settings=settings)
            result = service.full_import(args.user_id, args.cert_url)
            result["records"] = Spider.normalize_records(result["records"])
            _print_json(result)
            return 0
    except WalletSyncError as exc:
        print(f"error: {exc}")
        return 1

    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
