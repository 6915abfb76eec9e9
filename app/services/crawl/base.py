from __future__ import annotations

import os
import re
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple
from urllib.parse import urlparse


UUID_PATTERN = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)

DEFAULT_CREDENTIAL_DOMAINS: Tuple[str, ...] = ("credential.net", "accredible.com")

WALLET_LINK_SELECTOR = 'a[data-cy="view-all-credentials-link"]'


def parse_domains(value: Optional[str]) -> Tuple[str, ...]:
    items = [d.strip().lower() for d in (value or "").split(",")]
    return tuple(d for d in items if d) or DEFAULT_CREDENTIAL_DOMAINS


def host_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def host_in_domains(host: str, domains: Iterable[str]) -> bool:
    """True when host is one of domains or a subdomain of one."""
    host = (host or "").lower().rstrip(".")
    if not host:
        return False
    for d in domains:
        if host == d or host.endswith("." + d):
            return True
    return False


@dataclass
class CredentialRecord:
    credential_uuid: str
    credential_url: str
    issuer_domain: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ExtractionRule:
    """Which anchors count as credential references.

    An anchor qualifies when its host is in ``domains`` (or a subdomain) and its
    URL contains ``pattern``. The rule is plain data so it can be swapped in tests.
    Rules used for syncing must match canonical UUIDs: the store rejects any
    other identifier.
    """

    domains: Tuple[str, ...] = DEFAULT_CREDENTIAL_DOMAINS
    pattern: Pattern[str] = UUID_PATTERN

    def host_allowed(self, url: str) -> bool:
        return host_in_domains(host_of(url), self.domains)

    def match_identifier(self, url: str) -> Optional[str]:
        m = self.pattern.search(url or "")
        return m.group(0).lower() if m else None


@dataclass
class CrawlSettings:
    """Browser and wait bounds shared by both crawl stages."""

    headless: bool = True
    navigation_timeout_ms: int = 30000
    link_wait_ms: int = 5000
    settle_ms: int = 3000
    credential_domains: Tuple[str, ...] = field(default=DEFAULT_CREDENTIAL_DOMAINS)

    @classmethod
    def from_env(cls) -> "CrawlSettings":
        return cls(
            headless=os.getenv("BROWSER_HEADLESS", "1").strip().lower() not in ("0", "false", "no"),
            navigation_timeout_ms=int(os.getenv("NAVIGATION_TIMEOUT_MS") or 30000),
            link_wait_ms=int(os.getenv("WALLET_LINK_WAIT_MS") or 5000),
            settle_ms=int(os.getenv("WALLET_SETTLE_MS") or 3000),
            credential_domains=parse_domains(os.getenv("CREDENTIAL_DOMAINS")),
        )

    def extraction_rule(self) -> ExtractionRule:
        return ExtractionRule(domains=self.credential_domains)


class Spider:
    """Minimal spider contract.

    Subclasses implement fetch() against a navigator session and keep the
    page-independent parsing in a separate pure method for testing.
    """

    name: str = "base"

    def fetch(self, *args, **kwargs):
        raise NotImplementedError

    @staticmethod
    def normalize_records(items: Iterable[Any]) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for x in items:
            if hasattr(x, "to_dict"):
                out.append(x.to_dict())
            elif isinstance(x, dict):
                out.append(x)
            else:
                raise TypeError(f"Unsupported record type: {type(x)}")
        return out
