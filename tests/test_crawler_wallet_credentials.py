import re
from pathlib import Path

from app.services.crawl.base import ExtractionRule
from app.services.crawl.navigator import HtmlNavigator
from app.services.crawl.spiders.wallet_credentials_spider import WalletCredentialsSpider


WALLET_URL = "https://www.credential.net/profile/jordanexample123/wallet"


def read_fixture(name: str) -> str:
    p = Path(__file__).parent / "fixtures" / name
    return p.read_text(encoding="utf-8")


def test_identifier_extraction_from_single_url():
    spider = WalletCredentialsSpider(navigator=None)
    records = spider.parse_anchors(["https://credential.net/c/3fa85f64-5717-4562-b3fc-2c963f66afa6"])
    assert len(records) == 1
    assert records[0].credential_uuid == "3fa85f64-5717-4562-b3fc-2c963f66afa6"
    assert records[0].issuer_domain == "credential.net"
    assert records[0].credential_url == "https://credential.net/c/3fa85f64-5717-4562-b3fc-2c963f66afa6"


def test_duplicate_anchors_produce_one_record():
    url = "https://www.credential.net/3fa85f64-5717-4562-b3fc-2c963f66afa6"
    records = WalletCredentialsSpider(navigator=None).parse_anchors([url, url, url])
    assert [r.credential_url for r in records] == [url]


def test_filters_foreign_domains_and_non_credential_links():
    hrefs = [
        "https://www.accredible.com/about",
        "https://example.org/certs/1b7a3c9e-2d4f-4a6b-8c1d-9e0f1a2b3c4d",
        "https://notcredential.net/3fa85f64-5717-4562-b3fc-2c963f66afa6",
        "",
    ]
    assert WalletCredentialsSpider(navigator=None).parse_anchors(hrefs) == []


def test_uuid_is_lowercased():
    records = WalletCredentialsSpider(navigator=None).parse_anchors(
        ["https://credential.net/3FA85F64-5717-4562-B3FC-2C963F66AFA6"]
    )
    assert records[0].credential_uuid == "3fa85f64-5717-4562-b3fc-2c963f66afa6"


def test_custom_rule_is_applied():
    rule = ExtractionRule(domains=("example.org",), pattern=re.compile(r"cert-\d+"))
    spider = WalletCredentialsSpider(navigator=None, rule=rule)
    records = spider.parse_anchors(["https://example.org/cert-42", "https://credential.net/cert-43"])
    assert [r.credential_uuid for r in records] == ["cert-42"]


def test_fetch_wallet_page_snapshot():
    nav = HtmlNavigator({WALLET_URL: read_fixture("wallet_page_sample.html")})
    spider = WalletCredentialsSpider(nav, settle_ms=0)
    records = spider.fetch(WALLET_URL)
    by_uuid = {r.credential_uuid: r for r in records}
    assert set(by_uuid) == {
        "3fa85f64-5717-4562-b3fc-2c963f66afa6",
        "9b2e7c1a-0d4f-4e8a-a1b2-7c3d5e6f7a8b",
        "44c2d0f1-8a7b-4c3d-9e2f-1a2b3c4d5e6f",
    }
    assert by_uuid["44c2d0f1-8a7b-4c3d-9e2f-1a2b3c4d5e6f"].issuer_domain == "badges.accredible.com"
    # Unchanged page -> identical output
    assert [r.to_dict() for r in spider.fetch(WALLET_URL)] == [r.to_dict() for r in records]


def test_empty_wallet_is_success():
    nav = HtmlNavigator({WALLET_URL: "<html><body><p>No credentials yet.</p></body></html>"})
    assert WalletCredentialsSpider(nav).fetch(WALLET_URL) == []
