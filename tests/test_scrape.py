import logging

from bs4 import BeautifulSoup

from lead_enricher.errors import HttpError
from lead_enricher.scrape import (
    detect_technologies,
    extract_addresses,
    extract_careers_links,
    extract_emails,
    scrape_website,
)

HOMEPAGE = """
<html><head><title>Acme Robotics</title>
<meta name="description" content="Industrial robots for warehouses.">
<script src="/wp-content/themes/acme.js"></script></head>
<body>
<p>Call us at +1 415 867 2671 or write to Sales@Acme.com</p>
<a href="https://www.linkedin.com/company/acme">LinkedIn</a>
<a href="https://twitter.com/acme">Twitter</a>
<a href="/careers#open">Join the team</a>
<footer>Acme Robotics | 500 Market Street, San Francisco, CA 94105</footer>
</body></html>
"""


class FakeFetcher:
    def __init__(self, pages: dict[str, str]) -> None:
        self.pages = pages
        self.calls: list[str] = []

    def fetch(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.pages:
            raise HttpError(url, 404)
        return self.pages[url]


def test_extract_emails_lowercases_and_dedupes() -> None:
    text = "Write to Info@Example.com or info@example.com, not to user@localhost"
    assert extract_emails(text) == ["info@example.com"]


def test_extract_careers_links_matches_keywords_and_ats_hosts() -> None:
    soup = BeautifulSoup(
        '<a href="mailto:jobs@acme.com">Jobs</a>'
        '<a href="/about">Work with us</a>'
        '<a href="https://jobs.lever.co/acme">Open roles</a>'
        '<a href="/pricing">Pricing</a>',
        "html.parser",
    )
    assert extract_careers_links(soup, "https://acme.com") == [
        "https://acme.com/about",
        "https://jobs.lever.co/acme",
    ]


def test_extract_addresses_reads_schema_markup() -> None:
    soup = BeautifulSoup(
        '<div itemprop="address">'
        '<span itemprop="streetAddress">1 Rue de Rivoli</span>'
        '<span itemprop="addressLocality">Paris</span>'
        '<span itemprop="addressCountry">France</span>'
        "</div>",
        "html.parser",
    )
    assert extract_addresses(soup)[0] == "1 Rue de Rivoli, Paris, France"


def test_detect_technologies_from_asset_urls() -> None:
    html = (
        '<script src="https://cdn.shopify.com/s/theme.js"></script>'
        '<script src="/_next/static/app.js"></script>'
    )
    soup = BeautifulSoup(html, "html.parser")
    assert detect_technologies(soup, html) == ["Shopify", "React"]


def test_scrape_website_collects_homepage_signals() -> None:
    fetcher = FakeFetcher({"https://acme.com": HOMEPAGE})
    result = scrape_website("https://acme.com", fetcher=fetcher, logger=logging.getLogger("test"))

    assert result is not None
    assert result.title == "Acme Robotics"
    assert result.meta_description == "Industrial robots for warehouses."
    assert result.emails == ["sales@acme.com"]
    assert result.phones[0] == "+1 415 867 2671"
    assert result.social_links == [
        "https://www.linkedin.com/company/acme",
        "https://twitter.com/acme",
    ]
    assert result.careers_links == ["https://acme.com/careers"]
    assert "500 Market Street, San Francisco, CA 94105" in result.addresses
    assert "WordPress" in result.technologies
    assert fetcher.calls == ["https://acme.com"]


def test_scrape_website_visits_secondary_pages_for_missing_signals() -> None:
    fetcher = FakeFetcher(
        {
            "https://acme.com": "<html><body><p>Hello</p></body></html>",
            "https://acme.com/contact": '<a href="tel:+14158672671">Call</a>',
            "https://acme.com/careers": '<a href="https://jobs.lever.co/acme">Open roles</a>',
        }
    )
    result = scrape_website("https://acme.com", fetcher=fetcher, logger=logging.getLogger("test"))

    assert result is not None
    assert result.phones == ["+14158672671"]
    assert result.careers_links == ["https://jobs.lever.co/acme"]
    assert fetcher.calls == [
        "https://acme.com",
        "https://acme.com/contact",
        "https://acme.com/contact-us",
        "https://acme.com/about",
        "https://acme.com/careers",
    ]


def test_scrape_website_returns_none_when_homepage_fails() -> None:
    fetcher = FakeFetcher({})
    logger = logging.getLogger("test")
    assert scrape_website("https://acme.com", fetcher=fetcher, logger=logger) is None
