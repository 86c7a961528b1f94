"""Company website scraping: contact signals, careers links and technologies."""

from __future__ import annotations

import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .errors import FetchError
from .models import HttpFetcher, ScrapeResult

EMAIL_REGEX = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}", re.IGNORECASE)
PHONE_REGEX = re.compile(
    r"(?:\+\d{1,3}[\s.\-]?)?(?:\(\d{2,4}\)[\s.\-]?|\d{2,4}[\s.\-]?)\d{3,4}[\s.\-]?\d{3,4}"
)
SOCIAL_HOSTS = re.compile(
    r"facebook\.com|twitter\.com|x\.com|linkedin\.com|instagram\.com|youtube\.com|tiktok\.com",
    re.IGNORECASE,
)
CAREERS_KEYWORDS = re.compile(
    r"career|jobs|join[- ]?us|work[- ]?with[- ]?us|vacanc|recruit|emplois|karriere|empleo",
    re.IGNORECASE,
)
CAREERS_PATH = re.compile(r"/(careers?|jobs?)(/|$)", re.IGNORECASE)
ATS_HOSTS = re.compile(
    r"lever\.co|greenhouse\.io|workable\.com|ashbyhq\.com|smartrecruiters\.com|"
    r"workdayjobs\.com|bamboohr\.com|teamtailor\.com|recruitee\.com|icims\.com|jobvite\.com",
    re.IGNORECASE,
)
ADDRESS_HINT = re.compile(
    r"(\d.*,)|india|united states|france|germany|\buk\b|united kingdom|canada|australia",
    re.IGNORECASE,
)
POSTAL_CODE = re.compile(r"\b\d{5}(?:-\d{4})?\b|\b\d{6}\b")
ADDRESS_CONTAINERS = (
    '[class*="address"], [id*="address"], [class*="location"], [id*="location"], '
    '[class*="contact"], [id*="contact"], footer'
)
ADDRESS_SEPARATORS = re.compile(r"\s*\|\s*|\s*·\s*|\s*•\s*|\s*;\s*|\s{2,}")
ADDRESS_PROPS = (
    "streetAddress",
    "addressLocality",
    "addressRegion",
    "postalCode",
    "addressCountry",
)
TECHNOLOGY_SIGNATURES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"wp-content|wordpress", re.IGNORECASE), "WordPress"),
    (re.compile(r"cdn\.shopify\.com|shopify", re.IGNORECASE), "Shopify"),
    (re.compile(r"wixstatic\.com|wix\.com", re.IGNORECASE), "Wix"),
    (re.compile(r"squarespace\.com", re.IGNORECASE), "Squarespace"),
    (re.compile(r"react(?:\.production|-dom|\.js)?|/_next/", re.IGNORECASE), "React"),
    (re.compile(r"\bvue(?:\.js)?\b|/_nuxt/", re.IGNORECASE), "Vue"),
    (re.compile(r"angular", re.IGNORECASE), "Angular"),
    (re.compile(r"cloudflare", re.IGNORECASE), "Cloudflare"),
    (re.compile(r"gtag\(|google-analytics|googletagmanager", re.IGNORECASE), "Google Analytics"),
]
PHONE_PAGES = ("/contact", "/contact-us", "/about")
CAREERS_PAGES = ("/careers", "/jobs", "/join-us")
TEXT_SAMPLE_CHARS = 800


def _unique(items: list[str], limit: int) -> list[str]:
    output: list[str] = []
    for item in items:
        if item and item not in output:
            output.append(item)
    return output[:limit]


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _text_sample(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    return _squash(body.get_text(" "))[:TEXT_SAMPLE_CHARS]


def extract_emails(text: str) -> list[str]:
    return _unique([match.group(0).lower() for match in EMAIL_REGEX.finditer(text or "")], 10)


def extract_phones(text: str) -> list[str]:
    return _unique([_squash(match.group(0)) for match in PHONE_REGEX.finditer(text or "")], 10)


def extract_tel_links(soup: BeautifulSoup) -> list[str]:
    phones = []
    for anchor in soup.select("a[href^='tel:']"):
        number = re.sub(r"^tel:", "", str(anchor["href"]).strip(), flags=re.IGNORECASE).strip()
        phones.append(number)
    return _unique(phones, 10)


def extract_social_links(soup: BeautifulSoup) -> list[str]:
    links = [
        str(anchor["href"]).strip()
        for anchor in soup.find_all("a", href=True)
        if SOCIAL_HOSTS.search(str(anchor["href"]))
    ]
    return _unique(links, 20)


def extract_careers_links(soup: BeautifulSoup, base_url: str) -> list[str]:
    links = []
    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if not href or href.startswith(("mailto:", "tel:", "javascript:")):
            continue
        text = anchor.get_text(" ", strip=True)
        if (
            CAREERS_KEYWORDS.search(href)
            or CAREERS_KEYWORDS.search(text)
            or ATS_HOSTS.search(href)
            or CAREERS_PATH.search(href)
        ):
            links.append(urljoin(base_url, href).split("#", maxsplit=1)[0])
    return _unique(links, 10)


def extract_addresses(soup: BeautifulSoup) -> list[str]:
    found: list[str] = []
    for root in soup.select('[itemprop="address"]'):
        parts = []
        for prop in ADDRESS_PROPS:
            node = root.select_one(f'[itemprop="{prop}"]')
            if node is not None and node.get_text(strip=True):
                parts.append(node.get_text(strip=True))
        if parts:
            found.append(", ".join(parts))
    for node in soup.find_all("address"):
        text = _squash(node.get_text(" "))
        if len(text) > 12:
            found.append(text)
    for node in soup.select(ADDRESS_CONTAINERS):
        text = _squash(node.get_text("  "))
        if len(text) < 12:
            continue
        for part in ADDRESS_SEPARATORS.split(node.get_text("  ").strip()):
            line = _squash(part)
            if len(line) < 10:
                continue
            if ADDRESS_HINT.search(line) or POSTAL_CODE.search(line):
                found.append(line)
    return _unique(found, 10)


def detect_technologies(soup: BeautifulSoup, html: str) -> list[str]:
    sources = [str(tag["src"]) for tag in soup.find_all("script", src=True)]
    sources += [str(tag["href"]) for tag in soup.find_all("link", href=True)]
    haystack = "\n".join(sources + [html])
    return [name for pattern, name in TECHNOLOGY_SIGNATURES if pattern.search(haystack)]


def _meta_description(soup: BeautifulSoup) -> str | None:
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        tag = soup.find("meta", attrs=attrs)
        if tag is not None and str(tag.get("content", "")).strip():
            return str(tag["content"]).strip()
    return None


def _get(fetcher: HttpFetcher, url: str, logger: logging.Logger) -> str | None:
    try:
        return fetcher.fetch(url)
    except FetchError as exc:
        logger.debug("Scrape fetch failed for %s: %s", url, exc)
        return None


def scrape_website(
    url: str, *, fetcher: HttpFetcher, logger: logging.Logger
) -> ScrapeResult | None:
    """Scrape a homepage, visiting a few secondary pages when signals are missing."""
    logger.info("Scraping %s", url)
    html = _get(fetcher, url, logger)
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    title_tag = soup.find("title")
    sample = _text_sample(soup)
    result = ScrapeResult(
        url=url,
        title=title_tag.get_text(strip=True) or None if title_tag else None,
        meta_description=_meta_description(soup),
        emails=extract_emails(f"{html}\n{sample}"),
        phones=extract_phones(sample) or extract_tel_links(soup),
        social_links=extract_social_links(soup),
        careers_links=extract_careers_links(soup, url),
        addresses=extract_addresses(soup),
        technologies=detect_technologies(soup, html),
    )

    extra_pages = []
    if not result.phones:
        extra_pages.extend(PHONE_PAGES)
    if not result.careers_links:
        extra_pages.extend(CAREERS_PAGES)
    for path in extra_pages:
        if result.phones and result.careers_links:
            break
        page_html = _get(fetcher, urljoin(url, path), logger)
        if not page_html:
            continue
        page = BeautifulSoup(page_html, "html.parser")
        if not result.phones:
            result.phones = _unique(
                extract_tel_links(page) + extract_phones(_text_sample(page)), 10
            )
        if not result.careers_links:
            result.careers_links = extract_careers_links(page, url)
        result.addresses = _unique(result.addresses + extract_addresses(page), 10)

    logger.info(
        "Scraped %s: %d emails, %d phones, %d socials, %d technologies",
        url,
        len(result.emails),
        len(result.phones),
        len(result.social_links),
        len(result.technologies),
    )
    return result
