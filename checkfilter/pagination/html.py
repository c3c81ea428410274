"""HTML page documents and the default HTTP page fetcher.

Containers are ``[seamless-replace="true"]`` blocks; their pagination control
is the Webflow ``.w-pagination-wrapper`` with a ``.w-pagination-next`` link and
an optional ``"x / N"`` page count.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

import requests
from bs4 import BeautifulSoup, Tag

from ..entries.html import HtmlEntry, find_entries

CONTAINER_SELECTOR = '[seamless-replace="true"]'
NEXT_LINK_SELECTOR = ".w-pagination-wrapper .w-pagination-next"
PAGE_COUNT_SELECTOR = '.w-pagination-count, [fs-cmspagination-element="count"]'
DEFAULT_TIMEOUT_SECONDS = 20.0
USER_AGENT = "checkfilter/0.1"

_PAGE_COUNT_RE = re.compile(r"/\s*(\d+)")


class HtmlPageContainer:
    """``PageContainer`` over one container tag of a parsed page."""

    def __init__(self, element: Tag, base_url: str = "") -> None:
        self.element = element
        self.base_url = base_url

    def entries(self) -> list[HtmlEntry]:
        return find_entries(self.element)

    def _next_href(self) -> str | None:
        link = self.element.select_one(NEXT_LINK_SELECTOR)
        if link is None:
            return None
        href = link.get("href")
        return href if isinstance(href, str) and href else None

    def next_page_token(self) -> str | None:
        href = self._next_href()
        return urljoin(self.base_url, href) if href else None

    def total_pages(self) -> int | None:
        count = self.element.select_one(PAGE_COUNT_SELECTOR)
        if count is None:
            return None
        match = _PAGE_COUNT_RE.search(count.get_text().strip())
        return int(match.group(1)) if match else None

    def page_parameter(self) -> str | None:
        """Name of the query parameter whose value is ``2`` in the next link."""
        href = self._next_href()
        if not href:
            return None
        for key, value in parse_qsl(urlsplit(href).query):
            if value == "2":
                return key
        return None

    def page_token(self, page_number: int) -> str | None:
        param = self.page_parameter()
        if param is None or not self.base_url:
            return None
        parts = urlsplit(self.base_url)
        query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != param]
        query.append((param, str(page_number)))
        return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


class HtmlPageDocument:
    """``PageDocument`` over a parsed HTML page."""

    def __init__(self, soup: BeautifulSoup, url: str = "") -> None:
        self.soup = soup
        self.url = url

    @classmethod
    def from_html(cls, html: str, url: str = "") -> HtmlPageDocument:
        return cls(BeautifulSoup(html, "html.parser"), url)

    def containers(self) -> list[HtmlPageContainer]:
        return [HtmlPageContainer(tag, self.url) for tag in self.soup.select(CONTAINER_SELECTOR)]


class RequestsPageFetcher:
    """``fetch_page`` implementation: GET the token as a URL and parse the body."""

    def __init__(self, session: requests.Session | None = None, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        self.timeout = timeout

    def __call__(self, page_token: str) -> HtmlPageDocument:
        response = self.session.get(page_token, timeout=self.timeout)
        response.raise_for_status()
        return HtmlPageDocument.from_html(response.text, response.url or page_token)


__all__ = [
    "HtmlPageContainer",
    "HtmlPageDocument",
    "RequestsPageFetcher",
]
