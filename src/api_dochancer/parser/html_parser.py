"""HTML API documentation parser.

Runs structure-aware DOM passes (endpoint headings, code blocks, endpoint
links) before falling back to the generic text heuristics. Endpoints found
through links get the linked page's text as their original documentation.
"""

import asyncio
import logging
import re
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from api_dochancer.config import Settings

from .base import ParsedDocument
from .heuristics import (
    EndpointCollector,
    clean_base_url,
    extract_api_info,
    is_acceptable_base_url,
    method_path_endpoint,
)

logger = logging.getLogger(__name__)

HEADINGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
BLOCK_TAGS = ["p", "pre", "ul", "ol", "table", "div", "section", "blockquote", "dl"] + HEADINGS
LINKED_PAGE_NOISE = ["script", "style", "nav", "footer"]
FRAGMENT_TAGS = HEADINGS + ["p", "pre", "code"]

VERBS = r"GET|POST|PUT|DELETE|PATCH|HEAD|OPTIONS"
HEADING_PATTERN = re.compile(rf"^(?:({VERBS})\s+)?(/[^\s?#]*)\s*(?:[-:|–—]\s*)?(.*)$", re.IGNORECASE | re.DOTALL)
CODE_PATTERN = re.compile(rf"^\s*({VERBS})\s+(/[^\s?]*)", re.IGNORECASE)
LINK_PATTERN = re.compile(rf"^\s*({VERBS})\s+(/\S+)", re.IGNORECASE)
CODE_BASE_URL_PATTERN = re.compile(r"https?://[^\s/\"'<>]+(?:/api(?:/v\d+)?)?", re.IGNORECASE)
HREF_BASE_URL_PATTERN = re.compile(r"https?://[^/\s]+(?:/api(?:/v\d+)?)?", re.IGNORECASE)


class HtmlParser:
    """Extracts a ParsedDocument from an HTML page."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self._transport = transport

    async def parse(self, html: str, source_url: str | None = None) -> ParsedDocument:
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style"]):
            tag.decompose()

        text = _page_text(soup)
        collector = EndpointCollector()

        self._heading_pass(soup, collector)
        self._code_pass(soup, collector)
        self._link_pass(soup, collector)

        doc = extract_api_info(text, source_url, self.settings.raw_content_limit, collector=collector)
        await self._attach_linked_documentation(soup, collector, text, source_url)

        return doc.model_copy(update={
            "title": _title(soup),
            "description": _meta_description(soup),
            "base_url": _html_base_url(soup) or doc.base_url,
            "endpoints": collector.endpoints,
        })

    def _heading_pass(self, soup: BeautifulSoup, collector: EndpointCollector) -> None:
        """``METHOD? /path`` headings become sections holding their trailing content."""
        for heading in soup.find_all(HEADINGS):
            match = HEADING_PATTERN.match(heading.get_text(" ", strip=True))
            if not match:
                continue
            method = (match.group(1) or "GET").upper()
            path = match.group(2).rstrip(":")
            fields = {"original_documentation": section_text(heading) or None}
            if match.group(3).strip():
                fields["summary"] = match.group(3).strip()
            collector.add(method_path_endpoint(method, path, **fields))

    def _code_pass(self, soup: BeautifulSoup, collector: EndpointCollector) -> None:
        for block in soup.find_all(["code", "pre"]):
            match = CODE_PATTERN.match(block.get_text())
            if match:
                collector.add(method_path_endpoint(match.group(1), match.group(2).rstrip(":")))

    def _link_pass(self, soup: BeautifulSoup, collector: EndpointCollector) -> None:
        for anchor in soup.find_all("a", href=True):
            match = LINK_PATTERN.match(anchor.get_text(" ", strip=True))
            if not match:
                continue
            method, path = match.group(1).upper(), match.group(2).rstrip(":")
            endpoint = collector.get(method, path)
            if endpoint is None:
                endpoint = method_path_endpoint(method, path)
                collector.add(endpoint)
            if not endpoint.documentation_link:
                endpoint.documentation_link = anchor["href"]

    async def _attach_linked_documentation(
        self,
        soup: BeautifulSoup,
        collector: EndpointCollector,
        main_text: str,
        source_url: str | None,
    ) -> None:
        pending = [e for e in collector.endpoints if e.documentation_link and not e.original_documentation]
        if not pending:
            return

        fallback = main_text[: self.settings.raw_content_limit]
        links = list(dict.fromkeys(e.documentation_link for e in pending))
        remote = {}
        for link in links:
            if link.startswith("#"):
                continue
            try:
                absolute = urljoin(source_url or "", link)
                scheme = urlparse(absolute).scheme
            except ValueError as e:
                logger.warning("Skipping unusable documentation link %s: %s", link, e)
                continue
            if scheme in ("http", "https"):
                remote[link] = absolute

        async with httpx.AsyncClient(
            timeout=self.settings.link_timeout,
            headers={"User-Agent": self.settings.user_agent},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            fetched = await asyncio.gather(*(self._fetch_linked_page(client, url) for url in remote.values()))
        contents = dict(zip(remote.keys(), fetched))

        for endpoint in pending:
            link = endpoint.documentation_link
            if link.startswith("#"):
                content = _anchor_text(soup, link[1:])
            else:
                content = contents.get(link)
            endpoint.original_documentation = content or fallback

    async def _fetch_linked_page(self, client: httpx.AsyncClient, url: str) -> str | None:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Failed to fetch linked documentation %s: %s", url, e)
            return None
        return linked_page_text(response.text)


def section_text(heading: Tag) -> str:
    """Content after ``heading`` up to the next heading of equal or higher level."""
    level = int(heading.name[1])
    parts = []
    for sibling in heading.find_next_siblings():
        if sibling.name in HEADINGS and int(sibling.name[1]) <= level:
            break
        rendered = render_block(sibling)
        if rendered:
            parts.append(rendered)
    return "\n\n".join(parts)


def render_block(element) -> str:
    """Render an element as text, keeping list, code and table structure."""
    if isinstance(element, Comment):
        return ""
    if isinstance(element, NavigableString):
        return str(element).strip()

    name = element.name
    if name in ("ul", "ol"):
        items = element.find_all("li", recursive=False)
        return "\n".join(
            f"{i}. {li.get_text(' ', strip=True)}" if name == "ol" else f"- {li.get_text(' ', strip=True)}"
            for i, li in enumerate(items, 1)
        )
    if name == "pre":
        code = element.get_text().strip("\n")
        return f"```\n{code}\n```"
    if name == "table":
        rows = []
        for row in element.find_all("tr"):
            cells = [cell.get_text(" ", strip=True) for cell in row.find_all(["th", "td"])]
            rows.append(" | ".join(cells))
        return "\n".join(rows)
    if name in HEADINGS:
        return f"{'#' * int(name[1])} {element.get_text(' ', strip=True)}"
    if element.find(BLOCK_TAGS):
        return "\n\n".join(filter(None, (render_block(child) for child in element.children)))
    return element.get_text(" ", strip=True)


def linked_page_text(html: str) -> str:
    """Reduce a documentation page to its heading, paragraph and code fragments."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(LINKED_PAGE_NOISE):
        tag.decompose()

    fragments = []
    for element in soup.find_all(FRAGMENT_TAGS):
        if element.name == "code" and element.find_parent(["pre", "p"] + HEADINGS):
            continue
        text = element.get_text("\n" if element.name == "pre" else " ", strip=True)
        if text:
            fragments.append(text)
    return "\n\n".join(fragments)


def _anchor_text(soup: BeautifulSoup, anchor_id: str) -> str:
    target = soup.find(id=anchor_id)
    if target is None:
        return ""
    if target.name in HEADINGS:
        return section_text(target)
    return render_block(target)


def _page_text(soup: BeautifulSoup) -> str:
    text = soup.get_text("\n")
    text = re.sub(r"[ \t]+\n", "\n", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def _title(soup: BeautifulSoup) -> str | None:
    if soup.title and soup.title.get_text(strip=True):
        return soup.title.get_text(strip=True)
    h1 = soup.find("h1")
    return h1.get_text(" ", strip=True) if h1 else None


def _meta_description(soup: BeautifulSoup) -> str | None:
    meta = soup.find("meta", attrs={"name": "description"})
    return meta.get("content") or None if meta else None


def _html_base_url(soup: BeautifulSoup) -> str | None:
    """Base URL mined from code blocks, then from links mentioning "api"."""
    for block in soup.find_all(["code", "pre"]):
        match = CODE_BASE_URL_PATTERN.search(block.get_text())
        if match and "api" in match.group(0).lower():
            candidate = clean_base_url(match.group(0))
            if is_acceptable_base_url(candidate):
                return candidate

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if "://" not in href or "api" not in href.lower():
            continue
        match = HREF_BASE_URL_PATTERN.match(href)
        if match:
            return clean_base_url(match.group(0))
    return None
