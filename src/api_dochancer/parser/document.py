"""Document parser entry point.

Turns a file, raw bytes or a URL into a ParsedDocument. Structured OpenAPI
input is ingested directly; everything else goes through text heuristics.
"""

import json
import logging
from pathlib import Path

import httpx
import yaml

from api_dochancer.config import Settings, get_settings
from api_dochancer.exceptions import DocumentFetchError

from .base import ParsedDocument
from .binary import extract_text
from .detect import format_from_content_type, format_from_extension, load_structured, looks_like_openapi, normalize_format_hint
from .heuristics import extract_api_info
from .html_parser import HtmlParser
from .openapi import parse_openapi

logger = logging.getLogger(__name__)


class DocumentParser:
    """Parses API documentation from files, bytes or URLs."""

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or get_settings()
        self._transport = transport
        self.html = HtmlParser(self.settings, transport=transport)

    async def parse(self, source: str | Path | bytes, format_hint: str | None = None) -> ParsedDocument:
        """Parse a URL, a file path or raw bytes (bytes need ``format_hint``)."""
        if isinstance(source, bytes):
            return await self.parse_content(source, normalize_format_hint(format_hint or ""))
        if isinstance(source, str) and source.lower().startswith(("http://", "https://")):
            return await self.parse_url(source)
        return await self.parse_file(Path(source), format_hint)

    async def parse_file(self, file_path: Path, format_hint: str | None = None) -> ParsedDocument:
        fmt = normalize_format_hint(format_hint) if format_hint else format_from_extension(file_path)
        logger.info("Parsing %s as %s", file_path, fmt)
        return await self.parse_content(file_path.read_bytes(), fmt)

    async def parse_url(self, url: str) -> ParsedDocument:
        logger.info("Fetching documentation from %s", url)
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.document_timeout,
                headers={"User-Agent": self.settings.user_agent},
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Error fetching URL %s: %s", url, e)
            raise DocumentFetchError(url) from e

        fmt = format_from_content_type(response.headers.get("content-type"))
        return await self.parse_content(response.content, fmt, source_url=url)

    async def parse_content(self, data: bytes, fmt: str, source_url: str | None = None) -> ParsedDocument:
        """Parse already-loaded content of a known format. Never raises on malformed content."""
        if fmt in ("pdf", "docx"):
            return self._parse_text(extract_text(data, fmt), source_url)

        text = data.decode("utf-8", errors="replace")
        if fmt in ("json", "yaml"):
            return self._parse_structured(text, fmt, source_url)
        if fmt == "html":
            return await self.html.parse(text, source_url)
        return self._parse_text(text, source_url)

    def _parse_structured(self, text: str, fmt: str, source_url: str | None) -> ParsedDocument:
        try:
            data = load_structured(text, fmt)
        except (ValueError, yaml.YAMLError) as e:
            logger.warning("Malformed %s document, using text heuristics: %s", fmt, e)
            return self._parse_text(text, source_url)

        if looks_like_openapi(data):
            return parse_openapi(data, self.settings.raw_content_limit)
        if fmt == "json":
            text = json.dumps(data, indent=2)
        return self._parse_text(text, source_url)

    def _parse_text(self, text: str, source_url: str | None) -> ParsedDocument:
        return extract_api_info(text, source_url, self.settings.raw_content_limit)
