"""Regex heuristics for unstructured API documentation.

Used for HTML, plain text, Markdown, PDF/DOCX text and JSON that is not an
OpenAPI document. Each pattern list is ordered: the first pattern producing
an acceptable candidate wins, so reordering changes results.
"""

import re
from urllib.parse import urlparse

from .base import ApiEndpoint, ParsedDocument

VERSION_PATTERNS = [
    re.compile(r"\bversion\s*[:=]?\s*v?(\d+(?:\.\d+)*)\b", re.IGNORECASE),
    re.compile(r"\bv(\d+(?:\.\d+)?)\s+API\b", re.IGNORECASE),
    re.compile(r"\bAPI\s+v(\d+(?:\.\d+)?)\b", re.IGNORECASE),
    re.compile(r"/api/v(\d+(?:\.\d+)?)/", re.IGNORECASE),
    re.compile(r'"version"\s*:\s*"v?(\d+(?:\.\d+)*)"', re.IGNORECASE),
]

URL_VERSION_PATTERNS = [
    re.compile(r"/v(\d+(?:\.\d+)?)(?:/|$)", re.IGNORECASE),
    re.compile(r"/api[_-]?docs?/v?(\d+(?:\.\d+)?)(?:\.html?|/|$)", re.IGNORECASE),
]

BASE_URL_PATTERNS = [
    # labelled: "Base URL: https://..."
    re.compile(r"\b(?:base\s*url|api\s*endpoint|host|server)\s*[:=]?\s*[\"'`]?(https?://[^\s\"'`<>]+)", re.IGNORECASE),
    re.compile(r"https?://api\.[^\s/\"'`<>]+(?:/v\d+)?", re.IGNORECASE),
    re.compile(r"curl\s+(?:-X\s+[A-Z]+\s+)?[\"']?(https?://[^\s\"']+)", re.IGNORECASE),
    re.compile(r"https?://[^\s\"'`<>]+/api(?:/v\d+)?(?=[\s\"'`<>]|$)", re.IGNORECASE),
    re.compile(r"https?://[^\s\"'`<>/]+\.com(?:/api)?(?:/v\d+)?", re.IGNORECASE),
]

METHOD_PATH_PATTERN = re.compile(r"\b(GET|POST|PUT|DELETE|PATCH|HEAD|OPTIONS)\s+(/[\w\-{}:/]*)", re.IGNORECASE)
API_URL_PATTERN = re.compile(r"https?://[^\s\"'`<>]+/api[^\s\"'`<>]*", re.IGNORECASE)
API_PATH_PATTERN = re.compile(r"/api[\w\-{}:/]*")
URL_ROOT_PATTERN = re.compile(r"https?://[^/\s]+(?:/api(?:/v\d+)?)?", re.IGNORECASE)

MAX_BASE_URL_LENGTH = 100


class EndpointCollector:
    """Ordered endpoint list keyed by (method, path); the first one seen wins."""

    def __init__(self, endpoints: list[ApiEndpoint] | None = None):
        self._endpoints: dict[tuple[str, str], ApiEndpoint] = {}
        for endpoint in endpoints or []:
            self.add(endpoint)

    def add(self, endpoint: ApiEndpoint) -> bool:
        if endpoint.key in self._endpoints:
            return False
        self._endpoints[endpoint.key] = endpoint
        return True

    def get(self, method: str, path: str) -> ApiEndpoint | None:
        return self._endpoints.get((method.upper(), path))

    def has_path(self, path: str) -> bool:
        return any(p == path for _, p in self._endpoints)

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._endpoints

    def __len__(self) -> int:
        return len(self._endpoints)

    @property
    def endpoints(self) -> list[ApiEndpoint]:
        return list(self._endpoints.values())


def _url_path(url: str) -> str | None:
    """Path of ``url``, or None for placeholder hosts such as ``https://[your-domain]/api``."""
    try:
        return urlparse(url).path
    except ValueError:
        return None


def normalize_version(version: str) -> str:
    """Bare integers become ``N.0``; dotted versions pass through."""
    return f"{version}.0" if version.isdigit() else version


def infer_version(text: str, source_url: str | None = None) -> str | None:
    for pattern in VERSION_PATTERNS:
        match = pattern.search(text)
        if match:
            return normalize_version(match.group(1))

    if source_url:
        url_path = _url_path(source_url) or ""
        for pattern in URL_VERSION_PATTERNS:
            match = pattern.search(url_path)
            if match:
                return normalize_version(match.group(1))
    return None


def clean_base_url(url: str) -> str:
    url = re.sub(r"[\"'`,;:.)\]>]+$", "", url)
    url = url.rstrip("/")
    return re.sub(r"/\{[^}]+\}$", "", url)


def is_acceptable_base_url(url: str) -> bool:
    return len(url) < MAX_BASE_URL_LENGTH and "?" not in url and "://" in url


def infer_base_url(text: str) -> str | None:
    for pattern in BASE_URL_PATTERNS:
        for match in pattern.finditer(text):
            candidate = clean_base_url(match.group(1) if match.lastindex else match.group(0))
            if is_acceptable_base_url(candidate):
                return candidate
    return None


def method_path_endpoint(method: str, path: str, **fields) -> ApiEndpoint:
    """Minimal endpoint for a ``METHOD /path`` occurrence."""
    method = method.upper()
    fields.setdefault("summary", f"{method} {path}")
    return ApiEndpoint(method=method, path=path, **fields)


def discover_endpoints(text: str, collector: EndpointCollector | None = None) -> tuple[list[ApiEndpoint], str | None]:
    """Scan for ``METHOD /path`` pairs and bare ``https://.../api/...`` URLs.

    Returns the collected endpoints and a base URL derived from the first API
    URL seen (None when the text contains no API URL).
    """
    collector = collector if collector is not None else EndpointCollector()

    for match in METHOD_PATH_PATTERN.finditer(text):
        path = match.group(2).rstrip(":")
        if path.startswith("/"):
            collector.add(method_path_endpoint(match.group(1), path))

    url_base = None
    for match in API_URL_PATTERN.finditer(text):
        url = match.group(0)
        url_path = _url_path(url)
        if url_path is None:
            continue
        if url_base is None:
            root = URL_ROOT_PATTERN.match(url)
            if root:
                url_base = clean_base_url(root.group(0))

        path_match = API_PATH_PATTERN.search(url_path)
        if path_match and not collector.has_path(path_match.group(0)):
            api_path = path_match.group(0)
            collector.add(method_path_endpoint("GET", api_path, summary=f"API endpoint: {api_path}"))

    return collector.endpoints, url_base


def extract_api_info(
    text: str,
    source_url: str | None = None,
    raw_content_limit: int = 10_000,
    collector: EndpointCollector | None = None,
) -> ParsedDocument:
    """Run version, base URL and endpoint heuristics, in that order."""
    version = infer_version(text, source_url)
    base_url = infer_base_url(text)
    endpoints, url_base = discover_endpoints(text, collector)

    return ParsedDocument(
        version=version,
        base_url=base_url or url_base,
        endpoints=endpoints,
        raw_content=text[:raw_content_limit],
    )
