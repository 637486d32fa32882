"""Endpoint extraction and normalisation.

Takes the parser's raw endpoint list, removes duplicates, back-fills
categories, path parameters and descriptions, then optionally asks the AI
capability to polish and categorise the result.
"""

import asyncio
import logging
import re

import httpx

from api_dochancer.config import Settings, get_settings
from api_dochancer.llm import AiEnhancer, with_fallback
from api_dochancer.parser.base import ApiEndpoint, Param, ParsedDocument, Schema
from api_dochancer.parser.html_parser import linked_page_text

logger = logging.getLogger(__name__)

CONTEXT_WINDOW = 200
PATH_PLACEHOLDER = re.compile(r"\{([^}]+)\}")
SENTENCE = re.compile(r"[^.!?]+[.!?]+")


def deduplicate(endpoints: list[ApiEndpoint]) -> list[ApiEndpoint]:
    """Keep the first endpoint for every (method, path); later ones are dropped."""
    seen = set()
    unique = []
    for endpoint in endpoints:
        if endpoint.key not in seen:
            seen.add(endpoint.key)
            unique.append(endpoint)
    return unique


def path_parameters(path: str) -> list[Param]:
    return [
        Param(name=name, location="path", required=True, param_schema=Schema(type="string"))
        for name in dict.fromkeys(PATH_PLACEHOLDER.findall(path))
    ]


def category_for(path: str) -> str | None:
    segments = [s for s in path.split("/") if s]
    return segments[0].capitalize() if segments else None


def description_from_context(path: str, raw_content: str) -> str | None:
    """First sentence found within CONTEXT_WINDOW characters around ``path``."""
    index = raw_content.find(path)
    if index == -1:
        return None
    start = max(0, index - CONTEXT_WINDOW)
    end = min(len(raw_content), index + len(path) + CONTEXT_WINDOW)
    match = SENTENCE.search(raw_content[start:end])
    return match.group(0).strip() if match else None


def enrich(endpoints: list[ApiEndpoint], raw_content: str) -> list[ApiEndpoint]:
    result = []
    for endpoint in endpoints:
        update = {}
        if not endpoint.category:
            category = category_for(endpoint.path)
            if category:
                update["category"] = category
        if endpoint.parameters is None:
            update["parameters"] = path_parameters(endpoint.path)
        if not endpoint.description and raw_content:
            description = description_from_context(endpoint.path, raw_content)
            if description:
                update["description"] = description
        result.append(endpoint.model_copy(update=update))
    return result


class EndpointExtractor:
    """Normalises parsed endpoints and applies optional AI enhancement."""

    def __init__(
        self,
        ai: AiEnhancer | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.ai = ai
        self.settings = settings or get_settings()
        self._transport = transport

    async def extract_and_enhance(self, doc: ParsedDocument, product_url: str | None = None) -> list[ApiEndpoint]:
        raw_content = doc.raw_content or ""

        endpoints = list(doc.endpoints)
        if not endpoints:
            endpoints = await self._extract_with_ai(raw_content)

        endpoints = deduplicate(endpoints)
        endpoints = enrich(endpoints, raw_content)

        product_context = await self._product_context(doc, product_url)

        if self.ai is not None:
            endpoints = await self.enhance_endpoints(endpoints)
            endpoints = await with_fallback(
                self.ai.categorize_endpoints(endpoints, product_context), endpoints, "Endpoint categorization"
            )
            endpoints = deduplicate(endpoints)

        logger.info("Extracted %d endpoints", len(endpoints))
        return endpoints

    async def enhance_endpoints(self, endpoints: list[ApiEndpoint]) -> list[ApiEndpoint]:
        """Per-endpoint AI detail extraction and documentation polish, run in parallel."""
        if self.ai is None:
            return endpoints
        return list(await asyncio.gather(*(self._enhance_one(e) for e in endpoints)))

    async def _enhance_one(self, endpoint: ApiEndpoint) -> ApiEndpoint:
        if not endpoint.original_documentation:
            return endpoint
        label = f"{endpoint.method} {endpoint.path}"
        endpoint = await with_fallback(self.ai.extract_endpoint_details(endpoint), endpoint, f"Detail extraction for {label}")
        return await with_fallback(self.ai.enhance_endpoint_documentation(endpoint), endpoint, f"Documentation polish for {label}")

    async def _extract_with_ai(self, raw_content: str) -> list[ApiEndpoint]:
        if self.ai is None:
            return []
        logger.info("No endpoints found by the parser, using AI extraction")
        return await with_fallback(self.ai.extract_endpoints(raw_content), [], "AI endpoint extraction")

    async def _product_context(self, doc: ParsedDocument, product_url: str | None) -> str:
        if product_url:
            return await self.fetch_product_context(product_url)
        if doc.title and self.ai is not None:
            return await with_fallback(self.ai.search_product_context(doc.title), "", "Product context search")
        return ""

    async def fetch_product_context(self, url: str) -> str:
        """Text of the product page, truncated; empty when it cannot be fetched."""
        logger.info("Fetching product context from %s", url)
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.link_timeout,
                headers={"User-Agent": self.settings.user_agent},
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Error fetching product context from %s: %s", url, e)
            return ""
        return linked_page_text(response.text)[: self.settings.product_context_limit]
