"""Services container, built once per process and handed to callers."""

from dataclasses import dataclass

import httpx

from api_dochancer.config import Settings, get_settings
from api_dochancer.extractor import EndpointExtractor
from api_dochancer.generator.openapi import OpenApiGenerator
from api_dochancer.llm import AiEnhancer, LlmClient
from api_dochancer.parser.document import DocumentParser
from api_dochancer.tester import EndpointTester


@dataclass
class Services:
    settings: Settings
    parser: DocumentParser
    extractor: EndpointExtractor
    tester: EndpointTester
    generator: OpenApiGenerator
    ai: AiEnhancer | None = None


def build_services(
    settings: Settings | None = None,
    ai_api_key: str | None = None,
    model: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Services:
    """Wire the pipeline. The AI capability exists only when an LLM key is available."""
    settings = settings or get_settings()
    api_key = ai_api_key or settings.llm_api_key
    ai = AiEnhancer(LlmClient(model=model or settings.llm_model, api_key=api_key)) if api_key else None

    return Services(
        settings=settings,
        parser=DocumentParser(settings, transport=transport),
        extractor=EndpointExtractor(ai, settings, transport=transport),
        tester=EndpointTester(settings, transport=transport),
        generator=OpenApiGenerator(),
        ai=ai,
    )
