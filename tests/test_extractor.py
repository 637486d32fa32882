from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from api_dochancer.exceptions import EnhancementError
from api_dochancer.extractor import (
    EndpointExtractor,
    category_for,
    deduplicate,
    description_from_context,
    enrich,
    path_parameters,
)
from api_dochancer.llm import AiEnhancer, LlmClient
from api_dochancer.parser.base import ApiEndpoint, Param, ParsedDocument
from conftest import mock_transport


def _ai(**methods) -> MagicMock:
    ai = MagicMock(spec=AiEnhancer)
    for name in (
        "extract_endpoints",
        "categorize_endpoints",
        "extract_endpoint_details",
        "enhance_endpoint_documentation",
        "search_product_context",
    ):
        setattr(ai, name, AsyncMock(side_effect=methods.get(name, EnhancementError("offline"))))
    return ai


class TestDeduplicate:
    def test_first_occurrence_wins(self):
        endpoints = [
            ApiEndpoint(method="GET", path="/users", summary="first"),
            ApiEndpoint(method="POST", path="/users"),
            ApiEndpoint(method="GET", path="/users", summary="second"),
        ]
        result = deduplicate(endpoints)
        assert [e.key for e in result] == [("GET", "/users"), ("POST", "/users")]
        assert result[0].summary == "first"

    def test_idempotent(self):
        endpoints = [
            ApiEndpoint(method="GET", path="/users"),
            ApiEndpoint(method="GET", path="/users/"),
            ApiEndpoint(method="get", path="/users", summary="dup"),
            ApiEndpoint(method="DELETE", path="/users/{id}"),
        ]
        once = deduplicate(endpoints)
        assert deduplicate(once) == once
        assert len(once) == 3


class TestEnrich:
    def test_path_parameters(self):
        params = path_parameters("/orgs/{orgId}/users/{userId}")
        assert [p.name for p in params] == ["orgId", "userId"]
        assert all(p.location == "path" and p.required for p in params)
        assert params[0].param_schema.type == "string"

    def test_repeated_placeholder_gives_one_parameter(self):
        assert [p.name for p in path_parameters("/diff/{ref}...{ref}")] == ["ref"]

    def test_category_from_first_segment(self):
        assert category_for("/users/{id}") == "Users"
        assert category_for("/") is None

    def test_description_from_nearby_sentence(self):
        raw = "Intro text. The /users/{id} endpoint returns one user. Other stuff."
        assert description_from_context("/users/{id}", raw) == "Intro text."

    def test_description_missing_path(self):
        assert description_from_context("/nope", "Nothing here.") is None

    def test_enrich_fills_gaps_only(self):
        endpoints = [
            ApiEndpoint(method="GET", path="/users/{id}"),
            ApiEndpoint(method="GET", path="/teams", category="Org", description="Teams.", parameters=[]),
        ]
        users, teams = enrich(endpoints, "GET /users/{id} fetches a user.")

        assert users.category == "Users"
        assert [p.name for p in users.parameters] == ["id"]
        assert users.description == "GET /users/{id} fetches a user."

        assert teams.category == "Org"
        assert teams.parameters == []
        assert teams.description == "Teams."

    def test_declared_parameters_are_kept(self):
        declared = [Param(name="id", location="path", required=True, description="User id")]
        (endpoint,) = enrich([ApiEndpoint(method="GET", path="/users/{id}", parameters=declared)], "")
        assert endpoint.parameters == declared


class TestExtractAndEnhance:
    @pytest.mark.asyncio
    async def test_without_ai(self, settings):
        doc = ParsedDocument(
            endpoints=[
                ApiEndpoint(method="GET", path="/items"),
                ApiEndpoint(method="GET", path="/items"),
                ApiEndpoint(method="DELETE", path="/items/{itemId}"),
            ],
            raw_content="",
        )
        endpoints = await EndpointExtractor(settings=settings).extract_and_enhance(doc)

        assert [e.key for e in endpoints] == [("GET", "/items"), ("DELETE", "/items/{itemId}")]
        assert endpoints[1].parameters[0].name == "itemId"
        assert all(e.category == "Items" for e in endpoints)

    @pytest.mark.asyncio
    async def test_output_unique_even_with_ai(self, settings):
        doubled = [ApiEndpoint(method="GET", path="/a"), ApiEndpoint(method="GET", path="/a")]
        ai = _ai(extract_endpoints=[doubled], categorize_endpoints=lambda eps, ctx: eps + eps)

        endpoints = await EndpointExtractor(ai, settings).extract_and_enhance(ParsedDocument(raw_content="docs"))
        assert [e.key for e in endpoints] == [("GET", "/a")]

    @pytest.mark.asyncio
    async def test_ai_extraction_when_parser_found_nothing(self, settings):
        found = [ApiEndpoint(method="POST", path="/login")]
        ai = _ai(extract_endpoints=[found])

        endpoints = await EndpointExtractor(ai, settings).extract_and_enhance(ParsedDocument(raw_content="Sign in here"))

        ai.extract_endpoints.assert_awaited_once_with("Sign in here")
        assert [e.key for e in endpoints] == [("POST", "/login")]
        assert endpoints[0].category == "Login"

    @pytest.mark.asyncio
    async def test_ai_failures_keep_endpoints(self, settings):
        doc = ParsedDocument(
            title="Acme",
            endpoints=[ApiEndpoint(method="GET", path="/users", original_documentation="Lists users.")],
        )
        endpoints = await EndpointExtractor(_ai(), settings).extract_and_enhance(doc)
        assert [e.key for e in endpoints] == [("GET", "/users")]
        assert endpoints[0].category == "Users"

    @pytest.mark.asyncio
    async def test_ai_categorization_applied(self, settings):
        async def categorize(endpoints, product_context):
            assert product_context == "Acme sells anvils."
            return [e.model_copy(update={"category": "Accounts"}) for e in endpoints]

        ai = _ai(categorize_endpoints=categorize, search_product_context=["Acme sells anvils."])
        doc = ParsedDocument(title="Acme", endpoints=[ApiEndpoint(method="GET", path="/users")])

        endpoints = await EndpointExtractor(ai, settings).extract_and_enhance(doc)
        assert endpoints[0].category == "Accounts"
        ai.search_product_context.assert_awaited_once_with("Acme")

    @pytest.mark.asyncio
    async def test_enhancement_only_for_documented_endpoints(self, settings):
        async def details(endpoint):
            return endpoint.model_copy(update={"summary": "Detailed"})

        async def polish(endpoint):
            return endpoint.model_copy(update={"description": "Polished"})

        ai = _ai(extract_endpoint_details=details, enhance_endpoint_documentation=polish)
        doc = ParsedDocument(endpoints=[
            ApiEndpoint(method="GET", path="/documented", original_documentation="Long docs."),
            ApiEndpoint(method="GET", path="/bare"),
        ])
        documented, bare = await EndpointExtractor(ai, settings).extract_and_enhance(doc)

        assert (documented.summary, documented.description) == ("Detailed", "Polished")
        assert bare.summary is None
        assert ai.extract_endpoint_details.await_count == 1


    @pytest.mark.asyncio
    async def test_malformed_categorization_answer_is_not_fatal(self, settings):
        client = MagicMock(spec=LlmClient)
        client.acall = AsyncMock(return_value='[{"method": "GET", "path": ["/a"], "category": "Broken"}]')
        doc = ParsedDocument(endpoints=[ApiEndpoint(method="GET", path="/a")])

        endpoints = await EndpointExtractor(AiEnhancer(client), settings).extract_and_enhance(doc)
        assert [(e.key, e.category) for e in endpoints] == [(("GET", "/a"), "A")]


class TestProductContext:
    @pytest.mark.asyncio
    async def test_product_page_is_truncated(self, settings):
        settings.product_context_limit = 12
        page = "<html><body><nav>menu</nav><h1>Anvil Cloud</h1><p>Drop anvils at scale.</p></body></html>"
        transport = mock_transport({"/": httpx.Response(200, html=page)})

        context = await EndpointExtractor(settings=settings, transport=transport).fetch_product_context("https://anvil.io/")
        assert context == "Anvil Cloud\n"

    @pytest.mark.asyncio
    async def test_unreachable_product_page(self, settings):
        transport = mock_transport({}, default=503)
        extractor = EndpointExtractor(settings=settings, transport=transport)
        assert await extractor.fetch_product_context("https://anvil.io/") == ""

    @pytest.mark.asyncio
    async def test_product_url_preferred_over_search(self, settings):
        seen = []

        async def categorize(endpoints, product_context):
            seen.append(product_context)
            return endpoints

        ai = _ai(categorize_endpoints=categorize, search_product_context=["searched"])
        transport = mock_transport({"/about": httpx.Response(200, html="<p>About us.</p>")})
        doc = ParsedDocument(title="Acme", endpoints=[ApiEndpoint(method="GET", path="/x")])

        await EndpointExtractor(ai, settings, transport).extract_and_enhance(doc, "https://acme.io/about")
        assert seen == ["About us."]
        ai.search_product_context.assert_not_awaited()
