"""CLI entry point for api-dochancer."""

import asyncio
import json
from pathlib import Path

import click
from pydantic import TypeAdapter, ValidationError

from api_dochancer.config import get_settings
from api_dochancer.exceptions import DochancerError
from api_dochancer.llm import with_fallback
from api_dochancer.observability import setup_logging
from api_dochancer.params import extract_common_parameters
from api_dochancer.parser.base import ApiEndpoint, ApiParameter, ParsedDocument, ValidationResult
from api_dochancer.services import Services, build_services
from api_dochancer.validate import validate_ai_key, validate_test_api, validate_url

DEFAULT_RUN_TIMEOUT = 300.0

_endpoints = TypeAdapter(list[ApiEndpoint])
_parameters = TypeAdapter(list[ApiParameter])


def _metadata(doc: ParsedDocument) -> dict:
    return {
        "title": doc.title,
        "description": doc.description,
        "version": doc.version,
        "baseUrl": doc.base_url,
    }


def _dump_endpoints(endpoints: list[ApiEndpoint], metadata: dict | None = None) -> str:
    data = {k: v for k, v in (metadata or {}).items() if v is not None}
    data["endpoints"] = [e.to_json_dict() for e in endpoints]
    return json.dumps(data, indent=2, ensure_ascii=False)


def _load_endpoints(path: Path) -> tuple[list[ApiEndpoint], dict]:
    """Read a file written by ``extract`` or ``test``: either a bare list or ``{..., "endpoints": [...]}``."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, list):
            return _endpoints.validate_python(data), {}
        metadata = {k: v for k, v in data.items() if k != "endpoints"}
        return _endpoints.validate_python(data.get("endpoints", [])), metadata
    except (ValueError, AttributeError, ValidationError) as e:
        raise click.ClickException(f"Invalid endpoints file {path}: {e}") from e


def _load_parameters(path: Path | None) -> list[ApiParameter]:
    if path is None:
        return []
    try:
        return _parameters.validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise click.ClickException(f"Invalid parameters file {path}: {e}") from e


def _write(output: Path | None, text: str) -> None:
    if output is None:
        click.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    click.echo(f"Saved to {output}", err=True)


def _run(coro):
    """Drive a coroutine, surfacing source-level errors as CLI errors."""
    try:
        return asyncio.run(coro)
    except DochancerError as e:
        raise click.ClickException(str(e)) from e


async def _extract(services: Services, source: str, fmt: str | None, product_url: str | None):
    doc = await services.parser.parse(source, fmt)
    endpoints = await services.extractor.extract_and_enhance(doc, product_url)
    return doc, endpoints


@click.group()
@click.option("--log-level", default=None, help="Logging level (defaults to DOCHANCER_LOG_LEVEL).")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines.")
def main(log_level: str | None, json_logs: bool):
    """API Dochancer: turn API documentation into a tested OpenAPI spec."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level, json_logs or settings.log_json)


@main.command()
@click.argument("source")
@click.option("--format", "fmt", default=None,
              type=click.Choice(["pdf", "docx", "html", "json", "yaml", "text", "md", "txt"]),
              help="Document format (defaults to the file extension or response content type).")
@click.option("--product-url", default=None, help="Product page used as context for AI categorization.")
@click.option("--ai-key", default=None, help="LLM API key; enables AI enhancement.")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write endpoints JSON here instead of stdout.")
def extract(source: str, fmt: str | None, product_url: str | None, ai_key: str | None, output: Path | None):
    """Parse SOURCE (file path or URL) and print the normalized endpoints."""
    services = build_services(ai_api_key=ai_key)
    doc, endpoints = _run(_extract(services, source, fmt, product_url))
    click.echo(f"Found {len(endpoints)} endpoints.", err=True)
    _write(output, _dump_endpoints(endpoints, _metadata(doc)))


@main.command()
@click.argument("endpoints_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write parameters JSON here instead of stdout.")
def params(endpoints_path: Path, output: Path | None):
    """Infer the common parameters of an endpoints file."""
    endpoints, _ = _load_endpoints(endpoints_path)
    common = extract_common_parameters(endpoints)
    click.echo(f"Found {len(common)} common parameters.", err=True)
    _write(output, json.dumps([p.to_json_dict() for p in common], indent=2, ensure_ascii=False))


@main.command("test")
@click.argument("endpoints_path", type=click.Path(exists=True, path_type=Path))
@click.option("--base-url", default=None, help="Server to test against (defaults to the file's baseUrl).")
@click.option("--api-key", default="", help="Key sent as Bearer token and X-API-Key.")
@click.option("--params", "params_path", default=None, type=click.Path(exists=True, path_type=Path),
              help="Common parameters JSON, as written by the params command.")
@click.option("--ai-key", default=None, help="LLM API key; enables AI test data.")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write tested endpoints JSON here instead of stdout.")
def test_command(endpoints_path: Path, base_url: str | None, api_key: str, params_path: Path | None,
                 ai_key: str | None, output: Path | None):
    """Send one live request per endpoint and record the results."""
    endpoints, metadata = _load_endpoints(endpoints_path)
    services = build_services(ai_api_key=ai_key)
    services.tester.configure(
        base_url or metadata.get("baseUrl") or "",
        api_key=api_key,
        ai=services.ai,
        common_parameters=_load_parameters(params_path),
    )

    tested = _run(services.tester.test_all_endpoints(endpoints))
    for endpoint in tested:
        result = endpoint.test_result
        click.echo(f"  {result.status.upper():8} {endpoint.method} {endpoint.path} {result.message or ''}", err=True)
    _write(output, _dump_endpoints(tested, metadata))


@main.command()
@click.argument("endpoints_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Output directory (defaults to DOCHANCER_OUTPUT_DIR).")
@click.option("--title", default=None, help="API title (overrides the file's title).")
@click.option("--zip", "make_zip", is_flag=True, help="Also pack the viewer and spec into a zip archive.")
def generate(endpoints_path: Path, output: Path | None, title: str | None, make_zip: bool):
    """Assemble an OpenAPI 3.0 document and HTML viewer from an endpoints file."""
    endpoints, metadata = _load_endpoints(endpoints_path)
    if title:
        metadata["title"] = title
    services = build_services()
    _generate(services, endpoints, metadata, output, make_zip)


def _generate(services: Services, endpoints: list[ApiEndpoint], metadata: dict, output: Path | None, make_zip: bool) -> None:
    output = output or Path(services.settings.output_dir)
    spec = services.generator.generate(endpoints, metadata)
    bundle = services.generator.create_bundle(spec, output)

    for warning in bundle.warnings:
        click.echo(f"  warning: {warning}", err=True)
    click.echo(f"Generated {output / (bundle.html_bundle + '.html')}")
    if make_zip:
        click.echo(f"Packed {services.generator.build_zip(bundle.html_bundle, output)}")


@main.command()
@click.argument("source")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Output directory (defaults to DOCHANCER_OUTPUT_DIR).")
@click.option("--format", "fmt", default=None,
              type=click.Choice(["pdf", "docx", "html", "json", "yaml", "text", "md", "txt"]),
              help="Document format (defaults to the file extension or response content type).")
@click.option("--product-url", default=None, help="Product page used as context for AI categorization.")
@click.option("--base-url", default=None, help="Server to test against (defaults to the detected base URL).")
@click.option("--api-key", default="", help="Key sent as Bearer token and X-API-Key.")
@click.option("--skip-tests", is_flag=True, help="Generate the OpenAPI document without live requests.")
@click.option("--ai-key", default=None, help="LLM API key; enables AI enhancement.")
@click.option("--timeout", default=DEFAULT_RUN_TIMEOUT, type=float, show_default=True, help="Give up after this many seconds.")
@click.option("--zip", "make_zip", is_flag=True, help="Also pack the viewer and spec into a zip archive.")
def run(source: str, output: Path | None, fmt: str | None, product_url: str | None, base_url: str | None,
        api_key: str, skip_tests: bool, ai_key: str | None, timeout: float, make_zip: bool):
    """Full pipeline: parse -> extract -> infer parameters -> test -> generate."""
    services = build_services(ai_api_key=ai_key)

    async def pipeline():
        click.echo(f"Parsing {source}...", err=True)
        doc, endpoints = await _extract(services, source, fmt, product_url)
        click.echo(f"Found {len(endpoints)} endpoints.", err=True)

        metadata = _metadata(doc)
        if services.ai is not None:
            metadata["productIntro"] = await with_fallback(
                services.ai.generate_product_intro(product_url, source, doc.description), None, "Product intro"
            )

        target = base_url or doc.base_url
        if skip_tests or not target:
            if not skip_tests:
                click.echo("No base URL found, skipping endpoint tests.", err=True)
            return endpoints, metadata

        common = extract_common_parameters(endpoints)
        click.echo(f"Testing against {target} with {len(common)} common parameters...", err=True)
        services.tester.configure(target, api_key=api_key, ai=services.ai, common_parameters=common)
        return await services.tester.test_all_endpoints(endpoints), metadata

    async def bounded():
        try:
            return await asyncio.wait_for(pipeline(), timeout)
        except asyncio.TimeoutError as e:
            raise click.ClickException(f"Processing timed out after {timeout:g} seconds") from e

    endpoints, metadata = _run(bounded())
    _generate(services, endpoints, metadata, output, make_zip)


def _report(result: ValidationResult) -> None:
    click.echo(f"{result.status}: {result.message}")
    if result.details:
        click.echo(result.details)
    if result.status != "success":
        click.get_current_context().exit(1)


@main.command("validate-url")
@click.argument("url")
def validate_url_command(url: str):
    """Check that URL is reachable and parseable."""
    _report(_run(validate_url(url, get_settings())))


@main.command("validate-api-key")
@click.argument("api_key")
@click.option("--base-url", default=None, help="Server to check the key against.")
def validate_api_key_command(api_key: str, base_url: str | None):
    """Check that the server at --base-url accepts API_KEY."""
    _report(_run(validate_test_api(api_key, base_url, get_settings())))


@main.command("validate-ai-key")
@click.option("--ai-key", default=None, help="LLM API key (defaults to DOCHANCER_LLM_API_KEY).")
def validate_ai_key_command(ai_key: str | None):
    """Send a one-line prompt to check the LLM key."""
    services = build_services(ai_api_key=ai_key)
    if services.ai is None:
        raise click.ClickException("No AI key given; pass --ai-key or set DOCHANCER_LLM_API_KEY.")
    _report(_run(validate_ai_key(services.ai)))
