"""OpenAPI 3.0 document and HTML viewer generation."""

import html
import json
import logging
import time
import zipfile
from pathlib import Path
from string import Template
from typing import Any

from api_dochancer.parser.base import ApiEndpoint, GeneratedDocumentation, Param

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.3"

DEFAULT_RESPONSES = {
    "200": {
        "description": "Successful response",
        "content": {"application/json": {"schema": {"type": "object"}}},
    },
    "400": {"description": "Bad request"},
    "401": {"description": "Unauthorized"},
    "404": {"description": "Not found"},
    "500": {"description": "Internal server error"},
}

VIEWER_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>$title</title>
    <link rel="stylesheet" href="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui.css">
    <style>
        body { margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; }
        #swagger-ui { padding: 20px; }
        .topbar { display: none; }
    </style>
</head>
<body>
    <div id="swagger-ui"></div>
    <script src="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui-bundle.js"></script>
    <script src="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui-standalone-preset.js"></script>
    <script>
        const spec = $spec;
        window.onload = function() {
            window.ui = SwaggerUIBundle({
                spec: spec,
                dom_id: '#swagger-ui',
                deepLinking: true,
                presets: [SwaggerUIBundle.presets.apis, SwaggerUIStandalonePreset],
                layout: "BaseLayout",
                tryItOutEnabled: true,
                supportedSubmitMethods: ['get', 'post', 'put', 'delete', 'patch']
            });
        };
    </script>
</body>
</html>
""")


class OpenApiGenerator:
    """Assembles normalized endpoints into an OpenAPI document and viewer bundle."""

    def generate(self, endpoints: list[ApiEndpoint], metadata: dict[str, Any] | None = None) -> dict:
        """Build an OpenAPI 3.0.3 document.

        ``metadata`` keys: title, description, productIntro (preferred over
        description), version, baseUrl.
        """
        metadata = metadata or {}
        base_url = metadata.get("baseUrl") or metadata.get("base_url")
        description = (
            metadata.get("productIntro")
            or metadata.get("product_intro")
            or metadata.get("description")
            or "Auto-generated API documentation"
        )

        return {
            "openapi": OPENAPI_VERSION,
            "info": {
                "title": metadata.get("title") or "API Documentation",
                "description": description,
                "version": metadata.get("version") or "1.0.0",
            },
            "servers": [{"url": base_url}] if base_url else [],
            "paths": self._paths(endpoints),
            "components": {
                "schemas": {},
                "securitySchemes": {
                    "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
                    "apiKey": {"type": "apiKey", "in": "header", "name": "X-API-Key"},
                },
            },
            "security": [{"bearerAuth": []}, {"apiKey": []}],
        }

    def _paths(self, endpoints: list[ApiEndpoint]) -> dict:
        paths: dict[str, dict] = {}
        for endpoint in endpoints:
            paths.setdefault(endpoint.path, {})[endpoint.method.lower()] = self._operation(endpoint)
        return paths

    def _operation(self, endpoint: ApiEndpoint) -> dict:
        operation: dict[str, Any] = {
            "summary": endpoint.summary,
            "description": endpoint.description,
            "operationId": endpoint.id,
            "tags": [endpoint.category] if endpoint.category else [],
        }

        if endpoint.parameters:
            operation["parameters"] = [self._parameter(p) for p in endpoint.parameters]

        if endpoint.request_body is not None:
            operation["requestBody"] = endpoint.request_body.to_json_dict()

        if endpoint.responses:
            operation["responses"] = {
                r.status_code: {
                    "description": r.description or f"{r.status_code} response",
                    **({"content": {k: v.to_json_dict() for k, v in r.content.items()}} if r.content else {}),
                }
                for r in endpoint.responses
            }
        else:
            operation["responses"] = json.loads(json.dumps(DEFAULT_RESPONSES))

        if endpoint.test_result is not None and endpoint.test_result.message:
            note = f"Test Result: {endpoint.test_result.status.upper()}: {endpoint.test_result.message}"
            operation["description"] = f"{operation['description'] or ''}\n\n{note}".strip()

        return {k: v for k, v in operation.items() if v is not None}

    def _parameter(self, param: Param) -> dict:
        parameter = {
            "name": param.name,
            "in": param.location,
            "description": param.description,
            "required": param.required,
            "schema": param.param_schema.to_json_dict(),
        }
        return {k: v for k, v in parameter.items() if v is not None}

    def validate_spec(self, spec: dict) -> list[str]:
        """Non-fatal warnings about gaps in the generated document."""
        warnings = []
        info = spec.get("info") or {}

        if not info.get("title"):
            warnings.append("Missing API title in info section")
        if not info.get("version"):
            warnings.append("Missing API version in info section")
        if not spec.get("servers"):
            warnings.append("No servers defined - API base URL is missing")

        paths = spec.get("paths") or {}
        if not paths:
            warnings.append("No API endpoints defined")

        for path, methods in paths.items():
            for method, operation in methods.items():
                if not operation.get("summary") and not operation.get("description"):
                    warnings.append(f"{method.upper()} {path}: Missing summary and description")
                if not operation.get("responses"):
                    warnings.append(f"{method.upper()} {path}: No responses defined")

        return warnings

    def render_html(self, spec: dict) -> str:
        """Self-contained Swagger UI page embedding ``spec`` verbatim."""
        title = (spec.get("info") or {}).get("title") or "API Documentation"
        embedded = json.dumps(spec).replace("</", "<\\/")
        return VIEWER_TEMPLATE.substitute(title=html.escape(title), spec=embedded)

    def generate_html(self, spec: dict, output_dir: Path) -> str:
        """Write ``<name>.html`` and ``<name>-spec.json``; return the shared base name."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        file_name = f"api-docs-{int(time.time() * 1000)}"

        (output_dir / f"{file_name}-spec.json").write_text(json.dumps(spec, indent=2), encoding="utf-8")
        (output_dir / f"{file_name}.html").write_text(self.render_html(spec), encoding="utf-8")

        logger.info("Generated HTML documentation at %s", output_dir / f"{file_name}.html")
        return file_name

    def create_bundle(self, spec: dict, output_dir: Path) -> GeneratedDocumentation:
        file_name = self.generate_html(spec, output_dir)
        return GeneratedDocumentation(openapi_spec=spec, html_bundle=file_name, warnings=self.validate_spec(spec))

    def build_zip(self, file_name: str, output_dir: Path) -> Path:
        """Pack ``index.html`` and ``openapi-spec.json`` into ``<name>.zip``."""
        output_dir = Path(output_dir)
        html_file = output_dir / f"{file_name}.html"
        spec_file = output_dir / f"{file_name}-spec.json"
        if not html_file.exists():
            raise FileNotFoundError(html_file)

        zip_path = output_dir / f"{file_name}.zip"
        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            archive.write(html_file, arcname="index.html")
            if spec_file.exists():
                archive.write(spec_file, arcname="openapi-spec.json")
        return zip_path
