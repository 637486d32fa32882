"""Detect the format of an API documentation source."""

import json
from pathlib import PurePath

import yaml

from api_dochancer.exceptions import UnsupportedFormatError

EXTENSION_FORMATS = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".html": "html",
    ".htm": "html",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".txt": "text",
    ".md": "text",
}

FORMATS = frozenset(EXTENSION_FORMATS.values())


def format_from_extension(file_name: str | PurePath) -> str:
    """Map a file name to one of the parser formats.

    Returns: 'pdf', 'docx', 'html', 'json', 'yaml' or 'text'.
    Raises UnsupportedFormatError for anything else, including legacy .doc.
    """
    ext = PurePath(file_name).suffix.lower()
    try:
        return EXTENSION_FORMATS[ext]
    except KeyError:
        raise UnsupportedFormatError(ext) from None


def normalize_format_hint(hint: str) -> str:
    """Accept either a format name ('html') or an extension ('.htm')."""
    fmt = hint.strip().lower()
    if fmt in FORMATS:
        return fmt
    if fmt in ("markdown", "md", "txt"):
        return "text"
    return format_from_extension("doc." + fmt.lstrip("."))


def format_from_content_type(content_type: str | None) -> str:
    """Map an HTTP Content-Type header to a parser format; HTML is the default."""
    content_type = (content_type or "").lower()
    if "json" in content_type:
        return "json"
    if "pdf" in content_type:
        return "pdf"
    if "officedocument.wordprocessingml" in content_type:
        return "docx"
    if "msword" in content_type:
        # legacy binary .doc; python-docx only reads OOXML
        raise UnsupportedFormatError(content_type)
    if "yaml" in content_type:
        return "yaml"
    if content_type.startswith("text/plain") or "markdown" in content_type:
        return "text"
    return "html"


def looks_like_openapi(data: object) -> bool:
    return isinstance(data, dict) and ("openapi" in data or "swagger" in data)


def load_structured(text: str, fmt: str) -> object:
    """Parse JSON or YAML text. Raises ValueError / yaml.YAMLError when malformed."""
    if fmt == "yaml":
        return yaml.safe_load(text)
    return json.loads(text)
