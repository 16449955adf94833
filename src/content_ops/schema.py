"""Tool schemas offered to the classifier and validation of the params it returns."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from .models import ARTICLE_CATEGORIES, ARTICLE_STATUSES

ARTICLE_FIELDS: tuple[str, ...] = (
    "keyword",
    "title",
    "slug",
    "category",
    "status",
    "metaTitle",
    "metaDescription",
    "ctaText",
    "ctaUrl",
    "authorId",
    "contentPath",
)
DEFAULT_FIELDS: tuple[str, ...] = (
    "category",
    "contentPaths",
    "ctaText",
    "ctaUrl",
    "authorAssignmentRules",
)

_DATE_FILTERS: Dict[str, Any] = {
    "statusFilter": {
        "type": "string",
        "enum": list(ARTICLE_STATUSES),
        "description": "Optional status to filter by. Omit to include every status.",
    },
    "olderThanDays": {
        "type": "integer",
        "minimum": 0,
        "description": "Only articles created at least this many days ago.",
    },
    "newerThanDays": {
        "type": "integer",
        "minimum": 0,
        "description": "Only articles created at most this many days ago.",
    },
}


def _object(properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


# Tool name -> (description, JSON schema of its params).
TOOL_SCHEMAS: Dict[str, tuple[str, Dict[str, Any]]] = {
    "generate_article": (
        "Create/generate/write a new article for the content library. Only call this "
        "when the user names a specific topic or title.",
        _object(
            {
                "articleRef": {
                    "type": "string",
                    "minLength": 1,
                    "description": (
                        "The topic, title, or keyword of the new article, without quotes. "
                        "Never a placeholder like 'an article'."
                    ),
                },
                "category": {
                    "type": "string",
                    "enum": list(ARTICLE_CATEGORIES),
                    "description": "Article category if the user names one.",
                },
            },
            ["articleRef"],
        ),
    ),
    "trigger_generation": (
        "Start generating the body content of an existing article.",
        _object(
            {
                "articleRef": {
                    "type": "string",
                    "minLength": 1,
                    "description": "Title, keyword, or slug of the existing article.",
                }
            },
            ["articleRef"],
        ),
    ),
    "edit_article_field": (
        "Change one field of an existing article.",
        _object(
            {
                "articleRef": {
                    "type": "string",
                    "minLength": 1,
                    "description": "Title, keyword, or slug of the article. Strip quotes.",
                },
                "field": {
                    "type": "string",
                    "enum": list(ARTICLE_FIELDS),
                    "description": "The field to update.",
                },
                "value": {"type": "string", "description": "The new value for the field."},
            },
            ["articleRef", "field", "value"],
        ),
    ),
    "edit_default": (
        "Change a default setting for all future articles. Triggered by phrases like "
        "'default', 'always', 'from now on', 'every article'.",
        _object(
            {
                "field": {
                    "type": "string",
                    "enum": list(DEFAULT_FIELDS),
                    "description": "contentPaths = publish path/section/URL path.",
                },
                "value": {"type": "string", "description": "The new default value."},
            },
            ["field", "value"],
        ),
    ),
    "query_articles": (
        "List/show/find articles in the content library, optionally filtered.",
        _object(dict(_DATE_FILTERS), []),
    ),
    "count_articles": (
        "Count articles in the content library, optionally filtered.",
        _object(dict(_DATE_FILTERS), []),
    ),
    "preview_article": (
        "Preview/view/open a specific existing article.",
        _object(
            {
                "articleRef": {
                    "type": "string",
                    "minLength": 1,
                    "description": "Title, keyword, or slug of the article. Strip quotes.",
                }
            },
            ["articleRef"],
        ),
    ),
    "help": (
        "The user asks what you can do, asks for help, or wants the list of commands.",
        _object({}, []),
    ),
}

TOOL_NAMES: tuple[str, ...] = tuple(TOOL_SCHEMAS)


def format_errors(errors: Iterable[ValidationError]) -> str:
    """Turn jsonschema errors into a concise human-readable string."""
    parts = []
    for err in errors:
        location = ".".join(str(piece) for piece in err.absolute_path) or "<root>"
        parts.append(f"{location}: {err.message}")
    return "; ".join(parts)


def validate_tool_params(tool_name: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate classifier params against the tool's schema.

    Raises ValueError for unknown tools or params that do not fit the schema.
    """
    if tool_name not in TOOL_SCHEMAS:
        raise ValueError(f"Unknown tool: {tool_name}")
    _, schema = TOOL_SCHEMAS[tool_name]
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(params), key=lambda e: list(e.absolute_path))
    if errors:
        raise ValueError(f"Invalid params for {tool_name}: {format_errors(errors)}")
    return params


def openai_tools() -> List[Dict[str, Any]]:
    """Tool definitions in the Responses API function-tool format."""
    return [
        {
            "type": "function",
            "name": name,
            "description": description,
            "parameters": schema,
            # Optional params are omitted rather than sent as null.
            "strict": False,
        }
        for name, (description, schema) in TOOL_SCHEMAS.items()
    ]
