"""Conversational command engine for a content-operations dashboard."""

__all__ = [
    "actions",
    "bus",
    "classifier",
    "cli",
    "config",
    "confirmation",
    "engine",
    "intents",
    "models",
    "resolver",
    "responses",
    "schema",
    "server",
    "session",
    "slug",
    "store",
]
