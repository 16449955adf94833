"""Configuration helpers for the conversational command engine."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    openai_api_key: str | None = Field(None, alias="OPENAI_API_KEY")
    classifier_model: str = Field(
        "gpt-4.1-mini", description="Tool-calling model used to classify chat messages."
    )
    classifier_max_tokens: int = Field(
        256, description="Max output tokens for a single classification call."
    )
    classifier_temperature: float = Field(0.0, description="Classification temperature.")
    max_article_titles: int = Field(
        50, description="Cap on article titles sent to the classifier as context."
    )
    query_preview_limit: int = Field(
        10, description="Max articles listed in a query response before '...and N more'."
    )
    inactivity_minutes: int = Field(
        30,
        description=(
            "Minutes since the last message after which the UI offers "
            "'continue' vs 'start fresh'."
        ),
    )
    confirmation_policy: Literal["override", "strict"] = Field(
        "override",
        description=(
            "What happens to a pending article proposal when the user sends an "
            "unrelated message: 'override' discards it, 'strict' keeps waiting."
        ),
    )
    discard_stale_responses: bool = Field(
        True,
        description=(
            "Drop classification responses whose session was reset while the "
            "request was in flight."
        ),
    )
    content_library_path: str = Field(
        "/content-library", description="Route the UI navigates to after creating an article."
    )
    content_store_path: str | None = Field(
        None,
        alias="CONTENT_STORE_PATH",
        description="Optional override for the JSON content store; defaults to data/content.json.",
    )


def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # pydantic settings cache internally
