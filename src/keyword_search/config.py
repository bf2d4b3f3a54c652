"""Centralized configuration for keyword-search using Pydantic Settings."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide search defaults loaded from environment variables.

    Every search option resolves per key: the value passed at call time wins,
    otherwise the value configured here is used.
    """

    model_config = SettingsConfigDict(
        env_prefix="KEYWORD_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Search defaults
    match: Literal["all", "any"] = Field(default="all", description="Default match mode for multi-token queries")
    allow_empty_search: bool = Field(
        default=False, description="Return the whole collection for blank queries instead of nothing"
    )
    relevant_search: bool = Field(default=False, description="Rank results by keyword overlap count by default")

    # Query construction
    regex_search: bool = Field(default=False, description="Match keyword clauses with a pattern instead of equality")
    regex_template: str = Field(
        default="^{token}",
        description="Pattern applied to each escaped query token when regex_search is enabled",
    )

    # Normalization
    minimum_word_size: int = Field(default=1, ge=1, description="Tokens shorter than this are discarded")
    ignore_list: str = Field(default="", description="Comma-separated tokens that are never indexed or searched")
    strip_accents: bool = Field(default=False, description="Fold accented characters before tokenizing")

    # Storage
    database_path: str = Field(default="keyword_search.db", description="SQLite database used by the CLI")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    @field_validator("match", mode="before")
    @classmethod
    def _lowercase_match(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("regex_template")
    @classmethod
    def _check_regex_template(cls, value: str) -> str:
        if "{token}" not in value:
            raise ValueError("regex_template must contain the {token} placeholder")
        return value

    def get_ignore_list(self) -> list[str]:
        """Get list of ignored tokens (comma-separated, lowercased)."""
        if not self.ignore_list:
            return []
        return [word.strip().lower() for word in self.ignore_list.split(",") if word.strip()]
