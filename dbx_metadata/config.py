"""Configuration management for dbx-metadata."""

import os
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional

from .export import ExportOptions


def _find_env_file() -> Optional[str]:
    """Find .env file in multiple locations.

    Search order:
    1. Current working directory
    2. ~/.dbx-metadata/.env
    """
    if os.path.exists(".env"):
        return ".env"

    user_env = Path.home() / ".dbx-metadata" / ".env"
    if user_env.exists():
        return str(user_env)

    return None


class Settings(BaseSettings):
    """Application settings loaded from DBX_METADATA_* environment variables."""

    # Connection
    url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy database URL to explore"
    )
    default_schema: Optional[str] = Field(
        default=None,
        description="Schema used by commands when none is given"
    )

    # Exploration
    cache_enabled: bool = Field(
        default=False,
        description="Keep the last exploration result for repeated exports"
    )

    # Export defaults
    include_procedures: bool = Field(default=True, description="Export stored procedures and functions")
    include_triggers: bool = Field(default=True, description="Export table triggers")
    include_index_details: bool = Field(default=True, description="Export index definitions")
    include_comments: bool = Field(default=True, description="Export table, view and column comments")
    include_view_definitions: bool = Field(default=True, description="Export view source text")
    pretty_print: bool = Field(default=True, description="Indent exported JSON")

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="Log level for CLI runs"
    )

    class Config:
        env_prefix = "DBX_METADATA_"
        env_file = _find_env_file()
        env_file_encoding = "utf-8"
        extra = "ignore"

    def export_options(self, output_path: Optional[Path] = None) -> ExportOptions:
        """Build export options from the configured defaults."""
        return ExportOptions(
            output_path=output_path,
            pretty_print=self.pretty_print,
            include_procedures=self.include_procedures,
            include_triggers=self.include_triggers,
            include_index_details=self.include_index_details,
            include_comments=self.include_comments,
            include_view_definitions=self.include_view_definitions,
        )


# Global settings instance
settings = Settings()
