# pioeditor/config.py
"""
PIO Editor Configuration: single source of truth via Pydantic Settings.

Resolution order: CLI flags > env vars (PIOEDITOR_*) > .env file > defaults.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PioEditorConfig(BaseSettings):
    """Central configuration for the PIO editor core."""

    model_config = SettingsConfigDict(
        env_prefix="PIOEDITOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Paths ---
    home_dir: Path = Field(default_factory=lambda: Path.home() / ".pioeditor")

    @property
    def log_dir(self) -> Path:
        return self.home_dir / "logs"

    # --- Logging ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # --- Schema tables ---
    # Unset means the tables bundled in pioeditor/schemas/tables are used.
    schema_table_path: Optional[Path] = None
    reduced_table_path: Optional[Path] = None
    section_table_path: Optional[Path] = None

    # --- XML ---
    # Tags that are always read as arrays, even when they occur once.
    array_tags: list[str] = Field(
        default_factory=lambda: [
            "extension",
            "name",
            "identifier",
            "address",
            "telecom",
            "communication",
        ]
    )
    indent: str = "  "


@lru_cache(maxsize=1)
def get_config() -> PioEditorConfig:
    """Return the global config singleton."""
    return PioEditorConfig()
