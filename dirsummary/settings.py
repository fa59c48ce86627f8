"""Pydantic settings for the dirsummary CLI."""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SummarySettings(BaseSettings):
    """Settings for storage paths and summary defaults."""

    model_config = SettingsConfigDict(env_prefix="DIRSUMMARY_")

    base_path: Path = Field(
        Path("."),
        description="Base directory for storage and log paths.",
    )

    storage_path: Path = Field(
        Path("data"),
        description="Directory containing index.db and work.db.",
    )

    log_dir: Path = Field(
        Path("logs"),
        description="Directory for rotating log files.",
    )

    log_file_prefix: str = Field(
        "dirsummary",
        description="Prefix for the log file name.",
    )

    workers: int = Field(
        1,
        ge=1,
        description="Threads used to classify files; 1 classifies sequentially.",
    )

    @model_validator(mode="after")
    def _apply_base_path(self) -> "SummarySettings":
        self.storage_path = self._resolve_under_base(self.storage_path)
        self.log_dir = self._resolve_under_base(self.log_dir)
        return self

    def _resolve_under_base(self, path: Path) -> Path:
        if path.is_absolute():
            return path
        return self.base_path / path
