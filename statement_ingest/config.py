"""
Configuration management using Pydantic Settings.
All parameters are loaded from environment variables (prefix STATEMENT_) with sensible defaults.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


ENV_FILE_PATH = Path(os.environ.get("STATEMENT_ENV_FILE", ".env"))


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STATEMENT_",
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_log_level: str = Field(default="INFO")

    # Input limits
    max_file_size_bytes: int = Field(default=10 * 1024 * 1024)

    # Native text extraction
    # Below this many characters of native text a PDF is treated as scanned.
    min_native_text_chars: int = Field(default=100)
    # Words on one line closer than this fraction of glyph height form one text run.
    run_merge_gap_ratio: float = Field(default=0.5)

    # Layout reconstruction (PDF points)
    row_tolerance: float = Field(default=3.0)
    table_row_tolerance: float = Field(default=8.0)
    column_match_tolerance: float = Field(default=50.0)

    # OCR
    ocr_engine: str = Field(default="tesseract")  # "tesseract" | "google_vision"
    ocr_language: str = Field(default="eng")
    ocr_max_pages: int = Field(default=5)
    ocr_render_scale: float = Field(default=2.0)
    ocr_timeout_seconds: int = Field(default=120)

    # Google Cloud Vision
    google_application_credentials: Optional[str] = Field(default=None)
    google_credentials_base64: Optional[str] = Field(default=None)

    # Detection
    date_sample_size: int = Field(default=20)
    column_sample_rows: int = Field(default=10)
    provider_fuzzy_threshold: float = Field(default=90.0)
    # Month names without a year at or after this month belong to the previous year
    # when the document carries no full date to anchor on.
    statement_rollover_month: int = Field(default=9)

    # Quality
    min_quality_score: int = Field(default=30)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
