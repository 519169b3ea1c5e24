"""Guidepost - Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""

    # ── Blob Storage ──
    blob_backend: str = "local"  # local | gcs
    blob_root: str = "./blobs"
    gcs_bucket_name: str = ""
    public_base_url: str = "http://localhost:8000/files"

    # ── Transform Providers ──
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-pro"
    anthropic_api_key: Optional[str] = None
    claude_model: str = "claude-sonnet-4-20250514"
    default_transform_provider: str = "gemini"  # gemini | claude | auto
    transform_timeout_seconds: float = 540.0  # LLM calls on large audits take minutes

    # ── Quotas & Limits ──
    daily_transform_limit: int = 20
    max_upload_bytes: int = 10 * 1024 * 1024
    max_editors: int = 5

    # ── Identity ──
    super_admin_emails: List[str] = []

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    usage_retention_days: int = 30
    usage_prune_hour: int = 3  # Daily prune at 3 AM UTC

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/guidepost.db"
        return "sqlite:///./guidepost.db"

    def is_super_admin(self, email: Optional[str]) -> bool:
        """Case-insensitive membership check against the super-admin list."""
        if not email:
            return False
        wanted = email.strip().lower()
        return any(e.strip().lower() == wanted for e in self.super_admin_emails)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
