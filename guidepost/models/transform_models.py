"""Guidepost - Transform Run Models."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel
from sqlmodel import SQLModel, Field


class TransformStatus(str, Enum):
    """Progress of one transform attempt. Only READY and FAILED are terminal."""

    UPLOADED = "uploaded"
    EXTRACTING = "extracting"
    ANALYSING = "analysing"
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransformStatus.READY, TransformStatus.FAILED)


# Progress percentage reported with each status
PROGRESS = {
    TransformStatus.UPLOADED: 0,
    TransformStatus.EXTRACTING: 20,
    TransformStatus.ANALYSING: 40,
    TransformStatus.GENERATING: 70,
    TransformStatus.READY: 100,
    TransformStatus.FAILED: 0,
}


class TransformRun(SQLModel, table=True):
    """Persisted progress of one transform attempt, polled by the UI."""

    __tablename__ = "transform_runs"

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    venue_id: str = Field(index=True)
    user_email: str = Field(index=True)
    upload_path: str = Field(description="Blob path of the uploaded PDF")
    status: str = Field(default=TransformStatus.UPLOADED.value)
    claimed: bool = Field(default=False, description="Set once by the attempt that runs it")
    progress: int = Field(default=0)
    error: Optional[str] = Field(default=None, description="Caller-safe failure message")
    error_kind: Optional[str] = Field(default=None)
    output_path: Optional[str] = Field(default=None)
    version: Optional[str] = Field(default=None)
    provider: Optional[str] = Field(default=None)
    tokens_used: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class UploadReceipt(BaseModel):
    """Returned when a PDF is accepted for a later transform."""

    upload_path: str
    run_id: str
    usage_today: int
    usage_limit: int
    is_unlimited: bool = False


class TransformOutcome(BaseModel):
    """Successful transform: the new draft and the caller's quota."""

    run_id: str
    output_path: str
    version: str
    usage_today: int
    usage_limit: int
    is_unlimited: bool = False
    suggestions: List[str] = []
    tokens_used: int = 0
    provider: str = ""
