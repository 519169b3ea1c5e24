"""Guidepost - Usage Models (per-user daily transform counters)."""

from datetime import datetime, timezone

from pydantic import BaseModel
from sqlmodel import SQLModel, Field


class UsageRecord(SQLModel, table=True):
    """Transform count for one user on one UTC calendar day.

    The key rolls over at UTC midnight, which is the only reset.
    """

    __tablename__ = "usage_records"

    user_email: str = Field(primary_key=True)
    day: str = Field(primary_key=True, index=True, description="UTC YYYY-MM-DD")
    count: int = Field(default=0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class UsageCheck(BaseModel):
    """Outcome of a quota check; also what the UI renders as "N of limit"."""

    allowed: bool
    usage_today: int
    usage_limit: int
    is_unlimited: bool = False
