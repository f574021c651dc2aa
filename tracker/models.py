"""
Models for the value tracker.

This module defines Pydantic models for:
- Per-item counter records and observed value sets
- Persisted snapshots
- Comparison classifications and failure reasons
- Tick results returned by the tracker service
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class CounterRecord(BaseModel):
    """Counters observed for one item at one point in time."""
    streams: int = Field(..., ge=0, description="Cumulative play count")
    listeners: int = Field(..., ge=0, description="Listener count")
    saves: int = Field(..., ge=0, description="Save count")


# item name -> counters
ValueSet = Dict[str, CounterRecord]

# Display order and labels used in notification messages
COUNTER_LABELS = {
    "streams": "Streams",
    "listeners": "Listeners",
    "saves": "Saves",
}


class Snapshot(BaseModel):
    """A timestamped value set as persisted in a yearly storage unit."""
    values: Dict[str, CounterRecord] = Field(default_factory=dict)
    date: str = Field(..., description="UTC ISO-8601 timestamp, also the history key")


class Observation(BaseModel):
    """What an observation source produced for one tick."""
    values: Dict[str, CounterRecord] = Field(default_factory=dict)
    raw_count: Optional[int] = Field(
        default=None,
        ge=0,
        description="Rows seen before any de-duplication, when the source knows it"
    )


class Classification(str, Enum):
    """How an observation compares to the last known values."""
    IDENTICAL = "identical"
    INCOMPLETE = "incomplete"
    REGRESSIVE = "regressive"
    ACCEPTED = "accepted"


class FailureReason(str, Enum):
    """Reasons a tick could not produce usable values."""
    NONE = "NONE"
    ERROR_GETTING_VALUES = "ERROR_GETTING_VALUES"
    NO_VALUES = "NO_VALUES"
    MISSING_VALUES = "MISSING_VALUES"


class ReportOutcome(str, Enum):
    """What the failure reporter did with a report call."""
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class TickOutcome(str, Enum):
    """Final status of one tick."""
    SKIPPED_OVERLAP = "skipped_overlap"
    FAILED = "failed"
    NO_CHANGE = "no_change"
    REJECTED = "rejected"
    NOTIFIED = "notified"
    PERSIST_FAILED = "persist_failed"


class TickResult(BaseModel):
    """Result of a single tick."""
    tick_id: str = Field(..., description="Unique tick identifier")
    started_at: datetime = Field(default_factory=datetime.utcnow)
    outcome: TickOutcome = Field(...)
    classification: Optional[Classification] = Field(default=None)
    failure_reason: Optional[str] = Field(default=None)
    report_outcome: Optional[ReportOutcome] = Field(default=None)
    message: Optional[str] = Field(default=None, description="Escaped notification text")
    duration_seconds: float = Field(default=0.0)
    error: Optional[str] = Field(default=None)

    class Config:
        """Pydantic configuration."""
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }
