"""
Content Automation - Pydantic Schemas
Request and Response models for the trigger and schedule endpoints.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from datetime import datetime


# ============================================
# REQUEST MODELS
# ============================================

class ScheduleMatchRequest(BaseModel):
    """Request to (re)create the content schedule of a match"""
    force_reschedule: bool = Field(
        default=False,
        description="Cancel pending items and schedule again instead of returning 409"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "force_reschedule": False
            }
        }


class UpdateScheduleRequest(BaseModel):
    """Request to re-plan a match, typically after a kickoff change"""
    new_kickoff: Optional[datetime] = Field(
        default=None,
        description="New kickoff time (timezone-aware). Omit to re-plan with the stored kickoff"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "new_kickoff": "2026-10-18T20:30:00+00:00"
            }
        }

    @field_validator("new_kickoff")
    @classmethod
    def validate_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            raise ValueError("new_kickoff must include a timezone offset")
        return v


class CancelScheduleRequest(BaseModel):
    """Request to cancel the pending items of a match"""
    reason: str = Field(
        default="Cancelled",
        min_length=1,
        max_length=200,
        description="Stored on every cancelled item"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "reason": "Match postponed"
            }
        }


# ============================================
# RESPONSE MODELS
# ============================================

class RunSummaryResponse(BaseModel):
    """Structured outcome of one automation run"""
    success: bool
    run_type: str
    status: str = Field(description="completed | partial | failed")
    correlation_id: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    summary: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "run_type": "hourly",
                "status": "completed",
                "correlation_id": "run-1a2b3c4d",
                "started_at": "2026-10-18T09:00:00+00:00",
                "finished_at": "2026-10-18T09:00:07+00:00",
                "summary": {"rules_evaluated": 6, "rules_triggered": 2, "messages_sent": 4, "errors": []},
                "error": None
            }
        }


class ScheduledItemSummary(BaseModel):
    """One planned content item"""
    match_id: int
    content_type: str
    content_subtype: Optional[str] = None
    language: str
    target_channels: List[int] = []
    scheduled_for: datetime
    priority: int
    engagement_score: Optional[int] = None
    timing_reason: Optional[str] = None


class ScheduleMatchResponse(BaseModel):
    """Result of scheduling or re-planning a match"""
    success: bool
    match_id: int
    template: Optional[str] = None
    scheduled_count: int = 0
    cancelled_count: int = 0
    languages: List[str] = []
    items: List[ScheduledItemSummary] = []


class CancelScheduleResponse(BaseModel):
    success: bool
    match_id: int
    cancelled_count: int = 0


class ScheduleAnalyticsResponse(BaseModel):
    """Scheduled item outcomes over the last N days"""
    period_days: int
    total_items: int
    by_status: Dict[str, int] = {}
    by_content_type: Dict[str, Dict[str, int]] = {}
    success_rate: Optional[float] = Field(
        default=None,
        description="Percentage of finished items that were sent; null when nothing finished"
    )


class SpamUsageResponse(BaseModel):
    """Today's spam guard counters"""
    date: str
    total_sent: int
    emergency_brake: int
    by_type: Dict[str, int] = {}
    limits: Dict[str, int] = {}
    status: str = Field(description="NORMAL | DAILY_LIMIT_REACHED | EMERGENCY_STOP")


class PushQueueItemSummary(BaseModel):
    id: int
    primary_content_id: Optional[str] = None
    primary_content_type: str
    channel_ids: List[int] = []
    language: Optional[str] = None
    scheduled_at: datetime
    status: str
    delay_minutes: Optional[int] = None
    context_data: Optional[Dict[str, Any]] = None


class PushScheduleResponse(BaseModel):
    """Today's push queue"""
    date: str
    total: int
    by_status: Dict[str, int] = {}
    next_delivery: Optional[datetime] = None
    items: List[PushQueueItemSummary] = []


class AutomationRunItem(BaseModel):
    id: int
    run_type: str
    status: str
    rule_id: Optional[int] = None
    content_type: Optional[str] = None
    summary: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class AutomationRunsResponse(BaseModel):
    runs: List[AutomationRunItem]
    total: int
