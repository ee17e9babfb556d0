"""
Content Automation Schemas

Pydantic models for API request/response validation.
"""

from .automation_schemas import (
    # Request schemas
    ScheduleMatchRequest,
    UpdateScheduleRequest,
    CancelScheduleRequest,
    # Response schemas
    RunSummaryResponse,
    ScheduledItemSummary,
    ScheduleMatchResponse,
    CancelScheduleResponse,
    ScheduleAnalyticsResponse,
    SpamUsageResponse,
    PushQueueItemSummary,
    PushScheduleResponse,
    AutomationRunItem,
    AutomationRunsResponse,
)

__all__ = [
    "ScheduleMatchRequest",
    "UpdateScheduleRequest",
    "CancelScheduleRequest",
    "RunSummaryResponse",
    "ScheduledItemSummary",
    "ScheduleMatchResponse",
    "CancelScheduleResponse",
    "ScheduleAnalyticsResponse",
    "SpamUsageResponse",
    "PushQueueItemSummary",
    "PushScheduleResponse",
    "AutomationRunItem",
    "AutomationRunsResponse",
]
