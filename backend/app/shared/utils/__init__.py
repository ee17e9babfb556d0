"""
Shared Utility Functions
"""
from app.shared.utils.json_utils import safe_json_parse, to_jsonable
from app.shared.utils.time_utils import local_tz, local_now
from app.shared.utils.exceptions import (
    EntityNotFoundError,
    ScheduleConflictError,
    TriggerAuthorizationError,
    RunDeadlineExceeded,
)

__all__ = [
    "safe_json_parse",
    "to_jsonable",
    "local_tz",
    "local_now",
    "EntityNotFoundError",
    "ScheduleConflictError",
    "TriggerAuthorizationError",
    "RunDeadlineExceeded",
]
