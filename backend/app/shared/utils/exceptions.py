"""
Custom Exceptions for the Content Automation Application.

These exceptions cover the fatal and conflict cases of an automation run.
Soft outcomes (no content, no matching channels, rate limit reached) are never
raised; they are reported in result dicts.
"""


class EntityNotFoundError(Exception):
    """
    Raised when a requested entity does not exist in the database.
    """
    def __init__(self, entity_type: str, entity_id, message: str = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.message = message or f"{entity_type} with ID {entity_id} not found."
        super().__init__(self.message)


class ScheduleConflictError(Exception):
    """
    Raised when a match already has an active (pending) content schedule and
    the caller did not ask for a forced reschedule.

    Example:
        Discovery schedules match M at 07:00 -> 6 pending items
        An operator clicks "schedule" for M again at 09:00 -> ScheduleConflictError

    Recovery:
        Retry with force_reschedule=True, which cancels the pending items
        before inserting the new set.
    """
    def __init__(self, match_id: str, pending_count: int):
        self.match_id = match_id
        self.pending_count = pending_count
        self.message = (
            f"Match {match_id} already has {pending_count} pending items. "
            f"Use force_reschedule to replace them."
        )
        super().__init__(self.message)


class TriggerAuthorizationError(Exception):
    """
    Raised when an orchestration trigger is called without a valid cron secret.
    """
    def __init__(self, message: str = "Trigger is not authorized"):
        self.message = message
        super().__init__(self.message)


class RunDeadlineExceeded(Exception):
    """
    Raised inside a run when its overall deadline has passed.

    The orchestrator catches it, stops taking new work and returns the partial
    summary collected so far.
    """
    def __init__(self, run_type: str, deadline_seconds: float):
        self.run_type = run_type
        self.deadline_seconds = deadline_seconds
        self.message = f"{run_type} run exceeded its {deadline_seconds:.0f}s deadline"
        super().__init__(self.message)
