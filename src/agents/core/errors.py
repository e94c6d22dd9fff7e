"""Exceptions shared across the agent core, the scheduler adapter and the app layer."""


class MalformedHistoryError(ValueError):
    """A stored or submitted message carries a tool invocation state outside ToolState."""


class InferenceConfigError(RuntimeError):
    """The inference backend is not configured; the request cannot be served."""


class ScheduleError(Exception):
    """The scheduler rejected a trigger or could not store the job."""


class ScheduleNotFoundError(ScheduleError):
    def __init__(self, schedule_id: str):
        super().__init__(f"Schedule {schedule_id} not found")
        self.schedule_id = schedule_id
