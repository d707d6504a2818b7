"""Exception hierarchy for the monitoring core."""


class StatusFlowError(Exception):
    """Base class for errors raised by the monitoring core."""


class NotFoundError(StatusFlowError):
    """A monitor, alert or channel does not exist for the caller."""


class JobAlreadyScheduledError(StatusFlowError):
    """A recurring job with the same key is already registered."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} is already scheduled")
        self.job_id = job_id


class JobQueueError(StatusFlowError):
    """The job store kept failing after all retry attempts."""


class NotificationError(StatusFlowError):
    """A notification could not be delivered through a channel."""


class InvalidAlertTransitionError(StatusFlowError):
    """An alert lifecycle transition is not allowed from its current state."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move alert from {current} to {target}")
        self.current = current
        self.target = target
