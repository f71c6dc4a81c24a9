"""Error types raised by the feedback pipeline and its storage adapters."""


class PipelineError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class CapacityExceeded(PipelineError):
    """The feedback queue is full; the submitter should retry later."""

    def __init__(self, queue_name: str, max_capacity: int):
        super().__init__(
            f"Queue '{queue_name}' has reached maximum capacity ({max_capacity})."
        )
        self.queue_name = queue_name
        self.max_capacity = max_capacity


class DriverNotFoundError(PipelineError):
    """No driver record exists for the given id."""

    def __init__(self, driver_id: str):
        super().__init__(f"Driver '{driver_id}' not found.")
        self.driver_id = driver_id


class DuplicateDriverError(PipelineError):
    """A driver with this id was created by someone else first."""

    def __init__(self, driver_id: str):
        super().__init__(f"Driver '{driver_id}' already exists.")
        self.driver_id = driver_id


class WriteConflictError(PipelineError):
    """The driver changed between read and compare-and-set write."""

    def __init__(self, driver_id: str, expected_count: int):
        super().__init__(
            f"Driver '{driver_id}' was modified concurrently "
            f"(expected total_count={expected_count})."
        )
        self.driver_id = driver_id
        self.expected_count = expected_count


class RecordNotFoundError(PipelineError):
    """A feedback record targeted by an update no longer exists."""


class TransientStorageError(PipelineError):
    """The storage backend is temporarily unavailable."""
