class FsIndexError(Exception):
    """Base exception for fsindexd."""


class SchedulerClosedError(FsIndexError):
    """Raised when records are handed to a scheduler after shutdown was requested."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"scheduler is shut down; rejected {operation}")
