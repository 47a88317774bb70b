"""Pipeline exception hierarchy"""


class PipelineError(Exception):
    """Base class for all chunk pipeline errors"""


class TaskCancelledError(PipelineError):
    """Raised once a run has been cancelled. Terminal, never retried."""

    def __init__(self, message: str = "Task cancelled"):
        super().__init__(message)


class ChunkSourceError(PipelineError):
    """A chunk source failed to resolve. Fatal for the run."""

    def __init__(self, message: str, index: int = None):
        super().__init__(message)
        self.index = index


class ProcessorError(PipelineError):
    """
    The per-chunk operation kept failing after the retry policy gave up.
    Only raised when a retry ceiling is configured.
    """

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts
