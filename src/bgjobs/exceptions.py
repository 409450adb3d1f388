class BackgroundJobsError(Exception):
    """Base class for all background jobs errors."""


class BackgroundJobsDisabled(BackgroundJobsError):
    """Raised when background jobs are switched off in the settings."""


class InvalidArgument(BackgroundJobsError, ValueError):
    """Caller misuse: unknown queue, unknown command, bad worker name, bad payload."""


class NotFound(BackgroundJobsError, LookupError):
    """A supervised worker process could not be found."""


class SupervisorError(BackgroundJobsError):
    """
    A call to the process supervisor failed.

    `code` carries the XML-RPC fault code, or None when the daemon
    could not be reached at all.
    """

    def __init__(self, message: str, code=None):
        super().__init__(message)
        self.code = code
