from typing import Optional


class ExecutorError(Exception):
    """Base executor exception."""

    pass


class ConfigurationError(ExecutorError):
    """Invalid or missing job/executor configuration."""

    pass


class ExecutorStateError(ExecutorError):
    """Operation called out of order (e.g. run before prepare)."""

    pass


class ClusterConnectionError(ExecutorError):
    """The Kubernetes API could not be reached."""

    pass


class PodCreationError(ExecutorError):
    """The Kubernetes API rejected the build pod."""

    def __init__(
        self, message: str, status: Optional[int] = None, reason: Optional[str] = None
    ):
        super().__init__(message)
        self.status = status
        self.reason = reason


class JobCancelledError(ExecutorError):
    """Work stopped because the job was cancelled."""

    pass


class BuildAbortedError(JobCancelledError):
    """The caller's abort signal fired before the command finished."""

    pass


class ReadinessError(ExecutorError):
    """The build pod did not become runnable."""

    pass


class PodFailedError(ReadinessError):
    """The pod reached a phase it cannot recover from."""

    def __init__(self, message: str, phase: str):
        super().__init__(message)
        self.phase = phase


class ReadinessTimeoutError(ReadinessError):
    """The pod did not reach the running phase in time."""

    def __init__(self, message: str, timeout: float):
        super().__init__(message)
        self.timeout = timeout


class ReadinessCancelledError(ReadinessError, JobCancelledError):
    """Cancelled while waiting for the pod to run."""

    pass


class ExecutionError(ExecutorError):
    """A command could not be executed successfully."""

    pass


class ExecTransportError(ExecutionError):
    """The exec stream failed (handshake, dropped connection, missing status)."""

    pass


class NonZeroExitError(ExecutionError):
    """The remote command exited with a non-zero status."""

    def __init__(self, message: str, exit_code: int):
        super().__init__(message)
        self.exit_code = exit_code


class ExecCancelledError(ExecutionError, JobCancelledError):
    """Cancelled while the remote command was running."""

    pass
