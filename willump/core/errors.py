"""Exception taxonomy for willump."""

from .models import ErrorKind


class WillumpError(Exception):
    """Base class for every failure the core reports."""
    kind = ErrorKind.EXECUTION_FAILED


class InvalidPortError(WillumpError, ValueError):
    """Port is non-numeric or outside 1-65535. Raised before anything is spawned."""
    kind = ErrorKind.INVALID_PORT

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid port {value!r}: expected an integer in 1-65535")


class ToolNotFoundError(WillumpError):
    """The diagnostic or termination binary is not installed."""
    kind = ErrorKind.TOOL_NOT_FOUND

    def __init__(self, program: str):
        self.program = program
        super().__init__(f"Command not found: {program}")


class ExecutionTimeoutError(WillumpError):
    kind = ErrorKind.EXECUTION_TIMEOUT

    def __init__(self, command, timeout: float, result=None):
        self.command = command
        self.timeout = timeout
        # Partial output captured before the child was killed
        self.result = result
        super().__init__(f"'{command}' did not finish within {timeout:g}s")


class ExecutionFailedError(WillumpError):
    """Command ran but reported failure (non-zero exit or stderr output)."""
    kind = ErrorKind.EXECUTION_FAILED

    def __init__(self, command, exit_code: int, stderr: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        detail = stderr.strip().splitlines()[0] if stderr.strip() else f"exit code {exit_code}"
        super().__init__(f"'{command}' failed: {detail}")


class ParseDegradedError(WillumpError):
    """A binding was found but its PID could not be recovered."""
    kind = ErrorKind.PARSE_DEGRADED

    def __init__(self, port: int):
        self.port = port
        super().__init__(f"Port {port} is in use but the owning PID could not be determined")
