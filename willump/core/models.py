"""Data models for willump."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class Protocol(Enum):
    TCP = "TCP"
    UDP = "UDP"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_text(cls, text: str) -> "Protocol":
        """Map a tool's protocol column (TCP, UDP, TCPv6, ...) to an enum value."""
        upper = text.upper()
        if upper.startswith("TCP"):
            return cls.TCP
        if upper.startswith("UDP"):
            return cls.UDP
        return cls.UNKNOWN


class PlatformFamily(Enum):
    WINDOWS = "windows"
    POSIX = "posix"


class PidStrategy(Enum):
    """How a PID is pulled out of a single-port lookup."""
    REGEX_TAIL = "regex_tail"
    WHITESPACE_COLUMN = "whitespace_column"


class ErrorKind(Enum):
    INVALID_PORT = "InvalidPort"
    TOOL_NOT_FOUND = "ToolNotFound"
    EXECUTION_TIMEOUT = "ExecutionTimeout"
    EXECUTION_FAILED = "ExecutionFailed"
    PARSE_DEGRADED = "ParseDegraded"


class TerminationReason(Enum):
    ALREADY_EXITED = "AlreadyExited"
    PERMISSION_DENIED = "PermissionDenied"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class PortRecord:
    """One observed port binding."""
    port: int
    pid: Optional[int]
    process_name: str = ""
    protocol: Protocol = Protocol.UNKNOWN
    state: str = ""
    local_address: str = ""

    @property
    def degraded(self) -> bool:
        """True when the binding was seen but its PID could not be parsed."""
        return self.pid is None

    @property
    def is_listening(self) -> bool:
        return self.state.upper() in ("LISTEN", "LISTENING")

    @property
    def display_name(self) -> str:
        if self.process_name:
            return self.process_name
        return "<unknown>"

    def to_dict(self) -> dict:
        return {
            'port': self.port,
            'pid': self.pid,
            'process_name': self.process_name,
            'protocol': self.protocol.value,
            'state': self.state,
            'local_address': self.local_address,
        }


@dataclass(frozen=True)
class PlatformProfile:
    """Platform contract, resolved once per process and passed explicitly."""
    family: PlatformFamily
    list_command: tuple[str, ...]
    single_port_command_template: tuple[str, ...]
    kill_command_template: tuple[str, ...]
    pid_strategy: PidStrategy


@dataclass(frozen=True)
class Command:
    """An argv ready to be spawned without a shell."""
    program: str
    args: tuple[str, ...] = ()

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def __str__(self) -> str:
        return " ".join(self.argv)


@dataclass
class ExecutionResult:
    """Captured output of one child process."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.stderr.strip()


# Query outcomes. Each carries the port label it was produced for so batch
# results can be attributed without relying on completion order.

@dataclass(frozen=True)
class PortFree:
    port: str


@dataclass(frozen=True)
class PortOccupied:
    port: str
    record: PortRecord
    records: tuple[PortRecord, ...] = field(default=())


@dataclass(frozen=True)
class ProcessTerminated:
    port: str
    pid: int
    process_name: str = ""


@dataclass(frozen=True)
class TerminationFailed:
    port: str
    pid: int
    reason: TerminationReason
    message: str = ""


@dataclass(frozen=True)
class QueryFailed:
    port: str
    kind: ErrorKind
    message: str = ""

    @classmethod
    def from_error(cls, port, error) -> "QueryFailed":
        """Build the outcome for a WillumpError raised while serving ``port``."""
        return cls(port=str(port), kind=error.kind, message=str(error))


QueryOutcome = Union[PortFree, PortOccupied, ProcessTerminated, TerminationFailed, QueryFailed]
