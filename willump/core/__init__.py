from .models import (
    PortRecord, Protocol, PlatformFamily, PlatformProfile, PidStrategy, Command,
    ExecutionResult, ErrorKind, TerminationReason, PortFree, PortOccupied,
    ProcessTerminated, TerminationFailed, QueryFailed, QueryOutcome,
)
from .errors import (
    WillumpError, InvalidPortError, ToolNotFoundError, ExecutionTimeoutError,
    ExecutionFailedError, ParseDegradedError,
)
from .resolver import PlatformCommandResolver, SinglePort, ListAll, validate_port, current_profile
from .executor import ProcessExecutor
from .parser import PortInfoParser
from .process_tracker import ProcessTracker
from .controller import PortController

__all__ = [
    'PortRecord', 'Protocol', 'PlatformFamily', 'PlatformProfile', 'PidStrategy', 'Command',
    'ExecutionResult', 'ErrorKind', 'TerminationReason', 'PortFree', 'PortOccupied',
    'ProcessTerminated', 'TerminationFailed', 'QueryFailed', 'QueryOutcome',
    'WillumpError', 'InvalidPortError', 'ToolNotFoundError', 'ExecutionTimeoutError',
    'ExecutionFailedError', 'ParseDegradedError',
    'PlatformCommandResolver', 'SinglePort', 'ListAll', 'validate_port', 'current_profile',
    'ProcessExecutor', 'PortInfoParser', 'ProcessTracker', 'PortController',
]
