"""Platform profiles and command resolution."""

import platform
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Union

from .errors import InvalidPortError
from .models import Command, PidStrategy, PlatformFamily, PlatformProfile
from ..utils.logging_config import get_logger

logger = get_logger('resolver')

MIN_PORT = 1
MAX_PORT = 65535

WINDOWS_PROFILE = PlatformProfile(
    family=PlatformFamily.WINDOWS,
    list_command=("netstat", "-ano"),
    # netstat has no port filter; the parser keeps only rows for the port
    single_port_command_template=("netstat", "-ano"),
    kill_command_template=("taskkill", "/PID", "{pid}", "/F"),
    pid_strategy=PidStrategy.REGEX_TAIL,
)

POSIX_PROFILE = PlatformProfile(
    family=PlatformFamily.POSIX,
    list_command=("lsof", "-i", "-P", "-n"),
    single_port_command_template=("lsof", "-P", "-n", "-i", ":{port}"),
    kill_command_template=("kill", "-9", "{pid}"),
    pid_strategy=PidStrategy.WHITESPACE_COLUMN,
)


@dataclass(frozen=True)
class SinglePort:
    port: int


@dataclass(frozen=True)
class ListAll:
    pass


Query = Union[SinglePort, ListAll]


def validate_port(value) -> int:
    """
    Coerce user input to a port number.

    Accepts ints and decimal strings (surrounding whitespace allowed).

    Raises:
        InvalidPortError: for anything non-numeric or outside 1-65535.
    """
    if isinstance(value, bool):
        raise InvalidPortError(value)
    if isinstance(value, int):
        port = value
    elif isinstance(value, str):
        text = value.strip()
        if not text or not text.isascii() or not text.isdigit():
            raise InvalidPortError(value)
        try:
            port = int(text)
        except ValueError:
            # e.g. more digits than int() will convert
            raise InvalidPortError(value) from None
    else:
        raise InvalidPortError(value)

    if not MIN_PORT <= port <= MAX_PORT:
        raise InvalidPortError(value)
    return port


def profile_for(system: str) -> PlatformProfile:
    """Map a ``platform.system()`` name to its profile."""
    if system.lower().startswith(("windows", "cygwin", "msys")):
        return WINDOWS_PROFILE
    return POSIX_PROFILE


@lru_cache(maxsize=1)
def current_profile() -> PlatformProfile:
    """Profile for the running OS, detected once per process."""
    system = platform.system()
    profile = profile_for(system)
    logger.debug(f"Detected platform {system!r} -> {profile.family.value}")
    return profile


class PlatformCommandResolver:
    """Builds the exact argv for a query. Pure, no I/O."""

    def __init__(self, profile: Optional[PlatformProfile] = None):
        self.profile = profile or current_profile()

    @property
    def family(self) -> PlatformFamily:
        return self.profile.family

    def resolve(self, query: Query) -> Command:
        if isinstance(query, SinglePort):
            port = validate_port(query.port)
            return self._build(self.profile.single_port_command_template, port=port)
        if isinstance(query, ListAll):
            return self._build(self.profile.list_command)
        raise TypeError(f"Unsupported query: {query!r}")

    def single_port(self, port) -> Command:
        return self.resolve(SinglePort(validate_port(port)))

    def list_all(self) -> Command:
        return self.resolve(ListAll())

    def kill(self, pid: int) -> Command:
        """Termination command for one PID."""
        if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0:
            raise ValueError(f"Invalid PID {pid!r}")
        return self._build(self.profile.kill_command_template, pid=pid)

    @staticmethod
    def _build(template: tuple[str, ...], **values) -> Command:
        argv = [part.format(**values) for part in template]
        return Command(program=argv[0], args=tuple(argv[1:]))
