"""
Pytest configuration and shared fixtures for willump tests.

The fake executors stand in for ProcessExecutor so controller tests never
spawn real processes.
"""

import pytest

from willump.core import ExecutionResult, PortController, ToolNotFoundError
from willump.core.resolver import POSIX_PROFILE, WINDOWS_PROFILE


class SpyExecutor:
    """Records every command and fails the test if anything is actually run."""

    def __init__(self):
        self.commands = []

    async def run(self, command, timeout=None, max_output_bytes=None):
        self.commands.append(command)
        raise AssertionError(f"Unexpected command: {command}")


class ScriptedExecutor:
    """
    Returns canned results keyed by program name.

    A value may be an ExecutionResult, an exception instance to raise, or a
    callable taking the Command and returning either.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.commands = []

    async def run(self, command, timeout=None, max_output_bytes=None):
        self.commands.append(command)
        if command.program not in self.responses:
            raise ToolNotFoundError(command.program)
        response = self.responses[command.program]
        if callable(response):
            response = response(command)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def windows_profile():
    return WINDOWS_PROFILE


@pytest.fixture
def posix_profile():
    return POSIX_PROFILE


@pytest.fixture
def spy_executor():
    return SpyExecutor()


@pytest.fixture
def make_controller():
    """Build a controller around a ScriptedExecutor for the given profile."""
    def factory(profile, responses=None, tracker=None):
        executor = ScriptedExecutor(responses)
        return PortController(profile=profile, executor=executor, tracker=tracker), executor
    return factory


# Captured tool output used across tests

NETSTAT_OUTPUT = """
Active Connections

  Proto  Local Address          Foreign Address        State           PID
  TCP    0.0.0.0:135            0.0.0.0:0              LISTENING       1004
  TCP    0.0.0.0:8080           0.0.0.0:0              LISTENING       1234
  TCP    0.0.0.0:18080          0.0.0.0:0              LISTENING       4321
  TCP    127.0.0.1:52114        127.0.0.1:8080         ESTABLISHED     5555
  TCP    [::]:8080              [::]:0                 LISTENING       1234
  UDP    0.0.0.0:5353           *:*                                    2210
"""

LSOF_OUTPUT = """COMMAND     PID   USER   FD   TYPE             DEVICE SIZE/OFF NODE NAME
node       1234   dev   23u  IPv4 0x8f1c2a3b4c5d6e7f      0t0  TCP *:3000 (LISTEN)
node       1234   dev   24u  IPv6 0x8f1c2a3b4c5d6e80      0t0  TCP [::1]:3000 (LISTEN)
Google\\x20Chrome 777 dev 40u IPv4 0x8f1c2a3b4c5d6e81 0t0 TCP 127.0.0.1:60001->127.0.0.1:3000 (ESTABLISHED)
mDNSRespo   210   dev    7u  IPv4 0x8f1c2a3b4c5d6e82      0t0  UDP *:5353
"""
