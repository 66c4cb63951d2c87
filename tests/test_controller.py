"""Tests for PortController check/kill/list orchestration."""

import pytest

from willump.core import (
    ErrorKind, ExecutionFailedError, ExecutionResult, ExecutionTimeoutError,
    PortController, PortFree, PortOccupied, ProcessTerminated, QueryFailed,
    TerminationFailed, TerminationReason, ToolNotFoundError,
)
from willump.core.controller import classify_termination_failure

from conftest import LSOF_OUTPUT, NETSTAT_OUTPUT

LSOF_3000 = """COMMAND  PID USER   FD   TYPE DEVICE SIZE/OFF NODE NAME
node    1234  dev   23u  IPv4 0x1a2b      0t0  TCP *:3000 (LISTEN)
"""


def ok(stdout="", stderr="", exit_code=0):
    return ExecutionResult(exit_code=exit_code, stdout=stdout, stderr=stderr)


class FakeTracker:
    def __init__(self, names):
        self.names = names
        self.calls = 0

    def enrich(self, records):
        from dataclasses import replace
        self.calls += 1
        return [replace(r, process_name=self.names.get(r.pid, "")) for r in records]


class TestCheckPort:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", [
        ok(stdout=""),
        ok(stdout="   \n\t"),
        ok(stdout="", exit_code=1),
        ok(stdout=LSOF_3000, stderr="lsof: WARNING: something"),
        ok(stdout=LSOF_3000, exit_code=1),
    ])
    async def test_free_when_tool_reports_nothing_or_fails(self, make_controller, posix_profile, result):
        controller, _ = make_controller(posix_profile, {"lsof": result})
        assert await controller.check_port(3000) == PortFree("3000")

    @pytest.mark.asyncio
    async def test_occupied(self, make_controller, posix_profile):
        controller, executor = make_controller(posix_profile, {"lsof": ok(LSOF_3000)})
        outcome = await controller.check_port("3000")
        assert isinstance(outcome, PortOccupied)
        assert outcome.port == "3000"
        assert outcome.record.pid == 1234
        assert outcome.record.process_name == "node"
        assert executor.commands[0].args[-1] == ":3000"

    @pytest.mark.asyncio
    async def test_windows_occupied_prefers_listening_row(self, make_controller, windows_profile):
        controller, _ = make_controller(windows_profile, {"netstat": ok(NETSTAT_OUTPUT)})
        outcome = await controller.check_port(8080)
        assert isinstance(outcome, PortOccupied)
        assert outcome.record.pid == 1234
        assert outcome.record.is_listening
        assert len(outcome.records) == 2

    @pytest.mark.asyncio
    async def test_windows_free_port_in_full_listing(self, make_controller, windows_profile):
        controller, _ = make_controller(windows_profile, {"netstat": ok(NETSTAT_OUTPUT)})
        assert await controller.check_port(9999) == PortFree("9999")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("port", [0, 65536, -1, "abc", "", "80; rm -rf /", "9" * 5000])
    async def test_invalid_port_never_spawns(self, posix_profile, spy_executor, port):
        controller = PortController(profile=posix_profile, executor=spy_executor)
        outcome = await controller.check_port(port)
        assert isinstance(outcome, QueryFailed)
        assert outcome.kind == ErrorKind.INVALID_PORT
        assert spy_executor.commands == []

    @pytest.mark.asyncio
    async def test_missing_tool_is_not_free(self, make_controller, posix_profile):
        controller, _ = make_controller(posix_profile, {})
        outcome = await controller.check_port(3000)
        assert isinstance(outcome, QueryFailed)
        assert outcome.kind == ErrorKind.TOOL_NOT_FOUND

    @pytest.mark.asyncio
    async def test_timeout_is_reported(self, make_controller, posix_profile):
        controller, _ = make_controller(posix_profile, {
            "lsof": lambda command: ExecutionTimeoutError(command, 5.0),
        })
        outcome = await controller.check_port(3000)
        assert isinstance(outcome, QueryFailed)
        assert outcome.kind == ErrorKind.EXECUTION_TIMEOUT

    @pytest.mark.asyncio
    async def test_names_filled_in_by_tracker(self, make_controller, windows_profile):
        tracker = FakeTracker({1234: "java.exe"})
        controller, _ = make_controller(windows_profile, {"netstat": ok(NETSTAT_OUTPUT)}, tracker=tracker)
        outcome = await controller.check_port(8080)
        assert outcome.record.process_name == "java.exe"
        assert tracker.calls == 1

    @pytest.mark.asyncio
    async def test_tracker_skipped_when_names_present(self, make_controller, posix_profile):
        tracker = FakeTracker({})
        controller, _ = make_controller(posix_profile, {"lsof": ok(LSOF_3000)}, tracker=tracker)
        await controller.check_port(3000)
        assert tracker.calls == 0


class TestKillPort:

    @pytest.mark.asyncio
    async def test_free_port_is_a_no_op(self, make_controller, posix_profile):
        controller, executor = make_controller(posix_profile, {"lsof": ok("", exit_code=1)})
        assert await controller.kill_port(3000) == PortFree("3000")
        assert [c.program for c in executor.commands] == ["lsof"]

    @pytest.mark.asyncio
    async def test_terminated(self, make_controller, posix_profile):
        controller, executor = make_controller(posix_profile, {
            "lsof": ok(LSOF_3000),
            "kill": ok(),
        })
        outcome = await controller.kill_port(3000)
        assert outcome == ProcessTerminated("3000", 1234, "node")
        assert executor.commands[-1].argv == ["kill", "-9", "1234"]

    @pytest.mark.asyncio
    async def test_already_exited(self, make_controller, posix_profile):
        controller, _ = make_controller(posix_profile, {
            "lsof": ok(LSOF_3000),
            "kill": ok(stderr="kill: (1234) - No such process", exit_code=1),
        })
        outcome = await controller.kill_port(3000)
        assert isinstance(outcome, TerminationFailed)
        assert outcome.pid == 1234
        assert outcome.reason == TerminationReason.ALREADY_EXITED

    @pytest.mark.asyncio
    async def test_permission_denied_on_windows(self, make_controller, windows_profile):
        controller, executor = make_controller(windows_profile, {
            "netstat": ok(NETSTAT_OUTPUT),
            "taskkill": ok(
                stderr="ERROR: The process with PID 1234 could not be terminated.\n"
                       "Reason: Access is denied.",
                exit_code=1,
            ),
        })
        outcome = await controller.kill_port(8080)
        assert isinstance(outcome, TerminationFailed)
        assert outcome.reason == TerminationReason.PERMISSION_DENIED
        assert executor.commands[-1].argv == ["taskkill", "/PID", "1234", "/F"]

    @pytest.mark.asyncio
    async def test_failed_kill_is_not_retried(self, make_controller, posix_profile):
        controller, executor = make_controller(posix_profile, {
            "lsof": ok(LSOF_3000),
            "kill": ok(stderr="something odd", exit_code=1),
        })
        outcome = await controller.kill_port(3000)
        assert outcome.reason == TerminationReason.UNKNOWN
        assert [c.program for c in executor.commands] == ["lsof", "kill"]

    @pytest.mark.asyncio
    async def test_kill_tool_missing(self, make_controller, posix_profile):
        controller, _ = make_controller(posix_profile, {"lsof": ok(LSOF_3000)})
        outcome = await controller.kill_port(3000)
        assert isinstance(outcome, TerminationFailed)
        assert outcome.reason == TerminationReason.UNKNOWN
        assert "kill" in outcome.message

    @pytest.mark.asyncio
    async def test_unresolvable_pid_is_reported(self, make_controller, posix_profile):
        output = "COMMAND PID USER FD TYPE DEVICE SIZE/OFF NODE NAME\nnode ??? dev 23u IPv4 0x1 0t0 TCP *:3000 (LISTEN)\n"
        controller, executor = make_controller(posix_profile, {"lsof": ok(output)})
        outcome = await controller.kill_port(3000)
        assert isinstance(outcome, QueryFailed)
        assert outcome.kind == ErrorKind.PARSE_DEGRADED
        assert [c.program for c in executor.commands] == ["lsof"]

    @pytest.mark.asyncio
    async def test_invalid_port_never_spawns(self, posix_profile, spy_executor):
        controller = PortController(profile=posix_profile, executor=spy_executor)
        outcome = await controller.kill_port("99999")
        assert outcome.kind == ErrorKind.INVALID_PORT
        assert spy_executor.commands == []

    @pytest.mark.asyncio
    async def test_time_wait_only_port_is_not_killed(self, make_controller, windows_profile):
        netstat = (
            "  Proto  Local Address          Foreign Address        State           PID\n"
            "  TCP    127.0.0.1:8080         127.0.0.1:52114        TIME_WAIT       0\n"
        )
        controller, executor = make_controller(windows_profile, {"netstat": ok(netstat)})
        outcomes = await controller.kill_ports([8080, 3000])
        assert isinstance(outcomes[0], TerminationFailed)
        assert outcomes[0].pid == 0
        assert outcomes[0].reason == TerminationReason.UNKNOWN
        assert outcomes[1] == PortFree("3000")
        assert "taskkill" not in [c.program for c in executor.commands]

    @pytest.mark.asyncio
    async def test_real_pid_preferred_over_time_wait(self, make_controller, windows_profile):
        netstat = (
            "  TCP    127.0.0.1:8080         127.0.0.1:52114        TIME_WAIT       0\n"
            "  TCP    127.0.0.1:8080         127.0.0.1:52115        ESTABLISHED     4321\n"
        )
        controller, executor = make_controller(windows_profile, {
            "netstat": ok(netstat),
            "taskkill": ok(),
        })
        outcome = await controller.kill_port(8080)
        assert outcome == ProcessTerminated("8080", 4321, "")
        assert executor.commands[-1].argv == ["taskkill", "/PID", "4321", "/F"]


class TestListAllPorts:

    @pytest.mark.asyncio
    async def test_sorted_records(self, make_controller, posix_profile):
        controller, _ = make_controller(posix_profile, {"lsof": ok(LSOF_OUTPUT)})
        records = await controller.list_all_ports()
        assert [r.port for r in records] == [3000, 3000, 5353, 60001]

    @pytest.mark.asyncio
    async def test_stderr_fails_the_listing(self, make_controller, posix_profile):
        controller, _ = make_controller(posix_profile, {
            "lsof": ok(LSOF_OUTPUT, stderr="lsof: WARNING: can't stat()"),
        })
        with pytest.raises(ExecutionFailedError):
            await controller.list_all_ports()

    @pytest.mark.asyncio
    async def test_nonzero_exit_fails_the_listing(self, make_controller, windows_profile):
        controller, _ = make_controller(windows_profile, {"netstat": ok(NETSTAT_OUTPUT, exit_code=1)})
        with pytest.raises(ExecutionFailedError) as excinfo:
            await controller.list_all_ports()
        assert QueryFailed.from_error("*", excinfo.value).kind == ErrorKind.EXECUTION_FAILED

    @pytest.mark.asyncio
    async def test_missing_tool(self, make_controller, posix_profile):
        controller, _ = make_controller(posix_profile, {})
        with pytest.raises(ToolNotFoundError):
            await controller.list_all_ports()

    @pytest.mark.asyncio
    async def test_truncated_output_drops_last_row(self, make_controller, posix_profile):
        cut = LSOF_3000 + "node    12"
        result = ExecutionResult(exit_code=0, stdout=cut, truncated=True)
        controller, _ = make_controller(posix_profile, {"lsof": result})
        records = await controller.list_all_ports()
        assert [(r.port, r.pid) for r in records] == [(3000, 1234)]


class TestBatch:

    @pytest.mark.asyncio
    async def test_outcomes_carry_their_port(self, make_controller, posix_profile):
        def lookup(command):
            if command.args[-1] == ":3000":
                return ok(LSOF_3000)
            return ok("", exit_code=1)

        controller, _ = make_controller(posix_profile, {"lsof": lookup})
        outcomes = await controller.check_ports(["3000", "bogus", "8080"])
        by_port = {o.port: o for o in outcomes}
        assert isinstance(by_port["3000"], PortOccupied)
        assert by_port["bogus"].kind == ErrorKind.INVALID_PORT
        assert by_port["8080"] == PortFree("8080")

    @pytest.mark.asyncio
    async def test_kill_batch_survives_sibling_failure(self, make_controller, posix_profile):
        controller, _ = make_controller(posix_profile, {
            "lsof": lambda command: ok(LSOF_3000) if command.args[-1] == ":3000" else ToolNotFoundError("lsof"),
            "kill": ok(),
        })
        outcomes = await controller.kill_ports([3000, 4000])
        assert outcomes[0] == ProcessTerminated("3000", 1234, "node")
        assert outcomes[1].kind == ErrorKind.TOOL_NOT_FOUND

    @pytest.mark.asyncio
    async def test_oversized_port_string_does_not_abort_batch(self, make_controller, posix_profile):
        controller, executor = make_controller(posix_profile, {
            "lsof": lambda command: ok(LSOF_3000) if command.args[-1] == ":3000" else ok("", exit_code=1),
        })
        outcomes = await controller.check_ports(["9" * 5000, "3000"])
        assert outcomes[0].kind == ErrorKind.INVALID_PORT
        assert isinstance(outcomes[1], PortOccupied)
        assert [c.args[-1] for c in executor.commands] == [":3000"]


@pytest.mark.parametrize("message, reason", [
    ("kill: (1234) - No such process", TerminationReason.ALREADY_EXITED),
    ('ERROR: The process "1234" not found.', TerminationReason.ALREADY_EXITED),
    ("kill: (1) - Operation not permitted", TerminationReason.PERMISSION_DENIED),
    ("Reason: Access is denied.", TerminationReason.PERMISSION_DENIED),
    ("exit code 2", TerminationReason.UNKNOWN),
])
def test_classify_termination_failure(message, reason):
    assert classify_termination_failure(message) == reason
