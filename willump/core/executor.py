"""Runs external diagnostic and termination tools."""

import asyncio
import locale
import subprocess
from typing import Optional

from .errors import ExecutionFailedError, ExecutionTimeoutError, ToolNotFoundError
from .models import Command, ExecutionResult
from ..utils.logging_config import get_logger, timed

logger = get_logger('executor')

DEFAULT_TIMEOUT = 5.0
DEFAULT_MAX_OUTPUT_BYTES = 1024 * 1024

_CHUNK_SIZE = 64 * 1024


class _CappedBuffer:
    """Collects a stream up to ``limit`` bytes and keeps draining the rest."""

    def __init__(self, limit: int):
        self.limit = limit
        self.data = bytearray()
        self.truncated = False

    async def drain(self, stream: asyncio.StreamReader):
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            room = self.limit - len(self.data)
            if room > 0:
                self.data += chunk[:room]
            if len(chunk) > room:
                self.truncated = True


class ProcessExecutor:
    """
    Spawns one child process per call, never through a shell.

    Each call owns its own buffers, so concurrent calls share nothing.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT,
                 max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if max_output_bytes <= 0:
            raise ValueError("max_output_bytes must be positive")
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes
        self.encoding = locale.getpreferredencoding(False) or 'utf-8'

    @timed
    async def run(self, command: Command, timeout: Optional[float] = None,
                  max_output_bytes: Optional[int] = None) -> ExecutionResult:
        """
        Run ``command`` and capture its output.

        Args:
            command: Program and arguments, passed to the OS as an argv list.
            timeout: Seconds before the child is killed. Defaults to the executor's.
            max_output_bytes: Per-stream capture cap. Output beyond it is
                discarded and the result is flagged ``truncated``.

        Raises:
            ToolNotFoundError: The program does not exist on PATH.
            ExecutionTimeoutError: The child outlived ``timeout`` and was killed.
            ExecutionFailedError: The child could not be started at all.
        """
        timeout = timeout or self.timeout
        limit = max_output_bytes or self.max_output_bytes
        logger.debug(f"Running: {command}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *command.argv,
                stdin=subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.debug(f"Tool not found: {command.program}")
            raise ToolNotFoundError(command.program) from None
        except OSError as e:
            logger.error(f"Could not start '{command}': {e}")
            raise ExecutionFailedError(command, -1, str(e)) from e

        stdout = _CappedBuffer(limit)
        stderr = _CappedBuffer(limit)
        try:
            await asyncio.wait_for(
                asyncio.gather(stdout.drain(proc.stdout), stderr.drain(proc.stderr), proc.wait()),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timeout after {timeout:g}s, killing PID {proc.pid}: {command}")
            await self._kill(proc)
            partial = self._result(proc, stdout, stderr, timed_out=True)
            raise ExecutionTimeoutError(command, timeout, partial) from None
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        result = self._result(proc, stdout, stderr)
        if result.truncated:
            logger.warning(f"Output of '{command}' exceeded {limit} bytes and was truncated")
        logger.debug(
            f"'{command}' exited {result.exit_code} "
            f"(stdout={len(result.stdout)} chars, stderr={len(result.stderr)} chars)"
        )
        return result

    def _result(self, proc, stdout: _CappedBuffer, stderr: _CappedBuffer,
                timed_out: bool = False) -> ExecutionResult:
        return ExecutionResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.data.decode(self.encoding, errors='replace'),
            stderr=stderr.data.decode(self.encoding, errors='replace'),
            timed_out=timed_out,
            truncated=stdout.truncated or stderr.truncated,
        )

    @staticmethod
    async def _kill(proc):
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
