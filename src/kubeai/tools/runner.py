"""Shell command execution with a deadline."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal

from kubeai.core.errors import CommandFailedError, CommandTimeoutError

logger = logging.getLogger(__name__)


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(proc.pid, signal.SIGKILL)


def _combine(stdout: bytes, stderr: bytes) -> str:
    output = stdout.decode(errors="replace")
    err = stderr.decode(errors="replace")
    if err:
        if output:
            output += "\n"
        output += err
    return output


class CommandRunner:
    """Runs command lines through ``<shell> -c``.

    Output is stdout followed by stderr. A non-zero exit that produced
    output returns the output, since the error text is usually what the
    model needs to see.
    """

    def __init__(self, shell: str = "/bin/bash") -> None:
        self._shell = shell

    @property
    def shell(self) -> str:
        return self._shell

    async def run(self, command: str, timeout: float) -> str:
        """Run ``command`` and return its combined output.

        Raises:
            CommandFailedError: The process could not start, or exited
                non-zero without output.
            CommandTimeoutError: The deadline passed; the process was killed.
        """
        logger.debug("Running (timeout %gs): %s", timeout, command)
        try:
            proc = await asyncio.create_subprocess_exec(
                self._shell,
                "-c",
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            msg = f"failed to start {self._shell}: {exc}"
            raise CommandFailedError(msg) from exc

        stdout_task = asyncio.ensure_future(proc.stdout.read())  # type: ignore[union-attr]
        stderr_task = asyncio.ensure_future(proc.stderr.read())  # type: ignore[union-attr]
        try:
            await asyncio.wait_for(proc.wait(), timeout=timeout)
        except TimeoutError:
            _kill_group(proc)
            await proc.wait()
            partial = _combine(await stdout_task, await stderr_task)
            raise CommandTimeoutError(timeout, partial) from None
        except asyncio.CancelledError:
            _kill_group(proc)
            stdout_task.cancel()
            stderr_task.cancel()
            raise

        output = _combine(await stdout_task, await stderr_task)
        if proc.returncode != 0:
            logger.debug("Command exited %s", proc.returncode)
            if not output:
                msg = f"exit status {proc.returncode}"
                raise CommandFailedError(msg)
        return output
