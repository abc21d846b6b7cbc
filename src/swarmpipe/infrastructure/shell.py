"""Shell command runner used by the verify phase."""

import asyncio
import logging

from swarmpipe.domain.interfaces import ShellRunnerInterface
from swarmpipe.domain.models import CommandResult

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 8000


class ShellRunner(ShellRunnerInterface):
    """Runs commands through the shell, merging stdout and stderr."""

    def __init__(self, max_output_chars: int = MAX_OUTPUT_CHARS):
        self._max_output_chars = max_output_chars

    async def run(self, command: str, cwd: str, timeout: float) -> CommandResult:
        logger.debug("Running %r in %s (timeout %ss)", command, cwd, timeout)
        proc = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd,
        )
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return CommandResult(
                command=command,
                returncode=proc.returncode if proc.returncode is not None else -1,
                output=f"Timed out after {timeout}s",
                timed_out=True,
            )

        output = stdout.decode("utf-8", errors="replace")
        # Tail holds the failure summary for most build tools
        return CommandResult(
            command=command,
            returncode=proc.returncode if proc.returncode is not None else -1,
            output=output[-self._max_output_chars :],
        )
