import asyncio
import os
import re
import signal

from loguru import logger

from src.domain.ports.command_runner_port import CommandFailedError, CommandRunnerPort

# Commands a plan step is never allowed to run
DANGEROUS_COMMAND_PATTERNS = [
    r"rm\s+-rf\s+/",  # rm -rf /
    r"rm\s+-rf\s+~",  # rm -rf ~
    r"rm\s+-rf\s+\*",  # rm -rf *
    r"mkfs\.",  # filesystem format
    r"dd\s+if=.*of=/dev/",  # disk overwrite
    r">\s*/dev/sd",  # overwrite disk
    r"curl.*\|\s*(ba)?sh",  # curl pipe to shell
    r"wget.*\|\s*(ba)?sh",  # wget pipe to shell
]


def find_dangerous_pattern(command: str) -> str | None:
    """Return the first dangerous pattern command matches, if any."""
    for pattern in DANGEROUS_COMMAND_PATTERNS:
        if re.search(pattern, command, re.IGNORECASE):
            return pattern
    return None


async def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
    except (ProcessLookupError, OSError):
        proc.kill()
    await proc.wait()


class ShellCommandRunner(CommandRunnerPort):
    """Runs command steps through the shell in their own process group."""

    async def run(self, command: str, cwd: str, timeout_s: float = 60.0) -> str:
        dangerous_pattern = find_dangerous_pattern(command)
        if dangerous_pattern:
            logger.error("Command blocked: '{}' matches '{}'", command, dangerous_pattern)
            raise CommandFailedError(
                command, f"Command blocked: matches dangerous pattern '{dangerous_pattern}'"
            )

        logger.debug("Running command in {}: {}", cwd, command)
        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise CommandFailedError(command, f"Failed to start command: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
        except TimeoutError:
            await _kill_process_group(proc)
            logger.warning("Command timed out after {}s: {}", timeout_s, command)
            raise CommandFailedError(command, f"Timeout after {timeout_s}s") from None
        except asyncio.CancelledError:
            await _kill_process_group(proc)
            raise

        out = stdout.decode(errors="replace")
        if proc.returncode != 0:
            err = stderr.decode(errors="replace").strip()
            raise CommandFailedError(
                command,
                f"Command failed with exit code {proc.returncode}: {err or out.strip()}",
                exit_code=proc.returncode,
            )
        return out
