import asyncio
from pathlib import Path

from loguru import logger

STATE_DIR_NAME = ".stepwise"


async def get_workspace_root(path: str | Path = ".") -> Path:
    """Git repository root of path via 'git rev-parse --show-toplevel'.

    Outside a repository (or without git) the resolved path itself is the
    workspace root.
    """
    path = Path(path).resolve()

    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            "rev-parse",
            "--show-toplevel",
            cwd=str(path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.debug("git unavailable ({}), using {} as workspace root", e, path)
        return path
    stdout, _ = await proc.communicate()

    if proc.returncode != 0:
        logger.debug("{} is not inside a git repository", path)
        return path

    return Path(stdout.decode(errors="replace").strip())


async def get_default_state_dir(path: str | Path = ".") -> Path:
    """Return <workspace_root>/.stepwise as default state directory."""
    return await get_workspace_root(path) / STATE_DIR_NAME
