from __future__ import annotations

import asyncio
import json
import tempfile
from pathlib import Path
from typing import Any

import aiofiles
from loguru import logger


async def atomic_write(path: Path, content: str) -> None:
    """Replace path with content via a temp file in the same directory and a
    rename, so readers never see a partial record."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path_str = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp_", suffix=path.suffix)
    temp_path = Path(temp_path_str)

    try:
        async with aiofiles.open(fd, mode="w", encoding="utf-8", closefd=True) as f:
            await f.write(content)
        await asyncio.to_thread(temp_path.replace, path)
        logger.debug("Atomic write completed: {}", path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


async def read_json(path: Path) -> Any | None:
    """Read a JSON document, None when the file does not exist."""
    if not path.exists():
        return None
    async with aiofiles.open(path, encoding="utf-8") as f:
        content = await f.read()
    return json.loads(content)
