"""JSON output to stdout or to a file written atomically.

File output uses the temp file -> fsync -> os.replace pattern so that a
crash never leaves a partially written result file behind.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import TypeAdapter

from content_crawler.exceptions import OutputError
from content_crawler.models import Content

if TYPE_CHECKING:
    from collections.abc import Sequence

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

STDOUT = "stdout"

_CONTENT_LIST = TypeAdapter(list[Content])


def to_json(contents: Sequence[Content]) -> str:
    """Serialize contents as a pretty-printed JSON array."""
    return _CONTENT_LIST.dump_json(list(contents), indent=2).decode("utf-8")


def write_json(contents: Sequence[Content], destination: str = STDOUT) -> None:
    """Write contents as JSON to stdout or to a file path.

    Args:
        contents: Items to emit, in order.
        destination: ``"stdout"`` or a file path.

    Raises:
        OutputError: If writing fails.
    """
    payload = to_json(contents) + "\n"

    if destination == STDOUT:
        try:
            sys.stdout.write(payload)
            sys.stdout.flush()
        except OSError as exc:
            msg = f"Failed to write to stdout: {exc}"
            raise OutputError(msg) from exc
        return

    path = Path(destination)
    _atomic_write(path, payload.encode("utf-8"))
    logger.info("output_written", path=str(path), items=len(contents))


def _atomic_write(path: Path, data: bytes) -> None:
    """Write data atomically using temp file -> fsync -> os.replace.

    Args:
        path: Target file path.
        data: Bytes to write.

    Raises:
        OutputError: If any step fails; the temp file is removed.
    """
    parent = path.parent if str(path.parent) else Path(".")
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(parent), prefix=f".{path.name}.", suffix=".tmp"
        )
    except OSError as exc:
        msg = f"Failed to create temporary file in {parent}: {exc}"
        raise OutputError(msg) from exc

    fd_closed = False
    try:
        os.write(fd, data)
        os.fsync(fd)
        os.close(fd)
        fd_closed = True
        os.replace(tmp_path, str(path))
    except BaseException as exc:
        if not fd_closed:
            os.close(fd)
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        if isinstance(exc, OSError):
            msg = f"Failed to persist file to {path}: {exc}"
            raise OutputError(msg) from exc
        raise
