"""Atomic file writes and readable I/O error messages."""

from __future__ import annotations

import errno
import logging
import os
import shutil
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def ensure_dir(path: PathLike) -> Path:
    """Create a directory (and parents) if needed and return it as a Path."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def atomic_write_text(target: PathLike, content: str, encoding: str = "utf-8") -> None:
    """
    Write text so that readers never observe a partially written file.

    The content goes to ``<target>.tmp`` first and is then renamed over the
    destination. A failed write leaves the previous file untouched.

    Args:
        target: Destination file path
        content: Full file content
        encoding: Text encoding

    Raises:
        OSError: If the temporary file cannot be written or renamed
        UnicodeEncodeError: If the content cannot be encoded
    """
    target = Path(target)
    tmp_path = target.with_name(target.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding=encoding, newline="\n") as f:
            f.write(content)
        os.replace(tmp_path, target)
    except BaseException:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError as cleanup_error:
                logger.warning(f"Could not remove temporary file {tmp_path}: {cleanup_error}")
        raise


def copy_file(source: PathLike, destination: PathLike) -> None:
    """Copy a file, creating the destination directory first."""
    destination = Path(destination)
    ensure_dir(destination.parent)
    shutil.copyfile(source, destination)


def describe_os_error(error: BaseException, action: str, target: str) -> str:
    """
    Turn an I/O exception into a message suitable for the status bar.

    Args:
        error: The caught exception
        action: Verb phrase such as "save" or "read"
        target: File or directory name shown to the user

    Returns:
        Human readable description of what went wrong
    """
    code = getattr(error, "errno", None)
    if code in (errno.EACCES, errno.EPERM):
        return (
            f"Permission denied while trying to {action} {target}. "
            f"Check the folder permissions or move the workspace to an accessible location."
        )
    if code == errno.ENOSPC:
        return f"No space left on device to {action} {target}."
    reason = getattr(error, "strerror", None) or str(error)
    return f"Could not {action} {target}: {reason}"
