"""Annotation record storage as JSON Lines."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

from ..utils.fileio import atomic_write_text, describe_os_error, ensure_dir
from .results import ExistingData, FileError, LineError, OperationResult

logger = logging.getLogger(__name__)


def read_jsonl(path: Path) -> ExistingData:
    """
    Read one JSON object per line.

    Blank lines are ignored. Lines that are not valid UTF-8 or fail to parse
    are reported in ``errors`` and skipped, so one bad line never loses the
    rest of the file.

    Returns:
        ExistingData with ``missing`` set when the file does not exist

    Raises:
        OSError: For read failures other than a missing file
    """
    path = Path(path)
    if not path.exists():
        return ExistingData(missing=True)

    with open(path, "rb") as f:
        raw = f.read()

    data = ExistingData()
    raw_lines = [line for line in raw.splitlines() if line.strip()]
    for index, raw_line in enumerate(raw_lines, 1):
        try:
            line = raw_line.decode("utf-8")
        except UnicodeDecodeError as e:
            content = raw_line.decode("utf-8", errors="replace")
            data.errors.append(LineError(line=index, error=str(e), content=content))
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            data.errors.append(LineError(line=index, error=str(e), content=line))
            continue
        if not isinstance(record, dict):
            data.errors.append(LineError(line=index, error="Line is not a JSON object", content=line))
            continue
        data.records.append(record)

    if data.errors:
        logger.warning(f"Skipped {len(data.errors)} malformed lines in {path}")
    return data


def format_jsonl(records: Sequence[Dict[str, Any]]) -> str:
    """Serialize records one per line, without a trailing newline."""
    return "\n".join(json.dumps(record, ensure_ascii=False) for record in records)


class JsonlStore:
    """
    The pair of annotation files kept per mode.

    The full file holds every object with its computed ``enabled`` flag;
    the filtered file holds only objects eligible for export.
    """

    def __init__(self, filtered_path: Path, full_path: Path) -> None:
        self.filtered_path = Path(filtered_path)
        self.full_path = Path(full_path)

    def load_existing(self) -> ExistingData:
        """
        Load saved annotations, preferring the full file.

        Falls back to the filtered file when the full one does not exist yet.
        Read failures are returned as an unsuccessful result.
        """
        try:
            data = read_jsonl(self.full_path)
            data.source = "full"
            if data.missing:
                data = read_jsonl(self.filtered_path)
                data.source = "filtered"
        except OSError as e:
            logger.error(f"Error reading annotation files: {e}")
            return ExistingData(success=False, error=describe_os_error(e, "read", "the annotation files"))

        logger.info(f"Loaded {len(data.records)} annotation records from the {data.source} file")
        return data

    def save(self, filtered: Sequence[Dict[str, Any]], full: Sequence[Dict[str, Any]]) -> OperationResult:
        """
        Write both files atomically.

        Each file is attempted even if the other fails.

        Returns:
            OperationResult with one FileError per file that could not be saved
        """
        errors: List[FileError] = []
        for path, records in ((self.filtered_path, filtered), (self.full_path, full)):
            try:
                ensure_dir(path.parent)
                atomic_write_text(path, format_jsonl(records))
            except (OSError, ValueError) as e:
                logger.error(f"Error saving {path}: {e}")
                errors.append(FileError(file=path.name, error=describe_os_error(e, "save", path.name)))

        if errors:
            return OperationResult.failed(f"Error saving annotations: {errors[0].error}", errors)

        logger.info(f"Saved {len(full)} annotation records")
        return OperationResult.ok()
