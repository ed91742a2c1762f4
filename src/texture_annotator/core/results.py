"""Result records returned by persistence operations instead of raising."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class FileError:
    """A failure tied to one file."""

    file: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {"file": self.file, "error": self.error}


@dataclass
class OperationResult:
    """Outcome of a write operation that may fail per file."""

    success: bool
    error: Optional[str] = None
    details: List[FileError] = field(default_factory=list)

    @classmethod
    def ok(cls) -> OperationResult:
        return cls(success=True)

    @classmethod
    def failed(cls, error: str, details: Optional[List[FileError]] = None) -> OperationResult:
        return cls(success=False, error=error, details=list(details or []))

    def describe(self) -> str:
        """Single-line summary including per-file details."""
        if self.success:
            return "OK"
        message = self.error or "Unknown error"
        if self.details:
            message += " Details: " + "; ".join(f"{d.file}: {d.error}" for d in self.details)
        return message


@dataclass
class LineError:
    """A JSONL line that could not be parsed."""

    line: int
    error: str
    content: str


@dataclass
class ExistingData:
    """Records read back from the annotation JSONL files."""

    records: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[LineError] = field(default_factory=list)
    missing: bool = False
    source: str = "full"
    success: bool = True
    error: Optional[str] = None


@dataclass
class ImageEntry:
    """An image file available for annotation."""

    name: str
    path: Path


@dataclass
class ImageScanResult:
    """Outcome of listing the image directory."""

    success: bool
    images: List[ImageEntry] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class ClassLoadResult:
    """Outcome of loading the class list."""

    success: bool
    classes: List[str] = field(default_factory=list)
    inferred: bool = False
    error: Optional[str] = None


@dataclass
class DatasetExportResult:
    """Outcome of a dataset export: which split each image went to."""

    success: bool
    results: List[Dict[str, str]] = field(default_factory=list)
    error: Optional[str] = None
