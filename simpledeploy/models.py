"""
Value and result types shared by the deploy stages
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional


@dataclass(frozen=True)
class CatalogueEntry:
    path: str       # relative, POSIX separators
    is_dir: bool
    source: Path    # absolute local path


@dataclass
class Catalogue:
    """Entries to upload, parents always ahead of their children."""
    root: Path
    entries: list[CatalogueEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[CatalogueEntry]:
        return iter(self.entries)

    def append(self, entry: CatalogueEntry):
        self.entries.append(entry)

    @property
    def paths(self) -> list[str]:
        return [e.path for e in self.entries]


@dataclass
class UploadResult:
    processed: int = 0
    copied: int = 0
    skipped: int = 0
    directories: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SymlinkDescriptor:
    """
    A local symlink to recreate remotely.

    Attributes:
        link: link path relative to the project root
        target: what the link points to, relative to the link's directory
        resolved: the target relative to the project root (None if outside it)
        needs_bootstrap: shim must load the autoloader first (CLI entry only)
    """
    link: str
    target: str
    resolved: Optional[str]
    needs_bootstrap: bool = False


@dataclass
class LinkResult:
    """
    Outcome of the executables stage.

    Errors are collected, never raised, so one failure does not hide another.
    """
    checked: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class DeployOutcome(Enum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    CACHE_FLUSH_FAILED = "cache-flush-failed"
    CONNECTION_FAILED = "connection-failed"
    WRITE_CHECK_FAILED = "write-check-failed"
    CATALOGUE_EMPTY = "catalogue-empty"
    UPLOAD_FAILED = "upload-failed"
    LINK_ERRORS = "link-errors-present"


@dataclass
class DeployResult:
    outcome: DeployOutcome
    warnings: list[str] = field(default_factory=list)
    upload: Optional[UploadResult] = None

    @property
    def success(self) -> bool:
        return self.outcome is DeployOutcome.SUCCESS
