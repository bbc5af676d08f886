"""
Exception hierarchy for schema drift checking and version recording.

Only write-side failures are allowed to escape a run: a lost version write
is worse than a crash.  Read-side problems (``StoreUnreadable``,
``UnresolvedModel``, ``ExtractionError``) are caught where they occur and
degrade the affected models to a failing or skipped result during a check.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class SchemaDriftError(Exception):
    """Base class for all schemadrift errors."""


class StoreUnreadable(SchemaDriftError):
    """Snapshot history or version registry is missing or corrupt."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to read {path}: {reason}")


class UnresolvedModel(SchemaDriftError):
    """A discovered model file does not map to a tracked model class."""

    def __init__(self, location: str, reason: str) -> None:
        self.location = location
        self.reason = reason
        super().__init__(f"Cannot resolve model at {location}: {reason}")


class WriteFailure(SchemaDriftError):
    """A strategy or the snapshot store could not write its backing file."""

    def __init__(self, path: Path, cause: Optional[BaseException] = None) -> None:
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to write {path}{detail}")


class SourceEditError(SchemaDriftError):
    """The inline strategy could not locate the class declaration to edit."""


class ExtractionError(SchemaDriftError):
    """A model's declared fields could not be turned into a schema."""

    def __init__(self, model_name: str, reason: str) -> None:
        self.model_name = model_name
        self.reason = reason
        super().__init__(f"Unable to read the schema of {model_name}: {reason}")
