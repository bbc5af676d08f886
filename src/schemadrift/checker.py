"""
Drift checker: compares each model's live structure and current identifier
against the recorded snapshot history.

Classification per model:

- ``MISSING_IDENTIFIER``: no current identifier; fails, no comparison.
- ``STRUCTURE_CHANGED_NO_IDENTIFIER_UPDATE``: structure differs from the
  schema saved under the identifier, and the identifier is still the last
  recorded one; fails with a warning.
- ``IDENTIFIER_CHANGED_NO_STRUCTURE_CHANGE``: the identifier differs from
  the last recorded one; warns, and fails only if no snapshot under the
  new identifier matches.
- ``UP_TO_DATE``: structure equals the saved schema.
- ``EXTRACTION_FAILED``: reading the model's fields raised; fails.
- ``SKIPPED``: not a tracked model; reported but excluded from the
  aggregate.

The "identifier changed" warning fires whenever the identifier differs from
the last recorded one, including a deliberate bump whose snapshot already
matches.

Usage::

    from schemadrift.checker import DriftChecker

    checker = DriftChecker.from_config(get_config())
    report = checker.check_all(["legacy/"])
    if not report.up_to_date:
        for message in report.messages:
            print(message)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from schemadrift.config import SchemaDriftConfig
from schemadrift.discovery import DiscoveredModel, discover_models
from schemadrift.errors import ExtractionError
from schemadrift.extractor import SchemaExtractor, describe_changes
from schemadrift.otel import emit_drift_report, emit_model_check
from schemadrift.reflection import ModelShape, PydanticShape
from schemadrift.schema import (
    DriftReport,
    DriftStatus,
    ModelCheckResult,
    ModelLocation,
)
from schemadrift.store import SnapshotStore
from schemadrift.strategies import VersionStrategy, get_strategy

logger = logging.getLogger(__name__)


def identifier_changed_warning(model_name: str) -> str:
    return (
        f"WARNING: Identifier for {model_name} has changed but no matching "
        f"structural change was detected. Please verify the identifier change "
        f"was intentional."
    )


def structure_changed_warning(model_name: str) -> str:
    return (
        f"WARNING: Identifier update needed. Structure of {model_name} has "
        f"changed but its identifier has not."
    )


class DriftChecker:
    """Checks models against the snapshot history."""

    def __init__(
        self,
        store: SnapshotStore,
        strategy: VersionStrategy,
        models_dir: Optional[Path] = None,
        extractor: Optional[SchemaExtractor] = None,
    ) -> None:
        self._store = store
        self._strategy = strategy
        self._models_dir = models_dir
        self._extractor = extractor or SchemaExtractor()

    @classmethod
    def from_config(cls, config: SchemaDriftConfig) -> "DriftChecker":
        return cls(
            store=SnapshotStore(config.history_path),
            strategy=get_strategy(config.strategy, config),
            models_dir=config.models_path,
        )

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def strategy(self) -> VersionStrategy:
        return self._strategy

    def check_model(
        self,
        location: ModelLocation,
        shape: ModelShape,
        model: Optional[type] = None,
    ) -> ModelCheckResult:
        """Classify one model.

        Args:
            location: Where the model is declared and its tracked name.
            shape: Reflection of the model's declared fields.
            model: The model class, when loaded (lets the inline strategy
                read the identifier without parsing source).
        """
        model_name = location.name
        identifier = self._strategy.current_identifier(location, model)

        if identifier is None:
            return ModelCheckResult(
                model_name=model_name,
                location=str(location),
                status=DriftStatus.MISSING_IDENTIFIER,
                up_to_date=False,
            )

        try:
            current = self._extractor.canonicalize(shape)
        except ExtractionError as exc:
            logger.error("%s", exc)
            return ModelCheckResult(
                model_name=model_name,
                location=str(location),
                status=DriftStatus.EXTRACTION_FAILED,
                up_to_date=False,
                identifier=identifier,
                detail=exc.reason,
            )

        saved_snapshot = self._store.find_by_identifier(identifier)
        saved = saved_snapshot.canonical_schema if saved_snapshot is not None else None

        last_record = self._store.find_latest(model_name)
        last_identifier = last_record.uuid if last_record is not None else None

        matches = saved is not None and current == saved
        warnings: list[str] = []
        if identifier != last_identifier:
            warnings.append(identifier_changed_warning(model_name))
        structure_changed = not matches and identifier == last_identifier
        if structure_changed:
            warnings.append(structure_changed_warning(model_name))

        if structure_changed:
            status = DriftStatus.STRUCTURE_CHANGED_NO_IDENTIFIER_UPDATE
        elif identifier != last_identifier:
            status = DriftStatus.IDENTIFIER_CHANGED_NO_STRUCTURE_CHANGE
        else:
            status = DriftStatus.UP_TO_DATE

        changes = describe_changes(saved, current) if saved is not None and not matches else []

        return ModelCheckResult(
            model_name=model_name,
            location=str(location),
            status=status,
            up_to_date=matches,
            identifier=identifier,
            last_identifier=last_identifier,
            warnings=warnings,
            changes=changes,
        )

    def check_models(self, discovered: Iterable[DiscoveredModel]) -> DriftReport:
        """Check already-discovered models and aggregate the results."""
        results: list[ModelCheckResult] = []
        all_up_to_date = True  # start optimistic

        for entry in discovered:
            if entry.model is None:
                result = ModelCheckResult(
                    model_name=entry.location.name,
                    location=str(entry.location),
                    status=DriftStatus.SKIPPED,
                    up_to_date=False,
                    detail=entry.reason or "not a tracked model",
                )
                logger.debug("Skipping %s: %s", entry.location, result.detail)
                results.append(result)
                continue

            result = self.check_model(entry.location, PydanticShape(entry.model), entry.model)
            all_up_to_date &= result.up_to_date
            results.append(result)
            emit_model_check(result)

            if not result.up_to_date:
                logger.warning("%s", result.message())

        report = DriftReport(results=results, up_to_date=all_up_to_date)
        emit_drift_report(report)
        return report

    def check_all(self, exclude_patterns: Optional[list[str]] = None) -> DriftReport:
        """Discover every model under the models directory and check it.

        Args:
            exclude_patterns: Substrings; model paths containing any of
                them are not loaded or checked.
        """
        if self._models_dir is None:
            raise ValueError("No models directory configured")
        discovered = discover_models(self._models_dir, exclude_patterns or [])
        return self.check_models(discovered)
