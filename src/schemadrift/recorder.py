"""
The "record a new version" workflow.

Recording a model appends a snapshot of its current structure under a
fresh identifier, then writes that identifier back through the configured
strategy (``insert`` the first time, ``update`` afterwards).  The snapshot
is appended before the write-back so a failed write never leaves an
identifier pointing at an unrecorded schema.

Usage::

    from schemadrift.recorder import VersionRecorder

    recorder = VersionRecorder.from_config(get_config())
    outcome = recorder.record(location, PydanticShape(Order), Order)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from schemadrift.config import SchemaDriftConfig
from schemadrift.extractor import SchemaExtractor
from schemadrift.reflection import ModelShape
from schemadrift.schema import ModelLocation, SchemaSnapshot
from schemadrift.store import SnapshotStore
from schemadrift.strategies import VersionStrategy, get_strategy

logger = logging.getLogger(__name__)


def new_identifier() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class RecordOutcome:
    model_name: str
    identifier: str
    recorded: bool
    previous_identifier: Optional[str] = None


class VersionRecorder:
    """Records new schema versions and writes identifiers back."""

    def __init__(
        self,
        store: SnapshotStore,
        strategy: VersionStrategy,
        extractor: Optional[SchemaExtractor] = None,
        identifier_factory: Callable[[], str] = new_identifier,
    ) -> None:
        self._store = store
        self._strategy = strategy
        self._extractor = extractor or SchemaExtractor()
        self._identifier_factory = identifier_factory

    @classmethod
    def from_config(cls, config: SchemaDriftConfig) -> "VersionRecorder":
        return cls(
            store=SnapshotStore(config.history_path),
            strategy=get_strategy(config.strategy, config),
        )

    def record(
        self,
        location: ModelLocation,
        shape: ModelShape,
        model: Optional[type] = None,
        force: bool = False,
    ) -> RecordOutcome:
        """Record *shape*'s structure as a new version of *location*.

        When the latest snapshot already matches the structure, no snapshot
        is appended; the existing identifier is (re)written if the model
        does not carry it yet.  ``force=True`` always records.

        Raises:
            ExtractionError: If the structure of the model cannot be read.
            WriteFailure: If the history or the identifier cannot be written.
        """
        schema = self._extractor.canonicalize(shape)
        current = self._strategy.current_identifier(location, model)
        latest = self._store.find_latest(location.name)

        if not force and latest is not None and latest.canonical_schema == schema:
            if current != latest.uuid:
                self._write_back(location, latest.uuid, current)
            else:
                logger.info("%s is already recorded as %s", location.name, latest.uuid)
            return RecordOutcome(
                model_name=location.name,
                identifier=latest.uuid,
                recorded=False,
                previous_identifier=current,
            )

        identifier = self._identifier_factory()
        self._store.append(SchemaSnapshot.from_schema(identifier, location.name, schema))
        self._write_back(location, identifier, current)
        return RecordOutcome(
            model_name=location.name,
            identifier=identifier,
            recorded=True,
            previous_identifier=current,
        )

    def _write_back(
        self, location: ModelLocation, identifier: str, current: Optional[str]
    ) -> None:
        if current is None:
            self._strategy.insert(location, identifier)
        else:
            self._strategy.update(location, identifier)
