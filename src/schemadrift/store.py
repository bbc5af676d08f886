"""
Snapshot history store backed by a YAML document stream.

Each document is one ``SchemaSnapshot``::

    ---
    uuid: 3f2a9c...
    model_name: shop.Order
    fields:
      status: str
      total: Decimal
      shipping:
        street: str
        city: str
      customer_id: Customer

Document order is significant: the last record for a model is its latest
recorded schema.  Records are only ever appended.

Usage::

    from schemadrift.store import SnapshotStore

    store = SnapshotStore(Path("db/schema_versions.yml"))
    latest = store.find_latest("shop.Order")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from schemadrift.errors import StoreUnreadable, WriteFailure
from schemadrift.locking import file_lock
from schemadrift.schema import SchemaSnapshot

logger = logging.getLogger(__name__)

SnapshotHistory = tuple[SchemaSnapshot, ...]


class SnapshotStore:
    """Loads, queries and appends to the snapshot history file.

    The history is read once and cached on the instance; ``append()``
    and ``reload()`` refresh it.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._history: Optional[SnapshotHistory] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def history(self) -> SnapshotHistory:
        if self._history is None:
            self._history = self.load_all()
        return self._history

    def reload(self) -> SnapshotHistory:
        self._history = None
        return self.history

    def load_all(self) -> SnapshotHistory:
        """Read every snapshot in stream order.

        An unreadable or corrupt file is logged and treated as an empty
        history, so every model degrades to "no saved schema found"
        instead of aborting the run.
        """
        try:
            return self._read()
        except StoreUnreadable as exc:
            logger.error("ERROR: unable to load snapshot history: %s", exc)
            return ()

    def _read(self) -> SnapshotHistory:
        if not self._path.exists():
            logger.warning("Snapshot history not found at %s", self._path)
            return ()

        try:
            with open(self._path, encoding="utf-8") as fh:
                documents = list(yaml.safe_load_all(fh))
        except (OSError, yaml.YAMLError) as exc:
            raise StoreUnreadable(self._path, str(exc)) from exc

        snapshots: list[SchemaSnapshot] = []
        for index, document in enumerate(documents):
            if document is None:
                continue
            if not isinstance(document, dict):
                raise StoreUnreadable(
                    self._path,
                    f"document {index} is a {type(document).__name__}, expected a mapping",
                )
            try:
                snapshots.append(SchemaSnapshot.model_validate(document))
            except ValidationError as exc:
                raise StoreUnreadable(self._path, f"document {index}: {exc}") from exc

        logger.debug("Loaded %d snapshot(s) from %s", len(snapshots), self._path)
        return tuple(snapshots)

    def find_by_identifier(self, uuid: str) -> Optional[SchemaSnapshot]:
        """First snapshot recorded under *uuid*, or ``None``."""
        for snapshot in self.history:
            if snapshot.uuid == uuid:
                return snapshot
        return None

    def find_latest(self, model_name: str) -> Optional[SchemaSnapshot]:
        """Last snapshot (by stream position) for *model_name*, or ``None``."""
        for snapshot in reversed(self.history):
            if snapshot.model_name == model_name:
                return snapshot
        return None

    def history_for(self, model_name: str) -> list[SchemaSnapshot]:
        """All snapshots for *model_name*, oldest first."""
        return [s for s in self.history if s.model_name == model_name]

    def append(self, snapshot: SchemaSnapshot) -> None:
        """Append *snapshot* as a new document at the end of the stream.

        Raises:
            WriteFailure: If the history file cannot be written.
        """
        document = yaml.safe_dump(
            snapshot.model_dump(),
            explicit_start=True,
            sort_keys=False,
            default_flow_style=False,
        )
        with file_lock(self._path):
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                needs_newline = self._path.exists() and not _ends_with_newline(self._path)
                with open(self._path, "a", encoding="utf-8") as fh:
                    if needs_newline:
                        fh.write("\n")
                    fh.write(document)
            except OSError as exc:
                raise WriteFailure(self._path, exc) from exc

        logger.info(
            "Recorded schema snapshot %s for %s in %s",
            snapshot.uuid,
            snapshot.model_name,
            self._path,
        )
        self._history = None


def _ends_with_newline(path: Path) -> bool:
    with open(path, "rb") as fh:
        fh.seek(0, 2)
        if fh.tell() == 0:
            return True
        fh.seek(-1, 2)
        return fh.read(1) == b"\n"
