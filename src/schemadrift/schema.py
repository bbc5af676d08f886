"""
Data model for schema drift checking.

- ``Primitive`` / ``Embedded`` / ``Association``: the kind of one field.
- ``CanonicalSchema``: order-independent mapping of field name to kind.
- ``SchemaSnapshot``: one immutable ``{uuid, model_name, fields}`` record
  of the snapshot history file.
- ``ModelLocation``: where a model is declared and how it is named.
- ``ModelCheckResult`` / ``DriftReport``: checker output.

Snapshot documents use ``extra="forbid"`` to reject unknown keys at parse
time, so a malformed history file is reported instead of half-read.

Usage::

    from schemadrift.schema import SchemaSnapshot
    import yaml

    with open("db/schema_versions.yml") as fh:
        history = [SchemaSnapshot.model_validate(d) for d in yaml.safe_load_all(fh) if d]
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Field kinds
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Primitive:
    """Scalar or container field recorded by type name."""

    type_name: str

    def to_document(self) -> str:
        return self.type_name


@dataclass(frozen=True)
class Association:
    """Reference to another model, recorded by name only."""

    target: str

    def to_document(self) -> str:
        return self.target


@dataclass(frozen=True)
class Embedded:
    """Nested structured type, canonicalized recursively."""

    schema: "CanonicalSchema"

    def to_document(self) -> dict[str, Any]:
        return self.schema.to_document()


Kind = Union[Primitive, Embedded, Association]


class CanonicalSchema(Mapping[str, Kind]):
    """Field name -> kind.

    Two schemas are equal when their persisted document forms are equal,
    which ignores declaration order and treats an association exactly like
    a primitive of the same name (the history file cannot tell them apart).
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Optional[Mapping[str, Kind]] = None) -> None:
        self._fields: dict[str, Kind] = dict(fields or {})

    def __getitem__(self, key: str) -> Kind:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CanonicalSchema):
            return NotImplemented
        return self.to_document() == other.to_document()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"CanonicalSchema({self.to_document()!r})"

    def to_document(self) -> dict[str, Any]:
        """Nested plain mapping as stored in the history file."""
        return {name: kind.to_document() for name, kind in self._fields.items()}

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "CanonicalSchema":
        """Rebuild a schema from its stored form.

        Strings load as ``Primitive``; associations are not distinguishable
        on disk and compare equal to primitives of the same name anyway.
        """
        fields: dict[str, Kind] = {}
        for name, value in document.items():
            if isinstance(value, Mapping):
                fields[str(name)] = Embedded(cls.from_document(value))
            else:
                fields[str(name)] = Primitive(str(value))
        return cls(fields)


# ---------------------------------------------------------------------------
# Snapshot history records
# ---------------------------------------------------------------------------


def _check_fields_document(value: Any, path: str = "fields") -> None:
    if not isinstance(value, dict):
        raise ValueError(f"{path} must be a mapping, got {type(value).__name__}")
    for key, item in value.items():
        if not isinstance(key, str):
            raise ValueError(f"{path} has non-string key {key!r}")
        if isinstance(item, dict):
            _check_fields_document(item, f"{path}.{key}")
        elif not isinstance(item, str):
            raise ValueError(
                f"{path}.{key} must be a type name or mapping, got {type(item).__name__}"
            )


class SchemaSnapshot(BaseModel):
    """One recorded schema revision of a model."""

    model_config = ConfigDict(extra="forbid", frozen=True, protected_namespaces=())

    uuid: str = Field(..., min_length=1, description="Version identifier")
    model_name: str = Field(..., min_length=1)
    fields: dict[str, Any] = Field(
        default_factory=dict,
        description="Field name -> type name, or nested mapping for embedded types",
    )

    @field_validator("fields")
    @classmethod
    def _validate_fields(cls, v: dict[str, Any]) -> dict[str, Any]:
        _check_fields_document(v)
        return v

    @property
    def canonical_schema(self) -> CanonicalSchema:
        return CanonicalSchema.from_document(self.fields)

    @classmethod
    def from_schema(
        cls, uuid: str, model_name: str, schema: CanonicalSchema
    ) -> "SchemaSnapshot":
        return cls(uuid=uuid, model_name=model_name, fields=schema.to_document())


# ---------------------------------------------------------------------------
# Model locations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelLocation:
    """Where a model is declared and the qualified name it is tracked under.

    ``name`` is dotted (``shop.LineItem``); its last segment is the class
    name inside ``path``.  ``path`` may be ``None`` for strategies that only
    key by name.
    """

    name: str
    path: Optional[Path] = None

    @property
    def class_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]

    def __str__(self) -> str:
        return str(self.path) if self.path is not None else self.name


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class DriftStatus(str, Enum):
    """Terminal per-model classification."""

    UP_TO_DATE = "up_to_date"
    IDENTIFIER_CHANGED_NO_STRUCTURE_CHANGE = "identifier_changed_no_structure_change"
    STRUCTURE_CHANGED_NO_IDENTIFIER_UPDATE = "structure_changed_no_identifier_update"
    MISSING_IDENTIFIER = "missing_identifier"
    EXTRACTION_FAILED = "extraction_failed"
    SKIPPED = "skipped"


class ModelCheckResult(BaseModel):
    """Outcome of checking one model."""

    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    model_name: str
    location: str = ""
    status: DriftStatus
    up_to_date: bool
    identifier: Optional[str] = None
    last_identifier: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
    changes: list[dict[str, str]] = Field(
        default_factory=list,
        description="Field-level differences against the saved schema",
    )
    detail: str = ""

    def message(self) -> str:
        """Human-readable summary naming the model and its warnings."""
        if self.status == DriftStatus.MISSING_IDENTIFIER:
            return f"Schema identifier for {self.model_name} is missing!"
        if self.status == DriftStatus.SKIPPED:
            return f"Skipped {self.model_name}: {self.detail}"
        if self.status == DriftStatus.EXTRACTION_FAILED:
            return f"Unable to read the schema of {self.model_name}: {self.detail}"
        text = f"Schema and/or identifier for {self.model_name} is not up-to-date!"
        for warning in self.warnings:
            text += f"\n\t{warning}"
        return text


class DriftReport(BaseModel):
    """Aggregated result of a full check run."""

    model_config = ConfigDict(extra="forbid")

    results: list[ModelCheckResult] = Field(default_factory=list)
    up_to_date: bool = True

    @property
    def checked(self) -> list[ModelCheckResult]:
        return [r for r in self.results if r.status != DriftStatus.SKIPPED]

    @property
    def skipped(self) -> list[ModelCheckResult]:
        return [r for r in self.results if r.status == DriftStatus.SKIPPED]

    @property
    def out_of_date(self) -> list[ModelCheckResult]:
        return [r for r in self.results if not r.up_to_date and r.status != DriftStatus.SKIPPED]

    @property
    def messages(self) -> list[str]:
        return [r.message() for r in self.out_of_date]

    def result_for(self, model_name: str) -> Optional[ModelCheckResult]:
        for r in self.results:
            if r.model_name == model_name:
                return r
        return None
