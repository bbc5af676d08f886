"""
schemadrift - Detect drift between pydantic model structure and recorded
schema versions.

Every structural change to a tracked model must be paired with a new
version identifier.  schemadrift canonicalizes each model's declared
fields, compares them with an append-only history of snapshots, and
writes identifiers back either inline (``__schema_version__`` in the class
body) or to one centralized registry file.

Public API::

    from schemadrift import (
        DriftChecker,
        VersionRecorder,
        SchemaExtractor,
        SnapshotStore,
        InlineStrategy,
        CentralizedStrategy,
        PydanticShape,
        association,
    )
"""

__version__ = "0.1.0"

from schemadrift.checker import DriftChecker
from schemadrift.config import SchemaDriftConfig, get_config
from schemadrift.extractor import SchemaExtractor
from schemadrift.recorder import VersionRecorder
from schemadrift.reflection import FieldDescriptor, ModelShape, PydanticShape, association
from schemadrift.schema import (
    Association,
    CanonicalSchema,
    DriftReport,
    DriftStatus,
    Embedded,
    ModelCheckResult,
    ModelLocation,
    Primitive,
    SchemaSnapshot,
)
from schemadrift.store import SnapshotStore
from schemadrift.strategies import CentralizedStrategy, InlineStrategy, get_strategy

__all__ = [
    "__version__",
    # Checker
    "DriftChecker",
    "DriftReport",
    "DriftStatus",
    "ModelCheckResult",
    # Recording
    "VersionRecorder",
    # Schema
    "SchemaExtractor",
    "CanonicalSchema",
    "Primitive",
    "Embedded",
    "Association",
    "SchemaSnapshot",
    "ModelLocation",
    # Reflection
    "ModelShape",
    "FieldDescriptor",
    "PydanticShape",
    "association",
    # Storage
    "SnapshotStore",
    "InlineStrategy",
    "CentralizedStrategy",
    "get_strategy",
    # Config
    "SchemaDriftConfig",
    "get_config",
]
