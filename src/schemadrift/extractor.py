"""
Canonicalization of a model's declared fields.

Usage::

    from schemadrift.extractor import SchemaExtractor
    from schemadrift.reflection import PydanticShape

    schema = SchemaExtractor().canonicalize(PydanticShape(Order))
"""

from __future__ import annotations

import logging

from schemadrift.errors import ExtractionError
from schemadrift.reflection import ModelShape
from schemadrift.schema import Association, CanonicalSchema, Embedded, Kind, Primitive

logger = logging.getLogger(__name__)


class SchemaExtractor:
    """Turns a ``ModelShape`` into a ``CanonicalSchema``.

    Pure: depends only on the static declaration.  Associations are
    recorded by target name and never followed.  A model that embeds
    itself, directly or through other embedded models, has no finite
    schema and is rejected.
    """

    def canonicalize(self, shape: ModelShape) -> CanonicalSchema:
        """Canonicalize *shape*.

        Raises:
            ExtractionError: If the fields cannot be read or embedded
                models form a cycle.
        """
        try:
            return self._canonicalize(shape, ())
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(shape.name, str(exc)) from exc

    def _canonicalize(
        self, shape: ModelShape, enclosing: tuple[ModelShape, ...]
    ) -> CanonicalSchema:
        if any(_same_model(shape, outer) for outer in enclosing):
            path = " -> ".join(s.name for s in (*enclosing, shape))
            raise ExtractionError(shape.name, f"embedded models form a cycle ({path})")

        fields: dict[str, Kind] = {}
        for descriptor in shape.fields():
            if descriptor.association_target:
                fields[descriptor.name] = Association(descriptor.association_target)
            elif isinstance(descriptor.declared_type, ModelShape):
                nested = self._canonicalize(descriptor.declared_type, (*enclosing, shape))
                fields[descriptor.name] = Embedded(nested)
            else:
                fields[descriptor.name] = Primitive(str(descriptor.declared_type))

        logger.debug("Canonicalized %s: %d field(s)", shape.name, len(fields))
        return CanonicalSchema(fields)


def _same_model(a: ModelShape, b: ModelShape) -> bool:
    # PydanticShape wrappers are per field; identity is the wrapped model
    return getattr(a, "model", a) is getattr(b, "model", b)


def describe_changes(
    saved: CanonicalSchema, current: CanonicalSchema, prefix: str = ""
) -> list[dict[str, str]]:
    """List field-level differences from *saved* to *current*.

    Returns change dicts with keys ``type`` (``add_field`` |
    ``remove_field`` | ``change_field_type``), ``field`` (dot-path) and
    optional ``old`` / ``new`` type names.
    """
    changes: list[dict[str, str]] = []
    old_doc = saved.to_document()
    new_doc = current.to_document()

    for name in sorted(set(new_doc) - set(old_doc)):
        changes.append({"type": "add_field", "field": prefix + name})

    for name in sorted(set(old_doc) - set(new_doc)):
        changes.append({"type": "remove_field", "field": prefix + name})

    for name in sorted(set(old_doc) & set(new_doc)):
        old, new = old_doc[name], new_doc[name]
        if old == new:
            continue
        if isinstance(old, dict) and isinstance(new, dict):
            changes.extend(
                describe_changes(
                    CanonicalSchema.from_document(old),
                    CanonicalSchema.from_document(new),
                    prefix=f"{prefix}{name}.",
                )
            )
        else:
            changes.append({
                "type": "change_field_type",
                "field": prefix + name,
                "old": _summary(old),
                "new": _summary(new),
            })

    return changes


def _summary(value: object) -> str:
    return "{embedded}" if isinstance(value, dict) else str(value)
