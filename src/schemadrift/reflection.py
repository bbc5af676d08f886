"""
Reflection contract between schemadrift and the host model framework.

The core never introspects classes itself.  Anything that can describe its
declared fields through ``ModelShape.fields()`` can be canonicalized; this
module ships the adapter for pydantic v2 models.

Declaring an association (a reference to another model that must not be
recursed into)::

    from typing import Annotated
    from pydantic import BaseModel, Field
    from schemadrift.reflection import association

    class Order(BaseModel):
        customer_id: Annotated[str, association("Customer")]
        # or, equivalently
        warehouse_id: str = Field(json_schema_extra={"association": "Warehouse"})
"""

from __future__ import annotations

import enum
import types
from dataclasses import dataclass
from typing import (
    Annotated,
    Any,
    Literal,
    Optional,
    Protocol,
    Union,
    get_args,
    get_origin,
    runtime_checkable,
)

from pydantic import BaseModel
from pydantic.fields import FieldInfo

# Key looked up in ``Field(json_schema_extra=...)``
ASSOCIATION_KEY = "association"


@dataclass(frozen=True)
class FieldDescriptor:
    """One declared attribute of a model.

    ``declared_type`` is a type name, or a nested ``ModelShape`` when the
    field holds an embedded structured type.
    """

    name: str
    declared_type: Union[str, "ModelShape"]
    association_target: Optional[str] = None


@runtime_checkable
class ModelShape(Protocol):
    """Capability the host environment implements for each model."""

    @property
    def name(self) -> str: ...

    def fields(self) -> list[FieldDescriptor]: ...


@dataclass(frozen=True)
class AssociationMarker:
    """``Annotated`` metadata marking a field as a reference to *target*."""

    target: str


def association(target: str) -> AssociationMarker:
    """Mark a field as an association to the model named *target*."""
    if not target:
        raise ValueError("Association target must be a non-empty model name")
    return AssociationMarker(target)


def is_tracked_model(obj: Any) -> bool:
    """True for pydantic model classes (the trackable types)."""
    return isinstance(obj, type) and issubclass(obj, BaseModel) and obj is not BaseModel


class PydanticShape:
    """``ModelShape`` adapter over a pydantic v2 model class."""

    def __init__(self, model: type[BaseModel]) -> None:
        if not is_tracked_model(model):
            raise TypeError(f"{model!r} is not a pydantic model class")
        self._model = model

    @property
    def name(self) -> str:
        return self._model.__name__

    @property
    def model(self) -> type[BaseModel]:
        return self._model

    def fields(self) -> list[FieldDescriptor]:
        descriptors: list[FieldDescriptor] = []
        for field_name, info in self._model.model_fields.items():
            target = _association_target(info)
            annotation = info.annotation
            declared: Union[str, ModelShape]
            if target is None and is_tracked_model(annotation):
                declared = PydanticShape(annotation)
            else:
                declared = type_name(annotation)
            descriptors.append(
                FieldDescriptor(
                    name=field_name,
                    declared_type=declared,
                    association_target=target,
                )
            )
        return descriptors

    def __repr__(self) -> str:
        return f"PydanticShape({self._model.__qualname__})"


def _association_target(info: FieldInfo) -> Optional[str]:
    for meta in info.metadata:
        if isinstance(meta, AssociationMarker):
            return meta.target
    extra = info.json_schema_extra
    if isinstance(extra, dict):
        target = extra.get(ASSOCIATION_KEY)
        if target:
            return str(target)
    return None


def type_name(tp: Any) -> str:
    """Canonical, module-independent name for a type annotation.

    Examples: ``str``, ``list[str]``, ``Optional[int]``,
    ``dict[str, Union[int, float]]``, ``Literal['a', 'b']``.
    """
    if tp is None or tp is type(None):
        return "None"
    if tp is Ellipsis:
        return "..."

    origin = get_origin(tp)
    args = get_args(tp)

    if origin is None:
        if isinstance(tp, type) and issubclass(tp, enum.Enum):
            return tp.__name__
        name = getattr(tp, "__name__", None)
        if name:
            return name
        return repr(tp).replace("typing.", "")

    if origin is Annotated:
        return type_name(args[0])
    if origin is Union or origin is types.UnionType:
        members = [a for a in args if a is not type(None)]
        if len(members) == 1 and len(args) == 2:
            return f"Optional[{type_name(members[0])}]"
        return f"Union[{', '.join(type_name(a) for a in args)}]"
    if origin is Literal:
        return f"Literal[{', '.join(repr(a) for a in args)}]"

    origin_name = getattr(origin, "__name__", None) or repr(origin).replace("typing.", "")
    if not args:
        return origin_name
    return f"{origin_name}[{', '.join(type_name(a) for a in args)}]"
