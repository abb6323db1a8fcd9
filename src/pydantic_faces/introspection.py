"""
Field descriptors and value shapes for face-based redaction.
This module turns pydantic models and dataclasses into tables of field
descriptors, so the traversal in core never has to look at concrete types.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import inspect
import logging
import types
from decimal import Decimal
from enum import Enum
from typing import (
    Annotated,
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Literal,
    Optional,
    Set,
    Tuple,
    Type,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import BaseModel, RootModel

logger = logging.getLogger(__name__)

# Metadata key holding the declared faces of a field.
FACES_KEY = "faces"

_DESCRIPTOR_CACHE: Dict[type, Tuple["FieldDescriptor", ...]] = {}

_NOT_SEQUENCES = (str, bytes, bytearray, memoryview, range)
_COLLECTIONS = (
    collections.abc.Mapping,
    collections.abc.Set,
    collections.abc.MutableSequence,
)

# Types whose zero value is whatever calling them with no arguments returns.
_CALLABLE_ZEROS = (
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    Decimal,
    list,
    dict,
    set,
    frozenset,
    tuple,
)


class Shape(Enum):
    """What the traversal should do with a value."""

    STRUCTURE = "structure"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    OTHER = "other"


def _is_structure_type(cls: Any) -> bool:
    return isinstance(cls, type) and (
        issubclass(cls, BaseModel) or dataclasses.is_dataclass(cls)
    )


def unwrap(value: Any) -> Any:
    """Strip RootModel wrappers to reach the value they hold."""
    while isinstance(value, RootModel):
        value = value.root
    return value


def shape_of(value: Any) -> Shape:
    if isinstance(value, type):
        return Shape.OTHER
    if _is_structure_type(type(value)):
        return Shape.STRUCTURE
    if isinstance(value, collections.abc.Mapping):
        return Shape.MAPPING
    if isinstance(value, collections.abc.Sequence) and not isinstance(
        value, _NOT_SEQUENCES
    ):
        return Shape.SEQUENCE
    return Shape.OTHER


def extra_values(value: Any) -> List[Any]:
    """Values of undeclared attributes a model accepted through extra="allow"."""
    extra = getattr(value, "__pydantic_extra__", None)
    if isinstance(value, BaseModel) and extra:
        return list(extra.values())
    return []


def is_frozen(value: Any) -> bool:
    """Whether a structured value refuses attribute assignment."""
    cls = type(value)
    if isinstance(value, BaseModel):
        return bool(cls.model_config.get("frozen", False))
    if dataclasses.is_dataclass(cls):
        return cls.__dataclass_params__.frozen  # type: ignore[attr-defined]
    return False


def _face_key(face: Any) -> str:
    return str(face.value if isinstance(face, Enum) else face)


def parse_faces(declared: Any) -> FrozenSet[str]:
    """
    Normalise a face declaration into a frozenset of strings.

    Args:
        declared: None, a comma-separated string, an Enum member, or an
            iterable of strings and Enum members.

    Returns:
        The declared faces; empty when nothing was declared.
    """
    if declared is None:
        return frozenset()
    if isinstance(declared, Enum):
        return frozenset([_face_key(declared)])
    if isinstance(declared, str):
        items: Iterable[Any] = declared.split(",")
    elif isinstance(declared, collections.abc.Iterable):
        items = declared
    else:
        raise TypeError(
            f"faces must be a string, an Enum or an iterable of them, "
            f"not {type(declared).__name__}"
        )

    faces: Set[str] = set()
    for item in items:
        if not isinstance(item, (str, Enum)):
            raise TypeError(f"Invalid face {item!r}: expected str or Enum")
        key = _face_key(item).strip()
        if key:
            faces.add(key)
    return frozenset(faces)


def zero_value(annotation: Any, _building: Optional[Set[type]] = None) -> Any:
    """
    Return the zero value of a declared type.

    Optional types, enums, literals and anything without an obvious empty
    value zero to None. Models and dataclasses zero to an instance whose
    fields are all zeroed.
    """
    if annotation is None or annotation is type(None) or annotation is Any:
        return None

    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Annotated:
        return zero_value(args[0], _building)
    if origin is Union or origin is types.UnionType:
        if type(None) in args:
            return None
        return zero_value(args[0], _building)
    if origin is Literal:
        return None
    if origin is not None:
        annotation = origin

    if not isinstance(annotation, type):
        return None
    if issubclass(annotation, Enum):
        return None
    if _is_structure_type(annotation):
        return _zero_structure(annotation, _building or set())
    if issubclass(annotation, tuple) and hasattr(annotation, "_fields"):
        return None
    concrete = not inspect.isabstract(annotation)
    if concrete and issubclass(annotation, _CALLABLE_ZEROS + _COLLECTIONS):
        return annotation()
    if issubclass(annotation, collections.abc.Mapping):
        return {}
    if issubclass(annotation, collections.abc.Set):
        return set()
    if issubclass(annotation, collections.abc.Sequence) and not issubclass(
        annotation, _NOT_SEQUENCES
    ):
        return []
    return None


def _zero_structure(cls: type, building: Set[type]) -> Any:
    # A type that contains itself zeroes the inner occurrence to None.
    if cls in building:
        return None
    building = building | {cls}

    if issubclass(cls, BaseModel):
        values = {
            name: zero_value(info.annotation, building)
            for name, info in cls.model_fields.items()
        }
        return cls.model_construct(**values)

    hints = _dataclass_hints(cls)
    instance = object.__new__(cls)
    for f in dataclasses.fields(cls):
        object.__setattr__(
            instance, f.name, zero_value(hints.get(f.name, f.type), building)
        )
    return instance


def _dataclass_hints(cls: type) -> Dict[str, Any]:
    try:
        return get_type_hints(cls)
    except NameError as e:
        logger.warning(
            "Could not resolve annotations of %s (%s); unresolved fields zero to None",
            cls.__qualname__,
            e,
        )
        return {}


@dataclasses.dataclass(frozen=True)
class FieldDescriptor:
    """Everything the traversal needs to know about one field."""

    name: str
    faces: FrozenSet[str]
    public: bool
    writable: bool
    getter: Callable[[Any], Any]
    setter: Callable[[Any, Any], None]
    zero: Callable[[], Any]

    def get(self, instance: Any) -> Any:
        return self.getter(instance)

    def set(self, instance: Any, value: Any) -> None:
        self.setter(instance, value)


def _class_level_faces(cls: type) -> Dict[str, FrozenSet[str]]:
    """Merge `_field_faces` mappings declared on cls and its bases."""
    merged: Dict[str, FrozenSet[str]] = {}
    for klass in reversed(cls.__mro__):
        declared = vars(klass).get("_field_faces")
        if not isinstance(declared, collections.abc.Mapping):
            continue
        for name, faces in declared.items():
            merged[name] = merged.get(name, frozenset()) | parse_faces(faces)
    return merged


def _pydantic_setter(name: str) -> Callable[[Any, Any], None]:
    def setter(instance: Any, value: Any) -> None:
        # Written the way model_construct populates fields: no validation.
        instance.__dict__[name] = value

    return setter


def _dataclass_setter(name: str) -> Callable[[Any, Any], None]:
    def setter(instance: Any, value: Any) -> None:
        setattr(instance, name, value)

    return setter


def _getter(name: str) -> Callable[[Any], Any]:
    def getter(instance: Any) -> Any:
        return getattr(instance, name)

    return getter


def _zero_factory(annotation: Any) -> Callable[[], Any]:
    def factory() -> Any:
        return zero_value(annotation)

    return factory


def _describe_model(cls: Type[BaseModel]) -> Tuple[FieldDescriptor, ...]:
    class_faces = _class_level_faces(cls)
    model_frozen = bool(cls.model_config.get("frozen", False))
    descriptors = []
    for name, info in cls.model_fields.items():
        extra = info.json_schema_extra
        declared = extra.get(FACES_KEY) if isinstance(extra, dict) else None
        descriptors.append(
            FieldDescriptor(
                name=name,
                faces=parse_faces(declared) | class_faces.get(name, frozenset()),
                public=not name.startswith("_"),
                writable=not (model_frozen or info.frozen),
                getter=_getter(name),
                setter=_pydantic_setter(name),
                zero=_zero_factory(info.annotation),
            )
        )
    return tuple(descriptors)


def _describe_dataclass(cls: type) -> Tuple[FieldDescriptor, ...]:
    class_faces = _class_level_faces(cls)
    hints = _dataclass_hints(cls)
    frozen = cls.__dataclass_params__.frozen  # type: ignore[attr-defined]
    descriptors = []
    for f in dataclasses.fields(cls):
        descriptors.append(
            FieldDescriptor(
                name=f.name,
                faces=parse_faces(f.metadata.get(FACES_KEY))
                | class_faces.get(f.name, frozenset()),
                public=not f.name.startswith("_"),
                writable=not frozen,
                getter=_getter(f.name),
                setter=_dataclass_setter(f.name),
                zero=_zero_factory(hints.get(f.name, f.type)),
            )
        )
    return tuple(descriptors)


def build_descriptors(cls: type) -> Tuple[FieldDescriptor, ...]:
    """Build the field descriptors of a pydantic model or dataclass type."""
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        return _describe_model(cls)
    if isinstance(cls, type) and dataclasses.is_dataclass(cls):
        return _describe_dataclass(cls)
    raise TypeError(f"{cls!r} is not a pydantic model or dataclass type")


def describe(cls: type) -> Tuple[FieldDescriptor, ...]:
    """
    Return the field descriptors of a pydantic model or dataclass type,
    in declaration order. Results are cached per class.
    """
    cached = _DESCRIPTOR_CACHE.get(cls)
    if cached is None:
        cached = _DESCRIPTOR_CACHE[cls] = build_descriptors(cls)
    return cached


def clear_descriptor_cache() -> None:
    """Forget every cached descriptor table."""
    _DESCRIPTOR_CACHE.clear()
