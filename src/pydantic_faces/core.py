"""
Module for face-based field redaction of pydantic models and dataclasses.
This module provides the reveal engine, field declaration helpers and a
mixin that reset fields not belonging to the face being revealed.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from enum import Enum
from typing import (
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Set,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel, Field

from pydantic_faces.introspection import (
    FACES_KEY,
    Shape,
    _face_key,
    build_descriptors,
    clear_descriptor_cache,
    describe,
    extra_values,
    is_frozen,
    parse_faces,
    shape_of,
    unwrap,
)

logger = logging.getLogger(__name__)

# Global face configuration.
_FACE_ENUM: Optional[Type[Enum]] = None
_FACE_INHERITANCE: Dict[str, List[str]] = {}

FaceLike = Union[str, Enum]
T = TypeVar("T")
MixinT = TypeVar("MixinT", bound="FacesMixin")


class ImmutableValueError(TypeError):
    """Raised when a value that must be redacted in place cannot be written."""


def field(*, faces: Any = None, **kwargs: Any) -> Any:
    """
    Field helper that adds face metadata to a pydantic field.

    Args:
        faces: Faces the field belongs to, either a comma-separated string
            ("private,public") or a list of strings / Enum members.
            Fields without faces are always visible.
        **kwargs: Additional arguments to pass to pydantic.Field.

    Returns:
        Pydantic Field with face metadata.
    """
    field_kwargs = kwargs.copy()

    declared = parse_faces(faces)
    if declared:
        field_kwargs["json_schema_extra"] = dict(
            field_kwargs.get("json_schema_extra") or {}
        )
        field_kwargs["json_schema_extra"][FACES_KEY] = sorted(declared)

    return Field(**field_kwargs)


def dataclass_field(*, faces: Any = None, **kwargs: Any) -> Any:
    """
    dataclasses.field counterpart of `field`, storing faces in the field
    metadata.
    """
    declared = parse_faces(faces)
    if declared:
        metadata = dict(kwargs.pop("metadata", None) or {})
        metadata[FACES_KEY] = sorted(declared)
        kwargs["metadata"] = metadata
    return dataclasses.field(**kwargs)


def configure_faces(
    *,
    face_enum: Optional[Type[Enum]] = None,
    inheritance: Optional[Dict[Any, Iterable[Any]]] = None,
) -> None:
    """
    Configure the face system. Each call replaces the previous configuration.

    Args:
        face_enum: Enum class listing the faces FacesModel subclasses may
            declare. None allows any face.
        inheritance: Dictionary mapping a face to the faces it implies.
            Revealing a face also reveals every face it implies.
    """
    global _FACE_ENUM, _FACE_INHERITANCE

    _FACE_ENUM = face_enum
    _FACE_INHERITANCE = {
        _face_key(face): [_face_key(implied) for implied in implied_faces]
        for face, implied_faces in (inheritance or {}).items()
    }


def _expand_faces(faces: Iterable[FaceLike]) -> FrozenSet[str]:
    """Add every face implied through the inheritance mapping."""
    pending = [_face_key(face) for face in faces]
    expanded: Set[str] = set()
    while pending:
        face = pending.pop()
        if face in expanded:
            continue
        expanded.add(face)
        pending.extend(_FACE_INHERITANCE.get(face, []))
    return frozenset(expanded)


def reveal(value: Any, *faces: FaceLike) -> None:
    """
    Reset, in place, every field of value that does not belong to any of
    the given faces.

    Nested models, dataclasses, sequences and mapping values are visited
    recursively. Fields declared without faces are always kept. Calling
    without faces does nothing.

    Args:
        value: A pydantic model, dataclass, or a sequence or mapping of them.
        *faces: The faces to reveal.

    Raises:
        ImmutableValueError: If value is frozen, or a field that has to be
            reset cannot be written. Fields of the structure holding the
            frozen field are left untouched, but structures visited earlier
            in the traversal may already have been redacted.
    """
    if not faces:
        return

    target = unwrap(value)
    if shape_of(target) is Shape.STRUCTURE and is_frozen(target):
        raise ImmutableValueError(
            f"Cannot reveal a frozen {type(target).__name__} in place"
        )

    visible = _expand_faces(faces)
    logger.debug("Revealing %s for faces %s", type(target).__name__, sorted(visible))
    _reveal_value(target, visible)


def _reveal_value(value: Any, visible: FrozenSet[str]) -> None:
    value = unwrap(value)
    shape = shape_of(value)

    if shape is Shape.SEQUENCE:
        for item in value:
            _reveal_value(item, visible)
        return

    if shape is Shape.MAPPING:
        for item in value.values():
            _reveal_value(item, visible)
        return

    if shape is not Shape.STRUCTURE:
        return

    descriptors = [d for d in describe(type(value)) if d.public]
    resets = {
        d.name for d in descriptors if d.faces and d.faces.isdisjoint(visible)
    }
    frozen = [d.name for d in descriptors if d.name in resets and not d.writable]
    if frozen:
        raise ImmutableValueError(
            f"Cannot reset {type(value).__name__}.{', '.join(frozen)}: "
            f"field is frozen"
        )

    for descriptor in descriptors:
        if descriptor.name not in resets:
            _reveal_value(descriptor.get(value), visible)
            continue

        try:
            _reveal_value(descriptor.get(value), visible)
        except ImmutableValueError as e:
            # The whole value is replaced below, so nothing of it leaks.
            logger.debug(
                "Skipping nested redaction of %s.%s: %s",
                type(value).__name__,
                descriptor.name,
                e,
            )
        logger.debug(
            "Resetting %s.%s (faces %s)",
            type(value).__name__,
            descriptor.name,
            sorted(descriptor.faces),
        )
        descriptor.set(value, descriptor.zero())

    for item in extra_values(value):
        _reveal_value(item, visible)


def revealed(value: T, *faces: FaceLike) -> T:
    """
    Return a deep copy of value with `reveal` applied, leaving value itself
    untouched.
    """
    result = copy.deepcopy(value)
    reveal(result, *faces)
    return result


class FacesMixin:
    """
    Mixin class that adds face-based redaction.
    This can be added to any pydantic model or dataclass.
    """

    _field_faces: ClassVar[Dict[str, Set[str]]] = {}

    def reveal(self: MixinT, *faces: FaceLike) -> MixinT:
        """Redact this instance in place and return it."""
        reveal(self, *faces)
        return self

    def revealed(self: MixinT, *faces: FaceLike) -> MixinT:
        """Return a redacted deep copy of this instance."""
        return revealed(self, *faces)

    @classmethod
    def configure_field_faces(cls, field_name: str, faces: Any) -> None:
        """
        Configure, at class level, the faces of one field. Class-level faces
        are added to the ones declared on the field itself.
        """
        if field_name not in {d.name for d in describe(cls)}:
            raise ValueError(f"{cls.__name__} has no field named {field_name!r}")

        if "_field_faces" not in vars(cls):
            cls._field_faces = {}
        cls._field_faces[field_name] = set(parse_faces(faces))
        clear_descriptor_cache()


class FacesModel(BaseModel, FacesMixin):
    """
    Base class for models with face-based redaction.
    """

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        """Check declared faces against the configured face enum."""
        super().__pydantic_init_subclass__(**kwargs)
        if _FACE_ENUM is None:
            return

        allowed = {_face_key(member) for member in _FACE_ENUM}
        for descriptor in build_descriptors(cls):
            unknown = descriptor.faces - allowed
            if unknown:
                raise ValueError(
                    f"Field {cls.__name__}.{descriptor.name} declares unknown "
                    f"faces {sorted(unknown)}; expected members of "
                    f"{_FACE_ENUM.__name__}"
                )
