"""Face-based field redaction for pydantic models and dataclasses."""

from pydantic_faces.core import (
    FacesMixin,
    FacesModel,
    ImmutableValueError,
    configure_faces,
    dataclass_field,
    field,
    reveal,
    revealed,
)
from pydantic_faces.introspection import (
    FACES_KEY,
    FieldDescriptor,
    Shape,
    clear_descriptor_cache,
    describe,
    extra_values,
    parse_faces,
    shape_of,
    zero_value,
)

__version__ = "0.1.0"
__all__ = [
    "FacesMixin",
    "FacesModel",
    "ImmutableValueError",
    "configure_faces",
    "dataclass_field",
    "field",
    "reveal",
    "revealed",
    "FACES_KEY",
    "FieldDescriptor",
    "Shape",
    "clear_descriptor_cache",
    "describe",
    "extra_values",
    "parse_faces",
    "shape_of",
    "zero_value",
]
