"""
Tests for field descriptors, value shapes and zero values.
"""
from collections import OrderedDict, defaultdict, deque
from dataclasses import dataclass, fields
from decimal import Decimal
from enum import Enum
from typing import (
    Annotated,
    Any,
    ClassVar,
    DefaultDict,
    Deque,
    Dict,
    FrozenSet,
    List,
    Literal,
    Mapping,
    MutableSequence,
    NamedTuple,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

import pytest
from pydantic import BaseModel, ConfigDict, RootModel

from pydantic_faces import (
    FACES_KEY,
    FacesMixin,
    FacesModel,
    Shape,
    dataclass_field,
    describe,
    extra_values,
    field,
    parse_faces,
    shape_of,
    zero_value,
)


class Color(Enum):
    RED = "red"


class Coordinates(NamedTuple):
    lat: float
    lon: float


class Person(FacesModel):
    name: str = field(faces="private, public", json_schema_extra={"example": "Ada"})
    age: int = field(faces="private")
    email: Optional[str] = None


class Node(BaseModel):
    name: str
    child: "Node"


class FrozenPerson(FacesModel):
    model_config = ConfigDict(frozen=True)

    name: str = field(faces="private")


class WithClassFaces(BaseModel, FacesMixin):
    _field_faces: ClassVar[Dict[str, Set[str]]] = {"name": {"admin"}}

    name: str = field(faces="private")


@dataclass
class Point:
    x: int
    y: int = 5
    label: Optional[str] = "p"


@dataclass
class Credentials:
    user: str
    token: str = dataclass_field(faces="internal,ops", default="")
    _salt: str = dataclass_field(faces="internal", default="")


@dataclass
class Dangling:
    missing: "UndefinedType" = None  # noqa: F821


class TestShapes:
    @pytest.mark.parametrize(
        "value, shape",
        [
            (Person(name="n", age=1), Shape.STRUCTURE),
            (Point(x=1), Shape.STRUCTURE),
            ([1, 2], Shape.SEQUENCE),
            ((1, 2), Shape.SEQUENCE),
            ({"a": 1}, Shape.MAPPING),
            (OrderedDict(a=1), Shape.MAPPING),
            ("text", Shape.OTHER),
            (b"bytes", Shape.OTHER),
            (bytearray(b"x"), Shape.OTHER),
            (range(3), Shape.OTHER),
            ({1, 2}, Shape.OTHER),
            (42, Shape.OTHER),
            (None, Shape.OTHER),
            (Point, Shape.OTHER),
            (Person, Shape.OTHER),
        ],
    )
    def test_shape_of(self, value, shape):
        assert shape_of(value) is shape

    def test_extra_values(self):
        class Open(BaseModel):
            model_config = ConfigDict(extra="allow")

            name: str

        assert extra_values(Open(name="n", note="x", level=2)) == ["x", 2]
        assert extra_values(Person(name="n", age=1)) == []
        assert extra_values({"a": 1}) == []

    def test_root_model_is_a_structure_until_unwrapped(self):
        wrapped = RootModel[List[int]]([1])
        assert shape_of(wrapped) is Shape.STRUCTURE


class TestParseFaces:
    def test_comma_separated(self):
        assert parse_faces("private, public,") == frozenset({"private", "public"})

    def test_empty(self):
        assert parse_faces(None) == frozenset()
        assert parse_faces("") == frozenset()
        assert parse_faces([]) == frozenset()

    def test_enums(self):
        assert parse_faces(Color.RED) == frozenset({"red"})
        assert parse_faces([Color.RED, "blue"]) == frozenset({"red", "blue"})

    def test_invalid(self):
        with pytest.raises(TypeError):
            parse_faces(42)
        with pytest.raises(TypeError):
            parse_faces(["ok", 1])


class TestFieldHelpers:
    def test_field_stores_sorted_faces(self):
        extra = Person.model_fields["name"].json_schema_extra
        assert extra == {"example": "Ada", FACES_KEY: ["private", "public"]}

    def test_field_without_faces(self):
        assert Person.model_fields["email"].json_schema_extra is None

    def test_dataclass_field_metadata(self):
        token = fields(Credentials)[1]
        assert token.metadata[FACES_KEY] == ["internal", "ops"]
        assert token.default == ""


class TestDescribe:
    def test_model_descriptors(self):
        descriptors = describe(Person)
        assert [d.name for d in descriptors] == ["name", "age", "email"]
        assert descriptors[0].faces == frozenset({"private", "public"})
        assert descriptors[1].faces == frozenset({"private"})
        assert descriptors[2].faces == frozenset()
        assert all(d.public and d.writable for d in descriptors)

    def test_descriptor_access(self):
        person = Person(name="Ada", age=36)
        age = describe(Person)[1]
        assert age.get(person) == 36
        age.set(person, age.zero())
        assert person.age == 0

    def test_dataclass_descriptors(self):
        descriptors = describe(Credentials)
        assert [d.name for d in descriptors] == ["user", "token", "_salt"]
        assert [d.public for d in descriptors] == [True, True, False]
        assert descriptors[1].faces == frozenset({"internal", "ops"})

    def test_frozen_model_is_not_writable(self):
        assert not describe(FrozenPerson)[0].writable

    def test_class_level_faces_are_merged(self):
        assert describe(WithClassFaces)[0].faces == frozenset({"private", "admin"})

    def test_cached(self):
        assert describe(Person) is describe(Person)

    def test_not_a_structure(self):
        with pytest.raises(TypeError):
            describe(dict)

    def test_unresolved_annotation_zeroes_to_none(self):
        descriptor = describe(Dangling)[0]
        assert descriptor.zero() is None


class TestZeroValue:
    @pytest.mark.parametrize(
        "annotation, expected",
        [
            (str, ""),
            (int, 0),
            (float, 0.0),
            (bool, False),
            (bytes, b""),
            (Decimal, Decimal("0")),
            (List[int], []),
            (list, []),
            (Dict[str, int], {}),
            (Set[int], set()),
            (FrozenSet[int], frozenset()),
            (Tuple[int, ...], ()),
            (Sequence[int], []),
            (MutableSequence[int], []),
            (Deque[int], deque()),
            (DefaultDict[str, int], defaultdict()),
            (OrderedDict, OrderedDict()),
            (Mapping[str, int], {}),
            (Annotated[int, "meta"], 0),
            (Union[int, str], 0),
            (int | None, None),
            (Optional[str], None),
            (Literal["a", "b"], None),
            (Any, None),
            (Color, None),
            (Coordinates, None),
            (type(None), None),
        ],
    )
    def test_builtin_types(self, annotation, expected):
        zero = zero_value(annotation)
        assert zero == expected
        assert type(zero) is type(expected)

    def test_fresh_container_each_time(self):
        assert zero_value(List[int]) is not zero_value(List[int])

    def test_model(self):
        zero = zero_value(Person)
        assert isinstance(zero, Person)
        assert (zero.name, zero.age, zero.email) == ("", 0, None)

    def test_self_referencing_model(self):
        zero = zero_value(Node)
        assert zero.name == ""
        assert zero.child is None

    def test_dataclass(self):
        zero = zero_value(Point)
        assert isinstance(zero, Point)
        assert (zero.x, zero.y, zero.label) == (0, 0, None)
