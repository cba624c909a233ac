"""Attribute value tree: literals, lists, maps and cross-resource references."""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Tuple, Union

REFERENCE_PATTERN = re.compile(
    r"^\$\{\s*([A-Za-z][A-Za-z0-9_-]*)\.([A-Za-z0-9_-]+)\.([A-Za-z0-9_-]+)\s*\}$"
)


@dataclass(frozen=True)
class Literal:
    """Scalar value: str, int, float, bool or None."""
    value: Any


@dataclass(frozen=True)
class ListValue:
    items: Tuple["Value", ...]


@dataclass(frozen=True)
class MapValue:
    entries: Tuple[Tuple[str, "Value"], ...]

    def keys(self) -> List[str]:
        return [key for key, _ in self.entries]


@dataclass(frozen=True)
class Reference:
    """Another resource's exported attribute, e.g. ``${aws_vpc.main.id}``."""
    resource_type: str
    resource_name: str
    attribute: str

    @property
    def address(self) -> str:
        return f"{self.resource_type}.{self.resource_name}"

    def __str__(self) -> str:
        return f"${{{self.address}.{self.attribute}}}"


Value = Union[Literal, ListValue, MapValue, Reference]


class _Unknown:
    """Placeholder for a value that is only known once a dependency is applied."""

    def __repr__(self) -> str:
        return "(known after apply)"


UNKNOWN = _Unknown()


def parse_value(raw: Any) -> Value:
    """
    Convert a plain decoded YAML/JSON value into a value tree.

    Strings of the exact form ``${type.name.attribute}`` become references;
    every other string is a literal.
    """
    if isinstance(raw, (Literal, ListValue, MapValue, Reference)):
        return raw
    if isinstance(raw, dict):
        return MapValue(tuple((str(key), parse_value(item)) for key, item in raw.items()))
    if isinstance(raw, (list, tuple)):
        return ListValue(tuple(parse_value(item) for item in raw))
    if isinstance(raw, str):
        match = REFERENCE_PATTERN.match(raw)
        if match:
            return Reference(*match.groups())
    if raw is not None and not isinstance(raw, (str, int, float, bool)):
        raise TypeError(f"Unsupported attribute value type: {type(raw).__name__}")
    return Literal(raw)


def fold(
    value: Value,
    on_literal: Callable[[Any], Any],
    on_reference: Callable[[Reference], Any],
) -> Any:
    """Visit a value tree bottom-up, rebuilding lists and maps as plain containers."""
    if isinstance(value, Literal):
        return on_literal(value.value)
    if isinstance(value, Reference):
        return on_reference(value)
    if isinstance(value, ListValue):
        return [fold(item, on_literal, on_reference) for item in value.items]
    if isinstance(value, MapValue):
        return {key: fold(item, on_literal, on_reference) for key, item in value.entries}
    raise TypeError(f"Not an attribute value: {value!r}")


def iter_references(value: Value) -> Iterator[Reference]:
    """Yield every reference embedded anywhere in the value tree."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, ListValue):
        for item in value.items:
            yield from iter_references(item)
    elif isinstance(value, MapValue):
        for _, item in value.entries:
            yield from iter_references(item)


def to_plain(value: Value) -> Any:
    """Render a value tree as plain data, references kept as their ``${...}`` text."""
    return fold(value, lambda literal: literal, str)


def resolve(value: Value, lookup: Callable[[Reference], Any]) -> Any:
    """Render a value tree as plain data, substituting each reference with lookup(ref)."""
    return fold(value, lambda literal: literal, lookup)


def contains_unknown(plain: Any) -> bool:
    """True if UNKNOWN appears anywhere inside resolved plain data."""
    if plain is UNKNOWN:
        return True
    if isinstance(plain, dict):
        return any(contains_unknown(item) for item in plain.values())
    if isinstance(plain, list):
        return any(contains_unknown(item) for item in plain)
    return False


def parse_attributes(raw: Dict[str, Any]) -> Dict[str, Value]:
    """Parse a whole attribute mapping."""
    return {str(key): parse_value(item) for key, item in raw.items()}
