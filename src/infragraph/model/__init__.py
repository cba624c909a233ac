"""Resource model: declared resources and their attribute value trees."""

from .values import (
    Literal,
    ListValue,
    MapValue,
    Reference,
    Value,
    UNKNOWN,
    parse_value,
    iter_references,
    resolve,
    to_plain,
)
from .resources import Resource, Lifecycle, format_address, parse_address

__all__ = [
    "Literal",
    "ListValue",
    "MapValue",
    "Reference",
    "Value",
    "UNKNOWN",
    "parse_value",
    "iter_references",
    "resolve",
    "to_plain",
    "Resource",
    "Lifecycle",
    "format_address",
    "parse_address",
]
