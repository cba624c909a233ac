"""Tests for attribute value trees and resources."""

import pytest
from pydantic import ValidationError as SchemaError
from infragraph.model import (
    Literal,
    ListValue,
    MapValue,
    Reference,
    Resource,
    UNKNOWN,
    iter_references,
    parse_address,
    parse_value,
    resolve,
    to_plain,
)
from infragraph.model.values import contains_unknown


class TestParseValue:
    """Test conversion of decoded YAML into value trees."""

    def test_reference_string(self):
        """A full ${type.name.attr} string becomes a reference."""
        value = parse_value("${aws_vpc.main.id}")
        assert value == Reference("aws_vpc", "main", "id")
        assert value.address == "aws_vpc.main"
        assert str(value) == "${aws_vpc.main.id}"

    def test_embedded_reference_is_literal(self):
        """No string interpolation: partial matches stay literal."""
        value = parse_value("prefix-${aws_vpc.main.id}")
        assert value == Literal("prefix-${aws_vpc.main.id}")

    def test_nested_structures(self):
        """Lists and maps are parsed recursively."""
        value = parse_value({"route": [{"gateway_id": "${aws_internet_gateway.gw.id}", "cidr_block": "0.0.0.0/0"}]})
        assert isinstance(value, MapValue)
        assert value.keys() == ["route"]
        refs = list(iter_references(value))
        assert refs == [Reference("aws_internet_gateway", "gw", "id")]

    def test_unsupported_type(self):
        """Arbitrary objects are rejected."""
        with pytest.raises(TypeError):
            parse_value(object())


class TestResolve:
    """Test rendering value trees to plain data."""

    def test_resolve_substitutes_references(self):
        value = parse_value(["${aws_security_group.web.id}", "sg-static"])
        plain = resolve(value, lambda ref: f"resolved:{ref.address}")
        assert plain == ["resolved:aws_security_group.web", "sg-static"]

    def test_to_plain_keeps_reference_text(self):
        value = parse_value({"vpc_id": "${aws_vpc.main.id}", "count": 2})
        assert to_plain(value) == {"vpc_id": "${aws_vpc.main.id}", "count": 2}

    def test_contains_unknown(self):
        assert contains_unknown({"a": [1, UNKNOWN]})
        assert not contains_unknown({"a": [1, 2]})


class TestResource:
    """Test the declared resource model."""

    def test_implicit_dependencies(self):
        resource = Resource(
            type="aws_subnet",
            name="public",
            attributes={"vpc_id": "${aws_vpc.main.id}", "cidr_block": "10.0.1.0/24"},
        )
        assert resource.address == "aws_subnet.public"
        assert resource.implicit_dependencies() == {"aws_vpc.main"}
        assert resource.plain_attributes()["vpc_id"] == "${aws_vpc.main.id}"

    def test_resource_is_frozen(self):
        resource = Resource(type="aws_vpc", name="main")
        with pytest.raises(SchemaError):
            resource.name = "other"

    def test_attributes_are_read_only(self):
        raw = {"cidr_block": "10.0.0.0/16"}
        resource = Resource(type="aws_vpc", name="main", attributes=raw)
        with pytest.raises(TypeError):
            resource.attributes["cidr_block"] = Literal("10.1.0.0/16")
        raw["cidr_block"] = "10.1.0.0/16"
        assert resource.attributes["cidr_block"] == Literal("10.0.0.0/16")
        with pytest.raises(TypeError):
            Resource(type="aws_vpc", name="empty").attributes["tags"] = Literal(None)

    def test_invalid_depends_on(self):
        with pytest.raises(SchemaError):
            Resource(type="aws_vpc", name="main", depends_on=["not-an-address"])

    def test_parse_address(self):
        assert parse_address("aws_vpc.main") == ("aws_vpc", "main")
        with pytest.raises(ValueError):
            parse_address("aws_vpc")
