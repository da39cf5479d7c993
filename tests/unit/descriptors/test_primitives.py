"""Tests for the primitive type table."""

from decimal import Decimal

import pytest

from fhirmodel.core.exceptions import TypeMismatchError


class TestPrimitiveCoercion:
    """Test Python-side value checks for primitives."""

    def test_boolean_accepts_only_bool(self, registry):
        """Test booleans reject integers."""
        boolean = registry.primitive("boolean")

        assert boolean.coerce(True) is True
        with pytest.raises(TypeMismatchError):
            boolean.coerce(1)

    def test_integer_rejects_bool(self, registry):
        """Test integers reject booleans and strings."""
        integer = registry.primitive("positiveInt")

        assert integer.coerce(3) == 3
        with pytest.raises(TypeMismatchError):
            integer.coerce(True)
        with pytest.raises(TypeMismatchError):
            integer.coerce("3")

    def test_decimal_rules(self, registry):
        """Test decimals accept Decimal and int but not float."""
        decimal = registry.primitive("decimal")

        assert decimal.coerce(Decimal("1.50")) == Decimal("1.50")
        assert decimal.coerce(2) == Decimal(2)
        with pytest.raises(TypeMismatchError):
            decimal.coerce(1.5)

    def test_decimal_from_native_float(self, registry):
        """Test floats in hand-built trees are taken by their shortest repr."""
        decimal = registry.primitive("decimal")

        assert str(decimal.from_native(0.1)) == "0.1"

    def test_string_types(self, registry):
        """Test string-backed primitives keep their lexical form."""
        assert registry.primitive("dateTime").coerce("2015-02-07T13:28:17-05:00") == (
            "2015-02-07T13:28:17-05:00"
        )
        with pytest.raises(TypeMismatchError):
            registry.primitive("code").coerce(5)


class TestLexicalForms:
    """Test conversion to and from lexical text."""

    def test_boolean_lexical(self, registry):
        """Test boolean text forms."""
        boolean = registry.primitive("boolean")

        assert boolean.to_lexical(False) == "false"
        assert boolean.from_lexical("true") is True
        with pytest.raises(TypeMismatchError):
            boolean.from_lexical("yes")

    def test_decimal_lexical_keeps_precision(self, registry):
        """Test trailing zeros survive the text round trip."""
        decimal = registry.primitive("decimal")

        value = decimal.from_lexical("880.0")
        assert decimal.to_lexical(value) == "880.0"
        with pytest.raises(TypeMismatchError):
            decimal.from_lexical("abc")

    def test_integer_lexical(self, registry):
        """Test integer text parsing."""
        integer = registry.primitive("integer")

        assert integer.from_lexical("-12") == -12
        with pytest.raises(TypeMismatchError):
            integer.from_lexical("1.0")


class TestPatterns:
    """Test lexical pattern matching."""

    @pytest.mark.parametrize(
        "type_code,value,expected",
        [
            ("id", "example-1.a", True),
            ("id", "has space", False),
            ("positiveInt", 1, True),
            ("positiveInt", 0, False),
            ("unsignedInt", 0, True),
            ("instant", "2012-10-25T22:04:27+11:00", True),
            ("instant", "2012-10-25", False),
            ("date", "2015-04", True),
            ("code", " leading", False),
            ("decimal", Decimal("0.0250"), True),
            ("uuid", "urn:uuid:c757873d-ec9a-4326-a141-556f43239520", True),
        ],
    )
    def test_matches(self, registry, type_code, value, expected):
        """Test values against the published regexes."""
        assert registry.primitive(type_code).matches(value) is expected

    def test_xhtml_has_no_pattern(self, registry):
        """Test xhtml is not pattern-checked."""
        assert registry.primitive("xhtml").matches("<div/>") is True
