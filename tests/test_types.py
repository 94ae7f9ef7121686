"""Tests for the built-in casters and the type registry."""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from typedstore import (
    BooleanCaster,
    Caster,
    CastError,
    DateCaster,
    DateTimeCaster,
    DecimalCaster,
    DeclarationError,
    FloatCaster,
    IntegerCaster,
    JSONCaster,
    RangeError,
    StringCaster,
    UnknownTypeError,
    ValueCaster,
    register_type,
    registered_types,
    resolve,
    set_date_formats,
    set_default_timezone,
)
from typedstore.types import lookup_type, unregister_type


class TestBoolean:
    """Boolean casting follows the recognised false-value table."""

    @pytest.mark.parametrize("raw", [False, 0, "0", "f", "F", "false", "FALSE", "off", "n", "no", " no "])
    def test_false_values(self, raw):
        assert BooleanCaster().cast(raw) is False

    @pytest.mark.parametrize("raw", [True, 1, "1", "t", "true", "yes", "on", "anything", 2.5])
    def test_true_values(self, raw):
        assert BooleanCaster().cast(raw) is True

    def test_blank_is_none(self):
        assert BooleanCaster().cast("") is None
        assert BooleanCaster().cast("   ") is None
        assert BooleanCaster().cast(None) is None

    def test_serialize_is_plain_bool(self):
        assert BooleanCaster().serialize("t") is True
        assert BooleanCaster().serialize("false") is False


class TestInteger:
    """Integer casting truncates, rejects booleans and enforces byte limits."""

    def test_truncates_fractions(self):
        caster = IntegerCaster()
        assert caster.cast(3.1999) == 3
        assert caster.cast("12.02") == 12
        assert caster.cast("123.123") == 123
        assert caster.cast(Decimal("-7.9")) == -7

    def test_blank_string_is_none(self):
        assert IntegerCaster().cast(" ") is None

    def test_rejects_garbage(self):
        with pytest.raises(CastError):
            IntegerCaster().cast("twelve")
        with pytest.raises(CastError):
            IntegerCaster().cast([1])
        with pytest.raises(CastError):
            IntegerCaster().cast(float("nan"))

    def test_rejects_booleans(self):
        with pytest.raises(CastError):
            IntegerCaster().cast(True)

    def test_limit_is_signed_bytes(self):
        caster = IntegerCaster(limit=1)
        assert caster.cast(127) == 127
        assert caster.cast(-128) == -128
        with pytest.raises(RangeError):
            caster.cast(128)
        with pytest.raises(RangeError):
            caster.serialize("1024")

    def test_no_limit_by_default(self):
        assert IntegerCaster().cast(2 ** 70) == 2 ** 70

    def test_choices(self):
        caster = resolve("integer", choices=[1, 2])
        assert caster.cast("2") == 2
        with pytest.raises(RangeError):
            caster.cast("3")

    def test_cast_error_is_type_error(self):
        """Callers catching TypeError/ValueError see cast and range errors."""
        with pytest.raises(TypeError):
            IntegerCaster().cast(object())
        with pytest.raises(ValueError):
            IntegerCaster(limit=1).cast(1000)


class TestFloatAndDecimal:

    def test_float_scale_rounds(self):
        assert FloatCaster(scale=2).cast("3.14159") == 3.14
        assert FloatCaster().cast(" 2.5 ") == 2.5

    def test_float_rejects_garbage(self):
        with pytest.raises(CastError):
            FloatCaster().cast("abc")
        with pytest.raises(CastError):
            FloatCaster().cast(False)

    def test_decimal_scale_rounds_half_up(self):
        caster = DecimalCaster(precision=5, scale=2)
        assert caster.cast("123.455") == Decimal("123.46")
        assert caster.cast(1) == Decimal("1.00")

    def test_decimal_precision_limits_integer_digits(self):
        caster = DecimalCaster(precision=5, scale=2)
        assert caster.cast("999.99") == Decimal("999.99")
        with pytest.raises(RangeError):
            caster.cast("1234.5")

    def test_decimal_serializes_to_string(self):
        assert DecimalCaster(scale=1).serialize(2.25) == "2.3"
        assert DecimalCaster().cast(0.1) == Decimal("0.1")

    def test_decimal_rejects_non_finite(self):
        with pytest.raises(CastError):
            DecimalCaster().cast("NaN")

    def test_decimal_precision_rounds_significant_digits(self):
        caster = DecimalCaster(precision=3)
        assert caster.cast("1.23456") == Decimal("1.23")
        assert caster.cast("0.0012345") == Decimal("0.00123")
        assert caster.cast("1.235") == Decimal("1.24")

    def test_decimal_precision_keeps_integer_magnitude(self):
        caster = DecimalCaster(precision=3)
        assert caster.cast("12345") == Decimal("12300")
        assert caster.serialize("12345") == "12300"

    def test_float_precision_rounds_significant_digits(self):
        caster = resolve("float", precision=2)
        assert caster.cast("3.14159") == 3.1
        assert caster.cast(1234.5) == 1200.0
        assert caster.options() == {"precision": 2}

    def test_float_keeps_non_finite_values(self):
        assert FloatCaster(precision=2).cast("Infinity") == float("inf")

    def test_invalid_options_fail_at_resolution(self):
        with pytest.raises(DeclarationError):
            resolve("decimal", precision=2, scale=3)
        with pytest.raises(DeclarationError):
            resolve("decimal", precision=0)
        with pytest.raises(DeclarationError):
            resolve("float", precision=0)


class TestString:

    def test_casts_scalars_to_text(self):
        caster = StringCaster()
        assert caster.cast(12) == "12"
        assert caster.cast(True) == "t"
        assert caster.cast(False) == "f"
        assert caster.cast(b"abc") == "abc"

    def test_limit(self):
        caster = StringCaster(limit=3)
        assert caster.cast("abc") == "abc"
        with pytest.raises(RangeError):
            caster.cast("abcd")

    def test_choices(self):
        caster = resolve("string", choices=["light", "dark"])
        assert caster.cast("dark") == "dark"
        with pytest.raises(RangeError):
            caster.cast("blue")


class TestDate:

    @pytest.mark.parametrize("raw, expected", [
        ("2019-06-26", date(2019, 6, 26)),
        ("01/01/2000", date(2000, 1, 1)),
        ("2012/03/04", date(2012, 3, 4)),
        ("2015-02-14T17:00:00", date(2015, 2, 14)),
        (datetime(2020, 5, 6, 7, 8), date(2020, 5, 6)),
        (date(2021, 1, 2), date(2021, 1, 2)),
    ])
    def test_parses(self, raw, expected):
        assert DateCaster().cast(raw) == expected

    def test_serializes_iso(self):
        assert DateCaster().serialize("01/01/2012") == "2012-01-01"

    def test_rejects_unparseable(self):
        with pytest.raises(CastError):
            DateCaster().cast("not a date")
        with pytest.raises(CastError):
            DateCaster().cast(20190101)

    def test_configured_formats(self):
        set_date_formats(["%m-%d-%Y"])
        assert DateCaster().cast("12-31-2019") == date(2019, 12, 31)
        with pytest.raises(CastError):
            DateCaster().cast("31/12/2019")


class TestDateTime:

    def test_naive_input_uses_default_timezone(self):
        value = DateTimeCaster().cast("2015-02-14 17:00")
        assert value == datetime(2015, 2, 14, 17, 0, tzinfo=timezone.utc)
        assert value.tzinfo is not None

    def test_utc_suffix(self):
        value = DateTimeCaster().cast("2015-02-14 17:00:00 UTC")
        assert value == datetime(2015, 2, 14, 17, 0, tzinfo=timezone.utc)

    def test_aware_input_is_normalized(self):
        set_default_timezone(timezone(timedelta(hours=3)))
        value = DateTimeCaster().cast("2015-02-14T17:00:00+00:00")
        assert value.utcoffset() == timedelta(hours=3)
        assert value.hour == 20
        assert value == datetime(2015, 2, 14, 17, 0, tzinfo=timezone.utc)

    def test_epoch_numbers(self):
        assert DateTimeCaster().cast(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_precision_truncates(self):
        value = DateTimeCaster(precision=0).cast("2015-02-14 17:00:00.987654")
        assert value.microsecond == 0
        value = DateTimeCaster(precision=3).cast("2015-02-14 17:00:00.987654")
        assert value.microsecond == 987000

    def test_serializes_iso_with_offset(self):
        assert DateTimeCaster().serialize("2015-02-14 17:00") == "2015-02-14T17:00:00+00:00"

    def test_rejects_unparseable(self):
        with pytest.raises(CastError):
            DateTimeCaster().cast("yesterday-ish")

    def test_invalid_precision(self):
        with pytest.raises(DeclarationError):
            resolve("datetime", precision=9)


class TestJSON:

    def test_keys_become_strings(self):
        assert JSONCaster().cast({1: {"a": (1, 2)}}) == {"1": {"a": [1, 2]}}

    def test_scalars_pass_through(self):
        caster = JSONCaster()
        assert caster.cast("text") == "text"
        assert caster.cast(3) == 3
        assert caster.cast([True, None]) == [True, None]

    def test_rejects_non_json_values(self):
        with pytest.raises(CastError):
            JSONCaster().cast({"when": date(2020, 1, 1)})
        with pytest.raises(CastError):
            JSONCaster().cast(float("nan"))


class TestRoundTrip:
    """cast(serialize(x)) == cast(x) for every built-in type."""

    @pytest.mark.parametrize("descriptor, options, raw", [
        ("value", {}, {"any": "thing"}),
        ("boolean", {}, "off"),
        ("integer", {"limit": 4}, "42.9"),
        ("float", {"scale": 1}, "2.46"),
        ("float", {"precision": 2}, "3.14159"),
        ("decimal", {"precision": 3}, "1.23456"),
        ("decimal", {"precision": 6, "scale": 2}, "12.345"),
        ("string", {}, 17),
        ("date", {}, "01/01/2000"),
        ("datetime", {}, "2015-02-14 17:00"),
        ("json", {}, {"nested": [1, {"x": None}]}),
    ])
    def test_round_trip(self, descriptor, options, raw):
        caster = resolve(descriptor, **options)
        assert caster.cast(caster.serialize(raw)) == caster.cast(raw)


class TestRegistry:
    """Type descriptors resolve through the registry."""

    def test_builtin_names_and_aliases(self):
        assert isinstance(resolve("boolean"), BooleanCaster)
        assert isinstance(resolve("bool"), BooleanCaster)
        assert isinstance(resolve("int"), IntegerCaster)
        assert isinstance(resolve("numeric"), DecimalCaster)
        assert isinstance(resolve("text"), StringCaster)
        assert isinstance(resolve("timestamp"), DateTimeCaster)
        assert isinstance(resolve("value"), ValueCaster)
        assert lookup_type("Integer") is IntegerCaster

    def test_options_are_passed(self):
        caster = resolve("integer", limit=1)
        assert caster.limit == 1
        assert caster.options() == {"limit": 1}

    def test_caster_class_and_instance(self):
        instance = IntegerCaster(limit=2)
        assert resolve(instance) is instance
        assert isinstance(resolve(FloatCaster, scale=1), FloatCaster)

    def test_instance_rejects_options(self):
        with pytest.raises(DeclarationError):
            resolve(IntegerCaster(), limit=1)

    def test_unknown_name(self):
        with pytest.raises(UnknownTypeError) as exc_info:
            resolve("nope")
        assert exc_info.value.descriptor == "nope"

    def test_non_descriptor(self):
        with pytest.raises(UnknownTypeError):
            resolve(42)

    def test_unknown_option(self):
        with pytest.raises(DeclarationError):
            resolve("integer", bogus=1)

    def test_register_custom_type(self):
        class UpperCaster(Caster):
            type_name = "upper"

            def cast_value(self, raw):
                return str(raw).upper()

        register_type("upper", UpperCaster, "shout")
        assert "upper" in registered_types()
        assert resolve("shout").cast("hi") == "HI"

        unregister_type("upper")
        with pytest.raises(UnknownTypeError):
            resolve("upper")

    def test_register_rejects_non_casters(self):
        with pytest.raises(TypeError):
            register_type("broken", dict)

    def test_replacing_logs_warning(self, caplog):
        class OtherBoolean(BooleanCaster):
            pass

        with caplog.at_level("WARNING", logger="typedstore.types"):
            register_type("boolean", OtherBoolean)
        assert "Replacing caster for type 'boolean'" in caplog.text
        assert isinstance(resolve("boolean"), OtherBoolean)

    def test_cast_error_message(self):
        with pytest.raises(CastError) as exc_info:
            IntegerCaster().cast("x")
        assert exc_info.value.type_name == "integer"
        assert exc_info.value.value == "x"
        assert "Cannot cast 'x' to integer" in str(exc_info.value)
