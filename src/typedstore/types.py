"""
Type casters and the caster registry.

A caster converts arbitrary input into a declared type (``cast``) and a typed
value into something a container codec can store (``serialize``). Casters
hold only their options, so one instance can back any number of fields.

The registry maps type names to caster classes. Built-in types are
registered at import time; applications add their own with
``register_type()`` during startup. Lookup is a pure function of the
descriptor and options, and unknown names fail when the field is declared.

Example:
    >>> caster = resolve("integer", limit=1)
    >>> caster.cast("12.7")
    12
    >>> caster.serialize("1024")
    Traceback (most recent call last):
    ...
    typedstore.errors.StoreRangeError: '1024' is out of range for integer: ...
"""

import logging
import math
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union

from typedstore.config import get_date_formats, get_datetime_formats, get_default_timezone
from typedstore.errors import CastError, DeclarationError, StoreRangeError, UnknownTypeError

logger = logging.getLogger(__name__)


class Caster:
    """Base caster: identity conversion plus the ``choices`` constraint.

    Subclasses override ``cast_value`` (raw input -> typed value) and
    ``dump`` (typed value -> storable value). ``cast`` and ``serialize``
    handle ``None`` and constraint checks for every subclass.
    """

    type_name = "value"

    def __init__(self, choices: Optional[Iterable[Any]] = None):
        self.choices: Optional[Tuple[Any, ...]] = tuple(choices) if choices is not None else None

    def cast(self, raw: Any) -> Any:
        """Convert raw input to the typed value, or raise CastError/StoreRangeError."""
        if raw is None:
            return None
        value = self.cast_value(raw)
        if value is not None:
            self.check(value, raw)
        return value

    def serialize(self, value: Any) -> Any:
        """Cast ``value`` and convert the result to its storable form."""
        typed = self.cast(value)
        if typed is None:
            return None
        return self.dump(typed)

    def cast_value(self, raw: Any) -> Any:
        return raw

    def dump(self, value: Any) -> Any:
        return value

    def check(self, value: Any, raw: Any) -> None:
        if self.choices is not None and value not in self.choices:
            raise StoreRangeError(self.type_name, raw, f"must be one of {list(self.choices)!r}")

    def options(self) -> Dict[str, Any]:
        """Options this caster was built with (used for repr and introspection)."""
        return {"choices": self.choices} if self.choices is not None else {}

    def __repr__(self) -> str:
        opts = ", ".join(f"{k}={v!r}" for k, v in self.options().items())
        return f"{type(self).__name__}({opts})"


class ValueCaster(Caster):
    """Untyped accessor: values are stored and read back unchanged."""

    type_name = "value"


class BooleanCaster(Caster):
    """Truthy unless the input is one of the recognised false values."""

    type_name = "boolean"

    FALSE_VALUES = frozenset([
        False, 0,
        "0", "f", "F", "false", "FALSE", "False", "off", "OFF", "Off",
        "n", "N", "no", "NO", "No",
    ])

    def cast_value(self, raw: Any) -> Optional[bool]:
        if isinstance(raw, str):
            raw = raw.strip()
            if raw == "":
                return None
        if isinstance(raw, (str, bool, int, float)) and raw in self.FALSE_VALUES:
            return False
        return True


class IntegerCaster(Caster):
    """Integer with truncation of fractional input.

    ``limit`` is a byte size: the value must fit a signed integer of that
    many bytes (``limit=1`` accepts -128..127).
    """

    type_name = "integer"

    def __init__(self, limit: Optional[int] = None, choices: Optional[Iterable[Any]] = None):
        super().__init__(choices=choices)
        if limit is not None and (not isinstance(limit, int) or limit < 1):
            raise ValueError(f"limit must be a positive number of bytes, got {limit!r}")
        self.limit = limit
        if limit is not None:
            self.max_value = 2 ** (8 * limit - 1) - 1
            self.min_value = -(2 ** (8 * limit - 1))

    def cast_value(self, raw: Any) -> Optional[int]:
        if isinstance(raw, bool):
            raise CastError(self.type_name, raw, "booleans are not integers")
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float):
            if math.isnan(raw) or math.isinf(raw):
                raise CastError(self.type_name, raw, "not a finite number")
            return int(raw)
        if isinstance(raw, Decimal):
            if not raw.is_finite():
                raise CastError(self.type_name, raw, "not a finite number")
            return int(raw)
        if isinstance(raw, str):
            text = raw.strip()
            if text == "":
                return None
            try:
                number = Decimal(text)
            except InvalidOperation:
                raise CastError(self.type_name, raw, "not a number") from None
            if not number.is_finite():
                raise CastError(self.type_name, raw, "not a finite number")
            return int(number)
        raise CastError(self.type_name, raw)

    def check(self, value: int, raw: Any) -> None:
        if self.limit is not None and not self.min_value <= value <= self.max_value:
            raise StoreRangeError(
                self.type_name, raw,
                f"limit {self.limit} allows {self.min_value}..{self.max_value}",
            )
        super().check(value, raw)

    def options(self) -> Dict[str, Any]:
        opts = super().options()
        if self.limit is not None:
            opts["limit"] = self.limit
        return opts


class FloatCaster(Caster):
    """Float, optionally rounded.

    ``precision`` rounds to that many significant digits, then ``scale``
    rounds to that many decimal places.
    """

    type_name = "float"

    def __init__(
        self,
        precision: Optional[int] = None,
        scale: Optional[int] = None,
        choices: Optional[Iterable[Any]] = None,
    ):
        super().__init__(choices=choices)
        if precision is not None and (not isinstance(precision, int) or precision < 1):
            raise ValueError(f"precision must be a positive number of digits, got {precision!r}")
        self.precision = precision
        self.scale = scale

    def cast_value(self, raw: Any) -> Optional[float]:
        if isinstance(raw, bool):
            raise CastError(self.type_name, raw, "booleans are not numbers")
        if isinstance(raw, str):
            raw = raw.strip()
            if raw == "":
                return None
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise CastError(self.type_name, raw) from None
        if not math.isfinite(value):
            return value
        if self.precision is not None:
            value = float(f"{value:.{self.precision}g}")
        if self.scale is not None:
            value = round(value, self.scale)
        return value

    def options(self) -> Dict[str, Any]:
        opts = super().options()
        if self.precision is not None:
            opts["precision"] = self.precision
        if self.scale is not None:
            opts["scale"] = self.scale
        return opts


class DecimalCaster(Caster):
    """Exact decimal.

    ``precision`` rounds to that many significant digits and ``scale``
    quantizes to that many fractional digits, both half-up. With both set,
    values with more integer digits than ``precision - scale`` raise a range
    error. Stored as a string so the container stays JSON-safe without
    losing digits.
    """

    type_name = "decimal"

    def __init__(
        self,
        precision: Optional[int] = None,
        scale: Optional[int] = None,
        choices: Optional[Iterable[Any]] = None,
    ):
        super().__init__(choices=choices)
        if precision is not None and (not isinstance(precision, int) or precision < 1):
            raise ValueError(f"precision must be a positive number of digits, got {precision!r}")
        if precision is not None and scale is not None and scale > precision:
            raise ValueError(f"scale ({scale}) cannot exceed precision ({precision})")
        self.precision = precision
        self.scale = scale

    def cast_value(self, raw: Any) -> Optional[Decimal]:
        if isinstance(raw, bool):
            raise CastError(self.type_name, raw, "booleans are not numbers")
        if isinstance(raw, Decimal):
            value = raw
        elif isinstance(raw, int):
            value = Decimal(raw)
        elif isinstance(raw, float):
            value = Decimal(repr(raw))
        elif isinstance(raw, str):
            text = raw.strip()
            if text == "":
                return None
            try:
                value = Decimal(text)
            except InvalidOperation:
                raise CastError(self.type_name, raw, "not a number") from None
        else:
            raise CastError(self.type_name, raw)

        if not value.is_finite():
            raise CastError(self.type_name, raw, "not a finite number")
        if self.precision is not None:
            value = Context(prec=self.precision, rounding=ROUND_HALF_UP).plus(value)
            if value.as_tuple().exponent > 0:
                # 1.23E+4 -> 12300
                value = value.quantize(Decimal(1))
        if self.scale is not None:
            value = value.quantize(Decimal(1).scaleb(-self.scale), rounding=ROUND_HALF_UP)
        return value

    def check(self, value: Decimal, raw: Any) -> None:
        if self.precision is not None and self.scale is not None:
            integer_digits = max(value.adjusted() + 1, 0)
            allowed = self.precision - (self.scale or 0)
            if integer_digits > allowed:
                raise StoreRangeError(
                    self.type_name, raw,
                    f"precision {self.precision} (scale {self.scale or 0}) allows {allowed} integer digits",
                )
        super().check(value, raw)

    def dump(self, value: Decimal) -> str:
        return str(value)

    def options(self) -> Dict[str, Any]:
        opts = super().options()
        if self.precision is not None:
            opts["precision"] = self.precision
        if self.scale is not None:
            opts["scale"] = self.scale
        return opts


class StringCaster(Caster):
    """Text; ``limit`` caps the length in characters."""

    type_name = "string"

    def __init__(self, limit: Optional[int] = None, choices: Optional[Iterable[Any]] = None):
        super().__init__(choices=choices)
        self.limit = limit

    def cast_value(self, raw: Any) -> str:
        if isinstance(raw, bool):
            return "t" if raw else "f"
        if isinstance(raw, str):
            return raw
        if isinstance(raw, (bytes, bytearray)):
            return raw.decode("utf-8")
        return str(raw)

    def check(self, value: str, raw: Any) -> None:
        if self.limit is not None and len(value) > self.limit:
            raise StoreRangeError(self.type_name, raw, f"longer than {self.limit} characters")
        super().check(value, raw)

    def options(self) -> Dict[str, Any]:
        opts = super().options()
        if self.limit is not None:
            opts["limit"] = self.limit
        return opts


class DateCaster(Caster):
    """Calendar date; stored as ``YYYY-MM-DD``."""

    type_name = "date"

    def cast_value(self, raw: Any) -> Optional[date]:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        if not isinstance(raw, str):
            raise CastError(self.type_name, raw)
        text = raw.strip()
        if text == "":
            return None
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            pass
        for fmt in get_date_formats():
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        raise CastError(self.type_name, raw, "unrecognised date format")

    def dump(self, value: date) -> str:
        return value.isoformat()


class DateTimeCaster(Caster):
    """Timezone-aware datetime normalized to the configured default timezone.

    Naive input is interpreted in the default timezone (UTC unless changed
    with ``typedstore.config.set_default_timezone``). ``precision`` truncates
    fractional seconds to that many digits.
    """

    type_name = "datetime"

    def __init__(self, precision: Optional[int] = None, choices: Optional[Iterable[Any]] = None):
        super().__init__(choices=choices)
        if precision is not None and not 0 <= precision <= 6:
            raise ValueError(f"precision must be between 0 and 6, got {precision!r}")
        self.precision = precision

    def cast_value(self, raw: Any) -> Optional[datetime]:
        tz = get_default_timezone()
        if isinstance(raw, datetime):
            value = raw
        elif isinstance(raw, date):
            value = datetime.combine(raw, time())
        elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
            try:
                value = datetime.fromtimestamp(raw, tz=timezone.utc)
            except (OverflowError, OSError, ValueError) as e:
                raise CastError(self.type_name, raw, str(e)) from e
        elif isinstance(raw, str):
            text = raw.strip()
            if text == "":
                return None
            value = self._parse(text, raw)
        else:
            raise CastError(self.type_name, raw)

        if value.tzinfo is None:
            value = value.replace(tzinfo=tz)
        else:
            value = value.astimezone(tz)
        if self.precision is not None:
            step = 10 ** (6 - self.precision)
            value = value.replace(microsecond=value.microsecond - value.microsecond % step)
        return value

    def _parse(self, text: str, raw: Any) -> datetime:
        if text.endswith(" UTC"):
            text = text[:-4] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        for fmt in get_datetime_formats() + get_date_formats():
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        raise CastError(self.type_name, raw, "unrecognised datetime format")

    def dump(self, value: datetime) -> str:
        return value.isoformat()

    def options(self) -> Dict[str, Any]:
        opts = super().options()
        if self.precision is not None:
            opts["precision"] = self.precision
        return opts


class JSONCaster(Caster):
    """Nested JSON-compatible value (object, array or scalar).

    Mappings get string keys and tuples become lists, so the typed value is
    exactly what a JSON round trip would produce. Anything else JSON cannot
    represent is a cast error.
    """

    type_name = "json"

    def cast_value(self, raw: Any) -> Any:
        return self._convert(raw, raw)

    def _convert(self, value: Any, raw: Any) -> Any:
        if value is None or isinstance(value, (str, bool, int)):
            return value
        if isinstance(value, float):
            if not math.isfinite(value):
                raise CastError(self.type_name, raw, "JSON has no NaN or Infinity")
            return value
        if isinstance(value, Mapping):
            return {str(k): self._convert(v, raw) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._convert(v, raw) for v in value]
        raise CastError(self.type_name, raw, f"{type(value).__name__} is not JSON-compatible")


# Type registry: name -> caster class
_type_registry: Dict[str, Type[Caster]] = {}

TypeDescriptor = Union[str, Type[Caster], Caster]


def register_type(name: str, caster_cls: Type[Caster], *aliases: str) -> None:
    """Register a caster class under ``name`` (and optional aliases).

    Intended for startup time. Re-registering a name replaces the old class.
    """
    if not (isinstance(caster_cls, type) and issubclass(caster_cls, Caster)):
        raise TypeError(f"{caster_cls!r} is not a Caster subclass")
    for key in (name, *aliases):
        key = key.lower()
        if key in _type_registry and _type_registry[key] is not caster_cls:
            logger.warning(f"Replacing caster for type {key!r}: {_type_registry[key].__name__} -> {caster_cls.__name__}")
        _type_registry[key] = caster_cls


def unregister_type(name: str) -> None:
    """Remove a registered name. For testing."""
    _type_registry.pop(name.lower(), None)


def registered_types() -> List[str]:
    return sorted(_type_registry)


def lookup_type(name: str) -> Type[Caster]:
    try:
        return _type_registry[name.lower()]
    except KeyError:
        raise UnknownTypeError(name) from None


def resolve(descriptor: TypeDescriptor, **options: Any) -> Caster:
    """Resolve a type descriptor plus options to a caster instance.

    Args:
        descriptor: A registered type name, a Caster subclass, or a ready
            Caster instance (which takes no further options).
        **options: Caster options such as ``limit``, ``precision``,
            ``scale`` or ``choices``.

    Raises:
        UnknownTypeError: Name is not registered or descriptor is not a caster.
        DeclarationError: Options are not accepted by the caster.
    """
    if isinstance(descriptor, Caster):
        if options:
            raise DeclarationError(
                f"Options {sorted(options)} cannot be applied to caster instance {descriptor!r}"
            )
        return descriptor

    if isinstance(descriptor, str):
        caster_cls = lookup_type(descriptor)
    elif isinstance(descriptor, type) and issubclass(descriptor, Caster):
        caster_cls = descriptor
    else:
        raise UnknownTypeError(descriptor)

    try:
        caster = caster_cls(**options)
    except (TypeError, ValueError) as e:
        raise DeclarationError(f"Invalid options for {caster_cls.type_name!r}: {e}") from e
    logger.debug(f"Resolved type {descriptor!r} -> {caster!r}")
    return caster


register_type("value", ValueCaster)
register_type("boolean", BooleanCaster, "bool")
register_type("integer", IntegerCaster, "int")
register_type("float", FloatCaster)
register_type("decimal", DecimalCaster, "numeric")
register_type("string", StringCaster, "str", "text")
register_type("date", DateCaster)
register_type("datetime", DateTimeCaster, "timestamp")
register_type("json", JSONCaster, "dict", "list")
