"""
Process-wide configuration for typedstore.

Settings are plain module globals with setter/getter functions. They are
meant to be set once at startup (or per test) and read afterwards.
"""

from datetime import timezone, tzinfo
from typing import Optional, Sequence, Tuple

DEFAULT_DATE_FORMATS: Tuple[str, ...] = (
    "%d/%m/%Y",
    "%Y/%m/%d",
    "%d.%m.%Y",
)

DEFAULT_DATETIME_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%d %H:%M",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
)

_default_timezone: tzinfo = timezone.utc
_date_formats: Tuple[str, ...] = DEFAULT_DATE_FORMATS
_datetime_formats: Tuple[str, ...] = DEFAULT_DATETIME_FORMATS
_default_codec = None  # Lazily created JSONCodec (avoids import cycle with codecs)


def set_default_timezone(tz: tzinfo) -> None:
    """Set the timezone naive datetimes are interpreted in and aware ones normalized to."""
    global _default_timezone
    if not isinstance(tz, tzinfo):
        raise TypeError(f"Expected a tzinfo instance, got {type(tz).__name__}")
    _default_timezone = tz


def get_default_timezone() -> tzinfo:
    return _default_timezone


def set_date_formats(formats: Sequence[str]) -> None:
    """Set the strptime formats tried for dates after ISO parsing fails."""
    global _date_formats
    _date_formats = tuple(formats)


def get_date_formats() -> Tuple[str, ...]:
    return _date_formats


def set_datetime_formats(formats: Sequence[str]) -> None:
    """Set the strptime formats tried for datetimes after ISO parsing fails."""
    global _datetime_formats
    _datetime_formats = tuple(formats)


def get_datetime_formats() -> Tuple[str, ...]:
    return _datetime_formats


def set_default_codec(codec) -> None:
    """Set the container codec used by stores declared without one."""
    global _default_codec
    _default_codec = codec


def get_default_codec():
    global _default_codec
    if _default_codec is None:
        from typedstore.codecs import JSONCodec
        _default_codec = JSONCodec()
    return _default_codec


def reset_config(default_codec: Optional[object] = None) -> None:
    """Restore every setting to its default. For testing."""
    global _default_timezone, _date_formats, _datetime_formats, _default_codec
    _default_timezone = timezone.utc
    _date_formats = DEFAULT_DATE_FORMATS
    _datetime_formats = DEFAULT_DATETIME_FORMATS
    _default_codec = default_codec
