"""
Field default resolution.

A default is either a static value or a zero-argument producer. Static
values are deep-copied on every access so a caller mutating the result
(e.g. appending to a default list) can never change the declared default.
Producers are called on every resolution, with no caching, so time-varying
defaults such as "today" stay fresh.
"""

import copy
from typing import Any


class _Absent:
    """Sentinel type for "no default configured" (distinct from ``None``)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


class Default:
    """A field's default: static value or zero-argument producer."""

    __slots__ = ("_value",)

    def __init__(self, value: Any):
        if isinstance(value, Default):
            value = value._value
        self._value = value

    @property
    def is_dynamic(self) -> bool:
        return callable(self._value)

    def resolve(self) -> Any:
        """Return a fresh default value."""
        if self.is_dynamic:
            return self._value()
        return copy.deepcopy(self._value)

    def __repr__(self) -> str:
        kind = "dynamic" if self.is_dynamic else "static"
        return f"Default({kind}: {self._value!r})"


def make_default(value: Any):
    """Wrap a declared default, passing ``ABSENT`` through unchanged."""
    if value is ABSENT:
        return ABSENT
    return Default(value)
