"""
Container codecs: how a whole store container is stored.

A codec converts between the in-memory container (a ``dict`` with string
keys) and the raw value the host persists for the column. Codecs are
pluggable per store; the core only relies on ``decode``, ``encode`` and
``normalize``.

- JSONCodec: raw value is JSON text (like a json/jsonb or text column)
- HstoreCodec: raw value is a flat ``str -> str | None`` mapping
- IdentityCodec: raw value is the mapping itself (deep-copied)
"""

import copy
import json
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from typedstore.errors import CastError


def stringify_keys(value: Any) -> Any:
    """Deep-copy mappings/sequences, turning every mapping key into a string."""
    if isinstance(value, Mapping):
        return {str(k): stringify_keys(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [stringify_keys(v) for v in value]
    return copy.deepcopy(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class ContainerCodec:
    """Base codec. Subclasses override ``decode`` and ``encode``."""

    name = "container"

    def decode(self, raw: Any) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def encode(self, container: Optional[Mapping[str, Any]]) -> Any:
        raise NotImplementedError

    def normalize(self, container: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Return the container as it would read back after a store round trip.

        Used for container-level dirty checks, so two containers that would be
        persisted identically compare equal.
        """
        if container is None:
            return {}
        decoded = self.decode(self.encode(container))
        return decoded if decoded is not None else {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class JSONCodec(ContainerCodec):
    """Stores the container as JSON text."""

    name = "json"

    def decode(self, raw: Any) -> Optional[Dict[str, Any]]:
        if raw is None:
            return None
        if isinstance(raw, Mapping):
            # Drivers that already parse json columns hand back mappings
            return stringify_keys(raw)
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        if not isinstance(raw, str):
            raise CastError(self.name, raw, "expected JSON text or a mapping")
        if not raw.strip():
            return None
        try:
            decoded = json.loads(raw)
        except ValueError as e:
            raise CastError(self.name, raw, str(e)) from e
        if decoded is None:
            return None
        if not isinstance(decoded, dict):
            raise CastError(self.name, raw, "JSON container must be an object")
        return decoded

    def encode(self, container: Optional[Mapping[str, Any]]) -> Optional[str]:
        if container is None:
            return None
        return json.dumps(stringify_keys(container), default=_json_default)


class HstoreCodec(ContainerCodec):
    """Stores the container as a flat string map (PostgreSQL hstore shape).

    Every value is stored as text: booleans as ``"true"``/``"false"``, nested
    values as JSON text, ``None`` as NULL.
    """

    name = "hstore"

    def decode(self, raw: Any) -> Optional[Dict[str, Any]]:
        if raw is None:
            return None
        if not isinstance(raw, Mapping):
            raise CastError(self.name, raw, "expected a mapping")
        return {str(k): self._encode_value(v) for k, v in raw.items()}

    def encode(self, container: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Optional[str]]]:
        if container is None:
            return None
        return {str(k): self._encode_value(v) for k, v in container.items()}

    @staticmethod
    def _encode_value(value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str):
            return value
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(stringify_keys(value), default=_json_default)
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        return str(value)


class IdentityCodec(ContainerCodec):
    """Stores the container mapping as-is (deep copy, string keys)."""

    name = "identity"

    def decode(self, raw: Any) -> Optional[Dict[str, Any]]:
        if raw is None:
            return None
        if not isinstance(raw, Mapping):
            raise CastError(self.name, raw, "expected a mapping")
        return stringify_keys(raw)

    def encode(self, container: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
        if container is None:
            return None
        return stringify_keys(container)
