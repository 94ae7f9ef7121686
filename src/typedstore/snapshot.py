"""
Container snapshots for dirty tracking.

Each record keeps one ContainerSnapshot per store container:

- original: the container as of the last load/reload/save (the baseline)
- current: the live container every accessor reads and writes
- materialized: keys currently holding an unwritten default
- saved_change: the (before, after) pair captured by the last save

Container-level and field-level dirty queries both derive from the same
(original, current) pair, so "which columns changed" and "which store
fields changed" can never disagree.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from typedstore.errors import CastError, StoreRangeError

logger = logging.getLogger(__name__)

_MISSING = object()


def same_value(a: Any, b: Any) -> bool:
    """Equality for stored values where NaN equals NaN, at any nesting depth."""
    if a is b or a == b:
        return True
    try:
        return json.dumps(a, sort_keys=True, default=repr) == json.dumps(b, sort_keys=True, default=repr)
    except (TypeError, ValueError):
        # Unsortable mixed-type keys
        return False


def _comparable(container: Optional[Dict[str, Any]], key: str, caster) -> Any:
    """Value of ``key`` as it would be stored, or the raw value if it can't be cast."""
    if not container or key not in container:
        return _MISSING
    value = container[key]
    try:
        return caster.serialize(value)
    except (CastError, StoreRangeError):
        # Written outside the accessors and not castable: compare literally
        return value


def field_diff(
    before: Optional[Dict[str, Any]],
    after: Optional[Dict[str, Any]],
    key: str,
    caster,
) -> Optional[Tuple[Any, Any]]:
    """Return ``(old, new)`` cast values if ``key`` differs between containers, else None.

    Presence counts: a key written with ``None`` differs from a missing key.
    """
    if same_value(_comparable(before, key, caster), _comparable(after, key, caster)):
        return None
    old = caster.cast(before.get(key)) if before else None
    new = caster.cast(after.get(key)) if after else None
    return old, new


@dataclass(frozen=True)
class SavedChange:
    """Immutable (before, after) pair of a container captured at save time."""
    before: Dict[str, Any]
    after: Dict[str, Any]

    def changed(self, codec) -> bool:
        return not same_value(codec.normalize(self.before), codec.normalize(self.after))

    def as_tuple(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        return copy.deepcopy(self.before), copy.deepcopy(self.after)

    def field_change(self, key: str, caster) -> Optional[Tuple[Any, Any]]:
        return field_diff(self.before, self.after, key, caster)

    def field_before(self, key: str, caster) -> Any:
        return caster.cast(self.before.get(key))


@dataclass
class ContainerSnapshot:
    """Mutable (original, current) pair for one container of one record."""
    original: Dict[str, Any]
    current: Dict[str, Any]
    materialized: Dict[str, bool] = field(default_factory=dict)  # key -> default also written to original
    saved_change: Optional[SavedChange] = None

    @classmethod
    def for_new(cls, current: Dict[str, Any], baseline: Optional[Dict[str, Any]] = None) -> 'ContainerSnapshot':
        """Snapshot for an unpersisted record.

        The baseline is the container default (empty unless given), so
        defaults are never reported as changes.
        """
        return cls(original=copy.deepcopy(baseline) if baseline is not None else {}, current=current)

    @classmethod
    def for_loaded(cls, decoded: Dict[str, Any]) -> 'ContainerSnapshot':
        """Snapshot for a record read from storage: baseline is an independent copy."""
        return cls(original=copy.deepcopy(decoded), current=decoded)

    # ==================== CONTAINER LEVEL ====================

    def changed(self, codec) -> bool:
        """True iff original and current would be stored differently."""
        return not same_value(codec.normalize(self.original), codec.normalize(self.current))

    def change(self, codec) -> Optional[Tuple[Dict[str, Any], Dict[str, Any]]]:
        if not self.changed(codec):
            return None
        return copy.deepcopy(self.original), copy.deepcopy(self.current)

    # ==================== FIELD LEVEL ====================

    def field_changed(self, key: str, caster) -> bool:
        return not same_value(_comparable(self.original, key, caster), _comparable(self.current, key, caster))

    def field_change(self, key: str, caster) -> Optional[Tuple[Any, Any]]:
        return field_diff(self.original, self.current, key, caster)

    def field_was(self, key: str, caster) -> Any:
        return caster.cast(self.original.get(key))

    # ==================== MUTATION ====================

    def write(self, key: str, stored: Any) -> None:
        """Store an accessor-written value; the key no longer holds a default."""
        self.current[key] = stored
        self.materialized.pop(key, None)

    def materialize(self, key: str, stored: Any) -> None:
        """Store a default value in current, and in original if the baseline lacks it."""
        in_baseline = self.materialized.get(key, key not in self.original)
        self.current[key] = stored
        if in_baseline:
            self.original[key] = copy.deepcopy(stored)
        self.materialized[key] = in_baseline
        logger.debug(f"Materialized default for {key!r}: {stored!r}")

    def replace(self, container: Dict[str, Any]) -> None:
        """Replace the whole current container (keeps the baseline)."""
        self.current = container
        self.materialized.clear()

    def mark_saved(self) -> None:
        """Current state has been persisted: it becomes the new baseline."""
        self.saved_change = SavedChange(
            before=copy.deepcopy(self.original),
            after=copy.deepcopy(self.current),
        )
        self.original = copy.deepcopy(self.current)
        self.materialized.clear()

    def reset(self, decoded: Dict[str, Any]) -> None:
        """Rebuild from freshly loaded storage, discarding in-memory edits."""
        self.current = decoded
        self.original = copy.deepcopy(decoded)
        self.materialized.clear()
