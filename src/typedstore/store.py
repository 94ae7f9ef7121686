"""
Store: one serialized container column and the protocol around it.

A Store is declared once per model class and shared by all records of that
class. It never holds per-record state itself; each record keeps its
ContainerSnapshot objects in its instance ``__dict__``. The Store:

- materializes the container (container-level default) on first use
- reads and writes individual fields through their casters
- materializes field defaults lazily on read
- implements the lifecycle hooks a host calls on initialize/load/save/reload
- reports the container-level change for the host's change tracking
"""

import copy
import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from typedstore.accessors import Affix, AccessorBatch, FieldDeclaration
from typedstore.codecs import ContainerCodec, stringify_keys
from typedstore.config import get_default_codec
from typedstore.defaults import ABSENT, Default
from typedstore.errors import CastError, DeclarationError
from typedstore.snapshot import ContainerSnapshot

logger = logging.getLogger(__name__)

# Instance attribute holding {container name: ContainerSnapshot}
SNAPSHOTS_ATTR = "_store_snapshots"


def _snapshots(record: Any) -> Dict[str, ContainerSnapshot]:
    return record.__dict__.setdefault(SNAPSHOTS_ATTR, {})


class Store:
    """Container column declaration and the container materializer.

    Args:
        codec: Container codec (defaults to ``config.get_default_codec()``).
        default: Container default: a mapping, or a zero-argument producer
            of one. Applied when the stored value is absent/None.
        accessors: Names of untyped accessors on this container.
        prefix / suffix: Applied to accessors declared here.
        **typed: Typed accessors (key -> type descriptor or field spec).

    As a descriptor on the model, reading ``record.<name>`` returns the live
    container dict; assigning replaces it (see ``assign_container``).
    """

    def __init__(
        self,
        codec: Optional[ContainerCodec] = None,
        default: Union[Mapping, Callable[[], Mapping]] = None,
        accessors: Iterable[str] = (),
        prefix: Affix = None,
        suffix: Affix = None,
        **typed: Any,
    ):
        self.codec = codec if codec is not None else get_default_codec()
        if default is None:
            default = {}
        if not (isinstance(default, Mapping) or callable(default)):
            raise DeclarationError(f"Store default must be a mapping or a callable, got {default!r}")
        self.default = Default(default)
        if isinstance(accessors, str):
            accessors = (accessors,)
        self.batch = AccessorBatch(None, accessors, typed, prefix=prefix, suffix=suffix)
        self.name: Optional[str] = None
        self.owner: Optional[type] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.owner = owner

    def declarations(self) -> List[FieldDeclaration]:
        """Field declarations made in this Store's own constructor."""
        return self.batch.declarations(self.name)

    def fields(self, record_or_model: Any) -> List[FieldDeclaration]:
        """All field declarations of the model that live in this container."""
        model = record_or_model if isinstance(record_or_model, type) else type(record_or_model)
        return [d for d in model.__store_fields__.values() if d.container_name == self.name]

    # ==================== DESCRIPTOR ====================

    def __get__(self, record: Any, owner: Optional[type] = None) -> Any:
        if record is None:
            return self
        return self.ensure_container(record)

    def __set__(self, record: Any, value: Any) -> None:
        self.assign_container(record, value)

    # ==================== MATERIALIZER ====================

    def default_container(self) -> Dict[str, Any]:
        value = self.default.resolve()
        if not isinstance(value, Mapping):
            raise CastError(self.codec.name, value, f"default for store {self.name!r} is not a mapping")
        return stringify_keys(value)

    def _decode_or_default(self, raw: Any) -> Dict[str, Any]:
        decoded = self.codec.decode(raw) if raw is not None else None
        return decoded if decoded is not None else self.default_container()

    def snapshot(self, record: Any) -> ContainerSnapshot:
        """The record's snapshot for this container, created on first use."""
        snapshots = _snapshots(record)
        snapshot = snapshots.get(self.name)
        if snapshot is None:
            container = self.default_container()
            snapshot = ContainerSnapshot.for_new(container, baseline=container)
            snapshots[self.name] = snapshot
            logger.debug(f"Materialized container {type(record).__name__}.{self.name}")
        return snapshot

    def ensure_container(self, record: Any) -> Dict[str, Any]:
        """Live container dict for ``record`` (same object until the next load/reload)."""
        return self.snapshot(record).current

    def assign_container(self, record: Any, value: Any) -> None:
        """Replace the whole container.

        Keys become strings and every declared typed field present in the new
        mapping is serialized through its caster, so cast errors surface here.
        ``None`` resets the container to its default.
        """
        if value is None:
            container = self.default_container()
        elif isinstance(value, Mapping):
            container = stringify_keys(value)
        else:
            raise CastError(self.codec.name, value, f"store {self.name!r} expects a mapping")

        for declaration in self.fields(record):
            if declaration.typed and declaration.field_name in container:
                key = declaration.field_name
                container[key] = declaration.caster.serialize(container[key])

        self.snapshot(record).replace(container)

    # ==================== FIELDS ====================

    def read_field(self, record: Any, declaration: FieldDeclaration) -> Any:
        """Cast the stored value, materializing the field default if needed."""
        snapshot = self.snapshot(record)
        key = declaration.field_name
        default = declaration.default
        if default is not ABSENT:
            needs_default = key not in snapshot.current or (
                default.is_dynamic and key in snapshot.materialized
            )
            if needs_default:
                snapshot.materialize(key, declaration.caster.serialize(default.resolve()))
        return declaration.caster.cast(snapshot.current.get(key))

    def write_field(self, record: Any, declaration: FieldDeclaration, value: Any) -> Any:
        """Serialize ``value`` into the container; returns the cast value stored."""
        snapshot = self.snapshot(record)
        # Serialize before touching the container so cast errors leave it untouched
        stored = declaration.caster.serialize(value)
        snapshot.write(declaration.field_name, stored)
        return declaration.caster.cast(stored)

    # ==================== LIFECYCLE ====================

    def on_initialize(self, record: Any, raw: Optional[Any] = None) -> None:
        """New, unpersisted record: container from ``raw`` or the default; the default is the baseline."""
        if raw is None:
            container = self.default_container()
            snapshot = ContainerSnapshot.for_new(container, baseline=container)
        else:
            snapshot = ContainerSnapshot.for_new(self._decode_or_default(raw), baseline=self.default_container())
        _snapshots(record)[self.name] = snapshot

    def on_loaded(self, record: Any, raw: Any) -> None:
        """Record read from storage: baseline and current both reflect ``raw``."""
        _snapshots(record)[self.name] = ContainerSnapshot.for_loaded(self._decode_or_default(raw))

    def dump(self, record: Any) -> Any:
        """Raw value to persist for this container."""
        return self.codec.encode(self.ensure_container(record))

    def on_saved(self, record: Any) -> None:
        self.snapshot(record).mark_saved()

    def on_reloaded(self, record: Any, raw: Any) -> None:
        snapshots = _snapshots(record)
        decoded = self._decode_or_default(raw)
        if self.name in snapshots:
            snapshots[self.name].reset(decoded)
        else:
            snapshots[self.name] = ContainerSnapshot.for_loaded(decoded)
        logger.debug(f"Reloaded container {type(record).__name__}.{self.name}")

    # ==================== CHANGE TRACKING ====================

    def changed(self, record: Any) -> bool:
        snapshot = _snapshots(record).get(self.name)
        return snapshot is not None and snapshot.changed(self.codec)

    def change(self, record: Any) -> Optional[Tuple[Dict[str, Any], Dict[str, Any]]]:
        """``(original, current)`` if the container changed, else None."""
        snapshot = _snapshots(record).get(self.name)
        return snapshot.change(self.codec) if snapshot is not None else None

    def original(self, record: Any) -> Dict[str, Any]:
        return copy.deepcopy(self.snapshot(record).original)

    def saved_change(self, record: Any) -> Optional[Tuple[Dict[str, Any], Dict[str, Any]]]:
        """``(before, after)`` of the last save if it changed the container, else None."""
        snapshot = _snapshots(record).get(self.name)
        if snapshot is None or snapshot.saved_change is None:
            return None
        if not snapshot.saved_change.changed(self.codec):
            return None
        return snapshot.saved_change.as_tuple()

    def __repr__(self) -> str:
        return f"Store({self.name!r}, codec={self.codec!r})"
