"""
In-memory reference host for store containers.

Record is a deliberately small object model: plain columns, store columns,
an in-memory Table per model, and the usual lifecycle (new, create, find,
save, reload, update). It drives the Store lifecycle hooks and merges store
containers into its generic change tracking, so ``changes`` reports plain
columns and store containers uniformly.

Example:
    class User(Record, table="users"):
        name = Column()
        jparams = Store(JSONCodec(), active="boolean")

    user = User.create(name="ann")
    user.active = "1"
    user.changes       # {"jparams": ({}, {"active": True})}
    user.save()
    user.saved_change_to_active()   # (None, True)

Not thread-safe: records and tables are expected to be used from one thread.
"""

import copy
import logging
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from typedstore.defaults import Default
from typedstore.errors import DeclarationError, RecordNotFound
from typedstore.model import StoreModel

logger = logging.getLogger(__name__)


class Table:
    """In-memory table of raw rows keyed by integer id."""

    def __init__(self, name: str):
        self.name = name
        self._rows: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1

    def insert(self, row: Mapping[str, Any]) -> int:
        row_id = self._next_id
        self._next_id += 1
        self._rows[row_id] = copy.deepcopy(dict(row))
        logger.debug(f"INSERT {self.name} id={row_id}")
        return row_id

    def update(self, row_id: int, row: Mapping[str, Any]) -> None:
        if row_id not in self._rows:
            raise RecordNotFound(f"{self.name}: no row with id={row_id}")
        self._rows[row_id] = copy.deepcopy(dict(row))
        logger.debug(f"UPDATE {self.name} id={row_id}")

    def update_all(self, values: Mapping[str, Any]) -> int:
        """Write raw column values into every row, bypassing any model logic."""
        for row in self._rows.values():
            row.update(copy.deepcopy(dict(values)))
        return len(self._rows)

    def fetch(self, row_id: int) -> Dict[str, Any]:
        try:
            return copy.deepcopy(self._rows[row_id])
        except KeyError:
            raise RecordNotFound(f"{self.name}: no row with id={row_id}") from None

    def ids(self) -> List[int]:
        return sorted(self._rows)

    def clear(self) -> None:
        self._rows.clear()
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"Table({self.name!r}, rows={len(self._rows)})"


# Table registry: name -> Table (shared by every model mapped to that name)
_tables: Dict[str, Table] = {}


def get_table(name: str) -> Table:
    if name not in _tables:
        _tables[name] = Table(name)
    return _tables[name]


def clear_tables() -> None:
    """Empty every table. For testing."""
    for table in _tables.values():
        table.clear()


class Column:
    """Plain column stored directly in the row."""

    def __init__(self, default: Any = None):
        self.default = Default(default)
        self.name: Optional[str] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, record: Any, owner: Optional[type] = None) -> Any:
        if record is None:
            return self
        return record._attributes.get(self.name)

    def __set__(self, record: Any, value: Any) -> None:
        record._attributes[self.name] = value

    def __repr__(self) -> str:
        return f"Column({self.name!r})"


class Record(StoreModel):
    """Base model for the in-memory host. Subclass with ``table="name"``."""

    __table__: Optional[Table] = None
    __columns__: Mapping[str, Column] = MappingProxyType({})

    def __init_subclass__(cls, table: Optional[str] = None, **kwargs):
        super().__init_subclass__(**kwargs)
        columns: Dict[str, Column] = {}
        for parent in reversed(cls.__mro__[1:]):
            columns.update(parent.__dict__.get("__columns__", {}))
        for name, value in cls.__dict__.items():
            if isinstance(value, Column):
                columns[name] = value
        cls.__columns__ = MappingProxyType(columns)
        if table is not None:
            cls.__table__ = get_table(table)

    def __init__(self, **attributes: Any):
        self.id: Optional[int] = None
        self._persisted = False
        self._attributes = {name: col.default.resolve() for name, col in self.__columns__.items()}
        self._original_attributes = copy.deepcopy(self._attributes)
        self._previous_changes: Dict[str, Tuple[Any, Any]] = {}
        for store in self.__stores__.values():
            store.on_initialize(self)
        self.assign_attributes(attributes)

    # ==================== ATTRIBUTES ====================

    @classmethod
    def attribute_names(cls) -> List[str]:
        return list(cls.__columns__) + list(cls.__stores__) + list(cls.__store_fields__)

    def assign_attributes(self, attributes: Mapping[str, Any]) -> None:
        """Assign through columns, store columns and store accessors."""
        known = set(self.attribute_names())
        for name, value in attributes.items():
            if name not in known:
                raise AttributeError(f"{type(self).__name__} has no attribute {name!r}")
            setattr(self, name, value)

    @property
    def persisted(self) -> bool:
        return self._persisted

    # ==================== PERSISTENCE ====================

    @classmethod
    def _table(cls) -> Table:
        if cls.__table__ is None:
            raise DeclarationError(f"{cls.__name__} is not mapped to a table")
        return cls.__table__

    @classmethod
    def _from_row(cls, row_id: int, row: Mapping[str, Any]) -> 'Record':
        record = cls.__new__(cls)
        record.id = row_id
        record._persisted = True
        record._previous_changes = {}
        record._attributes = {name: copy.deepcopy(row.get(name)) for name in cls.__columns__}
        record._original_attributes = copy.deepcopy(record._attributes)
        for name, store in cls.__stores__.items():
            store.on_loaded(record, row.get(name))
        return record

    @classmethod
    def find(cls, row_id: int) -> 'Record':
        return cls._from_row(row_id, cls._table().fetch(row_id))

    @classmethod
    def take(cls) -> Optional['Record']:
        """First stored record, or None when the table is empty."""
        ids = cls._table().ids()
        return cls.find(ids[0]) if ids else None

    @classmethod
    def all(cls) -> Iterator['Record']:
        for row_id in cls._table().ids():
            yield cls.find(row_id)

    @classmethod
    def create(cls, **attributes: Any) -> 'Record':
        record = cls(**attributes)
        record.save()
        return record

    @classmethod
    def update_all(cls, **raw_values: Any) -> int:
        """Overwrite raw stored values in every row (no casting, no callbacks)."""
        return cls._table().update_all(raw_values)

    @classmethod
    def raw(cls, row_id: int) -> Dict[str, Any]:
        """Stored row exactly as persisted."""
        return cls._table().fetch(row_id)

    def _row(self) -> Dict[str, Any]:
        row = copy.deepcopy(self._attributes)
        for name, store in self.__stores__.items():
            row[name] = store.dump(self)
        return row

    def save(self) -> bool:
        table = self._table()
        row = self._row()
        changes = self.changes
        if self._persisted:
            table.update(self.id, row)
        else:
            self.id = table.insert(row)
            self._persisted = True
        self._previous_changes = changes
        self._original_attributes = copy.deepcopy(self._attributes)
        for store in self.__stores__.values():
            store.on_saved(self)
        logger.debug(f"Saved {type(self).__name__} id={self.id} changed={sorted(changes)}")
        return True

    def update(self, **attributes: Any) -> bool:
        self.assign_attributes(attributes)
        return self.save()

    def reload(self) -> 'Record':
        """Re-read the stored row, discarding unsaved changes."""
        if not self._persisted:
            raise RecordNotFound(f"{type(self).__name__} has not been saved")
        row = self._table().fetch(self.id)
        self._attributes = {name: copy.deepcopy(row.get(name)) for name in self.__columns__}
        self._original_attributes = copy.deepcopy(self._attributes)
        for name, store in self.__stores__.items():
            store.on_reloaded(self, row.get(name))
        return self

    # ==================== CHANGE TRACKING ====================

    @property
    def changes(self) -> Dict[str, Tuple[Any, Any]]:
        """``{attribute: (old, new)}`` for plain columns and store containers."""
        changes = {}
        for name in self.__columns__:
            old = self._original_attributes.get(name)
            new = self._attributes.get(name)
            if old != new:
                changes[name] = (copy.deepcopy(old), copy.deepcopy(new))
        changes.update(self.store_changes())
        return changes

    @property
    def changed_attributes(self) -> Dict[str, Any]:
        """``{attribute: original value}`` for every changed attribute."""
        return {name: old for name, (old, _) in self.changes.items()}

    @property
    def changed(self) -> List[str]:
        """Names of changed attributes."""
        return list(self.changes)

    def is_changed(self) -> bool:
        return bool(self.changes)

    @property
    def saved_changes(self) -> Dict[str, Tuple[Any, Any]]:
        """Changes persisted by the last save."""
        return copy.deepcopy(self._previous_changes)

    def __repr__(self) -> str:
        parts = [f"id={self.id!r}"]
        parts += [f"{name}={self._attributes.get(name)!r}" for name in self.__columns__]
        parts += [f"{name}={store.ensure_container(self)!r}" for name, store in self.__stores__.items()]
        return f"{type(self).__name__}({', '.join(parts)})"
