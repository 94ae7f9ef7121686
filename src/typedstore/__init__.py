"""
Typed attributes stored inside a single serialized container column.

A model declares individually-typed fields that live in one JSON blob or
flat string map instead of dedicated columns. Each field gets a casting
property plus dirty-tracking helpers, and the whole container reports
changes to the host's change tracking as one (original, current) pair.

Quick Start:
    >>> from datetime import date
    >>> from typedstore import Record, Store, HstoreCodec, JSONCodec, store_attribute
    >>>
    >>> class User(Record, table="users"):
    ...     jparams = Store(JSONCodec(), active="boolean", salary="integer")
    ...     hdata = Store(HstoreCodec())
    ...     ratio = store_attribute("hdata", "integer", limit=1)
    ...     since = store_attribute("jparams", "date", default=date.today)
    >>>
    >>> user = User(active="1", salary="3.14")
    >>> user.active, user.salary
    (True, 3)
    >>> user.changes["jparams"]
    ({}, {'active': True, 'salary': 3})

Architecture:
    types       - Caster classes and the type registry (name -> caster)
    defaults    - static/dynamic field defaults
    accessors   - field declarations and the generated member set per field
    snapshot    - (original, current) container pair and diff queries
    store       - Store: container materializer, field read/write, lifecycle
    model       - StoreModel: installs accessors at class creation
    codecs      - container codecs (JSON, hstore, identity)
    lifecycle   - StoreLifecycle protocol a host drives
    record      - in-memory reference host (Record, Column, Table)
    config      - process-wide settings (timezone, date formats, codec)
    errors      - exception taxonomy
"""

# Errors
from typedstore.errors import (
    StoreAttributeError,
    DeclarationError,
    UnknownTypeError,
    AccessorConflictError,
    CastError,
    StoreRangeError,
    RangeError,
    RecordNotFound,
)

# Type casters
from typedstore.types import (
    Caster,
    ValueCaster,
    BooleanCaster,
    IntegerCaster,
    FloatCaster,
    DecimalCaster,
    StringCaster,
    DateCaster,
    DateTimeCaster,
    JSONCaster,
    register_type,
    registered_types,
    resolve,
)

# Defaults
from typedstore.defaults import ABSENT, Default

# Declarations and accessors
from typedstore.accessors import (
    FieldDeclaration,
    FieldSpec,
    AccessorBatch,
    StoreAccessor,
    store_attribute,
    store_accessor,
    accessor_name_for,
)

# Snapshots
from typedstore.snapshot import ContainerSnapshot, SavedChange

# Codecs
from typedstore.codecs import ContainerCodec, JSONCodec, HstoreCodec, IdentityCodec

# Store and model
from typedstore.lifecycle import StoreLifecycle
from typedstore.store import Store
from typedstore.model import StoreModel

# Reference host
from typedstore.record import Record, Column, Table, get_table, clear_tables

# Configuration
from typedstore.config import (
    set_default_timezone,
    get_default_timezone,
    set_date_formats,
    get_date_formats,
    set_datetime_formats,
    get_datetime_formats,
    set_default_codec,
    get_default_codec,
    reset_config,
)

__all__ = [
    # Errors
    'StoreAttributeError',
    'DeclarationError',
    'UnknownTypeError',
    'AccessorConflictError',
    'CastError',
    'StoreRangeError',
    'RangeError',
    'RecordNotFound',
    # Type casters
    'Caster',
    'ValueCaster',
    'BooleanCaster',
    'IntegerCaster',
    'FloatCaster',
    'DecimalCaster',
    'StringCaster',
    'DateCaster',
    'DateTimeCaster',
    'JSONCaster',
    'register_type',
    'registered_types',
    'resolve',
    # Defaults
    'ABSENT',
    'Default',
    # Declarations and accessors
    'FieldDeclaration',
    'FieldSpec',
    'AccessorBatch',
    'StoreAccessor',
    'store_attribute',
    'store_accessor',
    'accessor_name_for',
    # Snapshots
    'ContainerSnapshot',
    'SavedChange',
    # Codecs
    'ContainerCodec',
    'JSONCodec',
    'HstoreCodec',
    'IdentityCodec',
    # Store and model
    'StoreLifecycle',
    'Store',
    'StoreModel',
    # Reference host
    'Record',
    'Column',
    'Table',
    'get_table',
    'clear_tables',
    # Configuration
    'set_default_timezone',
    'get_default_timezone',
    'set_date_formats',
    'get_date_formats',
    'set_datetime_formats',
    'get_datetime_formats',
    'set_default_codec',
    'get_default_codec',
    'reset_config',
]

__version__ = '1.0.0'
__description__ = 'Typed attributes inside serialized store containers'
