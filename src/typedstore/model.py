"""
StoreModel: class-creation-time wiring of stores and typed accessors.

Subclasses declare containers and fields in the class body:

    class Profile(StoreModel):
        settings = Store(JSONCodec(), accessors=("theme",), active="boolean")
        since = store_attribute("settings", "date", default=date.today)
        _prefs = store_accessor("settings", prefix=True, volume=store_attribute(None, "integer", limit=1))

When the class is created, ``__init_subclass__``:

1. collects Store declarations (own and inherited) into ``__stores__``
2. expands Store keywords, ``store_accessor()`` batches and
   ``store_attribute()`` specs into FieldDeclarations
3. installs the generated member set for each declaration
4. freezes ``__stores__`` and ``__store_fields__`` as read-only mappings

Nothing is added to the class after that; records only carry snapshots.
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from typedstore.accessors import AccessorBatch, FieldDeclaration, FieldSpec, build_accessor_set, is_generated
from typedstore.errors import AccessorConflictError, DeclarationError
from typedstore.store import Store

logger = logging.getLogger(__name__)

_NOT_FOUND = object()


def _class_attribute(cls: type, name: str) -> Any:
    """Raw class attribute from the MRO, without invoking descriptors."""
    for klass in cls.__mro__:
        if name in klass.__dict__:
            return klass.__dict__[name]
    return _NOT_FOUND


class StoreModel:
    """Base class for models with typed store attributes."""

    __stores__: Mapping[str, Store] = MappingProxyType({})
    __store_fields__: Mapping[str, FieldDeclaration] = MappingProxyType({})

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        stores: Dict[str, Store] = {}
        fields: Dict[str, FieldDeclaration] = {}
        # Parents first, so own declarations override inherited ones
        for parent in reversed(cls.__mro__[1:]):
            stores.update(parent.__dict__.get("__stores__", {}))
            fields.update(parent.__dict__.get("__store_fields__", {}))

        pending: List[FieldDeclaration] = []
        for name, value in list(cls.__dict__.items()):
            if isinstance(value, Store):
                if value.name != name:
                    # Same Store object reused under another name
                    raise DeclarationError(f"Store {value.name!r} cannot also be declared as {cls.__name__}.{name}")
                stores[name] = value
                pending.extend(value.declarations())
            elif isinstance(value, AccessorBatch):
                delattr(cls, name)
                pending.extend(value.declarations())
            elif isinstance(value, FieldSpec):
                delattr(cls, name)
                pending.append(value.attribute_declaration(name))

        for declaration in pending:
            if declaration.container_name not in stores:
                raise DeclarationError(
                    f"{cls.__name__}.{declaration.accessor_name}: unknown store {declaration.container_name!r}"
                )
            if declaration.accessor_name in fields:
                logger.warning(
                    f"Overwriting store accessor {cls.__name__}.{declaration.accessor_name}: "
                    f"{fields[declaration.accessor_name].container_name}.{fields[declaration.accessor_name].field_name}"
                    f" -> {declaration.container_name}.{declaration.field_name}"
                )
            fields[declaration.accessor_name] = declaration
            cls._install_accessor_set(declaration)

        cls.__stores__ = MappingProxyType(stores)
        cls.__store_fields__ = MappingProxyType(fields)
        if pending:
            logger.debug(f"{cls.__name__}: installed {len(pending)} store accessor(s) over {len(stores)} store(s)")

    @classmethod
    def _install_accessor_set(cls, declaration: FieldDeclaration) -> None:
        for member_name, member in build_accessor_set(declaration).items():
            existing = _class_attribute(cls, member_name)
            if existing is not _NOT_FOUND and not is_generated(existing):
                raise AccessorConflictError(cls.__name__, member_name)
            setattr(cls, member_name, member)

    # ==================== INTROSPECTION ====================

    @classmethod
    def store_fields(cls, container_name: Optional[str] = None) -> List[FieldDeclaration]:
        """Declarations of this model, optionally limited to one container."""
        return [
            d for d in cls.__store_fields__.values()
            if container_name is None or d.container_name == container_name
        ]

    def store_changes(self) -> Dict[str, Any]:
        """``{container: (original, current)}`` for every changed container."""
        changes = {}
        for name, store in type(self).__stores__.items():
            change = store.change(self)
            if change is not None:
                changes[name] = change
        return changes

    def store_defaults(self, container_name: str) -> Dict[str, Any]:
        """Materialize and return every field default of one container."""
        store = type(self).__stores__[container_name]
        values = {}
        for declaration in type(self).store_fields(container_name):
            if declaration.has_default:
                values[declaration.accessor_name] = store.read_field(self, declaration)
        return values

