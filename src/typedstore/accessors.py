"""
Store field declarations and the accessors generated for them.

Declaration side:
    FieldDeclaration - immutable (container, key, accessor name, caster, default)
    FieldSpec        - what ``store_attribute()`` returns; becomes a declaration
                       once its attribute/keyword name is known
    AccessorBatch    - what ``store_accessor()`` returns; several fields of one
                       container sharing a prefix/suffix

Generated side, for a field whose accessor name is ``n``:
    n                               read/write property (StoreAccessor)
    is_n()                          cast value is not None/False
    n_changed(), n_was(), n_change()
    has_saved_change_to_n(), saved_change_to_n(), n_before_last_save()

Generated members only hold the declaration. All state lives in the record's
container snapshot and is reached through the owning model's ``__stores__``.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from typedstore.defaults import ABSENT, make_default
from typedstore.errors import DeclarationError
from typedstore.types import Caster, TypeDescriptor, ValueCaster, resolve

# Marker attribute set on every generated companion method
GENERATED_MARKER = "__store_accessor__"

Affix = Union[None, bool, str]


def accessor_name_for(container_name: str, field_name: str, prefix: Affix = None, suffix: Affix = None) -> str:
    """Derive ``[prefix_]field[_suffix]``; ``True`` means "use the container name"."""
    parts = []
    for affix, position in ((prefix, "prefix"), (suffix, "suffix")):
        if affix is True:
            affix = container_name
        elif affix is False:
            affix = None
        if affix is not None and not isinstance(affix, str):
            raise DeclarationError(f"{position} must be a string or True, got {affix!r}")
        parts.append(affix)
    name = field_name
    if parts[0]:
        name = f"{parts[0]}_{name}"
    if parts[1]:
        name = f"{name}_{parts[1]}"
    if not name.isidentifier():
        raise DeclarationError(f"Accessor name {name!r} is not a valid identifier")
    return name


@dataclass(frozen=True)
class FieldDeclaration:
    """One typed (or untyped) field inside a store container."""
    container_name: str
    field_name: str
    accessor_name: str
    caster: Caster
    default: Any = ABSENT  # Default, or ABSENT when none is configured

    @property
    def typed(self) -> bool:
        return not isinstance(self.caster, ValueCaster)

    @property
    def has_default(self) -> bool:
        return self.default is not ABSENT


class FieldSpec:
    """A single field declaration waiting for its name.

    Assigned directly in a model body the attribute name becomes the accessor
    name (and the key unless ``key`` is given). Passed as a keyword to
    ``store_accessor()`` the keyword is the key and the batch's prefix/suffix
    derive the accessor name.
    """

    def __init__(
        self,
        container_name: Optional[str],
        type_descriptor: TypeDescriptor,
        key: Optional[str] = None,
        default: Any = ABSENT,
        **options: Any,
    ):
        self.container_name = container_name
        self.key = key
        # Resolve now: unknown types fail at declaration time
        self.caster = resolve(type_descriptor, **options)
        self.default = make_default(default)

    def declaration(
        self,
        name: str,
        container_name: Optional[str] = None,
        prefix: Affix = None,
        suffix: Affix = None,
    ) -> FieldDeclaration:
        container = container_name or self.container_name
        if container is None:
            raise DeclarationError(f"Store field {name!r} has no container")
        if self.container_name is not None and container != self.container_name:
            raise DeclarationError(
                f"Store field {name!r} declared for {self.container_name!r} used in {container!r}"
            )
        field_name = self.key or name
        return FieldDeclaration(
            container_name=container,
            field_name=field_name,
            accessor_name=accessor_name_for(container, field_name, prefix, suffix),
            caster=self.caster,
            default=self.default,
        )

    def attribute_declaration(self, attr_name: str) -> FieldDeclaration:
        """Declaration for a spec assigned directly to a model attribute."""
        return replace(self.declaration(attr_name), accessor_name=attr_name)

    def __repr__(self) -> str:
        return f"FieldSpec({self.container_name!r}, {self.caster!r}, key={self.key!r}, default={self.default!r})"


def store_attribute(
    container_name: Optional[str],
    type_descriptor: TypeDescriptor,
    key: Optional[str] = None,
    default: Any = ABSENT,
    **options: Any,
) -> FieldSpec:
    """Declare one typed store field.

    Example:
        class User(Record):
            hdata = Store(HstoreCodec())
            ratio = store_attribute("hdata", "integer", limit=1)
            since = store_attribute("hdata", "date", default=date.today)
    """
    return FieldSpec(container_name, type_descriptor, key=key, default=default, **options)


class AccessorBatch:
    """Several fields of one container declared together."""

    def __init__(
        self,
        container_name: Optional[str],
        untyped: Iterable[str] = (),
        typed: Optional[Dict[str, Any]] = None,
        prefix: Affix = None,
        suffix: Affix = None,
    ):
        self.container_name = container_name
        self.prefix = prefix
        self.suffix = suffix
        self.specs: List[Tuple[str, FieldSpec]] = []
        for key in untyped:
            self.specs.append((key, FieldSpec(container_name, ValueCaster)))
        for key, descriptor in (typed or {}).items():
            spec = descriptor if isinstance(descriptor, FieldSpec) else FieldSpec(container_name, descriptor)
            self.specs.append((key, spec))

    def declarations(self, container_name: Optional[str] = None) -> List[FieldDeclaration]:
        container = container_name or self.container_name
        return [
            spec.declaration(key, container, prefix=self.prefix, suffix=self.suffix)
            for key, spec in self.specs
        ]

    def __repr__(self) -> str:
        keys = [key for key, _ in self.specs]
        return f"AccessorBatch({self.container_name!r}, {keys!r}, prefix={self.prefix!r}, suffix={self.suffix!r})"


def store_accessor(
    container_name: str,
    *untyped: str,
    prefix: Affix = None,
    suffix: Affix = None,
    **typed: Any,
) -> AccessorBatch:
    """Declare several fields of ``container_name`` at once.

    Positional names become untyped accessors; keywords map a key to a type
    descriptor or to a ``store_attribute(None, ...)`` spec carrying options.

    Example:
        class User(Record):
            jparams = Store(JSONCodec())
            _jparams = store_accessor(
                "jparams", "version",
                active="boolean",
                salary=store_attribute(None, "integer", limit=4),
                prefix="json", suffix="value",
            )
    """
    return AccessorBatch(container_name, untyped, typed, prefix=prefix, suffix=suffix)


# ==================== GENERATED MEMBERS ====================

def _store_for(record: Any, declaration: FieldDeclaration):
    return type(record).__stores__[declaration.container_name]


class StoreAccessor:
    """Read/write property for one store field."""

    def __init__(self, declaration: FieldDeclaration):
        self.declaration = declaration
        self.__doc__ = (
            f"{declaration.caster.type_name} field {declaration.field_name!r} "
            f"of store {declaration.container_name!r}"
        )

    def __get__(self, record: Any, owner: Optional[type] = None) -> Any:
        if record is None:
            return self
        return _store_for(record, self.declaration).read_field(record, self.declaration)

    def __set__(self, record: Any, value: Any) -> None:
        _store_for(record, self.declaration).write_field(record, self.declaration, value)

    def __repr__(self) -> str:
        return f"<StoreAccessor {self.declaration.accessor_name}>"


def _generated(declaration: FieldDeclaration, name: str, fn: Callable) -> Callable:
    fn.__name__ = name
    fn.__qualname__ = name
    setattr(fn, GENERATED_MARKER, declaration.accessor_name)
    return fn


def is_generated(member: Any) -> bool:
    """True for members produced by ``build_accessor_set``."""
    return isinstance(member, StoreAccessor) or hasattr(member, GENERATED_MARKER)


def build_accessor_set(declaration: FieldDeclaration) -> Dict[str, Any]:
    """Member table (name -> descriptor/function) for one field declaration."""
    d = declaration
    n = d.accessor_name

    def query(record):
        value = _store_for(record, d).read_field(record, d)
        return value is not None and value is not False

    def changed(record):
        return _store_for(record, d).snapshot(record).field_changed(d.field_name, d.caster)

    def was(record):
        return _store_for(record, d).snapshot(record).field_was(d.field_name, d.caster)

    def change(record):
        return _store_for(record, d).snapshot(record).field_change(d.field_name, d.caster)

    def saved_change_to(record):
        saved = _store_for(record, d).snapshot(record).saved_change
        return saved.field_change(d.field_name, d.caster) if saved is not None else None

    def has_saved_change_to(record):
        return saved_change_to(record) is not None

    def before_last_save(record):
        saved = _store_for(record, d).snapshot(record).saved_change
        return saved.field_before(d.field_name, d.caster) if saved is not None else None

    query.__doc__ = f"True if {n} is set to something other than None/False."
    changed.__doc__ = f"True if {n} differs from its value at load/last save."
    was.__doc__ = f"Value of {n} at load/last save."
    change.__doc__ = f"(old, new) for {n}, or None if unchanged."
    saved_change_to.__doc__ = f"(old, new) for {n} at the last save, or None."
    has_saved_change_to.__doc__ = f"True if the last save changed {n}."
    before_last_save.__doc__ = f"Value of {n} before the last save."

    return {
        n: StoreAccessor(d),
        f"is_{n}": _generated(d, f"is_{n}", query),
        f"{n}_changed": _generated(d, f"{n}_changed", changed),
        f"{n}_was": _generated(d, f"{n}_was", was),
        f"{n}_change": _generated(d, f"{n}_change", change),
        f"saved_change_to_{n}": _generated(d, f"saved_change_to_{n}", saved_change_to),
        f"has_saved_change_to_{n}": _generated(d, f"has_saved_change_to_{n}", has_saved_change_to),
        f"{n}_before_last_save": _generated(d, f"{n}_before_last_save", before_last_save),
    }
