"""
Exception taxonomy for typed store attributes.

Declaration errors are raised while a model class is being created.
Cast errors are raised at the point of input (accessor write, container
assignment, constructor keywords) and are never downgraded to defaults.
"""


class StoreAttributeError(Exception):
    """Base class for every error raised by typedstore."""


class DeclarationError(StoreAttributeError):
    """Invalid store or accessor declaration (raised at class creation)."""


class UnknownTypeError(DeclarationError, LookupError):
    """Type descriptor does not resolve to a registered caster."""

    def __init__(self, descriptor):
        self.descriptor = descriptor
        super().__init__(f"Unknown store attribute type: {descriptor!r}")


class AccessorConflictError(DeclarationError):
    """Generated accessor name clashes with an existing class attribute."""

    def __init__(self, model_name: str, member_name: str):
        self.model_name = model_name
        self.member_name = member_name
        super().__init__(
            f"{model_name}.{member_name} is already defined and is not a store accessor"
        )


class CastError(StoreAttributeError, TypeError):
    """Input is structurally incompatible with the target type."""

    def __init__(self, type_name: str, value, reason: str = ""):
        self.type_name = type_name
        self.value = value
        message = f"Cannot cast {value!r} to {type_name}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StoreRangeError(StoreAttributeError, ValueError):
    """Value is outside a configured limit, precision or set of choices."""

    def __init__(self, type_name: str, value, reason: str):
        self.type_name = type_name
        self.value = value
        super().__init__(f"{value!r} is out of range for {type_name}: {reason}")


# Name used throughout the docs and error taxonomy
RangeError = StoreRangeError


class RecordNotFound(StoreAttributeError, LookupError):
    """Reference host could not find a stored row."""
