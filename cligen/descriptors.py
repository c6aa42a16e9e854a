r"""
cligen descriptor model: the immutable shape of one command.

Overview
- OptionDescriptor: one named option with one or more aliases (e.g., -v/--verbose),
  either a flag (arity "0") or a value option consuming exactly one token.
- ParameterDescriptor: one positional slot, bound by its index among non-option tokens.
- CommandDescriptor: identity (name/description/version), the ordered options,
  the parameters and the target type of the command value.

Introspection & representation
- DescriptorType metaclass provides stable __repr__/__rich_repr__ and exposes
  every field in __introspectable__ as a read-only property (containers are
  returned frozen: tuples, frozensets, mapping proxies).

Validation
- Structural problems raise at construction:
  • TypeError for wrong value types.
  • ValueError for empty names/aliases, negative indices, or field names that
    are not Python identifiers.
- Invariant violations only warn (DescriptorWarning), construction still succeeds:
  • aliases shared by several options (first declared option wins when matching),
  • parameter indices that are not a contiguous range from 0,
  • several options/parameters populating the same field,
  • arity "0" on a non-boolean option (the field receives a literal True).

Quick example:
    >>> verbose = OptionDescriptor("verbose", ("-v", "--verbose"), arity="0", type=bool)
    >>> source = ParameterDescriptor("source", 0, description="File to read")
    >>> descriptor = CommandDescriptor("cat", (verbose,), (source,), description="Print a file")
"""
import dataclasses
import functools
import keyword
import operator
import re
from collections import Counter
from collections.abc import Set

from .conversions import TargetType
from .faults import DescriptorWarning, FaultCode, trigger
from .utils import *


class DescriptorType(type):
    """
    Metaclass that turns descriptor classes into introspectable, read-only records.

    Responsibilities
    - Expose every name listed in __introspectable__ as a read-only property (via mirror()).
    - Provide stable __repr__/__rich_repr__ implementations for diagnostics.
    - Derive a hyphenated __typename__ from the class name for error messages.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_string(cls, metadata, name, /, *, empty=True):
    if not isinstance(value := metadata[name], str):
        raise TypeError(f"{cls.__typename__} {name!r} must be a string")
    if not empty and not value.strip():
        raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")


def _sanitize_field(cls, metadata, /):
    """
    The field names the attribute of the command value being populated, so it
    must be usable as a keyword argument and as an attribute.
    """
    _sanitize_string(cls, metadata, "field", empty=False)
    if not metadata["field"].isidentifier() or keyword.iskeyword(metadata["field"]):
        raise ValueError(f"{cls.__typename__} 'field' must be a python identifier, got {metadata['field']!r}")


def _sanitize_type(cls, metadata, /):
    try:
        metadata["type"] = TargetType.of(metadata["type"])
    except (TypeError, ValueError) as exception:
        raise type(exception)(f"{cls.__typename__} {exception}") from None


def _sanitize_bool(cls, metadata, name, /):
    if not isinstance(metadata[name], bool):
        raise TypeError(f"{cls.__typename__} {name!r} must be a boolean")


class OptionDescriptor(metaclass=DescriptorType):
    """
    One named option of a command.

    Fields
    - field: attribute of the command value this option populates.
    - aliases: spellings matched by exact equality; the first one is the primary
      alias used in error messages.
    - arity: "0" marks a flag; any other string means “exactly one following
      token”. When omitted, boolean options are flags and the rest take a value.
    - default: informational text only (shown to humans, never applied).
    - type: TargetType (Python types bool/int/float/str are accepted and mapped).
    - converter: optional Converter (class, instance or callable) that replaces
      the built-in conversion for this option.
    """
    __introspectable__ = (
        "field",
        "aliases",
        "description",
        "required",
        "default",
        "arity",
        "type",
        "converter",
    )

    def __new__(
            cls,
            field,
            aliases,
            /,
            description="",
            required=False,
            default="",
            arity=Unset,
            type=TargetType.STRING,
            converter=None,
    ):
        metadata = {
            "field": field,
            "aliases": aliases,
            "description": description,
            "required": required,
            "default": default,
            "arity": arity,
            "type": type,
            "converter": converter,
        }
        _sanitize_field(cls, metadata)

        if isinstance(aliases, str):
            # A single spelling is accepted as a convenience.
            metadata["aliases"] = aliases = (aliases,)
        if isinstance(aliases, Set):
            raise TypeError(f"{cls.__typename__} 'aliases' must be ordered, not a set")
        try:
            aliases = metadata["aliases"] = tuple(aliases)
        except TypeError:
            raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings") from None
        if not aliases:
            raise ValueError(f"{cls.__typename__} 'aliases' cannot be empty")
        for alias in aliases:
            if not isinstance(alias, str):
                raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings")
            if not alias:
                raise ValueError(f"{cls.__typename__} 'aliases' cannot contain an empty string")
        if len(set(aliases)) != len(aliases):
            raise ValueError(f"{cls.__typename__} 'aliases' cannot contain duplicates")

        _sanitize_string(cls, metadata, "description")
        _sanitize_string(cls, metadata, "default")
        _sanitize_bool(cls, metadata, "required")
        _sanitize_type(cls, metadata)

        if metadata["arity"] is Unset:
            metadata["arity"] = "0" if metadata["type"] is TargetType.BOOL else "1"
        _sanitize_string(cls, metadata, "arity")

        if converter is not None and not callable(converter) and not callable(getattr(converter, "convert", None)):
            raise TypeError(f"{cls.__typename__} 'converter' must be a converter or a callable")

        self = super().__new__(cls)
        for name, object in metadata.items():
            self.__dict__["_" + name] = object
        return self

    @property
    def primary(self):
        """
        The first alias, used to name the option in messages.
        """
        return self._aliases[0]

    @property
    def flag(self):
        return self._arity == "0"


class ParameterDescriptor(metaclass=DescriptorType):
    """
    One positional slot of a command.

    The slot binds the Nth non-option token seen while parsing, N being its
    index, independently of the order parameters were declared in.
    """
    __introspectable__ = (
        "field",
        "index",
        "description",
        "required",
        "type",
    )

    def __new__(cls, field, index, /, description="", required=True, type=TargetType.STRING):
        metadata = {
            "field": field,
            "index": index,
            "description": description,
            "required": required,
            "type": type,
        }
        _sanitize_field(cls, metadata)
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError(f"{cls.__typename__} 'index' must be an integer")
        if index < 0:
            raise ValueError(f"{cls.__typename__} 'index' must be greater than or equal to 0")
        _sanitize_string(cls, metadata, "description")
        _sanitize_bool(cls, metadata, "required")
        _sanitize_type(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            self.__dict__["_" + name] = object
        return self


class CommandDescriptor(metaclass=DescriptorType):
    """
    Identity and shape of one command, consumed by the parser compiler.

    Target shapes
    - None: the command value is a types.SimpleNamespace.
    - dataclass or namedtuple type: built once at the end by aggregate construction.
    - any other class: instantiated without arguments, then populated in place.
    """
    __introspectable__ = (
        "name",
        "description",
        "version",
        "options",
        "parameters",
        "target",
    )

    def __new__(cls, name, options=(), parameters=(), /, description="", version="", target=None):
        metadata = {
            "name": name,
            "description": description,
            "version": version,
            "options": options,
            "parameters": parameters,
            "target": target,
        }
        _sanitize_string(cls, metadata, "name", empty=False)
        _sanitize_string(cls, metadata, "description")
        _sanitize_string(cls, metadata, "version")

        metadata["options"] = options = tuple(options)
        if not all(isinstance(option, OptionDescriptor) for option in options):
            raise TypeError(f"{cls.__typename__} 'options' must contain option descriptors")
        metadata["parameters"] = parameters = tuple(parameters)
        if not all(isinstance(parameter, ParameterDescriptor) for parameter in parameters):
            raise TypeError(f"{cls.__typename__} 'parameters' must contain parameter descriptors")
        if target is not None and not isinstance(target, type):
            raise TypeError(f"{cls.__typename__} 'target' must be a type")

        self = super().__new__(cls)
        for name, object in metadata.items():
            self.__dict__["_" + name] = object
        _check_invariants(self)
        return self

    @property
    def fields(self):
        """
        Field names in declaration order: options first, then parameters.
        """
        return tuple(dict.fromkeys(
            [option.field for option in self._options] + [parameter.field for parameter in self._parameters]
        ))

    @property
    def aggregate(self):
        """
        Whether the command value is built by aggregate construction.
        """
        return (
            self._target is None or
            dataclasses.is_dataclass(self._target) or
            (issubclass(self._target, tuple) and hasattr(self._target, "_fields"))
        )


def _warn(descriptor, message, code, hint):
    trigger(DescriptorWarning(
        message,
        code=code,
        hint=hint,
        descriptor=descriptor,
        stacklevel=6,
    ))


def _check_invariants(descriptor, /):
    """
    Warn (without failing) about descriptor invariants that compiled parsers rely on.
    """
    owners = {}
    for option in descriptor.options:
        for alias in option.aliases:
            if (owner := owners.setdefault(alias, option)) is not option:
                _warn(
                    descriptor,
                    "alias %r of option %r is already used by option %r" % (alias, option.field, owner.field),
                    FaultCode.OVERLAPPING_ALIASES,
                    "the first declared option always wins; give each option its own aliases",
                )
        if option.flag and option.type is not TargetType.BOOL:
            _warn(
                descriptor,
                "option %r has arity '0' but a %s target; it will receive True" % (option.primary, option.type.value),
                FaultCode.FLAG_ON_NON_BOOLEAN,
                "use a bool target for flags or give the option a value arity",
            )

    indices = sorted(parameter.index for parameter in descriptor.parameters)
    if indices != list(range(len(indices))):
        _warn(
            descriptor,
            "parameter indices %s of command %r are not contiguous from 0" % (indices, descriptor.name),
            FaultCode.PARAMETER_GAP,
            "unbound positions end up in the remainder; number parameters 0, 1, 2, ...",
        )

    counts = Counter(
        [option.field for option in descriptor.options] + [parameter.field for parameter in descriptor.parameters]
    )
    for field, count in counts.items():
        if count > 1:
            _warn(
                descriptor,
                "field %r of command %r is populated by %d declarations" % (field, descriptor.name, count),
                FaultCode.DUPLICATED_FIELD,
                "the last assignment wins; give each option and parameter its own field",
            )


__all__ = (
    "OptionDescriptor",
    "ParameterDescriptor",
    "CommandDescriptor",
)
