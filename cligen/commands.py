"""
cligen command layer: declare a command as an annotated class.

What this module provides
- Option(*aliases, ...): marker declaring a named option on a class field.
- Parameters(index, ...): marker declaring a positional slot on a class field.
- scan(cls, ...): read the markers of a class into a CommandDescriptor.
- command(...): class decorator that scans, compiles and attaches the parser.

Quick start
    from dataclasses import dataclass
    from cligen import command, Option, Parameters

    @command("migrate", description="Database migration utility")
    @dataclass(frozen=True)
    class Migrate:
        host: str = Option("-H", "--host", required=True, description="Database host")
        port: int = Option("--port", description="Database port", default="5432")
        dry_run: bool = Option("--dry-run", description="Show what would be executed")
        action: str = Parameters(index=0, description="Migration command (up, down, status)")

    result = Migrate.__parser__.parse(["-H", "db.local", "up"])
    result.command  # Migrate(host='db.local', port=0, dry_run=False, action='up')

Field types
- The annotation picks the target type: bool, int (int32), float (float64), str;
  `X | None`, Optional[X] and Annotated[X, ...] resolve through to X; anything
  else is a custom type. Option(type=...)/Parameters(type=...) override it, e.g.
  type="int64" or type=TargetType.FLOAT32.

Value shapes
- dataclasses and namedtuples are built once, with every field passed by keyword.
- other classes are instantiated without arguments and populated in place.
- every field starts at its type's zero value (False, 0, 0.0 or None); markers
  never provide defaults.
"""
import dataclasses
import inspect
import re
import types
import typing

from .compiler import compile_parser
from .conversions import TargetType
from .descriptors import *
from .utils import *


class Option:
    """
    Field marker for a named option.

    Mirrors OptionDescriptor's metadata; the field name and type come from the
    annotated class attribute the marker is assigned to.
    """

    def __init__(
            self,
            *aliases,
            description="",
            required=False,
            default="",
            arity=Unset,
            type=Unset,
            converter=None,
    ):
        if not aliases:
            raise TypeError("Option() requires at least one alias")
        self.aliases = aliases
        self.description = description
        self.required = required
        self.default = default
        self.arity = arity
        self.type = type
        self.converter = converter

    def __option__(self, field, annotation, /):
        return OptionDescriptor(
            field,
            self.aliases,
            description=self.description,
            required=self.required,
            default=self.default,
            arity=self.arity,
            type=coalesce(self.type, _resolve_annotation(annotation)),
            converter=self.converter,
        )

    def __repr__(self):
        return f"Option({', '.join(map(repr, self.aliases))})"


class Parameters:
    """
    Field marker for a positional parameter bound by index.
    """

    def __init__(self, index, description="", required=True, type=Unset):
        self.index = index
        self.description = description
        self.required = required
        self.type = type

    def __parameter__(self, field, annotation, /):
        return ParameterDescriptor(
            field,
            self.index,
            description=self.description,
            required=self.required,
            type=coalesce(self.type, _resolve_annotation(annotation)),
        )

    def __repr__(self):
        return f"Parameters(index={self.index!r})"


_ANNOTATION_NAMES = {
    "bool": bool,
    "int": int,
    "float": float,
    "str": str,
}


def _resolve_annotation(annotation, /):
    """
    Map a field annotation onto a TargetType.
    """
    if annotation is Unset:
        return TargetType.STRING
    if isinstance(annotation, str):
        # postponed annotations: only simple names and `X | None` are understood
        names = [name.strip() for name in annotation.split("|") if name.strip() != "None"]
        if len(names) == 1 and names[0] in _ANNOTATION_NAMES:
            return TargetType.of(_ANNOTATION_NAMES[names[0]])
        return TargetType.CUSTOM
    origin = typing.get_origin(annotation)
    if origin is typing.Annotated:
        return _resolve_annotation(typing.get_args(annotation)[0])
    if origin is typing.Union or origin is types.UnionType:
        arguments = [argument for argument in typing.get_args(annotation) if argument is not type(None)]
        if len(arguments) == 1:
            return _resolve_annotation(arguments[0])
        return TargetType.CUSTOM
    if isinstance(annotation, type):
        return TargetType.of(annotation)
    return TargetType.CUSTOM


def scan(cls, /, name=Unset, description="", version=""):
    """
    Read the Option/Parameters markers of a class into a CommandDescriptor.

    Markers are collected along the MRO (bases first), in definition order, so
    option order, and with it matching and help order, follows the source.

    Raises
    - TypeError: cls is not a class, or a field carries an invalid marker.
    """
    if not isinstance(cls, type):
        raise TypeError("@command() can only be applied to classes")

    options = {}
    parameters = {}
    for klass in reversed(cls.__mro__):
        annotations = inspect.get_annotations(klass)
        namespace = dict(vars(klass))
        # slotted dataclasses keep their defaults on the fields only
        for entry in vars(klass).get("__dataclass_fields__", {}).values():
            if entry.default is not dataclasses.MISSING:
                namespace[entry.name] = entry.default
        for field, value in namespace.items():
            if hasattr(value, "__option__") and callable(value.__option__):
                parameters.pop(field, None)
                options[field] = value.__option__(field, annotations.get(field, Unset))
            elif hasattr(value, "__parameter__") and callable(value.__parameter__):
                options.pop(field, None)
                parameters[field] = value.__parameter__(field, annotations.get(field, Unset))

    return CommandDescriptor(
        coalesce(name, re.sub(r"(?<!^)(?=[A-Z])", r"-", cls.__name__).lower()),
        options.values(),
        parameters.values(),
        description=description,
        version=version,
        target=cls,
    )


def command(source=Unset, /, description="", version=""):
    """
    Declare a class as a command, or return a decorator doing so.

    Invocation modes
    - @command: name derived from the class name (CamelCase → camel-case).
    - @command("name", description=..., version=...): explicit metadata.

    The decorated class is returned unchanged apart from two attributes:
    - __descriptor__: the scanned CommandDescriptor.
    - __parser__: the CompiledParser built from it.
    """

    @rename("command")
    def wrapper(cls, /):
        descriptor = scan(cls, name, description, version)
        cls.__descriptor__ = descriptor
        cls.__parser__ = compile_parser(descriptor)
        return cls

    if isinstance(source, type):
        name = Unset
        return wrapper(source)
    if not isinstance(source, str | UnsetType):
        raise TypeError("@command() must be applied to a class")
    name = source
    return wrapper


__all__ = (
    "Option",
    "Parameters",
    "scan",
    "command",
)
