"""
Conversion registry: target types, zero values and string converters.

Every option and parameter declares a TargetType. The registry maps it to a
built-in converter from the raw token to a value:

    int32    → signed decimal integer, 32-bit range
    int64    → signed decimal integer, 64-bit range
    bool     → True iff the token is "true" (any case); never fails
    float64  → decimal/scientific or hexadecimal (0x1p3) notation with an optional
               f/d suffix, NaN, Infinity (case-sensitive); surrounding
               whitespace ignored
    float32  → float64 rounded to single precision
    string   → identity
    custom   → identity (unless the option carries its own converter)

Failures raise ConversionError and are not wrapped here; the compiled parser is
the caller that re-reports them as a ConversionFailedError naming the option or
parameter.

Options may also carry a Converter capability: a Converter subclass (built
fresh for every conversion), a Converter instance, or a plain callable.
"""
import enum
import math
import re
import struct
from abc import ABC, abstractmethod

from .faults import ConversionError


class TargetType(enum.Enum):
    """
    Declared type of an option or parameter field.

    The five numeric/boolean members are primitive: their zero value is a real
    value, so “required” validation cannot tell them apart from “not provided”.
    """
    BOOL = "bool"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    STRING = "string"
    CUSTOM = "custom"

    @property
    def primitive(self):
        return self in _PRIMITIVES

    @property
    def zero(self):
        """
        zero value a field of this type starts from (None is the “absent” marker).
        """
        return _ZEROS[self]

    @classmethod
    def of(cls, object, /):
        """
        Resolve a TargetType from a member, a member value ("int32") or a Python type.

        Python types map as bool → BOOL, int → INT32, float → FLOAT64, str → STRING;
        any other type resolves to CUSTOM.
        """
        if isinstance(object, cls):
            return object
        if isinstance(object, str):
            try:
                return cls(object)
            except ValueError:
                raise ValueError(f"unknown target type {object!r}") from None
        if isinstance(object, type):
            return _PYTHON_TYPES.get(object, cls.CUSTOM)
        raise TypeError("target type must be a TargetType, a type name or a type")


_PRIMITIVES = frozenset({
    TargetType.BOOL,
    TargetType.INT32,
    TargetType.INT64,
    TargetType.FLOAT32,
    TargetType.FLOAT64,
})

_ZEROS = {
    TargetType.BOOL: False,
    TargetType.INT32: 0,
    TargetType.INT64: 0,
    TargetType.FLOAT32: 0.0,
    TargetType.FLOAT64: 0.0,
    TargetType.STRING: None,
    TargetType.CUSTOM: None,
}

_PYTHON_TYPES = {
    bool: TargetType.BOOL,
    int: TargetType.INT32,
    float: TargetType.FLOAT64,
    str: TargetType.STRING,
}

_INTEGER = re.compile(r"[+-]?[0-9]+")
_DECIMAL = re.compile(r"[+-]?(?:NaN|Infinity|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?[fFdD]?)")
_HEXADECIMAL = re.compile(r"[+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)[pP][+-]?[0-9]+[fFdD]?")
_FLOAT32_MAX = 3.4028234663852886e38


def _integer(raw, bits, name):
    if not _INTEGER.fullmatch(raw):
        raise ConversionError(f"invalid {name} value: {raw!r}")
    value = int(raw)
    if not -(1 << bits - 1) <= value < 1 << bits - 1:
        raise ConversionError(f"{name} value out of range: {raw!r}")
    return value


def parse_int32(raw, /):
    return _integer(raw, 32, "int32")


def parse_int64(raw, /):
    return _integer(raw, 64, "int64")


def parse_bool(raw, /):
    return raw.lower() == "true"


def parse_float64(raw, /):
    text = raw.strip()
    if _HEXADECIMAL.fullmatch(text):
        try:
            return float.fromhex(text.rstrip("fFdD"))
        except OverflowError:
            return -math.inf if text.startswith("-") else math.inf
    if not _DECIMAL.fullmatch(text):
        raise ConversionError(f"invalid float64 value: {raw!r}")
    # float() does not understand the f/d type suffixes
    return float(text.rstrip("fFdD"))


def parse_float32(raw, /):
    value = parse_float64(raw)
    if math.isfinite(value) and abs(value) > _FLOAT32_MAX:
        return math.copysign(math.inf, value)
    return struct.unpack("f", struct.pack("f", value))[0]


def identity(raw, /):
    return raw


_REGISTRY = {
    TargetType.BOOL: parse_bool,
    TargetType.INT32: parse_int32,
    TargetType.INT64: parse_int64,
    TargetType.FLOAT32: parse_float32,
    TargetType.FLOAT64: parse_float64,
    TargetType.STRING: identity,
    TargetType.CUSTOM: identity,
}


def converter_for(type, /):
    """
    Return the built-in converter of a target type (identity for string/custom).
    """
    return _REGISTRY[TargetType.of(type)]


def convert(type, raw, /):
    """
    Convert a raw token with the built-in converter of its target type.

    Raises
    - ConversionError: the token does not fit the type (bool never fails).
    """
    return converter_for(type)(raw)


class Converter(ABC):
    """
    Pluggable string-to-value transformation for one option.

    Subclasses implement convert(); raising any exception reports a conversion
    failure naming the option. Converters are meant to be stateless: when a
    Converter subclass is attached to an option, a fresh instance is built for
    every conversion.
    """

    @abstractmethod
    def convert(self, raw, /):
        raise NotImplementedError


def resolve_converter(converter, /):
    """
    Normalize an option's converter into a plain `raw -> value` callable.

    Accepted forms
    - None: no custom converter (returns None).
    - class defining convert() (a Converter subclass): instantiated fresh on every call.
    - object with a callable convert(): its bound convert.
    - plain callable, classes like int included: used as-is.
    """
    if converter is None:
        return None
    if isinstance(converter, type) and callable(getattr(converter, "convert", None)):
        return lambda raw, /: converter().convert(raw)
    if callable(method := getattr(converter, "convert", None)):
        return method
    if callable(converter):
        return converter
    raise TypeError("converter must be a Converter, a class with convert() or a callable")


__all__ = (
    "TargetType",
    "Converter",
    "converter_for",
    "convert",
    "resolve_converter",
    "parse_int32",
    "parse_int64",
    "parse_bool",
    "parse_float32",
    "parse_float64",
)
