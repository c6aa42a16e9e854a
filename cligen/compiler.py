"""
cligen parser compiler: turn a CommandDescriptor into a specialized parse routine.

What this module provides
- compile_parser(descriptor): emit Python source for a parse() function tailored
  to one command's shape, exec it once, and wrap it in a CompiledParser.
- CompiledParser: the boundary every command exposes (parse(tokens), help_text()).
- ParseResult: (command, remainder) named tuple returned by a successful parse.

Generated routine
- One if/elif chain per token: every option is an exact-equality test over its
  aliases (descriptor order, first match wins), then the positional branch for
  tokens not starting with '-', then the unknown-option failure.
- Flags (arity "0") store True; value options consume the next token through a
  per-option converter that names the option when conversion fails.
- Positional tokens bind by their count among non-option tokens; unclaimed ones
  are appended to the remainder in encounter order.
- After the loop, required options/parameters with a reference-like type
  (string, custom) still at None fail. Primitive fields are never checked: their
  zero value cannot be told apart from “not provided”.
- The command value is assembled last, so a failure never leaks a partial value.

The generated source is kept on CompiledParser.source and registered in
linecache, so tracebacks through a compiled parser show real lines.
"""
import collections
import dataclasses
import inspect
import linecache
from collections.abc import Iterable
from types import SimpleNamespace

from .conversions import TargetType, converter_for, resolve_converter
from .descriptors import CommandDescriptor
from .faults import *
from .helptext import render_help
from .utils import *

ParseResult = collections.namedtuple("ParseResult", ("command", "remainder"))
ParseResult.__doc__ = """
Outcome of a successful parse.

- command: the populated command value.
- remainder: tuple of positional tokens no parameter claimed, in encounter order.
"""


def _option_converter(option):
    """
    Build the conversion step of a value option.

    A custom converter wins over the built-in conversion of the option's type;
    either way a failure is re-reported as a ConversionFailedError naming the
    option's primary alias, with the original exception chained.
    """
    convert = resolve_converter(option.converter) or converter_for(option.type)

    @rename("convert_" + option.field)
    def converter(raw, /):
        try:
            return convert(raw)
        except Exception as exception:
            raise ConversionFailedError(
                "Failed to convert option %s: %s" % (option.primary, exception),
                input=option.primary,
                hint="check the value given to %s" % option.primary,
            ) from exception

    return converter


def _parameter_converter(parameter):
    convert = converter_for(parameter.type)

    @rename("convert_" + parameter.field)
    def converter(raw, /):
        try:
            return convert(raw)
        except Exception as exception:
            raise ConversionFailedError(
                "Failed to convert parameter %s: %s" % (parameter.field, exception),
                input=parameter.field,
                hint="check the value given for %s" % parameter.field,
            ) from exception

    return converter


def _tokens(tokens, /):
    """
    Snapshot the incoming tokens as an immutable tuple of strings.
    """
    if isinstance(tokens, str) or not isinstance(tokens, Iterable):
        raise TypeError("parse() argument must be an iterable of strings")
    tokens = tuple(tokens)
    for token in tokens:
        if not isinstance(token, str):
            raise TypeError("parse() argument must be an iterable of strings")
    return tokens


def _check_target(descriptor, /):
    """
    Aggregate targets are built with keyword arguments, so every field the
    descriptor populates must exist on the target, and every target field
    without a default must be populated. Other targets are built without
    arguments.
    """
    target = descriptor.target
    if target is None:
        return
    fields = set(descriptor.fields)
    if dataclasses.is_dataclass(target):
        accepted = {field.name for field in dataclasses.fields(target) if field.init}
        needed = {
            field.name for field in dataclasses.fields(target)
            if field.init and field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING
        }
    elif issubclass(target, tuple) and hasattr(target, "_fields"):
        accepted = set(target._fields)
        needed = accepted - set(getattr(target, "_field_defaults", {}))
    else:
        try:
            inspect.signature(target).bind()
        except ValueError:
            # no introspectable signature (some builtins), checked on first parse
            pass
        except TypeError:
            raise TypeError(f"command {descriptor.name!r} target {target.__name__} cannot be built without arguments") from None
        return
    if unknown := sorted(fields - accepted):
        raise TypeError(f"command {descriptor.name!r} populates fields missing from {target.__name__}: {', '.join(unknown)}")
    if missing := sorted(needed - fields):
        raise TypeError(f"command {descriptor.name!r} leaves {target.__name__} fields unset: {', '.join(missing)}")


def _generate(descriptor, /):
    """
    Emit the source of the specialized parse() routine.

    Names referenced by the source (converters, exceptions, target) are supplied
    through the exec namespace built by compile_parser().
    """
    lines = []

    def emit(depth, line):
        lines.append("    " * depth + line)

    usage = "run '%s --help' to see available options" % descriptor.name

    emit(0, "def parse(tokens, /):")
    emit(1, "tokens = _tokens(tokens)")
    emit(1, "values = {%s}" % ", ".join(
        "%r: %r" % (field, _zero(descriptor, field)) for field in descriptor.fields
    ))
    emit(1, "remainder = []")
    emit(1, "index = 0")
    emit(1, "position = 0")
    emit(1, "while index < len(tokens):")
    emit(2, "token = tokens[index]")

    keyword = "if"
    for number, option in enumerate(descriptor.options):
        emit(2, "%s token in %r:" % (keyword, option.aliases))
        if option.flag:
            emit(3, "values[%r] = True" % option.field)
        else:
            emit(3, "if index + 1 >= len(tokens):")
            emit(4, "raise MissingValueError(%r, input=%r, hint=%r)" % (
                "Option %s requires an argument" % option.primary,
                option.primary,
                "provide a value after %s" % option.primary,
            ))
            emit(3, "values[%r] = option%d(tokens[index + 1])" % (option.field, number))
            emit(3, "index += 1")
        keyword = "elif"

    emit(2, "%s not token.startswith('-'):" % keyword)
    branch = "if"
    for number, parameter in sorted(enumerate(descriptor.parameters), key=lambda item: item[1].index):
        emit(3, "%s position == %d:" % (branch, parameter.index))
        emit(4, "values[%r] = parameter%d(token)" % (parameter.field, number))
        branch = "elif"
    if branch == "elif":
        emit(3, "else:")
        emit(4, "remainder.append(token)")
    else:
        emit(3, "remainder.append(token)")
    emit(3, "position += 1")
    emit(2, "else:")
    emit(3, "raise UnknownOptionError('Unknown option: ' + token, input=token, hint=%r)" % usage)
    emit(2, "index += 1")

    for option in descriptor.options:
        if option.required and not option.type.primitive:
            emit(1, "if values[%r] is None:" % option.field)
            emit(2, "raise MissingRequiredError(%r, input=%r, hint=%r)" % (
                "Required option not provided: %s" % option.primary,
                option.primary,
                "add %s <value>; %s" % (option.primary, usage),
            ))
    for parameter in descriptor.parameters:
        if parameter.required and not parameter.type.primitive:
            emit(1, "if values[%r] is None:" % parameter.field)
            emit(2, "raise MissingRequiredError(%r, input=%r, hint=%r)" % (
                "Required parameter not provided: %s" % parameter.field,
                parameter.field,
                "add a value at position %d; %s" % (parameter.index, usage),
            ))

    if descriptor.target is None:
        emit(1, "command = SimpleNamespace(**values)")
    elif descriptor.aggregate:
        emit(1, "command = target(**values)")
    else:
        emit(1, "command = target()")
        for field in descriptor.fields:
            emit(1, "command.%s = values[%r]" % (field, field))
    emit(1, "return ParseResult(command, tuple(remainder))")

    return "\n".join(lines) + "\n"


def _zero(descriptor, field, /):
    """
    Zero value of a field; the last declaration populating it decides its type.
    """
    zero = None
    for declaration in (*descriptor.options, *descriptor.parameters):
        if declaration.field == field:
            zero = declaration.type.zero
    return zero


class CompiledParser:
    """
    Parser specialized to one CommandDescriptor.

    Contract
    - parse(tokens) -> ParseResult, or raises a ParseError subclass. Parsing is
      all-or-nothing: no partial command value is ever observable on failure.
    - help_text() -> str, rendered on first request and cached.

    Attributes
    - descriptor: the (immutable, shared) descriptor this parser was built from.
    - source: the generated Python source of the parse routine.
    """

    def __init__(self, descriptor, source, routine, /):
        self.descriptor = descriptor
        self.source = source
        self._parse = routine
        self._help = Unset

    @property
    def name(self):
        return self.descriptor.name

    def parse(self, tokens, /):
        """
        Parse argument tokens (the command name excluded) into a ParseResult.
        """
        return self._parse(tokens)

    def help_text(self):
        if self._help is Unset:
            self._help = render_help(self.descriptor)
        return self._help

    def __repr__(self):
        return f"compiled-parser(name={self.name!r})"


def compile_parser(descriptor, /):
    """
    Compile a CommandDescriptor into a CompiledParser.

    Compilation is pure with respect to the descriptor: compiling the same
    descriptor twice yields parsers with identical source and behavior, and
    distinct descriptors can be compiled concurrently.

    Raises
    - TypeError: descriptor is not a CommandDescriptor, or its aggregate target
      (dataclass/namedtuple) does not line up with the descriptor's fields.
    """
    if not isinstance(descriptor, CommandDescriptor):
        raise TypeError("compile_parser() argument must be a command descriptor")
    _check_target(descriptor)

    source = _generate(descriptor)
    filename = "<cligen-parser %s>" % descriptor.name

    namespace = {
        "_tokens": _tokens,
        "ParseResult": ParseResult,
        "SimpleNamespace": SimpleNamespace,
        "MissingValueError": MissingValueError,
        "UnknownOptionError": UnknownOptionError,
        "MissingRequiredError": MissingRequiredError,
        "target": descriptor.target,
    }
    namespace |= {
        "option%d" % number: _option_converter(option)
        for number, option in enumerate(descriptor.options) if not option.flag
    }
    namespace |= {
        "parameter%d" % number: _parameter_converter(parameter)
        for number, parameter in enumerate(descriptor.parameters)
    }

    exec(compile(source, filename, "exec"), namespace)
    linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)

    routine = rename(namespace["parse"], "parse_" + descriptor.name.replace("-", "_"))
    routine.__doc__ = "Generated parse routine for command %r." % descriptor.name
    return CompiledParser(descriptor, source, routine)


__all__ = (
    "ParseResult",
    "CompiledParser",
    "compile_parser",
)
