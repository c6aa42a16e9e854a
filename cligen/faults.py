"""
cligen faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
- ParseError family: the single caller-visible failure kind of a parse or a
  dispatch. Subclasses only refine which fault happened; catching ParseError
  catches all of them.
- ConversionError: raised by the conversion registry on malformed input. The
  compiled parser re-reports it as a ConversionFailedError.
- CommandWarning family: non-fatal notices (descriptor invariant violations).
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).

Integration
- Compiled parsers raise ParseError subclasses directly; nothing is logged.
- The dispatcher runner surfaces them through trigger(): in shell mode they are
  rendered via rich on stderr and the process exits with status 1, otherwise
  they are raised.
- The host application can remap codes (__codes__), restyle output (__styles__)
  and name the program (__prog__) from its __main__ module.
"""
import sys
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the cli (stable identifiers).

    grouping
    - dispatch (1110x): NO_COMMAND, UNKNOWN_COMMAND
    - options (1111x): UNKNOWN_OPTION, MISSING_VALUE
    - conversion (1112x): CONVERSION_FAILED
    - validation (1113x): MISSING_REQUIRED
    - warnings (12xxx): OVERLAPPING_ALIASES, PARAMETER_GAP, DUPLICATED_FIELD, FLAG_ON_NON_BOOLEAN
    """
    # --- dispatch errors ---
    NO_COMMAND          = 11100
    UNKNOWN_COMMAND     = 11101

    # --- option errors ---
    UNKNOWN_OPTION      = 11111
    MISSING_VALUE       = 11112

    # --- conversion errors ---
    CONVERSION_FAILED   = 11121

    # --- validation errors ---
    MISSING_REQUIRED    = 11131

    # --- descriptor warnings ---
    OVERLAPPING_ALIASES = 12101
    PARAMETER_GAP       = 12102
    DUPLICATED_FIELD    = 12103
    FLAG_ON_NON_BOOLEAN = 12104

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette, /):
    """
    Build the rich renderable shared by errors and warnings.

    Layout
    - header: [ prog — code | title ]
    - body: the message
    - footer: → hint (only when a hint is known)
    """
    main = __import__("__main__")
    colorful = fault.options.get("colorful", False)
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment if colorful else Text(str(fragment))
        return Text(str(fragment), styles[style] if colorful else "")

    tool = fault.options.get("tool")
    prog = getattr(main, "__prog__", getattr(tool, "name", None) or "cligen")

    header = Text.assemble(
        "[ ",
        text(prog, "prog-name"),
        " — ",
        text(fault.code.normalize(), "code"),
        " | ",
        text(fault.title.title(), "title"),
        " ]"
    )
    renders = [text(fault.message, "message")]
    if hint := fault.options.get("hint"):
        renders.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))

    if fault.options.get("fancy", False):
        return Panel(Group(*renders), title=header, title_align="left")
    return Group(header, *renders)


class ParseError(Exception):
    """
    Base of every parse and dispatch failure.

    Carries a human-readable message plus free-form keyword options used for
    rendering (code, title, hint, input, tool, shell, colorful, fancy).
    """
    code = FaultCode.UNKNOWN_OPTION
    title = "parse error"

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.code = options.pop("code", type(self).code)
        self.title = options.pop("title", type(self).title)
        self.options = MappingProxyType(options)

    def __str__(self):
        return str(self.message)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "title": "bold #FF4DA6",
            "message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        })

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        replaced = type(self)(self.message, code=self.code, title=self.title, **{**self.options, **overrides})
        replaced.__cause__ = self.__cause__
        return replaced


class MissingValueError(ParseError):
    code = FaultCode.MISSING_VALUE
    title = "missing option value"


class ConversionFailedError(ParseError):
    code = FaultCode.CONVERSION_FAILED
    title = "conversion error"


class UnknownOptionError(ParseError):
    code = FaultCode.UNKNOWN_OPTION
    title = "unknown option"


class MissingRequiredError(ParseError):
    code = FaultCode.MISSING_REQUIRED
    title = "missing required value"


class NoCommandError(ParseError):
    code = FaultCode.NO_COMMAND
    title = "no command"


class UnknownCommandError(ParseError):
    code = FaultCode.UNKNOWN_COMMAND
    title = "unknown command"


class ConversionError(ValueError):
    """
    Raised by the conversion registry (and welcome from custom converters)
    when a raw token cannot be turned into the target type.
    """


class CommandWarning(Warning):
    code = FaultCode.OVERLAPPING_ALIASES
    title = "warning"

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.code = options.pop("code", type(self).code)
        self.title = options.pop("title", type(self).title)
        self.options = MappingProxyType(options)

    def __str__(self):
        return str(self.message)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "title": "bold #FFC2E0",
            "message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        })

    def __trigger__(self):
        if not self.options.get("shell", False):
            # Point the warning at the code that built the descriptor.
            return warnings.warn(self, stacklevel=self.options.get("stacklevel", 4))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, code=self.code, title=self.title, **{**self.options, **overrides})


class DescriptorWarning(CommandWarning):
    title = "descriptor warning"


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via the rich console; otherwise errors are
      raised and warnings are emitted through the warnings module.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    if options:
        fault = fault.__replace__(**options)
    fault.__trigger__()


__all__ = (
    "FaultCode",
    "ParseError",
    "MissingValueError",
    "ConversionFailedError",
    "UnknownOptionError",
    "MissingRequiredError",
    "NoCommandError",
    "UnknownCommandError",
    "ConversionError",
    "CommandWarning",
    "DescriptorWarning",
    "trigger",
)
