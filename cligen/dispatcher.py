"""
cligen dispatcher: route a top-level command name to its compiled parser.

What this module provides
- Dispatcher: name → parser registry with the global --help/--version shortcuts,
  per-command help lookup and a process runner.
- invoke(target, prompt): convenience runner for dispatchers, compiled parsers
  and @command classes.

Runtime flags (per dispatcher)
- shell: faults are rendered on stderr and the process exits with status 1
  instead of raising.
- colorful: styled fault output.
- fancy: fault output wrapped in a rich panel.

Quick start
    from cligen import Dispatcher, command, Option, Parameters

    @command("greet", description="Say hello")
    class Greet:
        loud: bool = Option("-l", "--loud")
        who: str = Parameters(index=0, description="Who to greet")

    app = Dispatcher("Greeter", "1.0.0", shell=True)
    app.register(Greet)

    if __name__ == "__main__":
        result = app.run()
"""
import shlex
import sys
import threading
from collections.abc import Iterable

from rich.console import Console

from .compiler import compile_parser
from .descriptors import CommandDescriptor
from .faults import *
from .faults import trigger as _trigger
from .utils import *

HELP_TOKENS = frozenset({"--help", "-h", "help"})
VERSION_TOKENS = frozenset({"--version", "-v", "version"})


def _as_parser(object, /):
    """
    Normalize anything registrable into an object with parse()/help_text().
    """
    if (parser := getattr(object, "__parser__", None)) is not None:
        return parser
    if callable(getattr(object, "parse", None)) and callable(getattr(object, "help_text", None)):
        return object
    if isinstance(object, CommandDescriptor):
        return compile_parser(object)
    raise TypeError("parser must provide parse() and help_text(), or be a @command class or a descriptor")


def _prompt(prompt, /):
    """
    Normalize a prompt into a list of tokens.

    - Unset: the current process arguments (sys.argv[1:]).
    - str: split like a shell would (shlex.split).
    - Iterable[str]: used as-is.
    """
    if prompt is Unset:
        return sys.argv[1:]
    if isinstance(prompt, str):
        return shlex.split(prompt)
    if isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("run() argument must be a string or an iterable of strings")
        return tokens
    raise TypeError("run() argument must be a string or an iterable of strings")


class Dispatcher:
    """
    Process-wide registry mapping command names to compiled parsers.

    Registration normally happens once at start-up and dispatch afterwards; the
    registry is still lock-protected so both may overlap.
    """

    def __init__(self, name, version, /, *, shell=False, colorful=False, fancy=False, console=Unset):
        if not isinstance(name, str) or not name:
            raise TypeError("dispatcher 'name' must be a non-empty string")
        if not isinstance(version, str):
            raise TypeError("dispatcher 'version' must be a string")
        self.name = name
        self.version = version
        self.shell = bool(shell)
        self.colorful = bool(colorful)
        self.fancy = bool(fancy)
        self._console = coalesce(console, Console())
        self._commands = {}
        self._lock = threading.RLock()

    @property
    def command_names(self):
        """
        Registered command names, in registration order.
        """
        with self._lock:
            return tuple(self._commands)

    def register(self, name, parser=Unset, /):
        """
        Register a parser under a command name.

        Forms
        - register("name", parser): explicit name.
        - register(parser): the parser's own name (descriptor name) is used.

        The parser can be a CompiledParser (or anything with parse/help_text),
        a class decorated with @command, or a CommandDescriptor (compiled here).
        Registering an existing name replaces the previous parser.
        """
        if parser is Unset:
            parser = _as_parser(name)
            name = parser.name
        else:
            parser = _as_parser(parser)
        if not isinstance(name, str) or not name:
            raise TypeError("register() command name must be a non-empty string")
        with self._lock:
            self._commands[name] = parser
        return parser

    def dispatch(self, args, /):
        """
        Route args to the parser named by the first token.

        Returns
        - ParseResult of the selected command, or
        - Shown when global help or version text was printed.

        Raises
        - NoCommandError: args is empty.
        - UnknownCommandError: the first token names no registered command.
        - any ParseError raised by the selected parser.
        """
        args = list(args)
        if not args:
            raise NoCommandError(
                "No command specified. Use --help for available commands.",
                hint="run '%s --help' to list commands" % self.name.lower(),
            )

        command = args[0]
        if command in HELP_TOKENS:
            self._console.out(self.global_help(), highlight=False)
            return Shown
        if command in VERSION_TOKENS:
            self._console.out("%s version %s" % (self.name, self.version), highlight=False)
            return Shown

        with self._lock:
            parser = self._commands.get(command)
        if parser is None:
            raise UnknownCommandError(
                "Unknown command: %s. Use --help for available commands." % command,
                input=command,
                hint="run '%s --help' to list commands" % self.name.lower(),
            )
        return parser.parse(args[1:])

    def command_help(self, name, /):
        """
        Help text of one registered command.
        """
        with self._lock:
            parser = self._commands.get(name)
        if parser is None:
            raise UnknownCommandError("Unknown command: %s" % name, input=name)
        return parser.help_text()

    def global_help(self):
        prog = self.name.lower()
        lines = [
            "%s - CLI Application" % self.name,
            "Version: %s" % self.version,
            "",
            "Usage: %s <command> [options]" % prog,
            "",
            "Commands:",
        ]
        lines.extend("  %s" % name for name in self.command_names)
        lines.extend([
            "",
            "Global Options:",
            "  --help, -h     Show this help message",
            "  --version      Show version information",
            "",
            "Use '%s <command> --help' for command-specific help" % prog,
        ])
        return "\n".join(lines) + "\n"

    def trigger(self, fault, /, **options):
        """
        Surface a fault with this dispatcher's runtime flags merged in.
        """
        _trigger(fault, **options, tool=self, shell=self.shell, fancy=self.fancy, colorful=self.colorful)

    def run(self, prompt=Unset, /):
        """
        Dispatch a prompt and surface faults.

        In shell mode a ParseError is rendered on stderr and the process exits
        with status 1; otherwise the error propagates to the caller.
        """
        try:
            return self.dispatch(_prompt(prompt))
        except ParseError as fault:
            if not self.shell:
                raise
            self.trigger(fault)

    def __repr__(self):
        return f"dispatcher(name={self.name!r}, version={self.version!r}, commands={self.command_names!r})"


def invoke(object, prompt=Unset, /):
    """
    Convenience runner for dispatchers, compiled parsers and @command classes.

    - Dispatcher (anything with run()): run(prompt).
    - parser or @command class: parse the prompt tokens; faults propagate.
    """
    if callable(getattr(object, "run", None)):
        return object.run(prompt)
    try:
        parser = _as_parser(object)
    except TypeError:
        target = "argument" if prompt is Unset else "first argument"
        raise TypeError(f"invoke() {target} must be a dispatcher, a parser or a @command class") from None
    return parser.parse(_prompt(prompt))


__all__ = (
    "Dispatcher",
    "invoke",
)
