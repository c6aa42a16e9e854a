"""
Parser compiler tests (token loop, conversion, validation, result assembly).

Scope
- Validate flag/value option matching, arity and missing values.
- Validate positional binding by index and the remainder.
- Validate required-field validation, including the primitive gap.
- Validate conversion failures naming the option/parameter.
- Validate command value shapes (namespace, dataclass, namedtuple, plain class).
- Validate generated source and idempotent compilation.

Conventions
- Test method names follow CamelCase per project convention.
- Descriptors are built by hand; the @command layer is covered separately.
"""

import unittest
from collections import namedtuple
from dataclasses import dataclass
from types import SimpleNamespace
from unittest import TestCase

from cligen import (
    CommandDescriptor,
    OptionDescriptor,
    ParameterDescriptor,
    CompiledParser,
    ParseResult,
    ParseError,
    MissingValueError,
    ConversionFailedError,
    UnknownOptionError,
    MissingRequiredError,
    ConversionError,
    FaultCode,
    TargetType,
    Converter,
    compile_parser,
)


def build(options=(), parameters=(), **metadata):
    return compile_parser(CommandDescriptor("tool", options, parameters, **metadata))


class TestOptions(TestCase):
    """Option matching, arity and missing values."""

    def testFlagSetsTrueAndConsumesOneToken(self):
        parser = build((OptionDescriptor("verbose", ("-v", "--verbose"), arity="0", type=bool),))
        result = parser.parse(["-v"])
        self.assertIs(result.command.verbose, True)
        self.assertEqual(result.remainder, ())

        result = parser.parse(["--verbose", "left"])
        self.assertIs(result.command.verbose, True)
        self.assertEqual(result.remainder, ("left",))

    def testFlagDefaultsToFalse(self):
        parser = build((OptionDescriptor("verbose", "-v", type=bool),))
        self.assertIs(parser.parse([]).command.verbose, False)

    def testValueOptionConsumesNextToken(self):
        parser = build((OptionDescriptor("file", ("-f", "--file")),))
        result = parser.parse(["--file", "a.txt", "rest"])
        self.assertEqual(result.command.file, "a.txt")
        self.assertEqual(result.remainder, ("rest",))

    def testValueMayLookLikeAnOption(self):
        parser = build((
            OptionDescriptor("file", "--file"),
            OptionDescriptor("offset", "--offset", type=int),
        ))
        result = parser.parse(["--file", "--offset", "--offset", "-5"])
        self.assertEqual(result.command.file, "--offset")
        self.assertEqual(result.command.offset, -5)

    def testAnyNonZeroArityTakesExactlyOneToken(self):
        parser = build((OptionDescriptor("pair", "--pair", arity="2"),))
        result = parser.parse(["--pair", "a", "b"])
        self.assertEqual(result.command.pair, "a")
        self.assertEqual(result.remainder, ("b",))

    def testLastOccurrenceWins(self):
        parser = build((OptionDescriptor("level", "--level", type=int),))
        self.assertEqual(parser.parse(["--level", "1", "--level", "3"]).command.level, 3)

    def testMissingValue(self):
        parser = build((OptionDescriptor("file", ("--file", "-f")),))
        with self.assertRaises(MissingValueError) as context:
            parser.parse(["-f"])
        self.assertIn("requires an argument", str(context.exception))
        self.assertEqual(str(context.exception), "Option --file requires an argument")
        self.assertEqual(context.exception.code, FaultCode.MISSING_VALUE)

    def testUnknownOption(self):
        parser = build((OptionDescriptor("file", "--file"),))
        with self.assertRaises(UnknownOptionError) as context:
            parser.parse(["--bogus"])
        self.assertEqual(str(context.exception), "Unknown option: --bogus")
        self.assertEqual(context.exception.options["input"], "--bogus")

    def testAliasesMatchExactly(self):
        parser = build((OptionDescriptor("verbose", "--verbose", type=bool),))
        for token in ("--verb", "--verbose=true", "--VERBOSE"):
            with self.subTest(token=token), self.assertRaises(UnknownOptionError):
                parser.parse([token])

    def testLoneDashesAreUnknownOptions(self):
        parser = build()
        for token in ("-", "--"):
            with self.subTest(token=token), self.assertRaises(UnknownOptionError):
                parser.parse([token])

    def testFirstDeclaredOptionWinsOnSharedAlias(self):
        with self.assertWarns(Warning):
            parser = build((
                OptionDescriptor("first", "-x", type=bool),
                OptionDescriptor("second", "-x", type=bool),
            ))
        command = parser.parse(["-x"]).command
        self.assertIs(command.first, True)
        self.assertIs(command.second, False)

    def testFlagOnNonBooleanAssignsTrue(self):
        with self.assertWarns(Warning):
            parser = build((OptionDescriptor("level", "--level", type=int, arity="0"),))
        self.assertIs(parser.parse(["--level"]).command.level, True)

    def testAllFaultsAreParseErrors(self):
        for fault in (MissingValueError, ConversionFailedError, UnknownOptionError, MissingRequiredError):
            with self.subTest(fault=fault.__name__):
                self.assertTrue(issubclass(fault, ParseError))


class TestParameters(TestCase):
    """Positional binding and remainder."""

    def testPositionalOverflowGoesToRemainder(self):
        parser = build((), (ParameterDescriptor("param0", 0),))
        result = parser.parse(["a", "b", "c"])
        self.assertEqual(result.command.param0, "a")
        self.assertEqual(result.remainder, ("b", "c"))

    def testBindingFollowsIndexNotDeclarationOrder(self):
        parser = build((), (ParameterDescriptor("target", 1), ParameterDescriptor("source", 0)))
        command = parser.parse(["from", "to"]).command
        self.assertEqual(command.source, "from")
        self.assertEqual(command.target, "to")

    def testOptionsDoNotCountAsPositions(self):
        parser = build(
            (OptionDescriptor("mode", "--mode"), OptionDescriptor("force", "-f", type=bool)),
            (ParameterDescriptor("source", 0), ParameterDescriptor("target", 1)),
        )
        result = parser.parse(["-f", "a", "--mode", "fast", "b", "c"])
        self.assertEqual(result.command.source, "a")
        self.assertEqual(result.command.target, "b")
        self.assertEqual(result.command.mode, "fast")
        self.assertEqual(result.remainder, ("c",))

    def testGapPositionsGoToRemainder(self):
        with self.assertWarns(Warning):
            parser = build((), (ParameterDescriptor("second", 1),))
        result = parser.parse(["a", "b"])
        self.assertEqual(result.command.second, "b")
        self.assertEqual(result.remainder, ("a",))

    def testParameterConversion(self):
        parser = build((), (ParameterDescriptor("count", 0, type=TargetType.INT64),))
        self.assertEqual(parser.parse(["12"]).command.count, 12)

    def testNegativeNumberIsNotAPositional(self):
        parser = build((), (ParameterDescriptor("count", 0, type=int),))
        with self.assertRaises(UnknownOptionError):
            parser.parse(["-5"])


class TestRequired(TestCase):
    """Required-field validation after the token loop."""

    def testRequiredStringOptionAbsent(self):
        parser = build((OptionDescriptor("file", "-f", required=True),))
        with self.assertRaises(MissingRequiredError) as context:
            parser.parse([])
        self.assertEqual(str(context.exception), "Required option not provided: -f")

    def testRequiredPrimitiveOptionAbsentSucceeds(self):
        parser = build((OptionDescriptor("count", "-n", required=True, type=TargetType.INT32),))
        self.assertEqual(parser.parse([]).command.count, 0)

    def testRequiredParameterAbsent(self):
        parser = build((), (ParameterDescriptor("source", 0),))
        with self.assertRaises(MissingRequiredError) as context:
            parser.parse([])
        self.assertEqual(str(context.exception), "Required parameter not provided: source")

    def testOptionalParameterAbsent(self):
        parser = build((), (ParameterDescriptor("source", 0, required=False),))
        self.assertIsNone(parser.parse([]).command.source)

    def testOptionsAreValidatedBeforeParameters(self):
        parser = build(
            (OptionDescriptor("host", "--host", required=True),),
            (ParameterDescriptor("action", 0),),
        )
        with self.assertRaises(MissingRequiredError) as context:
            parser.parse([])
        self.assertEqual(str(context.exception), "Required option not provided: --host")

    def testRequiredCustomTypeWithConverter(self):
        parser = build((OptionDescriptor("items", "--items", required=True, type=list, converter=lambda raw: raw.split(",")),))
        self.assertEqual(parser.parse(["--items", "a,b"]).command.items, ["a", "b"])
        with self.assertRaises(MissingRequiredError):
            parser.parse([])


class Positive(Converter):
    def convert(self, raw, /):
        value = int(raw)
        if value <= 0:
            raise ConversionError("must be positive")
        return value


class TestConversionFailures(TestCase):
    """Conversion failures are reported as ConversionFailedError."""

    def testBuiltinOptionConversionNamesTheOption(self):
        parser = build((OptionDescriptor("port", ("--port", "-p"), type=int),))
        with self.assertRaises(ConversionFailedError) as context:
            parser.parse(["-p", "abc"])
        self.assertEqual(str(context.exception), "Failed to convert option --port: invalid int32 value: 'abc'")
        self.assertIsInstance(context.exception.__cause__, ConversionError)

    def testCustomConverterFailureNamesTheOption(self):
        parser = build((OptionDescriptor("count", "--count", type=int, converter=Positive),))
        self.assertEqual(parser.parse(["--count", "3"]).command.count, 3)
        with self.assertRaises(ConversionFailedError) as context:
            parser.parse(["--count", "-3"])
        self.assertEqual(str(context.exception), "Failed to convert option --count: must be positive")

    def testCustomConverterReplacesBuiltin(self):
        parser = build((OptionDescriptor("name", "--name", converter=str.upper),))
        self.assertEqual(parser.parse(["--name", "ada"]).command.name, "ADA")

    def testArbitraryExceptionsAreWrapped(self):
        parser = build((OptionDescriptor("count", "--count", converter=int),))
        with self.assertRaises(ConversionFailedError) as context:
            parser.parse(["--count", "x"])
        self.assertIsInstance(context.exception.__cause__, ValueError)

    def testParameterConversionNamesTheField(self):
        parser = build((), (ParameterDescriptor("count", 0, type=int),))
        with self.assertRaises(ConversionFailedError) as context:
            parser.parse(["many"])
        self.assertEqual(str(context.exception), "Failed to convert parameter count: invalid int32 value: 'many'")


@dataclass(frozen=True)
class Frozen:
    host: str
    port: int = 0


Pair = namedtuple("Pair", ("host", "port"))


class Plain:
    created = 0

    def __init__(self):
        type(self).created += 1


HOST_PORT = (
    OptionDescriptor("host", "--host", required=True),
    OptionDescriptor("port", "--port", type=int),
)


class TestTargets(TestCase):
    """Command value shapes."""

    def testNamespaceByDefault(self):
        result = build(HOST_PORT).parse(["--host", "h"])
        self.assertIsInstance(result, ParseResult)
        self.assertEqual(result.command, SimpleNamespace(host="h", port=0))

    def testDataclassTarget(self):
        result = build(HOST_PORT, target=Frozen).parse(["--host", "h", "--port", "80"])
        self.assertEqual(result.command, Frozen("h", 80))

    def testNamedTupleTarget(self):
        result = build(HOST_PORT, target=Pair).parse(["--host", "h"])
        self.assertEqual(result.command, Pair("h", 0))

    def testPlainClassIsPopulatedInPlace(self):
        Plain.created = 0
        command = build(HOST_PORT, target=Plain).parse(["--host", "h"]).command
        self.assertIsInstance(command, Plain)
        self.assertEqual((command.host, command.port), ("h", 0))
        self.assertEqual(Plain.created, 1)

    def testFailureNeverBuildsACommand(self):
        Plain.created = 0
        parser = build(HOST_PORT, target=Plain)
        with self.assertRaises(UnknownOptionError):
            parser.parse(["--host", "h", "--bogus"])
        with self.assertRaises(MissingRequiredError):
            parser.parse(["--port", "1"])
        self.assertEqual(Plain.created, 0)

    def testMismatchedAggregateTargetIsRejected(self):
        with self.assertRaises(TypeError):
            build((OptionDescriptor("user", "--user"),), target=Frozen)
        with self.assertRaises(TypeError):
            build((OptionDescriptor("port", "--port", type=int),), target=Frozen)

    def testInPlaceTargetMustBuildWithoutArguments(self):
        class Configured:
            def __init__(self, path):
                self.path = path

        with self.assertRaises(TypeError):
            build(HOST_PORT, target=Configured)


class TestCompilation(TestCase):
    """Generated routine and compiled parser surface."""

    def setUp(self):
        self.descriptor = CommandDescriptor(
            "copy-files",
            (OptionDescriptor("force", ("-x", "--force"), type=bool, description="Overwrite"),),
            (ParameterDescriptor("source", 0, description="First"), ParameterDescriptor("target", 1, description="Second")),
            description="Copy files",
        )

    def testCompiledParserSurface(self):
        parser = compile_parser(self.descriptor)
        self.assertIsInstance(parser, CompiledParser)
        self.assertIs(parser.descriptor, self.descriptor)
        self.assertEqual(parser.name, "copy-files")
        self.assertIn("def parse(tokens, /):", parser.source)
        self.assertIn("('-x', '--force')", parser.source)

    def testIdempotentCompilation(self):
        first = compile_parser(self.descriptor)
        second = compile_parser(self.descriptor)
        self.assertEqual(first.source, second.source)
        self.assertEqual(first.help_text(), second.help_text())
        for tokens in (["a", "b"], ["-x", "a", "b", "c"], ["--force"], ["--nope"]):
            with self.subTest(tokens=tokens):
                self.assertEqual(self._parse_outcome(first, tokens), self._parse_outcome(second, tokens))

    def testHelpTextIsStable(self):
        parser = compile_parser(self.descriptor)
        self.assertEqual(parser.help_text(), parser.help_text())
        self.assertIs(parser.help_text(), parser.help_text())

    def testTokensMustBeStrings(self):
        parser = compile_parser(self.descriptor)
        with self.assertRaises(TypeError):
            parser.parse("a b")
        with self.assertRaises(TypeError):
            parser.parse(["a", 1])
        with self.assertRaises(TypeError):
            parser.parse(None)

    def testAcceptsAnyIterable(self):
        parser = compile_parser(self.descriptor)
        result = parser.parse(iter(["a", "b"]))
        self.assertEqual((result.command.source, result.command.target), ("a", "b"))

    def testRejectsNonDescriptors(self):
        with self.assertRaises(TypeError):
            compile_parser({"name": "tool"})

    @staticmethod
    def _parse_outcome(parser, tokens):
        try:
            return parser.parse(tokens)
        except ParseError as fault:
            return type(fault), str(fault)


if __name__ == "__main__":
    unittest.main()
