"""
Faults module behavioral tests (messages, codes, rendering, logging).

Scope
- Validate stable fault codes and host relabeling through __codes__.
- Validate position-first messages, hints and copy.replace support.
- Validate rich rendering of single faults and of ResolutionFailure.
- Validate Resolution.report() and the structured debug events.

Conventions
- Test method names follow CamelCase per project convention.
- Rendering is captured with color disabled for deterministic comparison.
- Host hooks are patched on the running __main__ module.
"""

from __future__ import annotations

import copy
import sys
import unittest
from unittest import TestCase, mock

from rich.console import Console

from sextant import (
    Cardinal,
    Command,
    FaultCode,
    Flag,
    MissingRequiredArgumentError,
    ResolutionFailure,
    TooFewValuesError,
    UnknownFlagError,
    getdoc,
)


def render(renderable):
    console = Console(color_system=None, force_terminal=False, width=100)
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


def host(**hooks):
    return mock.patch.multiple(sys.modules["__main__"], create=True, **hooks)


class TestCodes(TestCase):
    """Stable identifiers."""

    def testValues(self):
        self.assertEqual(UnknownFlagError.code, FaultCode.UNKNOWN_FLAG)
        self.assertEqual(int(FaultCode.UNKNOWN_FLAG), 11112)
        self.assertEqual(int(FaultCode.MISSING_REQUIRED_ARGUMENT), 11125)
        self.assertEqual(len(set(FaultCode)), 9)

    def testNormalizeDefaultsToNumber(self):
        self.assertEqual(FaultCode.UNKNOWN_FLAG.normalize(), "11112")

    def testNormalizeUsesHostCodes(self):
        with host(__codes__={FaultCode.UNKNOWN_FLAG: "E-FLAG"}):
            self.assertEqual(FaultCode.UNKNOWN_FLAG.normalize(), "E-FLAG")
            self.assertEqual(FaultCode.UNEXPECTED_TOKEN.normalize(), "11141")

    def testGetdoc(self):
        self.assertIsNone(getdoc(FaultCode.UNKNOWN_FLAG))
        with host(__docs__={FaultCode.UNKNOWN_FLAG: "flags must be declared"}):
            self.assertEqual(getdoc(FaultCode.UNKNOWN_FLAG), "flags must be declared")
        with self.assertRaises(TypeError):
            getdoc(11112)


class TestMessages(TestCase):
    """Templates, positions and hints."""

    def testPositionFirstMessage(self):
        fault = UnknownFlagError(index=2, token="--x")
        self.assertEqual(str(fault), "unknown option or flag '--x' at third position")
        self.assertEqual(fault.parameters["position"], "third")
        self.assertEqual(fault.index, 2)

    def testNoPositionWithoutIndex(self):
        fault = MissingRequiredArgumentError(label="PATH", key="path")
        self.assertNotIn("position", fault.parameters)
        self.assertEqual(fault.suggestion, "provide PATH")
        self.assertEqual(fault.key, "path")

    def testCountsInMessage(self):
        fault = TooFewValuesError(index=0, token="-o", label="--opt", expected=2, given=1)
        self.assertEqual(str(fault), "--opt expects at least 2 value(s) but got 1 at first position")
        self.assertEqual(fault.suggestion, "provide at least 2 value(s) after --opt")

    def testExplicitMessage(self):
        self.assertEqual(str(UnknownFlagError("nope", index=0, token="-x")), "nope")

    def testReplace(self):
        fault = UnknownFlagError(index=2, token="--x")
        moved = copy.replace(fault, index=9)
        self.assertIsInstance(moved, UnknownFlagError)
        self.assertEqual(str(moved), "unknown option or flag '--x' at tenth position")
        self.assertEqual(fault.index, 2)

    def testReprNamesKind(self):
        self.assertEqual(
            repr(UnknownFlagError(index=0, token="-x")),
            "UnknownFlagError(\"unknown option or flag '-x' at first position\", index=0)",
        )


class TestRendering(TestCase):
    """Rich rendering of faults."""

    def setUp(self):
        self.tool = Command("tool", Flag("-v"))
        self.fault = UnknownFlagError(index=0, token="--x", command=self.tool)

    def testPlainRendering(self):
        lines = render(self.fault).splitlines()
        self.assertEqual(lines[0], "[ tool - 11112 | Unknown Flag ]")
        self.assertEqual(lines[1], "unknown option or flag '--x' at first position")
        self.assertIn("check the spelling", lines[2])

    def testHostHooks(self):
        with host(__prog__="mytool", __codes__={FaultCode.UNKNOWN_FLAG: "E-FLAG"}):
            output = render(self.fault)
        self.assertTrue(output.startswith("[ mytool - E-FLAG | Unknown Flag ]"))

    def testProgramNameFromRoot(self):
        build = self.tool.command("build")
        output = render(MissingRequiredArgumentError(label="PATH", command=build))
        self.assertTrue(output.startswith("[ tool - 11125 | Missing Argument ]"))

    def testFancyPanel(self):
        output = render(copy.replace(self.fault, fancy=True))
        self.assertIn("Unknown Flag", output)
        self.assertIn("unknown option or flag '--x'", output)

    def testFailureRendering(self):
        result = Command("root", Cardinal("PATH")).resolve(["--x"])
        failure = ResolutionFailure(result.faults, command=result.root.command)
        output = render(failure)
        self.assertTrue(output.startswith("[ root - Resolution Failed ]"))
        self.assertIn("unknown option or flag '--x'", output)
        self.assertIn("missing required argument PATH", output)

    def testFailureSplitKeepsOptions(self):
        result = Command("root", Cardinal("PATH")).resolve(["--x"])
        failure = ResolutionFailure(result.faults, command=result.root.command)
        flags, rest = failure.split(UnknownFlagError)
        self.assertIsInstance(flags, ResolutionFailure)
        self.assertIs(flags.options["command"], result.root.command)
        self.assertEqual(len(rest.exceptions), 1)


class TestReport(TestCase):
    """Resolution.report() picks what to render."""

    def capture(self, result, **options):
        console = Console(color_system=None, force_terminal=False, width=100)
        with console.capture() as capture:
            result.report(console, **options)
        return capture.get()

    def testNothingWhenOk(self):
        self.assertEqual(self.capture(Command("root").resolve([])), "")

    def testSingleFault(self):
        output = self.capture(Command("root").resolve(["--x"]))
        self.assertTrue(output.startswith("[ root - 11112 | Unknown Flag ]"))

    def testManyFaults(self):
        result = Command("root", Cardinal("PATH")).resolve(["--x"])
        self.assertTrue(self.capture(result).startswith("[ root - Resolution Failed ]"))
        self.assertTrue(self.capture(result, first=True).startswith("[ root - 11112 | Unknown Flag ]"))


class TestLogging(TestCase):
    """Structured debug events."""

    def testResolutionEvents(self):
        root = Command("root")
        root.command("build", Cardinal("PATH"))
        with self.assertLogs("sextant", level="DEBUG") as logs:
            root.resolve(["build", "src", "extra"])
        output = "\n".join(logs.output)
        for event in ("command_entered", "value_assigned", "fault_recorded", "resolution_finished"):
            with self.subTest(event=event):
                self.assertIn(f"event='{event}'", output)
        self.assertIn("code=11141", output)

    def testDispatchEvent(self):
        root = Command("root", callback=lambda **values: None)
        with self.assertLogs("sextant", level="DEBUG") as logs:
            root.resolve([]).dispatch()
        self.assertTrue(any("event='command_dispatched'" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
