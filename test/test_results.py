"""
Results module behavioral tests (lookups, presence, failure, dispatch).

Scope
- Validate ParsedCommand lookups: item access, routes, presence vs definition,
  namespaces and frozen views.
- Validate Resolution helpers: path/leaf, first, grouped, check.
- Validate dispatch: argument callbacks in order, then the deepest command;
  a given unique argument runs alone.

Conventions
- Test method names follow CamelCase per project convention.
- Trees are small and rebuilt per test.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from sextant import (
    Cardinal,
    Command,
    Flag,
    Option,
    ResolutionFailure,
    Unset,
    flag,
    option,
)


def tree():
    root = Command("root", Flag("-v", "--verbose"))
    root.command("build", Option("-o", "--opt", type=int, nargs="?"), Cardinal("PATH"))
    root.command("clean")
    return root


class TestParsedCommand(TestCase):
    """Lookups on result nodes."""

    def setUp(self):
        self.result = tree().resolve(["-v", "build", "src"])

    def testItemAccess(self):
        leaf = self.result.leaf
        self.assertEqual(leaf["path"], "src")
        self.assertIs(leaf["opt"], Unset)
        with self.assertRaises(KeyError):
            leaf["nope"]

    def testRoutes(self):
        self.assertIs(self.result.get("verbose"), True)
        self.assertEqual(self.result.get("build.path"), "src")
        self.assertIsNone(self.result.get("build.opt"))
        self.assertEqual(self.result.get("build.opt", 7), 7)
        self.assertEqual(self.result.get("clean.anything", "fallback"), "fallback")
        self.assertEqual(self.result.get("build/path", sep="/"), "src")
        with self.assertRaises(KeyError):
            self.result.get("build.nope")

    def testPresenceAndDefinition(self):
        root = self.result.root
        self.assertIn("verbose", root)
        self.assertEqual(root.present, frozenset({"verbose"}))
        leaf = self.result.leaf
        self.assertNotIn("opt", leaf)
        self.assertFalse(leaf.defined("opt"))
        self.assertTrue(leaf.defined("path"))

    def testNamespaceAndIteration(self):
        self.assertEqual(self.result.leaf.namespace(), {"opt": None, "path": "src"})
        self.assertEqual(list(self.result.leaf), ["opt", "path"])

    def testValuesAreReadOnly(self):
        with self.assertRaises(TypeError):
            self.result.leaf.values["path"] = "other"

    def testTreeLinks(self):
        root, leaf = self.result.path
        self.assertIs(leaf.parent, root)
        self.assertIs(root.parent, Unset)
        self.assertIs(root.child("build"), leaf)
        self.assertIsNone(root.child("clean"))
        self.assertEqual(leaf.name, "build")

    def testRepr(self):
        self.assertTrue(repr(self.result.leaf).startswith("parsed-command(name='build'"))
        self.assertTrue(repr(self.result).startswith("resolution(root=parsed-command("))


class TestResolution(TestCase):
    """Resolution-level helpers."""

    def testPathStopsAtRoot(self):
        result = tree().resolve([])
        self.assertEqual(len(result.path), 1)
        self.assertIs(result.leaf, result.root)

    def testFirstAndOk(self):
        ok = tree().resolve(["clean"])
        self.assertTrue(ok.ok)
        self.assertIsNone(ok.first())

        failed = tree().resolve(["build"])
        self.assertFalse(failed.ok)
        self.assertEqual(failed.first().kind, "MissingRequiredArgument")

    def testGroupedByCommand(self):
        root = Command("root", Option("--config", required=True))
        build = root.command("build", Cardinal("PATH"))
        grouped = root.resolve(["build"]).grouped()
        self.assertEqual(list(grouped), [root, build])
        self.assertEqual([fault.key for fault in grouped[build]], ["path"])

    def testNodeFaultsAreLocal(self):
        result = tree().resolve(["build", "src", "extra"])
        self.assertTrue(result.root.ok)
        self.assertFalse(result.leaf.ok)

    def testCheckReturnsSelf(self):
        result = tree().resolve(["clean"])
        self.assertIs(result.check(), result)

    def testCheckRaisesEveryFault(self):
        result = tree().resolve(["build", "-o", "x"])
        with self.assertRaises(ResolutionFailure) as context:
            result.check()
        self.assertEqual(context.exception.exceptions, result.faults)
        self.assertEqual(context.exception.options["command"].name, "root")


class TestDispatch(TestCase):
    """Callbacks after a successful resolution."""

    def testDeclarativeCallbackReceivesKeywords(self):
        received = {}
        root = Command("root")
        root.command("build", Option("--opt", type=int), Cardinal("PATH"), callback=lambda **values: received.update(values))
        root.resolve(["build", "src"]).dispatch()
        self.assertEqual(received, {"opt": None, "path": "src"})

    def testSignatureCallbackReceivesCardinalsPositionally(self):
        root = Command("root")

        @root.command
        def build(path=Cardinal("PATH"), /, level=Option("--level", type=int, default=1), *, dry=Flag("-n")):
            return path, level, dry

        self.assertEqual(root.resolve(["build", "src", "-n"]).dispatch(), ("src", 1, True))

    def testArgumentCallbacksRunFirstInOrder(self):
        calls = []

        @flag("-v", counter=True)
        def verbose(count):
            calls.append(("verbose", count))

        @option("--name")
        def name(value):
            calls.append(("name", value))

        root = Command("root", verbose, callback=lambda **values: calls.append(("root", values)))
        root.command("run", name, Flag("--quiet"), callback=lambda **values: calls.append(("run", values)))

        root.resolve(["-vv", "run", "--name", "x"]).dispatch()
        self.assertEqual(calls, [("verbose", 2), ("name", "x"), ("run", {"name": "x", "quiet": False})])

    def testAbsentArgumentsSkipCallbacks(self):
        calls = []
        root = Command("root", Option("--name", callback=calls.append))
        root.resolve([]).dispatch()
        self.assertEqual(calls, [])

    def testNoCallbackReturnsNone(self):
        self.assertIsNone(tree().resolve(["clean"]).dispatch())

    def testFaultsPreventDispatch(self):
        calls = []
        root = Command("root", Cardinal("PATH"), callback=lambda **values: calls.append(values))
        with self.assertRaises(ResolutionFailure):
            root.resolve([]).dispatch()
        self.assertEqual(calls, [])

    def testUniqueArgumentRunsAlone(self):
        calls = []
        root = Command(
            "root",
            Flag("-v", callback=lambda: calls.append("verbose")),
            Flag("-h", "--help", unique=True, callback=lambda: calls.append("help")),
            Cardinal("PATH"),
            callback=lambda **values: calls.append("root"),
        )
        self.assertIsNone(root.resolve(["-v", "--help"]).dispatch())
        self.assertEqual(calls, ["help"])

    def testUniqueInChildSilencesParentArguments(self):
        calls = []
        root = Command("root", Flag("-v", callback=lambda: calls.append("verbose")))
        root.command("build", Flag("--help", unique=True, callback=lambda: calls.append("help")), Cardinal("PATH"))
        root.resolve(["-v", "build", "--help"]).dispatch()
        self.assertEqual(calls, ["help"])


if __name__ == "__main__":
    unittest.main()
