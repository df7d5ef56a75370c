"""
Converters module behavioral tests (built-ins, factories, registry).

Scope
- Validate built-in converters and their parse/format round-trips.
- Validate parameterized factories: choice, intrange, keyvalue.
- Validate ConverterRegistry registration, inheritance and type resolution.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import enum
import pathlib
import unittest
from unittest import TestCase

from sextant import (
    ConversionError,
    Converter,
    ConverterRegistry,
    choice,
    default_registry,
    intrange,
    keyvalue,
)


class Color(enum.Enum):
    RED = 1
    GREEN = 2


class TestBuiltins(TestCase):
    """Behavioral tests for the default registry."""

    def testRegisteredTags(self):
        self.assertEqual(set(default_registry), {"str", "int", "float", "bool", "path"})

    def testRoundTrip(self):
        samples = {
            "str": ["hello", "", "-dash"],
            "int": [0, 42, -7],
            "float": [1.5, -0.25, 1e-9],
            "bool": [True, False],
            "path": [pathlib.Path("src/main.py")],
        }
        for tag, values in samples.items():
            converter = default_registry[tag]
            for value in values:
                with self.subTest(tag=tag, value=value):
                    self.assertEqual(converter(converter.format(value)), value)

    def testBoolSpellings(self):
        for text in ("true", "YES", "on", "1"):
            self.assertIs(default_registry["bool"](text), True)
        for text in ("false", "No", "off", "0"):
            self.assertIs(default_registry["bool"](text), False)

    def testNumericTraits(self):
        self.assertTrue(default_registry["int"].numeric)
        self.assertTrue(default_registry["float"].numeric)
        self.assertFalse(default_registry["str"].numeric)
        self.assertFalse(default_registry["bool"].numeric)

    def testFailureBecomesConversionError(self):
        with self.assertRaises(ConversionError) as context:
            default_registry["int"]("x")
        self.assertEqual(context.exception.converter, "int")
        self.assertEqual(context.exception.text, "x")
        self.assertIsInstance(context.exception, ValueError)

    def testBoolFailureReason(self):
        with self.assertRaises(ConversionError) as context:
            default_registry["bool"]("maybe")
        self.assertIn("true/false", context.exception.reason)


class TestFactories(TestCase):
    """Behavioral tests for choice, intrange and keyvalue."""

    def testChoiceCaseInsensitive(self):
        mode = choice("fast", "safe")
        self.assertEqual(mode("FAST"), "fast")
        self.assertEqual(mode(mode.format("safe")), "safe")

    def testChoiceRejectsUnknown(self):
        with self.assertRaises(ConversionError) as context:
            choice("fast", "safe")("slow")
        self.assertIn("'fast'", context.exception.reason)

    def testChoiceValidation(self):
        with self.assertRaises(TypeError):
            choice()
        with self.assertRaises(TypeError):
            choice("a", 1)
        with self.assertRaises(ValueError):
            choice("a", "A")

    def testChoiceEnum(self):
        color = choice(Color)
        self.assertIs(color("green"), Color.GREEN)
        self.assertEqual(color.format(Color.RED), "RED")
        self.assertIs(color(color.format(Color.RED)), Color.RED)
        self.assertEqual(color.name, "color")

    def testIntRange(self):
        percent = intrange(0, 100)
        self.assertEqual(percent("42"), 42)
        self.assertTrue(percent.numeric)
        self.assertEqual(percent.name, "int[0..100]")
        with self.assertRaises(ConversionError) as context:
            percent("101")
        self.assertEqual(context.exception.reason, "expected a value between 0 and 100")

    def testIntRangeValidation(self):
        with self.assertRaises(ValueError):
            intrange(5, 1)
        with self.assertRaises(TypeError):
            intrange(0, 1.5)

    def testKeyValue(self):
        pair = keyvalue("int")
        self.assertEqual(pair("jobs=4"), ("jobs", 4))
        self.assertEqual(pair(pair.format(("jobs", 4))), ("jobs", 4))
        self.assertIs(pair.gather, dict)
        self.assertTrue(pair.merge)
        self.assertFalse(default_registry["int"].merge)

    def testKeyValueRejectsMalformed(self):
        pair = keyvalue()
        with self.assertRaises(ConversionError):
            pair("novalue")
        with self.assertRaises(ConversionError):
            pair("=value")

    def testKeyValueInnerFailure(self):
        with self.assertRaises(ConversionError) as context:
            keyvalue("int")("jobs=many")
        self.assertEqual(context.exception.converter, "int")


class TestRegistry(TestCase):
    """Behavioral tests for ConverterRegistry."""

    def testInheritsBases(self):
        registry = ConverterRegistry(default_registry)
        self.assertIs(registry["int"], default_registry["int"])

    def testRegisterDecorator(self):
        registry = ConverterRegistry(default_registry)

        @registry.register("upper")
        def upper(text):
            return text.upper()

        self.assertIsInstance(upper, Converter)
        self.assertEqual(registry.resolve("upper")("abc"), "ABC")
        self.assertNotIn("upper", default_registry)

    def testRegisterPrebuiltConverter(self):
        registry = ConverterRegistry()
        converter = Converter("hex", lambda text: int(text, 16), hex, numeric=True)
        registry.register(converter)
        self.assertIs(registry.resolve("hex"), converter)

    def testDuplicateRegistrationRejected(self):
        registry = ConverterRegistry(default_registry)
        with self.assertRaises(ValueError):
            registry.register("int", int)

    def testResolveAliases(self):
        self.assertIs(default_registry.resolve(int), default_registry["int"])
        self.assertIs(default_registry.resolve(pathlib.Path), default_registry["path"])
        converter = choice("a")
        self.assertIs(default_registry.resolve(converter), converter)

    def testResolveFailures(self):
        with self.assertRaises(ValueError):
            default_registry.resolve("nope")
        with self.assertRaises(TypeError):
            default_registry.resolve(list)
        with self.assertRaises(TypeError):
            default_registry.resolve([])

    def testBasesMustBeRegistries(self):
        with self.assertRaises(TypeError):
            ConverterRegistry({"int": int})

    def testConverterValidation(self):
        with self.assertRaises(TypeError):
            Converter("x", 42)
        with self.assertRaises(ValueError):
            Converter("  ", str)


if __name__ == "__main__":
    unittest.main()
