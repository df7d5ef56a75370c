"""
Sextant type converters and the converter registry.

Overview
- Converter: a named pair of pure functions, parse(text) -> value and
  format(value) -> text, plus the traits the resolver reads:
  • numeric: the converter accepts negative numbers ("-5"), which lets the
    token classifier read such strings as values instead of short flags.
  • gather: how the values of a multi-valued argument are collected
    (tuple by default; dict for key=value pairs).
  • merge: gather also wraps the value of a single-valued argument, so a
    lone key=value pair still resolves to a dict.
- ConverterRegistry: mapping from type tag to Converter. Commands resolve the
  declared type of every argument through a registry when they are built, so
  an unknown tag is a construction error, never a resolution one.
- default_registry: the default registry, holding "str", "int", "float", "bool"
  and "path". Commands inherit their parent's registry and use this one at
  the root unless told otherwise.
- choice(), intrange(), keyvalue(): factories for parameterized converters.

Contract
- Converters never perform I/O and never keep state between calls.
- Parse failures surface as ConversionError (a ValueError), whatever the
  parse function raised internally (ValueError or TypeError).
"""
import enum
import functools
import operator
import pathlib
from collections.abc import Mapping
from types import MappingProxyType

from .utils import *


class ConversionError(ValueError):
    """
    Raised when a converter cannot parse a piece of text.

    Attributes
    - text: the offending input.
    - converter: name of the converter that rejected it.
    - reason: short lowercase explanation from the parse function.
    """

    def __init__(self, text, converter, reason, /):
        super().__init__(f"invalid {converter} value {text!r}: {reason}")
        self.text = text
        self.converter = converter
        self.reason = reason


class Converter:
    """
    Named parse/format pair.

    Instances are callable: converter(text) parses, converter.format(value)
    renders a value back to text so that converter(converter.format(v)) == v.
    """

    __introspectable__ = (
        "name",
        "numeric",
        "gather",
        "merge",
    )

    name = mirror("name")
    numeric = mirror("numeric")
    gather = mirror("gather")
    merge = mirror("merge")

    def __init__(self, name, parse, /, format=str, *, numeric=False, gather=tuple, merge=False):
        if not isinstance(name, str):
            raise TypeError("converter 'name' must be a string")
        elif not (name := name.strip()):
            raise ValueError("converter 'name' cannot be empty")
        if not callable(parse):
            raise TypeError("converter 'parse' must be callable")
        if not callable(format):
            raise TypeError("converter 'format' must be callable")
        if not callable(gather):
            raise TypeError("converter 'gather' must be callable")
        self._name = name
        self._parse = parse
        self._format = format
        self._numeric = bool(numeric)
        self._gather = gather
        self._merge = bool(merge)

    def __call__(self, text, /):
        try:
            return self._parse(text)
        except ConversionError:
            raise
        except (ValueError, TypeError) as error:
            raise ConversionError(text, self._name, str(error) or "malformed value") from error

    def format(self, value, /):
        return self._format(value)

    def __repr__(self):
        return f"converter({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"

    def __rich_repr__(self):
        for name in self.__introspectable__:
            yield name, getattr(self, name)


class ConverterRegistry(Mapping):
    """
    Mapping of type tag -> Converter.

    Usage
        registry = ConverterRegistry(default_registry)  # inherit the built-ins

        @registry.register("upper")
        def upper(text):
            return text.upper()

        registry.resolve("upper")       # -> Converter(name='upper', ...)
        registry.resolve(int)           # -> the "int" converter

    Registration happens while building; resolution only ever reads.
    """

    # Python types accepted as shorthands for their registered tag.
    aliases = MappingProxyType({
        str: "str",
        int: "int",
        float: "float",
        bool: "bool",
        pathlib.Path: "path",
        pathlib.PurePath: "path",
    })

    def __init__(self, *bases):
        self._converters = {}
        for base in bases:
            if not isinstance(base, ConverterRegistry):
                raise TypeError("converter registry bases must be converter registries")
            self._converters.update(base._converters)

    def __getitem__(self, name):
        return self._converters[name]

    def __iter__(self):
        return iter(self._converters)

    def __len__(self):
        return len(self._converters)

    def register(self, name, parse=Unset, /, format=str, *, numeric=False, gather=tuple, merge=False):
        """
        Register a converter under *name*.

        Forms
        - register(name, parse, format=..., numeric=..., gather=..., merge=...) -> Converter
        - @register(name, format=..., ...) on the parse function -> Converter
        - register(converter) to add a prebuilt Converter under its own name.

        Raises
        - ValueError if the name is already registered.
        """
        if isinstance(name, Converter):
            converter = name
            if converter.name in self._converters:
                raise ValueError(f"converter {converter.name!r} is already registered")
            self._converters[converter.name] = converter
            return converter

        if parse is Unset:
            @rename("register")
            def wrapper(parse, /):
                return self.register(name, parse, format, numeric=numeric, gather=gather, merge=merge)
            return wrapper

        return self.register(Converter(name, parse, format, numeric=numeric, gather=gather, merge=merge))

    def resolve(self, type, /):
        """
        Return the Converter for a declared argument type.

        Accepts a Converter (returned as-is), a registered tag, or one of the
        Python types listed in ConverterRegistry.aliases.

        Raises
        - ValueError for unregistered tags and types.
        - TypeError for anything else.
        """
        if isinstance(type, Converter):
            return type
        if not isinstance(type, str):
            try:
                type = self.aliases[type]
            except (KeyError, TypeError):
                raise TypeError(f"unsupported converter type {type!r}") from None
        try:
            return self._converters[type]
        except KeyError:
            raise ValueError(f"unregistered converter type {type!r}") from None

    def __repr__(self):
        return f"converter-registry({', '.join(map(repr, self._converters))})"


_TRUTHY = frozenset({"true", "yes", "on", "1"})
_FALSY = frozenset({"false", "no", "off", "0"})


def _parse_bool(text):
    if (lowered := text.strip().lower()) in _TRUTHY:
        return True
    elif lowered in _FALSY:
        return False
    raise ValueError("expected one of true/false, yes/no, on/off or 1/0")


def _format_bool(value):
    return "true" if value else "false"


def choice(*values, name=Unset):
    """
    Build a converter restricted to a fixed set of values.

    - choice("fast", "safe"): case-insensitive match, returns the declared spelling.
    - choice(SomeEnum): case-insensitive match on member names, returns the member.
    """
    if len(values) == 1 and isinstance(values[0], enum.EnumMeta):
        members = {member.name.lower(): member for member in values[0]}
        label = coalesce(name, values[0].__name__.lower())

        def format(value):
            return value.name
    else:
        if not values:
            raise TypeError("choice() requires at least one value")
        if not all(isinstance(value, str) for value in values):
            raise TypeError("choice() values must be strings or a single enumeration")
        members = {}
        for value in values:
            if value.lower() in members:
                raise ValueError(f"choice() value {value!r} is duplicated")
            members[value.lower()] = value
        label = coalesce(name, "choice")
        format = str

    def parse(text):
        try:
            return members[text.lower()]
        except KeyError:
            raise ValueError(f"expected one of {', '.join(map(repr, map(format, members.values())))}") from None

    return Converter(label, parse, format)


def intrange(low, high, /, *, name=Unset):
    """
    Build an integer converter accepting values in the inclusive range [low, high].
    """
    if not isinstance(low, int) or not isinstance(high, int):
        raise TypeError("intrange() bounds must be integers")
    if low > high:
        raise ValueError("intrange() lower bound cannot exceed the upper bound")

    def parse(text):
        if not low <= (value := int(text)) <= high:
            raise ValueError(f"expected a value between {low} and {high}")
        return value

    return Converter(coalesce(name, f"int[{low}..{high}]"), parse, str, numeric=True)


def keyvalue(inner="str", /, *, registry=Unset, name=Unset):
    """
    Build a converter for "key=value" pairs, gathered into a dict.

    Each value is parsed into a (key, inner(value)) pair; empty keys and
    missing "=" are rejected. Arguments using it collect their pairs into a
    dict (later keys win); a single-valued argument resolves to a dict with
    one entry.
    """
    inner = coalesce(registry, default_registry).resolve(inner)

    def parse(text):
        key, separator, value = text.partition("=")
        if not separator:
            raise ValueError("expected a key=value pair")
        if not (key := key.strip()):
            raise ValueError("key cannot be empty")
        return key, inner(value)

    def format(pair):
        return f"{pair[0]}={inner.format(pair[1])}"

    return Converter(coalesce(name, f"key={inner.name}"), parse, format, gather=dict, merge=True)


default_registry = ConverterRegistry()
"""
Default registry shared by every command that does not declare its own.
"""
default_registry.register("str", str)
default_registry.register("int", int, numeric=True)
default_registry.register("float", float, repr, numeric=True)
default_registry.register("bool", _parse_bool, _format_bool)
default_registry.register("path", pathlib.Path)


__all__ = (
    # Public API surface for consumers of sextant.converters.

    # Classes
    "Converter",
    "ConverterRegistry",
    "ConversionError",

    # Factories
    "choice",
    "intrange",
    "keyvalue",

    # Constants
    "default_registry",
)
