r"""
Sextant argument specifications and decorators.

Overview
- Specs
  • Cardinal: positional argument; fixed, optional, variadic or forwarding arity.
  • Option: named argument carrying values (e.g., -o/--output).
  • Flag: named, value-less switch (e.g., -v/--verbose); optionally counts
    its occurrences (-vvv -> 3).

- Arity
  • Every spec declares an Arity(min, max) where max=None means unbounded.
    nargs accepts "?", "*", "+", a positive int, an explicit (min, max) pair,
    and, for Cardinal only, Ellipsis: a forwarding argument that captures the
    rest of the raw input verbatim.

- Decorators
  • @cardinal(...), @option(...), @flag(...) build a spec and bind the
    decorated function as its callback. Callbacks run when a successful
    resolution is dispatched and the argument was given on the command line.

- Introspection & representation
  • ArgumentType metaclass provides stable __repr__/__rich_repr__ and exposes
    fields listed in __introspectable__ as read-only properties.

Metadata (sanitized on construction)
- Shared: key (result identifier), descr, hidden, unique (a given unique
  argument waives missing required arguments, like a help switch).
- Named (Option/Flag): names matching r"-[^\W_]|--?[^\W\d_](-?[^\W_]+)*",
  unique within the spec, order preserved.
- Value-bearing (Cardinal/Option): metavar, type (converter tag, Converter or
  Python type; resolved when a command is built), nargs.

Validation highlights
- min <= max, max >= 1 for value-bearing specs.
- A forwarding Cardinal cannot specify a metavar nor a non-string type.
- Option 'const' needs an arity that accepts zero values.
- Counter flags must be repeatable.

Examples
    >>> Cardinal("PATH")
    cardinal(key='path', metavar='PATH', type='str', arity=Arity(min=1, max=1), ...)
    >>> Option("-o", "--opt", type=int, nargs="?")
    option(key='opt', names=('-o', '--opt'), ...)
    >>> @flag("-v", "--verbose")
    ... def on_verbose(): ...

Public API
- Classes: Argument, Cardinal, Option, Flag, Arity
- Decorators: cardinal, option, flag
"""
import builtins
import functools
import operator
import re
from types import EllipsisType
from typing import NamedTuple

from rich.text import Text

from .converters import Converter
from .utils import *

_NAME = re.compile(r"-[^\W_]|--?[^\W\d_](-?[^\W_]+)*")


class Arity(NamedTuple):
    """
    Inclusive (min, max) number of values per occurrence; max=None is unbounded.
    """
    min: int
    max: int | None

    @property
    def unbounded(self):
        return self.max is None

    def admits(self, count, /):
        """
        Return True when *count* more values would still fit under max.
        """
        return self.max is None or count < self.max

    def __str__(self):
        return f"{self.min}..{'*' if self.max is None else self.max}"


class ArgumentType(type):
    """
    Metaclass wiring introspection and representation into argument specs.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens,
      lowercased) and used in messages and representations.
    - Every name listed in __introspectable__ becomes a read-only property that
      mirrors the private "_name" field.
    - __displayable__ (if set) narrows which properties __rich_repr__ yields.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.
            """
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            """
            Yield (name, object) pairs for pretty printers (e.g., rich).
            """
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _keyify(text):
    return text.lstrip("-").replace("-", "_").lower()


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize and validate the fields every spec shares.

    - key: Unset or a Python identifier; it names the argument in results.
    - descr: Unset or a non-empty string/Text; Unset becomes None.
    - hidden: coerced to bool.
    - unique: coerced to bool.
    - callback: Unset or a callable run on dispatch.

    Raises
    - TypeError for wrong types, ValueError for empty or malformed strings.
    """
    if not isinstance(key := metadata["key"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'key' must be a string")
    elif isinstance(key, str) and not key.isidentifier():
        raise ValueError(f"{cls.__typename__} 'key' must be a valid identifier")

    if not isinstance(descr := metadata["descr"], str | Text | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)

    metadata["hidden"] = bool(metadata["hidden"])
    metadata["unique"] = bool(metadata["unique"])

    if not callable(callback := metadata["callback"]) and callback is not Unset:
        raise TypeError(f"{cls.__typename__} 'callback' must be callable")


def _sanitize_named_metadata(cls, metadata, /):
    """
    Internal: validate names of Option/Flag specs and derive their default key.

    Accepted forms: "-x" (any single letter or digit), "-long", "-long-name",
    "--long", "--long-name". Unicode letters are allowed; underscores are not.
    Duplicates are rejected; declaration order is kept.

    The default key is the longest name without dashes, hyphens turned into
    underscores ("--dry-run" -> "dry_run").
    """
    names = []
    if not metadata["names"]:
        raise TypeError(f"{cls.__typename__} must specify at least one name")

    for name in metadata["names"]:
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} names must be strings")
        elif not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} names cannot be empty-strings")
        elif not _NAME.fullmatch(name):
            raise ValueError(f"{cls.__typename__} name {name!r} must be a valid shell-style option name")
        elif name in names:
            raise ValueError(f"{cls.__typename__} names cannot contain duplicates")
        names.append(name)

    metadata["names"] = tuple(names)
    metadata["key"] = coalesce(metadata["key"], _keyify(max(names, key=len)))


def _sanitize_parametric_metadata(cls, metadata, /):
    """
    Internal: validate metavar/type/nargs of value-bearing specs and compute
    their arity.

    nargs
    - Unset: exactly one value.
    - "?" (0, 1), "*" (0, None), "+" (1, None), n >= 1 (n, n).
    - (min, max) tuple: 0 <= min, max None or max >= max(min, 1).
    - Ellipsis (Cardinal only): (0, None) and the spec forwards the raw rest.
    """
    if not isinstance(metavar := metadata["metavar"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'metavar' must be a string")
    elif isinstance(metavar, str) and not (metavar := metavar.strip()):
        raise ValueError(f"{cls.__typename__} 'metavar' cannot be empty")
    metadata["metavar"] = metavar

    if not isinstance(metadata["type"], str | Converter | builtins.type):
        raise TypeError(f"{cls.__typename__} 'type' must be a converter tag, a converter or a type")

    cardinal = issubclass(cls, Cardinal)
    forward = False

    match nargs := metadata.pop("nargs"):
        case UnsetType():
            arity = Arity(1, 1)
        case "?":
            arity = Arity(0, 1)
        case "*":
            arity = Arity(0, None)
        case "+":
            arity = Arity(1, None)
        case str():
            raise ValueError(f"{cls.__typename__} 'nargs' must be one of '?', '+', or '*'")
        case bool():
            raise TypeError(f"{cls.__typename__} 'nargs' must be a string, an integer or a pair")
        case int() if nargs < 1:
            raise ValueError(f"{cls.__typename__} 'nargs' must be a positive integer")
        case int():
            arity = Arity(nargs, nargs)
        case (int() as lower, int() | None as upper) if not isinstance(lower, bool):
            if lower < 0:
                raise ValueError(f"{cls.__typename__} 'nargs' minimum cannot be negative")
            if upper is not None and (upper < lower or upper < 1):
                raise ValueError(f"{cls.__typename__} 'nargs' maximum must be positive and not below the minimum")
            arity = Arity(lower, upper)
        case EllipsisType() if cardinal:
            arity = Arity(0, None)
            forward = True
        case _:
            if not cardinal:
                raise TypeError(f"{cls.__typename__} 'nargs' must be a string, an integer or a pair")
            raise TypeError(f"{cls.__typename__} 'nargs' must be a string, an integer, a pair or ellipsis")

    metadata["arity"] = arity
    metadata["forward"] = forward


class Argument(metaclass=ArgumentType):
    """
    Common base of Cardinal, Option and Flag.

    Every spec answers the same questions so the resolver can treat them
    uniformly: which names select it (none for positionals), how many values
    each occurrence takes (arity), how values are converted (type), what the
    result holds when it is absent (default) and whether absence is an error
    (required).
    """

    __introspectable__ = (
        "key",
        "names",
        "metavar",
        "type",
        "arity",
        "default",
        "const",
        "required",
        "repeatable",
        "forward",
        "counter",
        "descr",
        "hidden",
        "unique",
    )

    _key = Unset
    _names = ()
    _metavar = Unset
    _type = Unset
    _default = Unset
    _const = Unset
    _required = False
    _repeatable = True
    _forward = False
    _counter = False
    _unique = False
    _callback = Unset

    def __new__(cls, *args, **kwargs):
        if cls is Argument:
            raise TypeError("type 'Argument' cannot be instantiated directly")
        return super().__new__(cls)

    def _setup(self, metadata):
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    @property
    def named(self):
        """True for specs selected by name (Option/Flag)."""
        return bool(self._names)

    @property
    def label(self):
        """
        Short human label: the longest name, else the metavar, else the key.
        """
        if self._names:
            return max(self._names, key=len)
        return coalesce(self._metavar, coalesce(self._key, "argument").upper())

    @property
    def callback(self):
        return self._callback

    def __call__(self, value=Unset, /):
        """
        Run the bound callback (no-op when none is bound).

        Plain flags call it without arguments; every other spec passes the
        resolved value.
        """
        if self._callback is Unset:
            return None
        if self._arity.max == 0 and not self._counter:
            return self._callback()
        return self._callback(value)

    def __argument__(self):
        """
        Introspection hook: identify this object as an argument spec.
        """
        return self


class Cardinal(Argument):
    """
    Positional argument specification.

    Values are assigned to cardinals in declaration order. A cardinal is
    required by default when its arity demands at least one value and it has
    no default. Declaring nargs=... turns it into the forwarding argument:
    once reached, it captures this and every remaining raw string verbatim.
    """

    __displayable__ = (
        "key",
        "metavar",
        "type",
        "arity",
        "default",
        "required",
        "forward",
    )

    def __new__(
            cls,
            metavar=Unset,
            /,
            type="str",
            nargs=Unset,
            default=Unset,
            *,
            required=Unset,
            key=Unset,
            descr=Unset,
            hidden=False,
            unique=False,
            callback=Unset
    ):
        """
        Construct a Cardinal spec.

        Parameters
        - metavar: Unset | str
          Display name of the value. When key is Unset, the key derives from it
          ("OUT-DIR" -> "out_dir"). Forbidden for forwarding cardinals.
        - type: converter tag | Converter | type
        - nargs: see module docstring (Ellipsis declares forwarding).
        - default: value used when the cardinal receives nothing.
        - required: Unset derives it from arity and default.
        - key: identifier in results; mandatory when neither metavar nor a
          function signature can provide it.
        - descr, hidden: help metadata.
        - unique: when given, missing required arguments of its command and of
          the commands above it are not reported (help-style switches).
        - callback: called with the value on dispatch (see @cardinal).
        """
        metadata = {
            "metavar": metavar,
            "type": type,
            "nargs": nargs,
            "default": default,
            "key": key,
            "descr": descr,
            "hidden": hidden,
            "unique": unique,
            "callback": callback,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_parametric_metadata(cls, metadata)

        if metadata["forward"]:
            if metadata["metavar"] is not Unset:
                raise TypeError(f"forwarding {cls.__typename__} cannot specify a 'metavar'")
            if metadata["type"] not in ("str", builtins.str):
                raise TypeError(f"forwarding {cls.__typename__} cannot specify a 'type'")
            metadata["metavar"] = "..."
        elif metadata["key"] is Unset and metadata["metavar"] is not Unset:
            if not (derived := _keyify(metadata["metavar"])).isidentifier():
                raise ValueError(f"{cls.__typename__} 'metavar' {metadata['metavar']!r} cannot derive a key")
            metadata["key"] = derived

        if not isinstance(required, bool | Unset):
            raise TypeError(f"{cls.__typename__} 'required' must be a boolean")
        metadata["required"] = coalesce(required, metadata["arity"].min > 0 and default is Unset)
        metadata["repeatable"] = False

        return super().__new__(cls)._setup(metadata)

    def __cardinal__(self):
        return self


class Option(Argument):
    """
    Named, value-bearing argument specification.

    Values follow the name either spaced ("--opt 5", "-o 5"), inline
    ("--opt=5", "-o=5") or glued to a short name ("-o5"). Repeating an option
    overwrites single values (last wins) and extends multi-valued ones, unless
    it is declared non-repeatable.
    """

    __displayable__ = (
        "key",
        "names",
        "metavar",
        "type",
        "arity",
        "default",
        "const",
        "required",
        "repeatable",
        "unique",
    )

    def __new__(
            cls,
            *names,
            metavar=Unset,
            type="str",
            nargs=Unset,
            default=Unset,
            const=Unset,
            required=False,
            repeatable=True,
            key=Unset,
            descr=Unset,
            hidden=False,
            unique=False,
            callback=Unset
    ):
        """
        Construct an Option spec.

        Parameters
        - names: one or more option names ("-o", "--opt", "-opt").
        - metavar, type, nargs: see Cardinal.
        - default: value used when the option is absent.
        - const: value used when the option is given with zero values
          (requires an arity accepting zero values).
        - required: absence is reported as a missing required argument.
        - repeatable: False reports a second occurrence as a fault.
        - key, descr, hidden, unique, callback: see Cardinal.
        """
        metadata = {
            "names": names,
            "metavar": metavar,
            "type": type,
            "nargs": nargs,
            "default": default,
            "const": const,
            "key": key,
            "descr": descr,
            "hidden": hidden,
            "unique": unique,
            "callback": callback,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_named_metadata(cls, metadata)
        _sanitize_parametric_metadata(cls, metadata)

        if const is not Unset and metadata["arity"].min > 0:
            raise TypeError(f"{cls.__typename__} 'const' requires an arity accepting zero values")
        metadata["metavar"] = coalesce(metadata["metavar"], metadata["key"].upper())
        metadata["required"] = bool(required)
        metadata["repeatable"] = bool(repeatable)

        return super().__new__(cls)._setup(metadata)

    def __option__(self):
        return self


class Flag(Argument):
    """
    Named, value-less switch specification.

    A flag resolves to True when given and to its default (False) otherwise.
    Counter flags resolve to the number of occurrences (default 0), which
    makes "-vvv" and "-v -v -v" both resolve to 3. A required flag has no
    implicit default, so its absence is reported.
    """

    __displayable__ = (
        "key",
        "names",
        "default",
        "required",
        "repeatable",
        "counter",
        "unique",
    )

    def __new__(
            cls,
            *names,
            counter=False,
            default=Unset,
            required=False,
            repeatable=True,
            key=Unset,
            descr=Unset,
            hidden=False,
            unique=False,
            callback=Unset
    ):
        metadata = {
            "names": names,
            "key": key,
            "descr": descr,
            "hidden": hidden,
            "unique": unique,
            "callback": callback,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_named_metadata(cls, metadata)

        if counter and not repeatable:
            raise TypeError(f"counter {cls.__typename__} must be repeatable")
        metadata |= {
            "arity": Arity(0, 0),
            "counter": bool(counter),
            "default": default if required else coalesce(default, 0 if counter else False),
            "required": bool(required),
            "repeatable": bool(repeatable),
        }

        return super().__new__(cls)._setup(metadata)

    def __flag__(self):
        return self


def _binder(spec, label):
    @rename(label)
    def wrapper(callback, /):
        if not callable(callback):
            raise TypeError(f"@{label}() must be applied to a callable")
        if spec._callback is not Unset:
            raise TypeError(f"@{label}() must be applied only once")
        spec._callback = callback
        return spec

    # Allow the undecorated factory itself to be used as a spec.
    wrapper.__argument__ = rename(lambda: spec, "__argument__")
    return wrapper


def cardinal(*args, **kwargs):
    """
    Decorator/factory for a positional argument with a callback.

        @cardinal("FILE", nargs="+")
        def on_files(files): ...

    The decorated name is bound to the Cardinal itself.
    """
    return _binder(Cardinal(*args, **kwargs), "cardinal")


def option(*args, **kwargs):
    """
    Decorator/factory for a named option with a callback.

        @option("-o", "--output", type="path")
        def on_output(path): ...
    """
    return _binder(Option(*args, **kwargs), "option")


def flag(*args, **kwargs):
    """
    Decorator/factory for a flag with a callback.

        @flag("-v", "--verbose")
        def on_verbose(): ...

    Counter flags receive the count: @flag("-v", counter=True).
    """
    return _binder(Flag(*args, **kwargs), "flag")


__all__ = (
    # Public API surface for consumers of sextant.arguments.
    # These names are re-exported from the package __init__.

    # Classes (specifications)
    "Argument",
    "Cardinal",
    "Option",
    "Flag",
    "Arity",

    # Decorators
    "cardinal",
    "option",
    "flag",
)

# Not part of the public API.
del ArgumentType
