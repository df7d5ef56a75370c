"""
Sextant utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the definition layer (arguments, groups,
  commands), the resolver and the fault renderers.

Overview
- UnsetType / Unset
  • Singleton sentinel meaning "not provided" (or "not present" in results),
    distinct from None, which stays a legitimate user value.

- coalesce(value, default=None)
  • Replace Unset with a concrete default; every other value, falsey ones
    included, is returned untouched.

- rename(callable, name) / @rename("name")
  • Stable __name__/__qualname__ for generated callables.

- mirror("attr")
  • Read-only property over a private "_attr" backing field. Containers are
    handed out as frozen views so the public surface cannot mutate a built tree.

- ordinal(number)
  • English ordinal label ("first", "second", ..., "11th", "22nd") used by the
    position-first fault messages.

Quick examples
    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> coalesce(None, "fallback") is None
    True
    >>> ordinal(3), ordinal(12), ordinal(23)
    ('third', '12th', '23rd')
"""
import builtins
import functools
from types import MappingProxyType
from typing import final


@final
class UnsetType:
    """
    Sentinel type representing a value that was not provided.

    Characteristics
    - Boolean-false: bool(Unset) is False, but it is distinct from None and 0.
    - Printable: repr(Unset) -> "Unset".
    - Non-subclassable and a singleton: UnsetType() always yields Unset.
    """

    def __or__(self, other, /):
        """
        Support PEP 604 unions in annotations and isinstance() checks.
        """
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __reduce__(self):
        # Keep the singleton identity across copy/pickle round-trips.
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Resolve the Unset sentinel to a concrete default.

    Returns object unless it is Unset, in which case default is returned.
    None, 0, "" and empty containers are preserved as-is.

    Examples
    - coalesce("name", "fallback") -> "name"
    - coalesce(Unset, "fallback")  -> "fallback"
    - coalesce(None, "fallback")   -> None
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set a stable __name__/__qualname__ on a callable, or return a decorator
    that will do so later.

    Forms
    - rename(callable, name) -> callable
    - rename(name) -> decorator

    Raises
    - TypeError on wrong arity, non-callables, non-string names, or callables
      whose names cannot be updated (most built-ins).
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                """Decorator wrapper that applies the new name to the target callable."""
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _freeze(object):
    """
    Return a read-only rendition of a container value.

    - list: tuple of frozen items (tuples, named tuples included, are kept).
    - dict: MappingProxyType over a fresh dict of frozen values.
    - set: frozenset.
    - Anything else (custom mappings such as registries included): as-is.
    """
    if isinstance(object, list):
        return tuple(map(_freeze, object))
    elif isinstance(object, dict):
        return MappingProxyType(dict(zip(object.keys(), map(_freeze, object.values()))))
    elif isinstance(object, set):
        return frozenset(object)
    return object


def mirror(name, /):
    """
    Define a read-only property that mirrors a private backing attribute.

    The property reads "_{name}" from the instance and wraps containers in
    read-only views (see _freeze).

    Example
    - Given self._keys, declare keys = mirror("keys") to expose it safely.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _freeze(getattr(self, "_" + name))

    return property(getter)


@functools.cache
def ordinal(number, /):
    """
    Return a human-friendly ordinal label for a 1-based position.

    - 1..10 are rendered as words ("first"…"tenth").
    - Other numbers use numeric ordinals with English suffixes (11th, 21st, 102nd).
    """
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


Unset = UnsetType()
"""
Sentinel for "not provided".

In definitions it marks parameters the caller did not pass; in results it
marks arguments that did not receive a value.
"""


__all__ = (
    # Public API surface for consumers of sextant.utils.

    # Functions
    "coalesce",
    "rename",
    "mirror",
    "ordinal",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
