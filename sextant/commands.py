"""
Sextant command layer: the command tree the resolver walks.

What this module provides
- Command: a named node owning arguments, constraint groups and child
  commands, with a non-owning reference to its parent. Two construction modes:
  • Declarative: Command("build", Cardinal("PATH"), Option("-o", "--opt")).
  • Signature-driven: Command(func), where every parameter default of func
    is an argument spec and the parameter name becomes the result key.
- command(...): factory/decorator producing Commands, also available as
  Command.command(...) to attach children.

Build-time validation (raises TypeError/ValueError, never a fault)
- argument keys, option/flag names and child names/aliases are unique;
- every declared type resolves through the command's converter registry;
- at most one forwarding cardinal, and it is the last cardinal;
- group members belong to the command and no group is nested twice.

Once built, a command is only read: the resolver never mutates it, so one
tree can serve any number of concurrent resolutions.

Runtime flags
- colorful / fancy: rendering switches for faults; inherited from the parent
  when Unset.
- registry: ConverterRegistry used to resolve argument types; inherited from
  the parent, the module-level default at the root.

Quick start
    from sextant import Command, Cardinal, Option

    root = Command("root")
    build = root.command("build", Option("-o", "--opt", type=int, nargs="?"), Cardinal("PATH"))
    result = root.resolve(["build", "-o", "5", "src"])
    result.get("build.opt")   # 5
"""
import functools
import inspect
import operator
import re
from collections.abc import Iterable
from inspect import Parameter

from .arguments import Argument, Cardinal, Flag, Option
from .converters import ConverterRegistry, default_registry
from .groups import Group
from .logs import get_logger
from .utils import *

logger = get_logger(__name__)

_COMMAND_NAME = re.compile(r"[^\W_][\w.-]*")


class CommandType(type):
    """
    Metaclass giving commands their introspection surface.

    - __typename__: class name, camel-case split with hyphens and lowercased.
    - Read-only mirror() properties for every name in __introspectable__.
    - Stable __repr__/__rich_repr__ narrowed by __displayable__.
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
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _resolve_argument(cls, object, where):
    """
    Return the argument spec behind *object* (a spec or an undecorated factory).
    """
    if not hasattr(object, "__argument__") or not callable(object.__argument__):
        raise TypeError(f"{cls.__typename__} {where} must be argument-resoluble")
    if not isinstance(argument := object.__argument__(), Argument):
        raise TypeError("__argument__() non-argument returned")
    return argument


def _process_source(cls, metadata):
    """
    Materialize arguments from a callback signature.

    Every parameter must default to an argument spec; its name is the key.
    Placement mirrors how the callback is invoked on dispatch:
    - Cardinal: positional-only parameter;
    - Option: standard parameter;
    - Flag: keyword-only parameter.
    """
    try:
        signature = inspect.signature(metadata["callback"])
    except TypeError:
        raise TypeError(f"{cls.__typename__} 'callback' must be callable") from None
    except ValueError:
        raise ValueError(f"{cls.__typename__} 'callback' must be an inspectable callable") from None

    arguments = metadata["arguments"] = {}
    for name, parameter in signature.parameters.items():
        if parameter.default is Parameter.empty:
            raise TypeError(f"{cls.__typename__} 'callback' parameter {name!r} must have a default")

        argument = _resolve_argument(cls, parameter.default, f"'callback' parameter {name!r} default")

        if isinstance(argument, Cardinal) and parameter.kind is not Parameter.POSITIONAL_ONLY:
            raise TypeError(f"{cls.__typename__} 'callback' cardinal at parameter {name!r}, parameter must be positional-only")
        if isinstance(argument, Option) and parameter.kind is not Parameter.POSITIONAL_OR_KEYWORD:
            raise TypeError(f"{cls.__typename__} 'callback' option at parameter {name!r}, parameter must be standard")
        if isinstance(argument, Flag) and parameter.kind is not Parameter.KEYWORD_ONLY:
            raise TypeError(f"{cls.__typename__} 'callback' flag at parameter {name!r}, parameter must be keyword-only")

        arguments[name] = argument


def _process_arguments(cls, metadata, sources):
    """
    Materialize arguments passed explicitly; keys come from the specs.
    """
    arguments = metadata["arguments"] = {}
    for position, source in enumerate(sources, 1):
        argument = _resolve_argument(cls, source, f"{ordinal(position)} argument")
        if argument.key is Unset:
            raise TypeError(f"{cls.__typename__} {ordinal(position)} argument must specify a 'metavar' or a 'key'")
        if argument.key in arguments:
            raise ValueError(f"{cls.__typename__} argument key {argument.key!r} is already in use")
        arguments[argument.key] = argument


def _process_names(cls, metadata):
    """
    Validate the command name and aliases.
    """
    names = []
    for name in (metadata["name"], *metadata["aliases"]):
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} names and aliases must be strings")
        elif not _COMMAND_NAME.fullmatch(name := name.strip()):
            raise ValueError(f"{cls.__typename__} name {name!r} must be a word (dashes are not allowed in front)")
        elif name in names:
            raise ValueError(f"{cls.__typename__} aliases cannot repeat the name or each other")
        names.append(name)
    metadata["name"], *aliases = names
    metadata["aliases"] = tuple(aliases)

    if not isinstance(descr := metadata["descr"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    metadata["descr"] = coalesce(descr)


def _process_switches(cls, metadata):
    """
    Index arguments by name and validate their layout.
    """
    seen = {}
    switches = metadata["switches"] = {}
    cardinals = metadata["cardinals"] = {}
    forward = None

    for key, argument in metadata["arguments"].items():
        if (other := seen.setdefault(id(argument), key)) != key:
            raise ValueError(f"{cls.__typename__} argument {key!r} is the same object as {other!r}")
        if isinstance(argument, Cardinal):
            if forward is not None:
                raise ValueError(f"{cls.__typename__} forwarding cardinal {forward!r} must be the last cardinal")
            forward = key if argument.forward else None
            cardinals[key] = argument
            continue
        for name in argument.names:
            if name in switches:
                raise ValueError(f"{cls.__typename__} name {name!r} is already in use")
            switches[name] = argument

    metadata["keys"] = {id(argument): key for key, argument in metadata["arguments"].items()}


def _process_converters(cls, metadata):
    """
    Resolve every declared type through the registry (construction-time failure).
    """
    if not isinstance(registry := metadata["registry"], ConverterRegistry):
        raise TypeError(f"{cls.__typename__} 'registry' must be a converter registry")
    resolved = metadata["converters"] = {}
    for key, argument in metadata["arguments"].items():
        if argument.arity.max == 0:
            continue
        try:
            resolved[key] = registry.resolve(argument.type)
        except (TypeError, ValueError) as error:
            raise type(error)(f"{cls.__typename__} argument {key!r}: {error}") from None
    metadata["numeric"] = any(converter.numeric for converter in resolved.values())


def _process_groups(cls, metadata):
    """
    Validate groups: members belong to this command, no group is nested twice.
    """
    if not isinstance(metadata["groups"], Iterable):
        raise TypeError(f"{cls.__typename__} 'groups' must be iterable")
    groups = tuple(metadata["groups"])
    seen = set()
    for group in groups:
        if not isinstance(group, Group):
            raise TypeError(f"{cls.__typename__} 'groups' must contain groups")
        for nested in group.walk():
            if id(nested) in seen:
                raise ValueError(f"{cls.__typename__} group {nested!r} is nested more than once")
            seen.add(id(nested))
            for member in nested.members:
                if isinstance(member, Group):
                    continue
                if isinstance(member, str):
                    if member not in metadata["arguments"]:
                        raise ValueError(f"{cls.__typename__} group member {member!r} is not an argument key")
                elif id(_resolve_argument(cls, member, "group member")) not in metadata["keys"]:
                    raise ValueError(f"{cls.__typename__} group member {member!r} does not belong to this command")
    metadata["groups"] = groups


def _attach_to_parent(self, parent):
    """
    Register this command under its parent, enforcing unique names and aliases.
    """
    if not parent:
        return
    for name in (self.name, *self.aliases):
        if (other := parent._routes.get(name, self)) is not self:
            typeof = "subcommand" if parent.parent else "command"
            raise ValueError(f"{type(self).__typename__} {typeof} name {name!r} is already in use by {other.name!r}")
    parent._children[self.name] = self
    for name in (self.name, *self.aliases):
        parent._routes[name] = self


class Command(metaclass=CommandType):
    """
    Node of the command tree.

    Lifecycle
    - Built once (declaratively or from a callback signature), validated,
      attached to its parent.
    - Read by the resolver any number of times; never mutated by it.

    Introspection
    - name, aliases, descr, parent, children, arguments, cardinals, switches,
      groups, registry, colorful, fancy are read-only properties.
    - root and path walk the hierarchy.
    """

    __introspectable__ = (
        "name",
        "aliases",
        "descr",
        "arguments",
        "cardinals",
        "switches",
        "groups",
        "parent",
        "children",
        "registry",
        "colorful",
        "fancy",
    )

    __displayable__ = (
        "name",
        "aliases",
        "descr",
        "arguments",
        "groups",
        "children",
    )

    @property
    def root(self):
        """
        Return the topmost command in the hierarchy.
        """
        child, parent = self, self.parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        """
        Return the ancestry from root to this command as a tuple.
        """
        path = [command := self]
        while command.parent:
            path.append(command := command.parent)
        return tuple(reversed(path))

    @property
    def qualname(self):
        """
        Space separated route from the root, e.g. "tool remote add".
        """
        return " ".join(command.name for command in self.path)

    @property
    def numeric(self):
        """
        True when some argument converts numbers (negative numbers are values).
        """
        return self._numeric

    @property
    def callback(self):
        return self._callback

    @property
    def keys(self):
        """
        Result keys of every argument, in declaration order.
        """
        return tuple(self._arguments)

    def __new__(
            cls,
            source,
            /,
            *arguments,
            parent=Unset,
            name=Unset,
            aliases=(),
            descr=Unset,
            groups=(),
            callback=Unset,
            registry=Unset,
            colorful=Unset,
            fancy=Unset
    ):
        """
        Construct a Command.

        Parameters
        - source: str | Callable
          A name (declarative mode, arguments passed positionally) or a
          callback whose parameter defaults declare the arguments.
        - *arguments: argument specs (declarative mode only).
        - parent: Command | Unset, the command to attach to.
        - name: overrides the callback name in signature mode.
        - aliases: alternative names under the parent.
        - descr: short description; defaults to the callback docstring.
        - groups: Group constraints over this command's arguments.
        - callback: handler for declarative commands (called with the
          resolved values as keyword arguments on dispatch).
        - registry: ConverterRegistry; inherited from the parent when Unset.
        - colorful, fancy: fault rendering switches; inherited when Unset.

        Raises
        - TypeError/ValueError on invalid specs, duplicate keys or names,
          unregistered converter types, misplaced forwarding cardinals,
          foreign group members or name conflicts under the parent.
        """
        if not isinstance(parent, Command | Unset):
            raise TypeError(f"{cls.__typename__} 'parent' must be a command")
        if not isinstance(aliases, Iterable) or isinstance(aliases, str):
            raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings")

        metadata = {
            "aliases": tuple(aliases),
            "groups": groups,
            "parent": parent,
            "children": {},
            "registry": coalesce(registry, getattr(parent, "registry", default_registry)),
            "colorful": bool(coalesce(colorful, getattr(parent, "colorful", False))),
            "fancy": bool(coalesce(fancy, getattr(parent, "fancy", False))),
        }

        if isinstance(source, str):
            if name is not Unset:
                raise TypeError(f"{cls.__typename__} 'name' cannot be given twice")
            if callback is not Unset and not callable(callback):
                raise TypeError(f"{cls.__typename__} 'callback' must be callable")
            metadata |= {"name": source, "descr": descr, "callback": callback, "signature": False}
            _process_arguments(cls, metadata, arguments)
        elif callable(source):
            if arguments:
                raise TypeError(f"{cls.__typename__} arguments come from the callback signature")
            if callback is not Unset:
                raise TypeError(f"{cls.__typename__} 'callback' cannot be given twice")
            metadata |= {
                "name": coalesce(name, getattr(source, "__name__", Unset)),
                "descr": coalesce(descr, inspect.getdoc(source) or Unset),
                "callback": source,
                "signature": True,
            }
            _process_source(cls, metadata)
        else:
            raise TypeError(f"{cls.__typename__} source must be a name or a callable")

        _process_names(cls, metadata)
        _process_switches(cls, metadata)
        _process_converters(cls, metadata)
        _process_groups(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        self._routes = {}
        _attach_to_parent(self, parent)

        logger.debug(
            "command_built",
            command=self.qualname,
            arguments=list(self._arguments),
            children=len(self._children),
        )
        return self

    def lookup(self, name, /):
        """
        Return the option/flag declared under *name*, or None.
        """
        return self._switches.get(name)

    def child(self, name, /):
        """
        Return the child command named (or aliased) *name*, or None.
        """
        return self._routes.get(name)

    def keyof(self, member, /):
        """
        Return the result key of an argument spec (or validate a key string).
        """
        if isinstance(member, str):
            if member not in self._arguments:
                raise KeyError(member)
            return member
        return self._keys[id(member.__argument__())]

    def label(self, key, /):
        """
        Human label of the argument stored under *key*.
        """
        argument = self._arguments[key]
        if argument.named or argument.metavar:
            return argument.label
        return key.upper()

    def converter(self, key, /):
        """
        Return the resolved Converter of the argument stored under *key*, or None.
        """
        return self._converters.get(key)

    def command(self, source=Unset, /, *args, **kwargs):
        """
        Create a subcommand under this command (parent=self is injected).

        Supports the same forms as the module-level command(...).
        """
        return command(source, *args, parent=self, **kwargs)

    def resolve(self, argv=Unset, /):
        """
        Resolve *argv* against the tree rooted at this command.

        argv may be Unset (sys.argv[1:]), a shell-like string, or an
        iterable of strings. Returns a Resolution.
        """
        from .resolver import resolve
        return resolve(self, argv)

    def __call__(self, values, /):
        """
        Invoke the callback with resolved *values* (a key -> value mapping).

        Signature-driven commands receive cardinals positionally and the
        rest as keywords; declarative commands receive everything as keywords.
        Missing values are passed as None.
        """
        if self._callback is Unset:
            return None
        values = {key: coalesce(values.get(key, Unset)) for key in self._arguments}
        if not self._signature:
            return self._callback(**values)
        args = [values.pop(key) for key in self._cardinals]
        return self._callback(*args, **values)


def command(source=Unset, /, *args, **kwargs):
    """
    Create a Command or return a decorator that builds one.

    Invocation modes
    - command("build", Cardinal("PATH"), ...) -> Command (declarative)
    - command(func, name=..., ...) -> Command (signature-driven)
    - @command(name=..., ...) or bare @command on a function -> Command
    """
    if isinstance(source, str):
        return Command(source, *args, **kwargs)

    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        return Command(source, *args, **kwargs)

    return wrapper(source) if source is not Unset else wrapper


__all__ = (
    # Public API surface for consumers of sextant.commands.
    "Command",
    "command",
)

# Not part of the public API.
del CommandType
