"""
Result tree of a resolution.

- ParsedCommand: one node per command visited, holding the resolved value
  of every argument of that command (Unset when the argument received
  nothing and has no default), the keys explicitly given on the command
  line, the faults localized to the node and the child node entered, if any.
  Nodes are frozen: values are exposed through read-only views.
- Resolution: the root node plus every fault in the order it was recorded.
  It answers the usual caller questions: did it work (ok), which subcommand
  path was taken (path/leaf), what was forwarded, and it can raise, render
  or dispatch.

Values are looked up by key, or by route through subcommands:

    resolution.get("build.opt")       # value of opt under build, or None
    resolution.leaf["path"]           # value on the deepest node
    "opt" in resolution.leaf          # given explicitly on the command line?
"""
import functools
import operator

from .faults import ResolutionFailure, console as _console
from .logs import get_logger
from .utils import *

logger = get_logger(__name__)


class ParsedCommand:
    """
    Frozen result node for one command.
    """

    __introspectable__ = (
        "command",
        "values",
        "present",
        "faults",
        "children",
    )

    command = mirror("command")
    values = mirror("values")
    present = mirror("present")
    faults = mirror("faults")
    children = mirror("children")

    def __init__(self, command, values, present, faults, children=(), /):
        self._command = command
        self._values = dict(values)
        self._present = frozenset(present)
        self._faults = tuple(faults)
        self._children = tuple(children)
        self._parent = Unset
        for child in self._children:
            child._parent = self

    @property
    def parent(self):
        return self._parent

    @property
    def name(self):
        return self._command.name

    @property
    def ok(self):
        """True when no fault was localized to this node."""
        return not self._faults

    @property
    def unique(self):
        """True when a unique argument was given here or below."""
        arguments = self._command.arguments
        return any(arguments[key].unique for key in self._present) or any(child.unique for child in self._children)

    def child(self, name, /):
        """
        Return the child node for subcommand *name* (or one of its aliases), or None.
        """
        for child in self._children:
            if name == child.command.name or name in child.command.aliases:
                return child
        return None

    def get(self, route, default=None, /, *, sep="."):
        """
        Return the value at *route* ("key" or "sub.key"), or *default* when the
        argument has no value or the route goes through a subcommand not taken.

        Raises KeyError when the final key is not declared on the command.
        """
        *names, key = route.split(sep)
        node = self
        for name in names:
            if (node := node.child(name)) is None:
                return default
        return coalesce(node[key], default)

    def defined(self, key, /):
        """
        True when the argument under *key* holds a value (given or default).
        """
        return self[key] is not Unset

    def namespace(self):
        """
        Plain dict of key -> value with absent values as None.
        """
        return {key: coalesce(value) for key, value in self._values.items()}

    def __getitem__(self, key):
        if key not in self._values:
            raise KeyError(key)
        return self._values[key]

    def __contains__(self, key):
        return key in self._present

    def __iter__(self):
        return iter(self._values)

    def __eq__(self, other):
        if not isinstance(other, ParsedCommand):
            return NotImplemented
        return (
            self._command is other._command
            and self._values == other._values
            and self._present == other._present
            and [str(fault) for fault in self._faults] == [str(fault) for fault in other._faults]
            and self._children == other._children
        )

    __hash__ = None

    def __repr__(self):
        return f"parsed-command({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"

    def __rich_repr__(self):
        yield "name", self.name
        yield "values", self.namespace()
        yield "present", sorted(self._present)
        if self._children:
            yield "children", self._children


class Resolution:
    """
    Outcome of resolving one argument vector against a command tree.

    Attributes
    - root: ParsedCommand of the root command.
    - faults: every fault, in the order it was recorded (input order within
      a command; a command's end-of-scope faults before its child's).
    - argv: the raw strings that were resolved.
    - forwarded: raw strings captured by a forwarding argument (empty tuple
      when none).
    """

    __introspectable__ = (
        "root",
        "faults",
        "argv",
        "forwarded",
    )

    root = mirror("root")
    faults = mirror("faults")
    argv = mirror("argv")
    forwarded = mirror("forwarded")

    def __init__(self, root, faults, argv, forwarded=(), /):
        self._root = root
        self._faults = tuple(faults)
        self._argv = tuple(argv)
        self._forwarded = tuple(forwarded)

    @property
    def ok(self):
        return not self._faults

    @property
    def path(self):
        """
        Nodes from the root to the deepest command entered.
        """
        path = [node := self._root]
        while node.children:
            path.append(node := node.children[-1])
        return tuple(path)

    @property
    def leaf(self):
        return self.path[-1]

    def get(self, route, default=None, /, *, sep="."):
        """
        Route lookup from the root (see ParsedCommand.get).
        """
        return self._root.get(route, default, sep=sep)

    def first(self):
        """
        Return the first fault, or None.
        """
        return self._faults[0] if self._faults else None

    def grouped(self):
        """
        Faults grouped by command, commands in resolution order.

        Returns a dict of Command -> tuple of faults.
        """
        grouped = {}
        for node in self.path:
            if node.faults:
                grouped[node.command] = node.faults
        return grouped

    def check(self):
        """
        Raise a ResolutionFailure carrying every fault; return self when ok.
        """
        if self._faults:
            raise ResolutionFailure(self._faults, command=self._root.command)
        return self

    def report(self, console=Unset, /, *, first=False):
        """
        Render the faults with rich (to stderr by default).

        first=True renders only the first fault.
        """
        if not self._faults:
            return
        console = coalesce(console, _console)
        if first or len(self._faults) == 1:
            console.print(self._faults[0])
        else:
            console.print(ResolutionFailure(self._faults, command=self._root.command))

    def dispatch(self):
        """
        Run the callbacks of a successful resolution.

        Argument callbacks run first, node by node from the root, in
        declaration order and only for arguments given on the command line.
        Then the deepest command's callback is called with its values and its
        result is returned.

        When a unique argument was given (a help switch, say), a node holding
        one in its subtree runs the callbacks of its unique arguments only, and
        no command callback runs.

        Raises ResolutionFailure when the resolution has faults.
        """
        self.check()
        for node in self.path:
            unique = node.unique
            for key, argument in node.command.arguments.items():
                if key in node and (argument.unique or not unique):
                    argument(node[key])
        if self._root.unique:
            return None
        leaf = self.leaf
        logger.debug("command_dispatched", command=leaf.command.qualname)
        return leaf.command(leaf.values)

    def __eq__(self, other):
        if not isinstance(other, Resolution):
            return NotImplemented
        return self._root == other._root and self._argv == other._argv and self._forwarded == other._forwarded

    __hash__ = None

    def __repr__(self):
        return f"resolution({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"

    def __rich_repr__(self):
        yield "root", self._root
        yield "faults", self._faults
        if self._forwarded:
            yield "forwarded", self._forwarded


__all__ = (
    "ParsedCommand",
    "Resolution",
)
