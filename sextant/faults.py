"""
Sextant faults and their rendering.

Scope
- FaultCode: stable numeric identifiers for every resolution fault.
- ResolutionFault: base of the per-kind faults the resolver accumulates. A
  fault is an exception object that is recorded, not raised: it carries its
  kind, code, input position, the command and argument involved, a message
  template and the parameters that fill it.
- ResolutionFailure: ExceptionGroup of faults, raised on request
  (Resolution.check()) and rendered as one block.
- getdoc(): optional long description lookup provided by the host.

UX goals
- Position-first messages: "unknown option or flag '--x' at third position".
- Lowercased tone, short titles, one clear hint.
- Styling configurable via __styles__ in __main__; codes relabeled via
  __codes__; program name via __prog__.

Construction problems (bad specs, duplicate names, unregistered converters)
are never faults: they raise TypeError/ValueError while the tree is built.
"""
import copy
import enum
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce, ordinal

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - routing (1110x): UNKNOWN_SUBCOMMAND
    - switches (1111x): UNKNOWN_FLAG, DUPLICATE_NON_REPEATABLE, TOO_MANY_VALUES
    - values (1112x/1113x): TOO_FEW_VALUES, MISSING_REQUIRED_ARGUMENT,
      CONVERSION_FAILURE
    - leftovers (1114x): UNEXPECTED_TOKEN
    - constraints (1115x): GROUP_CONSTRAINT_VIOLATED
    """
    # --- routing errors (11xxx) ---
    UNKNOWN_SUBCOMMAND          = 11102

    # --- switch errors (11xxx) ---
    UNKNOWN_FLAG                = 11112
    DUPLICATE_NON_REPEATABLE    = 11115
    TOO_MANY_VALUES             = 11118

    # --- value errors (11xxx) ---
    TOO_FEW_VALUES              = 11122
    MISSING_REQUIRED_ARGUMENT   = 11125
    CONVERSION_FAILURE          = 11131

    # --- leftover input (11xxx) ---
    UNEXPECTED_TOKEN            = 11141

    # --- group constraints (11xxx) ---
    GROUP_CONSTRAINT_VIOLATED   = 11151

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__ to
        override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class GroupViolation(enum.Enum):
    """Why a group constraint failed."""
    NONE_SATISFIED = "none-satisfied"
    MULTIPLE_SATISFIED = "multiple-satisfied"
    MISSING_MEMBER = "missing-member"


class ResolutionFault(Exception):
    """
    Base of every resolution fault.

    Options (all optional, kind-specific ones documented on each subclass)
    - index: 0-based position of the offending raw string.
    - command: the Command being resolved when the fault happened.
    - argument: the argument spec involved, if any.
    - key / label: the argument's result key and human label.
    - token: the offending text.
    - colorful / fancy: rendering switches (default to the command's).
    """
    kind = Unset
    code = Unset
    title = Unset
    template = "%(token)r"
    hint = ""

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        self.options = MappingProxyType(options)
        self._explicit = message
        self.message = coalesce(message, self._template() % self.parameters)
        super().__init__(self.message)

    def _template(self):
        return type(self).template

    def _hint(self):
        return type(self).hint

    @property
    def parameters(self):
        """
        Template parameters: the options, sequences joined, plus "position".
        """
        parameters = {
            name: ", ".join(map(str, object)) if isinstance(object, tuple | list) else object
            for name, object in self.options.items()
        }
        if (index := self.options.get("index")) is not None:
            parameters["position"] = ordinal(index + 1)
        return parameters

    @property
    def index(self):
        return self.options.get("index")

    @property
    def command(self):
        return self.options.get("command")

    @property
    def argument(self):
        return self.options.get("argument")

    @property
    def key(self):
        return self.options.get("key")

    @property
    def suggestion(self):
        return self._hint() % self.parameters

    def __str__(self):
        return self.message

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r}, index={self.index!r})"

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        command = self.options.get("command")
        colorful = self.options.get("colorful", getattr(command, "colorful", False))
        fancy = self.options.get("fancy", getattr(command, "fancy", False))

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        prog = text(getattr(main, "__prog__", command.root.name if command else "sextant"), styler("prog-name"))

        header = Text.assemble(
            "[ ",
            prog,
            " - ",
            text(self.code.normalize(), styler("code")),
            " | ",
            text(self.title.title(), styler("error-title")),
            " ]"
        )
        message = text(self.message, styler("error-message"))
        renders = [message]
        if hint := self.suggestion:
            renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))

        if fancy:
            try:
                width = int((console.width - 4) * self.options["ratio"])
            except KeyError:
                width = None
            return Panel(Group(*renders), title=header, title_align="left", width=width)

        return Group(header, *renders)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self._explicit, **{**self.options, **overrides})


class UnknownFlagError(ResolutionFault):
    kind = "UnknownFlag"
    code = FaultCode.UNKNOWN_FLAG
    title = "unknown flag"
    template = "unknown option or flag %(token)r at %(position)s position"
    hint = "check the spelling, or pass it after '--' to use it as a value"


class UnknownSubcommandError(ResolutionFault):
    """Options: choices (names of the available subcommands)."""
    kind = "UnknownSubcommand"
    code = FaultCode.UNKNOWN_SUBCOMMAND
    title = "unknown subcommand"
    template = "unknown subcommand %(token)r at %(position)s position"
    hint = "expected one of: %(choices)s"


class UnexpectedTokenError(ResolutionFault):
    kind = "UnexpectedToken"
    code = FaultCode.UNEXPECTED_TOKEN
    title = "unexpected token"
    template = "unexpected token %(token)r at %(position)s position"
    hint = "remove it, or quote it together with the value it belongs to"


class DuplicateNonRepeatableError(ResolutionFault):
    kind = "DuplicateNonRepeatable"
    code = FaultCode.DUPLICATE_NON_REPEATABLE
    title = "duplicate argument"
    template = "%(label)s given again at %(position)s position"
    hint = "%(label)s can be specified only once"


class TooManyValuesError(ResolutionFault):
    """Options: expected (maximum), given (number received)."""
    kind = "TooManyValues"
    code = FaultCode.TOO_MANY_VALUES
    title = "too many values"
    template = "%(label)s takes at most %(expected)d value(s) but got %(given)d at %(position)s position"
    hint = "remove the extra values given to %(label)s"


class TooFewValuesError(ResolutionFault):
    """Options: expected (minimum), given (number received)."""
    kind = "TooFewValues"
    code = FaultCode.TOO_FEW_VALUES
    title = "too few values"
    template = "%(label)s expects at least %(expected)d value(s) but got %(given)d at %(position)s position"
    hint = "provide at least %(expected)d value(s) after %(label)s"


class MissingRequiredArgumentError(ResolutionFault):
    kind = "MissingRequiredArgument"
    code = FaultCode.MISSING_REQUIRED_ARGUMENT
    title = "missing argument"
    template = "missing required argument %(label)s"
    hint = "provide %(label)s"


class ConversionFailureError(ResolutionFault):
    """Options: converter (name), reason (converter explanation)."""
    kind = "ConversionFailure"
    code = FaultCode.CONVERSION_FAILURE
    title = "invalid value"
    template = "invalid %(converter)s value %(token)r for %(label)s at %(position)s position"
    hint = "%(reason)s"


class GroupConstraintError(ResolutionFault):
    """
    Options: reason (GroupViolation), restriction, group (label), members,
    given and missing (member labels).
    """
    kind = "GroupConstraintViolated"
    code = FaultCode.GROUP_CONSTRAINT_VIOLATED
    title = "group constraint"
    templates = MappingProxyType({
        (GroupViolation.NONE_SATISFIED, "exactly-one"): "expected exactly one of %(members)s but none was given",
        (GroupViolation.NONE_SATISFIED, "at-least-one"): "expected at least one of %(members)s but none was given",
        (GroupViolation.MULTIPLE_SATISFIED, "exactly-one"): "expected exactly one of %(members)s but got %(given)s",
        (GroupViolation.MISSING_MEMBER, "all"): "expected all of %(members)s but %(missing)s missing",
    })
    suggestions = MappingProxyType({
        GroupViolation.NONE_SATISFIED: "provide one of %(members)s",
        GroupViolation.MULTIPLE_SATISFIED: "keep only one of %(given)s",
        GroupViolation.MISSING_MEMBER: "also provide %(missing)s",
    })

    @property
    def reason(self):
        return self.options.get("reason")

    def _template(self):
        return self.templates[self.options["reason"], self.options["restriction"]]

    def _hint(self):
        return self.suggestions[self.options["reason"]]


class ResolutionFailure(ExceptionGroup[ResolutionFault]):
    """
    All faults of a resolution, raised together.

    Options
    - command: root Command (program name in the rendered header).
    - colorful / fancy: rendering switches (default to the command's).
    """

    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "resolution failed", exceptions)

    def __init__(self, exceptions, **options):
        super().__init__("resolution failed", tuple(exceptions))
        self.options = MappingProxyType(options)

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",  # near-white program name
            "title": "bold #FF4DA6",  # friendly pinky group title
        } | getattr(main, "__styles__", {}))

        command = self.options.get("command")
        colorful = self.options.get("colorful", getattr(command, "colorful", False))
        fancy = self.options.get("fancy", getattr(command, "fancy", False))

        def text(fragment, style=""):
            if not colorful:
                return Text(str(fragment))
            return Text(str(fragment), styles[style])

        prog = text(getattr(main, "__prog__", command.root.name if command else "sextant"), "prog-name")
        header = Text.assemble("[ ", prog, " - ", text(self.message.title(), "title"), " ]")

        renders = [
            copy.replace(exception, ratio=2/3, colorful=colorful, fancy=fancy)
            for exception in self.exceptions
        ]

        if fancy:
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def derive(self, exceptions):
        return type(self)(exceptions, **self.options)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.exceptions, **{**self.options, **overrides})


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings. when
    not found, returns None.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    return getattr(__import__("__main__"), "__docs__", {}).get(code)


__all__ = (
    "FaultCode",
    "GroupViolation",
    "ResolutionFault",
    "UnknownFlagError",
    "UnknownSubcommandError",
    "UnexpectedTokenError",
    "DuplicateNonRepeatableError",
    "TooManyValuesError",
    "TooFewValuesError",
    "MissingRequiredArgumentError",
    "ConversionFailureError",
    "GroupConstraintError",
    "ResolutionFailure",
    "getdoc",
)
