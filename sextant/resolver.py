"""
The resolver: walks a command tree against a token stream.

resolve(command, argv) is the entry point. Each call owns its lexer, cursor,
fault accumulator and result nodes; the command tree is only read, so one
tree can be resolved concurrently against many argument vectors.

Per command, tokens are consumed left to right:

- "--" is skipped (it only changes how later strings are classified).
- A subcommand name (not literal, not an inline value) descends into the
  child, unless a required cardinal of the current command is still waiting
  for values. Before descending, the current node is finalized.
- A FLAG takes its inline value, if any, as its first value and goes on with
  following VALUE tokens up to arity.max; another FLAG, the separator or a
  subcommand name stops the accumulation. A tuple ("[a b c]") right after
  the FLAG is taken whole instead, and holding more than arity.max values
  makes it TooManyValues.
- A VALUE goes to the next cardinal. Cardinals are greedy but leave enough
  upcoming values for the minimums of the cardinals declared after them. The
  forwarding cardinal takes this and every remaining raw string verbatim.
  A tuple goes whole to the next cardinal.
- Anything else is a leftover: UnknownSubcommand for the first plain value
  at a command with children, UnknownFlag for dashed values, UnexpectedToken
  otherwise (a whole tuple included), one fault per token.

Values are converted as they are assigned; failures are recorded and
resolution goes on. When a command's tokens are exhausted, defaults fill the
arguments not given, required ones without a default are reported unless a
unique argument was given in the command or below it, and groups are
evaluated before the node is frozen.
"""
import shlex
import sys
from collections.abc import Iterable

from .commands import Command
from .converters import ConversionError
from .faults import (
    ConversionFailureError,
    DuplicateNonRepeatableError,
    MissingRequiredArgumentError,
    TooFewValuesError,
    TooManyValuesError,
    UnexpectedTokenError,
    UnknownFlagError,
    UnknownSubcommandError,
)
from .groups import evaluate
from .logs import get_logger
from .results import ParsedCommand, Resolution
from .tokens import Lexer, TokenKind
from .utils import *

logger = get_logger(__name__)


def _normalize(argv):
    """
    Normalize the accepted input shapes into a list of raw strings.

    - Unset: sys.argv[1:].
    - str: shell-like string, split with shlex.split.
    - Iterable[str]: used as-is (empty strings are legitimate values).
    """
    if argv is Unset:
        return sys.argv[1:]
    elif isinstance(argv, str):
        return shlex.split(argv)
    elif isinstance(argv, Iterable):
        tokens = []
        for item in argv:
            if not isinstance(item, str):
                raise TypeError("resolve() argument must be a string or an iterable of strings")
            tokens.append(item)
        return tokens
    raise TypeError("resolve() argument must be a string or an iterable of strings")


class _Frame:
    """
    Mutable state of one command while its tokens are consumed.
    """

    def __init__(self, command):
        self.command = command
        self.cardinals = tuple(command.cardinals.items())
        self.slot = 0
        self.values = {}
        self.collected = {}
        self.present = set()
        self.faults = []
        self.missing = []
        self.marks = (0, 0)
        self.routed = False


class _Resolver:
    """
    One resolution: lexer, accumulated faults, forwarded input.
    """

    def __init__(self, command, argv):
        self.lexer = Lexer(argv, command)
        self.faults = []
        self.forwarded = ()

    def _record(self, frame, cls, /, **options):
        self._keep(frame, cls(command=frame.command, **options))

    def _keep(self, frame, fault):
        frame.faults.append(fault)
        self.faults.append(fault)
        self._logged(frame, fault)

    @staticmethod
    def _logged(frame, fault):
        logger.debug(
            "fault_recorded",
            kind=fault.kind,
            code=int(fault.code),
            index=fault.index,
            command=frame.command.qualname,
        )

    @staticmethod
    def _describe(frame, key):
        return {
            "argument": frame.command.arguments[key],
            "key": key,
            "label": frame.command.label(key),
        }

    def walk(self, command):
        frame = _Frame(command)
        self.lexer.rescope(command)
        logger.debug("command_entered", command=command.qualname)

        while (token := self.lexer.peek()) is not None:
            if token.kind is TokenKind.SEPARATOR:
                self.lexer.next()
            elif self._descends(frame, token):
                self.lexer.next()
                self._finalize(frame)
                child = self.walk(command.child(token.text))
                return self._freeze(frame, (child,))
            elif token.kind is TokenKind.FLAG:
                self._switch(frame)
            elif token.inline or not self._positional(frame):
                self._leftover(frame)

        self._finalize(frame)
        return self._freeze(frame)

    def _descends(self, frame, token):
        if token.inline or token.literal or frame.command.child(token.text) is None:
            return False
        # A required cardinal still waiting for values claims the name as a value.
        return not any(argument.required for _, argument in frame.cardinals[frame.slot:])

    def _switch(self, frame):
        command = frame.command
        token = self.lexer.next()

        if (argument := command.lookup(token.text)) is None:
            self._record(frame, UnknownFlagError, index=token.index, token=token.text)
            if (following := self.lexer.peek()) is not None and following.inline and following.index == token.index:
                self.lexer.next()
            return

        key = command.keyof(argument)
        options = self._describe(frame, key)
        if duplicate := key in frame.present and not argument.repeatable:
            self._record(frame, DuplicateNonRepeatableError, index=token.index, token=token.text, **options)

        tokens = []
        bracketed = False
        following = self.lexer.peek()
        if following is not None and following.inline and following.index == token.index:
            self.lexer.next()
            if argument.arity.max == 0:
                self._record(
                    frame,
                    TooManyValuesError,
                    index=following.index,
                    token=following.text,
                    expected=0,
                    given=1,
                    **options,
                )
            else:
                tokens.append(following)
        elif following is not None and following.kind is TokenKind.TUPLE_OPEN and argument.arity.max != 0:
            if (tokens := self._bracket(frame, argument, options)) is None:
                frame.present.add(key)
                return
            bracketed = True

        while not bracketed and argument.arity.admits(len(tokens)):
            following = self.lexer.peek()
            if following is None or following.kind is not TokenKind.VALUE or following.inline:
                break
            if command.child(following.text) is not None:
                break
            tokens.append(self.lexer.next())

        if len(tokens) < argument.arity.min:
            self._record(
                frame,
                TooFewValuesError,
                index=token.index,
                token=token.text,
                expected=argument.arity.min,
                given=len(tokens),
                **options,
            )
        if duplicate:
            return
        self._assign(frame, key, argument, tokens, options)

    def _positional(self, frame):
        if frame.slot >= len(frame.cardinals):
            return False

        key, argument = frame.cardinals[frame.slot]
        token = self.lexer.peek()
        frame.slot += 1

        if argument.forward:
            self.forwarded = self.lexer.rest(token.index)
            frame.values[key] = self.forwarded
            frame.present.add(key)
            logger.debug("input_forwarded", command=frame.command.qualname, key=key, count=len(self.forwarded))
            return True

        if token.kind is TokenKind.TUPLE_OPEN:
            options = self._describe(frame, key)
            if (tokens := self._bracket(frame, argument, options)) is None:
                frame.present.add(key)
                return True
            if len(tokens) < argument.arity.min:
                self._record(
                    frame,
                    TooFewValuesError,
                    index=token.index,
                    token=token.text,
                    expected=argument.arity.min,
                    given=len(tokens),
                    **options,
                )
            self._assign(frame, key, argument, tokens, options)
            return True

        available = 0
        for following in self.lexer.lookahead():
            if following.kind is TokenKind.SEPARATOR:
                continue
            if following.kind is not TokenKind.VALUE or following.inline:
                break
            available += 1

        reserved = sum(other.arity.min for _, other in frame.cardinals[frame.slot:])
        take = available - reserved
        if argument.arity.max is not None:
            take = min(take, argument.arity.max)
        take = min(max(take, argument.arity.min), available)
        if take <= 0:
            return True

        tokens = []
        while len(tokens) < take:
            following = self.lexer.peek()
            if following.kind is TokenKind.SEPARATOR:
                self.lexer.next()
                continue
            if (
                not following.literal
                and len(tokens) >= argument.arity.min
                and frame.command.child(following.text) is not None
            ):
                break
            tokens.append(self.lexer.next())
        if not tokens:
            return True

        options = self._describe(frame, key)
        if len(tokens) < argument.arity.min:
            self._record(
                frame,
                TooFewValuesError,
                index=tokens[0].index,
                token=tokens[0].text,
                expected=argument.arity.min,
                given=len(tokens),
                **options,
            )
        self._assign(frame, key, argument, tokens, options)
        return True

    def _span(self, opening, closing):
        return " ".join(self.lexer.argv[opening.index:closing.index + 1])

    def _bracket(self, frame, argument, options):
        """
        Consume a tuple for *argument* and return its value tokens, or None
        when the tuple holds more values than the argument takes.
        """
        opening = self.lexer.next()
        tokens = []
        while (closing := self.lexer.next()).kind is not TokenKind.TUPLE_CLOSE:
            tokens.append(closing)
        if argument.arity.max is not None and len(tokens) > argument.arity.max:
            self._record(
                frame,
                TooManyValuesError,
                index=opening.index,
                token=self._span(opening, closing),
                expected=argument.arity.max,
                given=len(tokens),
                **options,
            )
            return None
        return tokens

    def _leftover(self, frame):
        command = frame.command
        token = self.lexer.next()
        if token.kind is TokenKind.TUPLE_OPEN:
            closing = token
            while closing.kind is not TokenKind.TUPLE_CLOSE:
                closing = self.lexer.next()
            self._record(frame, UnexpectedTokenError, index=token.index, token=self._span(token, closing))
        elif command.children and not frame.routed and not (token.dashed or token.literal or token.inline):
            frame.routed = True
            self._record(
                frame,
                UnknownSubcommandError,
                index=token.index,
                token=token.text,
                choices=tuple(command.children),
            )
        elif token.dashed:
            self._record(frame, UnknownFlagError, index=token.index, token=token.text)
        else:
            self._record(frame, UnexpectedTokenError, index=token.index, token=token.text)

    def _convert(self, frame, key, tokens, options):
        converter = frame.command.converter(key)
        values = []
        for token in tokens:
            try:
                values.append(converter(token.text))
            except ConversionError as error:
                self._record(
                    frame,
                    ConversionFailureError,
                    index=token.index,
                    token=token.text,
                    converter=error.converter,
                    reason=error.reason,
                    **options,
                )
        return values

    def _assign(self, frame, key, argument, tokens, options):
        arity = argument.arity
        frame.present.add(key)

        if arity.max == 0:
            frame.values[key] = frame.values.get(key, 0) + 1 if argument.counter else True
        elif arity.max == 1:
            if values := self._convert(frame, key, tokens, options):
                converter = frame.command.converter(key)
                frame.values[key] = converter.gather(values) if converter.merge else values[0]
            elif not tokens and arity.min == 0:
                frame.values[key] = coalesce(argument.const)
        else:
            frame.collected.setdefault(key, []).extend(self._convert(frame, key, tokens, options))

        logger.debug("value_assigned", command=frame.command.qualname, key=key, count=len(tokens))

    def _finalize(self, frame):
        command = frame.command
        for key, argument in command.arguments.items():
            if key in frame.present:
                continue
            if argument.default is not Unset:
                frame.values[key] = argument.default
            elif argument.required:
                frame.missing.append(MissingRequiredArgumentError(command=command, **self._describe(frame, key)))
        # Missing arguments are reported once the subtree is known to hold no unique argument.
        frame.marks = (len(frame.faults), len(self.faults))

        for fault in evaluate(command.groups, frame.present, command.keyof, command.label, command=command):
            self._keep(frame, fault)

    def _freeze(self, frame, children=()):
        command = frame.command
        unique = any(command.arguments[key].unique for key in frame.present) or any(child.unique for child in children)
        if frame.missing and not unique:
            local, shared = frame.marks
            frame.faults[local:local] = frame.missing
            self.faults[shared:shared] = frame.missing
            for fault in frame.missing:
                self._logged(frame, fault)

        values = {}
        for key in command.arguments:
            if key in frame.collected:
                values[key] = command.converter(key).gather(frame.collected[key])
            else:
                values[key] = frame.values.get(key, Unset)
        return ParsedCommand(command, values, frame.present, frame.faults, children)


def resolve(command, argv=Unset, /):
    """
    Resolve *argv* against the command tree rooted at *command*.

    Parameters
    - command: Command, the root of the resolution.
    - argv: Unset (sys.argv[1:]), a shell-like string, or an iterable of strings.

    Returns
    - Resolution: root ParsedCommand plus every fault in recording order.
      Resolution never raises for bad input; call .check() to raise.
    """
    if not isinstance(command, Command):
        raise TypeError("resolve() first argument must be a command")
    argv = _normalize(argv)

    resolver = _Resolver(command, argv)
    root = resolver.walk(command)
    resolution = Resolution(root, resolver.faults, argv, resolver.forwarded)

    logger.debug(
        "resolution_finished",
        command=command.qualname,
        path=[node.name for node in resolution.path],
        faults=len(resolution.faults),
    )
    return resolution


__all__ = (
    "resolve",
)
