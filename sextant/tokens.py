"""
Token classification.

Raw strings become Tokens of five kinds: FLAG, VALUE, SEPARATOR and the
TUPLE_OPEN/TUPLE_CLOSE pair around bracketed values. Each
token keeps the 0-based index of the raw string it came from, so faults can
point at the user's input; tokens synthesized from one raw string ("--opt=5",
"-abc") share that index.

Classification is always relative to a *scope*: the command whose arguments
are being resolved. A scope only needs to answer two questions:

- scope.lookup(name): the named argument spec for "-x"/"--name", or None.
- scope.numeric: whether any argument in scope converts numbers.

Rules, in order:

0. A bracketed run of raw strings ("[a", "b", "c]" or "[a]") is a tuple: a
   TUPLE_OPEN, every string inside as a VALUE marked bracketed, then a
   TUPLE_CLOSE. A run only opens when a later string closes it, so a lone
   "[abc" stays a plain value. Separators inside a tuple are values.
1. After "--", every string is a VALUE marked literal.
2. "--" itself is the SEPARATOR.
3. "--name" and "--name=value" are FLAGs; the inline value becomes a VALUE
   marked inline, pinned to the same index.
4. A dash-prefixed string whose part before "=" is a declared name ("-o",
   "-long", "-o=5") is a FLAG, with its inline value if any.
5. A negative number ("-5", "-1.5", "-2e3") is a VALUE when the scope has no
   short flag for the character after the dash and declares a numeric
   argument.
6. A single-dash string whose first character is a declared short flag is a
   bundle: every character becomes a FLAG in order. The first flag that takes
   values receives the remainder (a leading "=" dropped) as inline VALUE and
   expansion stops; an "=" hands the rest to the preceding flag. Unknown
   characters become FLAGs with unknown names.
7. Any other dash-prefixed string is a VALUE marked dashed; only the resolver
   knows whether some positional expects it. A lone "-" and plain words are
   VALUEs.

The lexer below classifies lazily and can change scope when the resolver
descends into a subcommand; tokens already looked at under the previous scope
are classified again under the new one.
"""
import enum
import re
from collections import deque
from typing import NamedTuple

from .logs import get_logger

logger = get_logger(__name__)

_NUMBER = re.compile(r"-(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")


class TokenKind(enum.Enum):
    FLAG = "flag"
    VALUE = "value"
    SEPARATOR = "separator"
    TUPLE_OPEN = "tuple-open"
    TUPLE_CLOSE = "tuple-close"


class Bracket(enum.Flag):
    """Role of a raw string in a tuple run."""
    INSIDE = 0
    OPEN = enum.auto()
    CLOSE = enum.auto()


class Token(NamedTuple):
    """
    A classified unit of input.

    - kind: TokenKind.
    - text: flag name, value text, or "--".
    - index: 0-based index of the raw string it came from.
    - inline: VALUE synthesized from "=value" or a bundle remainder.
    - literal: VALUE found after the separator.
    - dashed: VALUE that looks like a flag but matched no declared name.
    - bracketed: VALUE found inside a tuple.
    """
    kind: TokenKind
    text: str
    index: int
    inline: bool = False
    literal: bool = False
    dashed: bool = False
    bracketed: bool = False

    def __str__(self):
        return self.text


def _flag(name, index, value=None):
    yield Token(TokenKind.FLAG, name, index)
    if value is not None:
        yield Token(TokenKind.VALUE, value, index, inline=True)


def _bundle(text, index, scope):
    tokens = []
    position = 1
    while position < len(text):
        if (char := text[position]) == "=" and tokens:
            tokens.append(Token(TokenKind.VALUE, text[position + 1:], index, inline=True))
            break
        tokens.append(Token(TokenKind.FLAG, name := "-" + char, index))
        if (argument := scope.lookup(name)) is not None and argument.arity.max != 0:
            if remainder := text[position + 1:]:
                tokens.append(Token(TokenKind.VALUE, remainder.removeprefix("="), index, inline=True))
            break
        position += 1
    return tokens


def brackets(argv, /):
    """
    Map the index of every raw string that belongs to a tuple to its Bracket role.

    Tuples do not depend on the scope: a string starting with "[" opens one
    (outside another tuple and before the separator) when a string ending
    with "]" follows, or is the same string and is at least two characters
    long.
    """
    roles = {}
    index = 0
    while index < len(argv):
        text = argv[index]
        if text == "--":
            break
        if text.startswith("["):
            for end in range(index, len(argv)):
                if argv[end].endswith("]") and (end > index or len(text) > 1):
                    roles.update(dict.fromkeys(range(index + 1, end), Bracket.INSIDE))
                    roles[index] = Bracket.OPEN
                    roles[end] = roles.get(end, Bracket.INSIDE) | Bracket.CLOSE
                    index = end
                    break
        index += 1
    return roles


def _bracketed(text, index, role):
    tokens = []
    if Bracket.OPEN in role:
        tokens.append(Token(TokenKind.TUPLE_OPEN, "[", index))
        text = text[1:]
    if Bracket.CLOSE in role:
        text = text[:-1]
    if text or not role:
        tokens.append(Token(TokenKind.VALUE, text, index, bracketed=True))
    if Bracket.CLOSE in role:
        tokens.append(Token(TokenKind.TUPLE_CLOSE, "]", index))
    return tokens


def classify(text, index, scope, /, *, literal=False, bracket=None):
    """
    Classify one raw string under *scope*; returns a list of Tokens.

    *literal* tells whether the separator was already seen; *bracket* is the
    string's role in a tuple (see brackets()), or None outside tuples.
    """
    if bracket is not None:
        return _bracketed(text, index, bracket)
    if literal:
        return [Token(TokenKind.VALUE, text, index, literal=True)]
    if text == "--":
        return [Token(TokenKind.SEPARATOR, text, index)]
    if text.startswith("--"):
        name, separator, value = text.partition("=")
        return list(_flag(name, index, value if separator else None))
    if text.startswith("-") and len(text) > 1:
        name, separator, value = text.partition("=")
        if scope.lookup(name) is not None:
            return list(_flag(name, index, value if separator else None))
        short = scope.lookup(text[:2]) is not None
        if _NUMBER.fullmatch(text) and not short and scope.numeric:
            return [Token(TokenKind.VALUE, text, index)]
        if short:
            return _bundle(text, index, scope)
        return [Token(TokenKind.VALUE, text, index, dashed=True)]
    return [Token(TokenKind.VALUE, text, index)]


class TokenStream:
    """
    Restartable, lazy token sequence over raw strings under a single scope.

        stream = TokenStream(["-abc", "x"], command)
        list(stream) == list(stream)   # every iteration starts over
    """

    def __init__(self, argv, scope, /):
        self._argv = tuple(argv)
        self._scope = scope

    def __iter__(self):
        literal = False
        roles = brackets(self._argv)
        for index, text in enumerate(self._argv):
            for token in classify(text, index, self._scope, literal=literal, bracket=roles.get(index)):
                literal |= token.kind is TokenKind.SEPARATOR
                yield token

    def __repr__(self):
        return f"token-stream({self._argv!r})"


class Lexer:
    """
    Cursor over raw strings that classifies on demand under a changeable scope.

    The resolver reads with peek()/next(), looks ahead with lookahead(), and
    calls rescope() after consuming a subcommand name. Tokens classified
    ahead under the old scope are dropped and classified again, except those
    belonging to a raw string already partly consumed.
    """

    def __init__(self, argv, scope, /):
        self._argv = tuple(argv)
        self._scope = scope
        self._roles = brackets(self._argv)
        self._cursor = 0
        self._pending = deque()
        self._separator = None
        self._last = -1

    @property
    def argv(self):
        return self._argv

    @property
    def scope(self):
        return self._scope

    def _fill(self):
        if self._cursor >= len(self._argv):
            return False
        literal = self._separator is not None and self._separator < self._cursor
        tokens = classify(
            self._argv[self._cursor],
            self._cursor,
            self._scope,
            literal=literal,
            bracket=self._roles.get(self._cursor),
        )
        for token in tokens:
            if token.kind is TokenKind.SEPARATOR and self._separator is None:
                self._separator = token.index
            logger.debug("token_classified", kind=token.kind.value, text=token.text, index=token.index)
        self._pending.extend(tokens)
        self._cursor += 1
        return True

    def peek(self, offset=0, /):
        """
        Return the token *offset* places ahead without consuming it (or None).
        """
        while len(self._pending) <= offset:
            if not self._fill():
                return None
        return self._pending[offset]

    def next(self):
        """
        Consume and return the next token (or None at the end of input).
        """
        if (token := self.peek()) is not None:
            self._pending.popleft()
            self._last = token.index
        return token

    def lookahead(self):
        """
        Yield upcoming tokens without consuming them.
        """
        offset = 0
        while (token := self.peek(offset)) is not None:
            yield token
            offset += 1

    def rescope(self, scope, /):
        self._scope = scope
        kept = [token for token in self._pending if token.index == self._last]
        if dropped := [token for token in self._pending if token.index != self._last]:
            self._cursor = dropped[0].index
            self._pending = deque(kept)
            if self._separator is not None and self._separator >= self._cursor:
                self._separator = None

    def rest(self, start, /):
        """
        Consume everything from raw index *start* on and return the raw strings.
        """
        self._pending.clear()
        self._cursor = len(self._argv)
        self._last = len(self._argv) - 1
        return self._argv[start:]

    def __repr__(self):
        return f"lexer(cursor={self._cursor!r}, pending={list(self._pending)!r})"


__all__ = (
    "TokenKind",
    "Token",
    "Bracket",
    "TokenStream",
    "Lexer",
    "brackets",
    "classify",
)
