"""Term model shared by event descriptions, fluents and query patterns.

A term is one of five shapes:
- Atom: a symbolic constant (``user``, ``'New York'``)
- Number: an int or float
- Text: a quoted string (``"Acme Corp"``)
- Variable: a placeholder in query and rule patterns (``X``, ``Subject``, ``_``)
- Compound: a functor applied to an ordered tuple of terms (``knows(user, X)``)

Every function in this module handles all five shapes explicitly and raises
TypeError for anything else.
"""

import re
from dataclasses import dataclass
from typing import Any, Union

from .errors import MalformedTermError

FUNCTOR_RE = re.compile(r"^[a-z][A-Za-z0-9_]*$")
VARIABLE_RE = re.compile(r"^[A-Z_][A-Za-z0-9_]*$")

ANONYMOUS = "_"


@dataclass(frozen=True)
class Atom:
    """A symbolic constant."""

    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise MalformedTermError(f"Atom name must be a non-empty string, got {self.name!r}")

    def __str__(self) -> str:
        return format_term(self)


@dataclass(frozen=True)
class Number:
    """A numeric constant."""

    value: int | float

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise MalformedTermError(f"Number value must be int or float, got {self.value!r}")

    def __str__(self) -> str:
        return format_term(self)


@dataclass(frozen=True)
class Text:
    """A quoted string constant."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise MalformedTermError(f"Text value must be a string, got {self.value!r}")

    def __str__(self) -> str:
        return format_term(self)


@dataclass(frozen=True)
class Variable:
    """A placeholder bound during matching. ``_`` matches anything and never binds."""

    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not VARIABLE_RE.match(self.name):
            raise MalformedTermError(
                f"Variable name must start with an uppercase letter or '_', got {self.name!r}"
            )

    @property
    def is_anonymous(self) -> bool:
        return self.name == ANONYMOUS

    def __str__(self) -> str:
        return format_term(self)


@dataclass(frozen=True)
class Compound:
    """A functor applied to an ordered tuple of argument terms."""

    functor: str
    args: tuple["Term", ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.functor, str) or not FUNCTOR_RE.match(self.functor):
            raise MalformedTermError(
                f"Functor must be a lowercase identifier, got {self.functor!r}"
            )
        if isinstance(self.args, list):
            object.__setattr__(self, "args", tuple(self.args))
        if not isinstance(self.args, tuple):
            raise MalformedTermError(f"Compound args must be a tuple, got {type(self.args).__name__}")
        for arg in self.args:
            if not isinstance(arg, TERM_TYPES):
                raise MalformedTermError(
                    f"Argument of {self.functor} is not a term: {arg!r}"
                )

    @property
    def arity(self) -> int:
        return len(self.args)

    def __str__(self) -> str:
        return format_term(self)


Term = Union[Atom, Number, Text, Variable, Compound]
TERM_TYPES = (Atom, Number, Text, Variable, Compound)

Bindings = dict[str, Term]


def term_from(value: Any) -> Term:
    """Coerce a Python value into a term.

    Terms pass through, ``int``/``float`` become Number and ``str`` becomes
    Text. Use Atom explicitly for symbolic constants.
    """
    if isinstance(value, TERM_TYPES):
        return value
    if isinstance(value, bool):
        raise MalformedTermError(f"Cannot build a term from a bool: {value!r}")
    if isinstance(value, (int, float)):
        return Number(value)
    if isinstance(value, str):
        return Text(value)
    raise MalformedTermError(f"Cannot build a term from {type(value).__name__}: {value!r}")


def compound(functor: str, *args: Any) -> Compound:
    """Build a Compound, coercing plain Python arguments with term_from."""
    return Compound(functor, tuple(term_from(arg) for arg in args))


def is_ground(term: Term) -> bool:
    """True if the term contains no variables."""
    if isinstance(term, Variable):
        return False
    if isinstance(term, Compound):
        return all(is_ground(arg) for arg in term.args)
    if isinstance(term, (Atom, Number, Text)):
        return True
    raise TypeError(f"Not a term: {term!r}")


def variables(term: Term) -> list[str]:
    """Names of the named variables in a term, in first-occurrence order."""
    seen: list[str] = []

    def visit(t: Term) -> None:
        if isinstance(t, Variable):
            if not t.is_anonymous and t.name not in seen:
                seen.append(t.name)
        elif isinstance(t, Compound):
            for arg in t.args:
                visit(arg)
        elif not isinstance(t, (Atom, Number, Text)):
            raise TypeError(f"Not a term: {t!r}")

    visit(term)
    return seen


def term_depth(term: Term) -> int:
    """Nesting depth; constants and variables have depth 1."""
    if isinstance(term, Compound):
        return 1 + max((term_depth(arg) for arg in term.args), default=0)
    if isinstance(term, (Atom, Number, Text, Variable)):
        return 1
    raise TypeError(f"Not a term: {term!r}")


def match(pattern: Term, term: Term, bindings: Bindings | None = None) -> Bindings | None:
    """Match a pattern against a ground term.

    Args:
        pattern: Term that may contain variables.
        term: Ground term to match against.
        bindings: Bindings already in force; not modified.

    Returns:
        The extended bindings, or None if the pattern does not match.
    """
    result: Bindings = dict(bindings) if bindings else {}
    if _match(pattern, term, result):
        return result
    return None


def _match(pattern: Term, term: Term, bindings: Bindings) -> bool:
    if isinstance(pattern, Variable):
        if pattern.is_anonymous:
            return True
        bound = bindings.get(pattern.name)
        if bound is None:
            bindings[pattern.name] = term
            return True
        return bound == term
    if isinstance(pattern, Compound):
        if not isinstance(term, Compound):
            return False
        if term.functor != pattern.functor or term.arity != pattern.arity:
            return False
        return all(_match(p, t, bindings) for p, t in zip(pattern.args, term.args))
    if isinstance(pattern, (Atom, Number, Text)):
        return pattern == term
    raise TypeError(f"Not a term: {pattern!r}")


def substitute(term: Term, bindings: Bindings) -> Term:
    """Replace bound variables in a term; unbound variables are left in place."""
    if isinstance(term, Variable):
        if term.is_anonymous:
            return term
        return bindings.get(term.name, term)
    if isinstance(term, Compound):
        return Compound(term.functor, tuple(substitute(arg, bindings) for arg in term.args))
    if isinstance(term, (Atom, Number, Text)):
        return term
    raise TypeError(f"Not a term: {term!r}")


# ---------------------------------------------------------------------------
# Surface syntax
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>-?\d+(?:\.\d+)?(?![A-Za-z_]))
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<text>"(?:[^"\\]|\\.)*")
  | (?P<quoted>'(?:[^'\\]|\\.)*')
  | (?P<punct>[(),])
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"', "'": "'"}


def _unescape(body: str) -> str:
    out = []
    chars = iter(body)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append(_ESCAPES.get(nxt, nxt))
        else:
            out.append(ch)
    return "".join(out)


def _tokenize(source: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    while pos < len(source):
        m = _TOKEN_RE.match(source, pos)
        if m is None:
            raise MalformedTermError(f"Unexpected character {source[pos]!r} at {pos} in {source!r}")
        pos = m.end()
        kind = m.lastgroup
        if kind != "ws":
            tokens.append((kind, m.group()))
    return tokens


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = _tokenize(source)
        self.pos = 0

    def peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> tuple[str, str]:
        token = self.peek()
        if token is None:
            raise MalformedTermError(f"Unexpected end of input in {self.source!r}")
        self.pos += 1
        return token

    def expect(self, value: str) -> None:
        kind, text = self.take()
        if text != value:
            raise MalformedTermError(f"Expected {value!r} but found {text!r} in {self.source!r}")

    def parse(self) -> Term:
        term = self.term()
        if self.peek() is not None:
            raise MalformedTermError(f"Trailing input after term in {self.source!r}")
        return term

    def term(self) -> Term:
        kind, text = self.take()
        if kind == "number":
            return Number(float(text) if "." in text else int(text))
        if kind == "text":
            return Text(_unescape(text[1:-1]))
        if kind == "quoted":
            return Atom(_unescape(text[1:-1]))
        if kind == "name":
            if VARIABLE_RE.match(text):
                return Variable(text)
            token = self.peek()
            if token is not None and token[1] == "(":
                return self.arguments(text)
            return Atom(text)
        raise MalformedTermError(f"Unexpected {text!r} in {self.source!r}")

    def arguments(self, functor: str) -> Compound:
        self.expect("(")
        args: list[Term] = []
        token = self.peek()
        if token is not None and token[1] == ")":
            self.take()
            return Compound(functor, ())
        while True:
            args.append(self.term())
            kind, text = self.take()
            if text == ")":
                return Compound(functor, tuple(args))
            if text != ",":
                raise MalformedTermError(f"Expected ',' or ')' but found {text!r} in {self.source!r}")


def parse_term(source: str) -> Term:
    """Parse the Prolog-like surface syntax into a term.

    Raises:
        MalformedTermError: On any syntax error.
    """
    if not isinstance(source, str) or not source.strip():
        raise MalformedTermError("Cannot parse an empty term")
    return _Parser(source).parse()


def _quote(body: str, quote: str) -> str:
    escaped = body.replace("\\", "\\\\").replace(quote, "\\" + quote)
    escaped = escaped.replace("\n", "\\n").replace("\t", "\\t")
    return f"{quote}{escaped}{quote}"


def format_term(term: Term) -> str:
    """Render a term in the syntax accepted by parse_term."""
    if isinstance(term, Atom):
        return term.name if FUNCTOR_RE.match(term.name) else _quote(term.name, "'")
    if isinstance(term, Text):
        return _quote(term.value, '"')
    if isinstance(term, Number):
        return repr(term.value)
    if isinstance(term, Variable):
        return term.name
    if isinstance(term, Compound):
        return f"{term.functor}({', '.join(format_term(arg) for arg in term.args)})"
    raise TypeError(f"Not a term: {term!r}")


def plain_value(term: Term) -> Any:
    """Python value of a constant term, for display and JSON."""
    if isinstance(term, Atom):
        return term.name
    if isinstance(term, (Text, Number)):
        return term.value
    if isinstance(term, (Variable, Compound)):
        return format_term(term)
    raise TypeError(f"Not a term: {term!r}")
