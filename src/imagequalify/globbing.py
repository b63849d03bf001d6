"""Shell-style glob patterns for image references.

Patterns follow the usual path-glob rules:

* ``*`` matches any run of characters, including none, but never ``/``;
* ``?`` matches exactly one character other than ``/``;
* ``[...]`` matches one character from a class (``[^...]`` negates it,
  ``a-z`` denotes a range); a class never matches ``/``;
* ``\\c`` matches the character ``c`` literally.

Because ``*`` stops at ``/``, matching several path segments needs one
``*`` per segment (``*/*`` rather than ``*``).

Patterns are tokenized once and compiled to a regular expression, which is
what :class:`~imagequalify.models.Rule` keeps around for matching.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass

from .errors import PatternSyntaxError

_STAR_REGEX = r"[^/]*"
_QUESTION_REGEX = r"[^/]"


@dataclass(frozen=True)
class Token:
    """A single pattern element.

    ``literal`` holds the character a literal token stands for (with any
    escaping removed); it is ``None`` for wildcard tokens.
    """

    raw: str
    regex: str
    literal: str | None = None

    @property
    def is_wildcard(self) -> bool:
        return self.literal is None


def literal_tokens(text: str) -> list[Token]:
    """Tokenize ``text`` treating every character literally."""
    return [Token(raw=c, regex=re.escape(c), literal=c) for c in text]


def _class_char(pattern: str, index: int) -> tuple[str, int]:
    """Read one (possibly escaped) character inside a ``[...]`` class."""
    if index >= len(pattern) or pattern[index] in "-]":
        raise PatternSyntaxError(pattern)
    if pattern[index] == "\\":
        index += 1
        if index >= len(pattern):
            raise PatternSyntaxError(pattern)
    char = pattern[index]
    index += 1
    # A class that runs off the end of the pattern is unterminated.
    if index >= len(pattern):
        raise PatternSyntaxError(pattern)
    return char, index


def _scan_class(pattern: str, start: int) -> tuple[Token, int]:
    """Parse the character class opening at ``pattern[start]``.

    Returns:
        The class token and the index just past its closing ``]``.

    Raises:
        PatternSyntaxError: For empty, unterminated or inverted classes.
    """
    index = start + 1
    negated = False
    if index < len(pattern) and pattern[index] == "^":
        negated = True
        index += 1

    ranges: list[str] = []
    while True:
        if index < len(pattern) and pattern[index] == "]" and ranges:
            index += 1
            break
        lo, index = _class_char(pattern, index)
        hi = lo
        if pattern[index] == "-":
            hi, index = _class_char(pattern, index + 1)
        if lo > hi:
            raise PatternSyntaxError(pattern)
        ranges.append(re.escape(lo) if lo == hi else f"{re.escape(lo)}-{re.escape(hi)}")

    body = "".join(ranges)
    regex = f"(?!/)[^{body}]" if negated else f"(?!/)[{body}]"
    return Token(raw=pattern[start:index], regex=regex), index


def tokenize(pattern: str) -> list[Token]:
    """Split a glob pattern into literal and wildcard tokens.

    Raises:
        PatternSyntaxError: If the pattern is not well-formed.
    """
    tokens: list[Token] = []
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if char == "*":
            tokens.append(Token(raw=char, regex=_STAR_REGEX))
            index += 1
        elif char == "?":
            tokens.append(Token(raw=char, regex=_QUESTION_REGEX))
            index += 1
        elif char == "[":
            token, index = _scan_class(pattern, index)
            tokens.append(token)
        elif char == "\\":
            if index + 1 >= len(pattern):
                raise PatternSyntaxError(pattern)
            escaped = pattern[index + 1]
            tokens.append(Token(raw=pattern[index:index + 2], regex=re.escape(escaped), literal=escaped))
            index += 2
        else:
            tokens.append(Token(raw=char, regex=re.escape(char), literal=char))
            index += 1
    return tokens


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into a regular expression for ``fullmatch``.

    Raises:
        PatternSyntaxError: If the pattern is not well-formed.
    """
    return re.compile("".join(token.regex for token in tokenize(pattern)), re.DOTALL)


@functools.lru_cache(maxsize=4096)
def literal_count(text: str) -> int:
    """Number of characters in ``text`` that must match literally."""
    return sum(1 for token in tokenize(text) if not token.is_wildcard)


@functools.lru_cache(maxsize=4096)
def has_wildcard(text: str) -> bool:
    """Report whether ``text`` holds any wildcard token (``*``, ``?`` or a class)."""
    return any(token.is_wildcard for token in tokenize(text))
