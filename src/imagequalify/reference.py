"""Container image reference decomposition for imagequalify.

Splits a reference (``registry.example.com/team/app:v2@sha256:...``) or a
rule pattern (``*/app:v*``) into domain, library, image, tag and digest,
and validates each piece against the container reference grammar.

Decomposition works on glob tokens so that separators inside escapes or
character classes are never mistaken for structure.  Patterns are checked
against the same grammar as references, with every wildcard token standing
in for a single valid character.
"""

from __future__ import annotations

import re

from .errors import InvalidDigest, InvalidDomain, InvalidReference, NameContainsUppercase, NameEmpty
from .globbing import Token, literal_tokens, tokenize
from .models import ReferenceParts

# ---------------------------------------------------------------------------
# Reference grammar
# ---------------------------------------------------------------------------
_ALPHANUMERIC = r"[a-z0-9]+"
_SEPARATOR = r"(?:[._]|__|[-]*)"
_PATH_COMPONENT = rf"{_ALPHANUMERIC}(?:{_SEPARATOR}{_ALPHANUMERIC})*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DIGEST_ALGORITHM = r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*"

DOMAIN_RE = re.compile(rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?", re.ASCII)
PATH_RE = re.compile(rf"{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*", re.ASCII)
TAG_RE = re.compile(r"[\w][\w.-]{0,127}", re.ASCII)
DIGEST_ALGORITHM_RE = re.compile(_DIGEST_ALGORITHM, re.ASCII)
DIGEST_HEX_RE = re.compile(r"[0-9a-fA-F]{32,}")

# Stand-in for a wildcard token when checking a pattern against the grammar.
_PLACEHOLDER = "x"
_HEX_CHARS = frozenset("0123456789abcdefABCDEF")

# Repository used to check that a rule domain decomposes back to itself.
_SANITY_REPOSITORY = "foo/bar:latest"

_LOCALHOST = "localhost"


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def _raw(tokens: list[Token]) -> str:
    return "".join(token.raw for token in tokens)


def _render(tokens: list[Token]) -> str:
    """Text used for grammar checks: literals unescaped, wildcards as a placeholder."""
    return "".join(_PLACEHOLDER if token.is_wildcard else token.literal for token in tokens)


def _separator_indexes(tokens: list[Token], separator: str) -> list[int]:
    return [i for i, token in enumerate(tokens) if token.raw == separator]


def _split_first(tokens: list[Token], separator: str) -> tuple[list[Token], list[Token] | None]:
    indexes = _separator_indexes(tokens, separator)
    if not indexes:
        return tokens, None
    return tokens[:indexes[0]], tokens[indexes[0] + 1:]


def _split_last(tokens: list[Token], separator: str) -> tuple[list[Token], list[Token] | None]:
    indexes = _separator_indexes(tokens, separator)
    if not indexes:
        return tokens, None
    return tokens[:indexes[-1]], tokens[indexes[-1] + 1:]


def _looks_like_domain(segment: str) -> bool:
    """Determine whether the first path segment names a registry host."""
    return "." in segment or ":" in segment or segment == _LOCALHOST


def _split_domain(tokens: list[Token], is_pattern: bool) -> tuple[list[Token] | None, list[Token], bool]:
    """Peel a leading domain segment off ``tokens``.

    For patterns, a leading segment of a three-or-more segment pattern is
    always the domain, so ``*/*/*`` reads as domain, library, image.

    Returns:
        ``(domain, remainder, forced)`` where ``forced`` is ``True`` when the
        domain was assigned by the pattern rule rather than by its shape.
    """
    first, rest = _split_first(tokens, "/")
    if rest is None:
        return None, tokens, False
    if _looks_like_domain(_raw(first)):
        return first, rest, False
    if is_pattern and len(_separator_indexes(tokens, "/")) > 1:
        return first, rest, True
    return None, tokens, False


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_digest(tokens: list[Token]) -> None:
    """Check a digest is ``<algorithm>:<hex>``.

    A pattern digest may be a bare wildcard, or keep a literal algorithm and
    use wildcards in the hex part.

    Raises:
        InvalidDigest: If the digest is malformed.
    """
    raw = _raw(tokens)
    if tokens and all(token.is_wildcard for token in tokens):
        return

    algorithm, encoded = _split_first(tokens, ":")
    if encoded is None or not algorithm or not encoded:
        raise InvalidDigest(raw)
    if any(token.is_wildcard for token in algorithm):
        raise InvalidDigest(raw)
    if not DIGEST_ALGORITHM_RE.fullmatch(_render(algorithm)):
        raise InvalidDigest(raw, "unsupported digest algorithm")

    if any(token.is_wildcard for token in encoded):
        if not all(token.is_wildcard or token.literal in _HEX_CHARS for token in encoded):
            raise InvalidDigest(raw)
        return
    if not DIGEST_HEX_RE.fullmatch(_render(encoded)):
        if set(_render(encoded)) <= _HEX_CHARS:
            raise InvalidDigest(raw, "invalid checksum digest length")
        raise InvalidDigest(raw, "invalid checksum digest format")


def _validate_name(reference: str, domain: list[Token] | None, path: list[Token], forced: bool) -> None:
    if domain is not None:
        rendered_domain = _render(domain)
        # A forced pattern domain may just as well be the first library segment.
        if not DOMAIN_RE.fullmatch(rendered_domain) and not (forced and PATH_RE.fullmatch(rendered_domain)):
            raise InvalidReference(reference)

    rendered = _render(path)
    if not PATH_RE.fullmatch(rendered):
        if PATH_RE.fullmatch(rendered.lower()):
            raise NameContainsUppercase(reference)
        raise InvalidReference(reference)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decompose(reference: str, is_pattern: bool = False) -> ReferenceParts:
    """Decompose an image reference or rule pattern into its parts.

    Args:
        reference: The reference (``team/app:v2``) or pattern (``team/*``).
        is_pattern: Treat glob syntax as wildcards and apply the pattern
            domain rule (a leading segment of a three-or-more segment
            pattern is the domain).

    Returns:
        A ``ReferenceParts`` instance.

    Raises:
        NameEmpty: If ``reference`` is empty.
        PatternSyntaxError: If ``is_pattern`` and the glob syntax is broken.
        NameContainsUppercase: If the repository path holds uppercase letters.
        InvalidReference: For any other grammar violation.
        InvalidDigest: If a digest suffix is malformed.
    """
    if not reference:
        raise NameEmpty(reference)

    tokens = tokenize(reference) if is_pattern else literal_tokens(reference)

    # Step 1: digest follows the last "@"
    name_tokens, digest_tokens = _split_last(tokens, "@")

    # Step 2: leading domain segment
    domain_tokens, remainder, forced = _split_domain(name_tokens, is_pattern=is_pattern)

    # Step 3: tag follows the first ":" once any domain port is gone
    path_tokens, tag_tokens = _split_first(remainder, ":")

    _validate_name(reference, domain_tokens, path_tokens, forced)
    if tag_tokens is not None and not TAG_RE.fullmatch(_render(tag_tokens)):
        raise InvalidReference(reference)
    if digest_tokens is not None:
        _validate_digest(digest_tokens)

    # Step 4: library is everything before the final path segment
    library_tokens, image_tokens = _split_last(path_tokens, "/")
    if image_tokens is None:
        library_tokens, image_tokens = None, path_tokens

    return ReferenceParts(
        reference=reference,
        image=_raw(image_tokens),
        domain=_raw(domain_tokens) if domain_tokens is not None else None,
        library=_raw(library_tokens) if library_tokens is not None else None,
        tag=_raw(tag_tokens) if tag_tokens is not None else None,
        digest=_raw(digest_tokens) if digest_tokens is not None else None,
    )


def decompose_pattern(pattern: str) -> ReferenceParts:
    """Decompose a rule pattern; shorthand for ``decompose(pattern, is_pattern=True)``."""
    return decompose(pattern, is_pattern=True)


def split_image_name(image: str) -> tuple[str, str]:
    """Split a reference into its domain and the remainder.

    Returns:
        ``(domain, remainder)``; ``domain`` is ``""`` for a bare reference.

    Raises:
        InvalidReference: If ``image`` is not a valid reference.
    """
    parts = decompose(image)
    return parts.domain or "", parts.remainder


def validate_domain(domain: str) -> None:
    """Check that ``domain`` can prefix an image reference.

    The domain is appended to a known-good repository and decomposed again;
    it is valid only if the decomposer recovers exactly the same domain.

    Raises:
        InvalidDomain: If the domain does not round-trip.
    """
    if not domain or not DOMAIN_RE.fullmatch(domain):
        raise InvalidDomain(domain)
    try:
        recovered, remainder = split_image_name(f"{domain}/{_SANITY_REPOSITORY}")
    except InvalidReference as exc:
        raise InvalidDomain(domain, exc.message) from exc
    if recovered != domain or remainder != _SANITY_REPOSITORY:
        raise InvalidDomain(domain)
