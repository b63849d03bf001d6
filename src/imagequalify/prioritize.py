"""Rule ordering for imagequalify.

Rules are tried in a single, fully deterministic order:

1. every explicit rule (no ``*`` in the pattern) before every wildcard rule;
2. within each group, deeper paths first, then by digest, tag, image,
   library and domain specificity, then by pattern text.

Field specificity ranks, from most to least specific:

* a value with no wildcards;
* a value mixing literals and wildcards;
* a value made only of wildcards (``*``);
* no value at all.

Within a rank, values with more literal characters come first, then
ascending text.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Iterable
from typing import TypeAlias

from .globbing import has_wildcard, literal_count
from .models import ReferenceParts, Rule, RuleSet

logger = logging.getLogger(__name__)

Comparator: TypeAlias = Callable[[ReferenceParts, ReferenceParts], int]

_ABSENT = 0
_WILDCARD_ONLY = 1
_PARTIAL_WILDCARD = 2
_LITERAL = 3


def _compare(a: object, b: object) -> int:
    return (a > b) - (a < b)


def chain(*comparators: Comparator) -> Comparator:
    """Combine comparators: the first non-zero result decides."""

    def compare(x: ReferenceParts, y: ReferenceParts) -> int:
        for comparator in comparators:
            if result := comparator(x, y):
                return result
        return 0

    return compare


def specificity(value: str | None) -> tuple[int, int, str]:
    """Sort key for one field value; smaller keys are more specific."""
    if value is None:
        return (-_ABSENT, 0, "")
    literals = literal_count(value)
    if not has_wildcard(value):
        rank = _LITERAL
    else:
        rank = _PARTIAL_WILDCARD if literals else _WILDCARD_ONLY
    return (-rank, -literals, value)


def by_depth(x: ReferenceParts, y: ReferenceParts) -> int:
    """Deeper paths first."""
    return _compare(y.depth, x.depth)


def by_field(name: str) -> Comparator:
    """Build a comparator ordering by the specificity of one ``ReferenceParts`` field."""

    def compare(x: ReferenceParts, y: ReferenceParts) -> int:
        return _compare(specificity(getattr(x, name)), specificity(getattr(y, name)))

    compare.__name__ = f"by_{name}"
    return compare


def by_text(x: ReferenceParts, y: ReferenceParts) -> int:
    return _compare(x.reference, y.reference)


compare_parts: Comparator = chain(
    by_depth,
    by_field("digest"),
    by_field("tag"),
    by_field("image"),
    by_field("library"),
    by_field("domain"),
    by_text,
)


def compare_rules(a: Rule, b: Rule) -> int:
    """Order two rules; identical patterns fall back to their domain."""
    return compare_parts(a.parts, b.parts) or _compare(a.domain, b.domain)


def prioritize(rules: Iterable[Rule]) -> RuleSet:
    """Sort rules into the order :func:`imagequalify.qualify.qualify` tries them.

    Args:
        rules: Validated rules in any order.  The input is not modified.

    Returns:
        A new ``RuleSet``: explicit rules, then wildcard rules, each group
        from most to least specific.
    """
    explicit: list[Rule] = []
    wildcard: list[Rule] = []
    for rule in rules:
        (wildcard if rule.is_wildcard else explicit).append(rule)

    key = functools.cmp_to_key(compare_rules)
    ordered = tuple(sorted(explicit, key=key)) + tuple(sorted(wildcard, key=key))

    if logger.isEnabledFor(logging.DEBUG):
        for position, rule in enumerate(ordered):
            logger.debug(f"rule #{position}: {rule.pattern} -> {rule.domain}")

    return RuleSet(rules=ordered)
