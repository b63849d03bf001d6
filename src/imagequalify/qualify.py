"""Qualify bare image references against a prioritized rule set."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .errors import InvalidReference
from .models import QualifiedImage, Rule
from .reference import split_image_name

logger = logging.getLogger(__name__)


def qualify(reference: str, rules: Iterable[Rule]) -> tuple[str, str]:
    """Qualify ``reference`` with the domain of the first matching rule.

    ``reference`` must already be unqualified (no domain component) and
    non-empty; this function does not check.

    Args:
        reference: Bare image reference, e.g. ``"team/app:v2"``.
        rules: Rules in priority order, normally a ``RuleSet``.

    Returns:
        ``(domain, "<domain>/<reference>")`` for the first rule whose pattern
        matches, or ``("", "")`` when none does.
    """
    for rule in rules:
        if rule.matches(reference):
            logger.debug(f"{reference!r} matched rule {rule.pattern!r} -> {rule.domain}")
            return rule.domain, f"{rule.domain}/{reference}"
    return "", ""


def qualify_image(image: str, rules: Iterable[Rule]) -> QualifiedImage:
    """Validate ``image`` as a bare reference, then qualify it.

    Raises:
        InvalidReference: If ``image`` does not parse or already names a domain.
    """
    domain, _ = split_image_name(image)
    if domain:
        raise InvalidReference(image, f"image already has a domain component {domain!r}")

    matched_domain, qualified = qualify(image, rules)
    return QualifiedImage(image=image, domain=matched_domain, qualified=qualified)
