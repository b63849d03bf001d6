"""Rule construction and loading for imagequalify.

Rules reach the matcher from one of two sources:

* a definition file, one ``<pattern> <domain>`` pair per line, with ``#``
  comments and blank lines ignored;
* a structured YAML/JSON config, either ``{"rules": [{"pattern": ...,
  "domain": ...}]}`` or a plain ``{pattern: domain}`` mapping.

Every pair goes through :func:`new_rule`, which rejects bad patterns and
domains before they can enter a rule set.
"""

from __future__ import annotations

import logging
import pathlib
from collections.abc import Iterable, Mapping

import yaml

from .errors import (
    ConfigError,
    InvalidDigest,
    InvalidDomain,
    InvalidReference,
    MalformedRuleLine,
    RuleError,
)
from .globbing import compile_pattern
from .models import STRUCTURED_CONFIG_SUFFIXES, Rule, RuleSet
from .prioritize import prioritize
from .reference import decompose_pattern, validate_domain

logger = logging.getLogger(__name__)

_COMMENT_PREFIX = "#"
_RULE_FIELDS = 2


def new_rule(
    pattern: str,
    domain: str,
    line: str | None = None,
    line_number: int | None = None,
    filename: str | None = None,
) -> Rule:
    """Validate a single ``(pattern, domain)`` pair and build a ``Rule``.

    Args:
        pattern: Glob pattern matched against bare references.
        domain: Registry domain to prepend on a match.
        line: Original definition line, for error reporting.
        line_number: 1-based line number, for error reporting.
        filename: Source file name, for error reporting.

    Returns:
        The validated ``Rule``.

    Raises:
        RuleError: Naming the offending field; ``cause`` holds the
            underlying ``InvalidReference``/``InvalidDigest``/``InvalidDomain``.
    """
    context = {"line": line, "line_number": line_number, "filename": filename}

    try:
        parts = decompose_pattern(pattern)
    except (InvalidReference, InvalidDigest) as exc:
        raise RuleError(exc.message, invalid_pattern=pattern, cause=exc, **context) from exc

    try:
        validate_domain(domain)
    except InvalidDomain as exc:
        raise RuleError(exc.message, invalid_domain=domain, cause=exc, **context) from exc

    return Rule(pattern=pattern, domain=domain, parts=parts, matcher=compile_pattern(pattern))


# ---------------------------------------------------------------------------
# Definition files
# ---------------------------------------------------------------------------


def parse_rules(lines: Iterable[str], filename: str | None = None) -> list[Rule]:
    """Parse rule-definition lines.

    Args:
        lines: Lines of ``<pattern> <domain>``; comments and blanks are skipped.
        filename: Source name used in error messages.

    Returns:
        Rules in definition order (not yet prioritized).

    Raises:
        MalformedRuleLine: If a line does not hold exactly two fields.
        RuleError: If a pattern or domain is invalid.
    """
    rules: list[Rule] = []

    for line_number, line in enumerate(lines, start=1):
        line = line.rstrip("\r\n")
        words = line.split()
        if not words or words[0].startswith(_COMMENT_PREFIX):
            continue

        if len(words) != _RULE_FIELDS:
            raise MalformedRuleLine(
                line=line,
                line_number=line_number,
                field_count=len(words),
                filename=filename,
            )

        pattern, domain = words
        rules.append(
            new_rule(pattern, domain, line=line, line_number=line_number, filename=filename)
        )

    return rules


def parse_definitions(text: str, filename: str | None = None) -> list[Rule]:
    """Parse a whole rule-definition document held in memory."""
    return parse_rules(text.splitlines(), filename=filename)


def load_definitions(path: str | pathlib.Path) -> list[Rule]:
    """Read and parse a rule-definition file.

    Raises:
        OSError: If the file cannot be read.
        RuleError: If any line is invalid.
    """
    path = pathlib.Path(path)
    return parse_definitions(path.read_text(encoding="utf-8"), filename=str(path))


# ---------------------------------------------------------------------------
# Structured configuration
# ---------------------------------------------------------------------------


def _config_entries(config: object, errors: list[str]) -> list[tuple[str, object, object]]:
    """Flatten either accepted config shape into ``(field_path, pattern, domain)`` triples."""
    if isinstance(config, Mapping) and isinstance(config.get("rules"), list):
        entries: list[tuple[str, object, object]] = []
        for index, item in enumerate(config["rules"]):
            if not isinstance(item, Mapping):
                errors.append(f"rules[{index}]: expected a mapping with 'pattern' and 'domain'")
                continue
            entries.append((f"rules[{index}]", item.get("pattern"), item.get("domain")))
        return entries

    if isinstance(config, Mapping):
        return [(f"rules[{pattern!r}]", pattern, domain) for pattern, domain in config.items()]

    errors.append(f"expected a mapping at the top level, got {type(config).__name__}")
    return []


def rules_from_config(config: object, source: str | None = None) -> list[Rule]:
    """Build rules from an already-parsed structured configuration.

    All entries are checked before anything is returned; every problem is
    reported together.

    Raises:
        ConfigError: Listing each offending field.
    """
    if config is None:
        return []

    errors: list[str] = []
    rules: list[Rule] = []

    for field_path, pattern, domain in _config_entries(config, errors):
        entry_errors: list[str] = []
        if not isinstance(pattern, str) or not pattern:
            entry_errors.append(f"{field_path}.pattern: required")
        if not isinstance(domain, str) or not domain:
            entry_errors.append(f"{field_path}.domain: required")
        if entry_errors:
            errors.extend(entry_errors)
            continue

        try:
            rules.append(new_rule(pattern, domain, filename=source))
        except RuleError as exc:
            value = exc.invalid_pattern if exc.field == "pattern" else exc.invalid_domain
            errors.append(f"{field_path}.{exc.field}: invalid value {value!r}: {exc.message}")

    if errors:
        raise ConfigError(errors, source=source)
    return rules


def load_config(path: str | pathlib.Path) -> list[Rule]:
    """Read a YAML or JSON rule configuration file.

    Raises:
        OSError: If the file cannot be read.
        ConfigError: If the document is unreadable or any rule is invalid.
    """
    path = pathlib.Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError([f"unreadable document: {exc}"], source=str(path)) from exc
    return rules_from_config(data, source=str(path))


# ---------------------------------------------------------------------------
# Rule sets
# ---------------------------------------------------------------------------


def load_rules(path: str | pathlib.Path) -> list[Rule]:
    """Load rules from a definition file or a structured config, chosen by suffix."""
    path = pathlib.Path(path)
    if path.suffix.lower() in STRUCTURED_CONFIG_SUFFIXES:
        return load_config(path)
    return load_definitions(path)


def load_rule_set(path: str | pathlib.Path) -> RuleSet:
    """Load and prioritize the rules stored at ``path``."""
    rule_set = prioritize(load_rules(path))
    logger.info(f"Loaded {len(rule_set)} rule(s) from {path}")
    return rule_set


def build_rule_set(pairs: Mapping[str, str] | Iterable[tuple[str, str]]) -> RuleSet:
    """Validate in-memory ``(pattern, domain)`` pairs and prioritize them.

    Raises:
        RuleError: If any pair is invalid.
    """
    items = pairs.items() if isinstance(pairs, Mapping) else pairs
    return prioritize(new_rule(pattern, domain) for pattern, domain in items)
