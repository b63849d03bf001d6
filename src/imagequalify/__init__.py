"""imagequalify: qualify bare container image references.

Match references with no registry domain against prioritized path-pattern
rules and prepend the domain of the best-matching rule.
"""

import logging

from imagequalify._version import __version__
from imagequalify.errors import (
    ConfigError,
    InvalidDigest,
    InvalidDomain,
    InvalidReference,
    MalformedRuleLine,
    QualifyError,
    RuleError,
)
from imagequalify.models import ReferenceParts, Rule, RuleSet
from imagequalify.prioritize import prioritize
from imagequalify.qualify import qualify
from imagequalify.reference import decompose, validate_domain
from imagequalify.rules import build_rule_set, load_rule_set, new_rule, parse_rules

__all__ = [
    "ConfigError",
    "InvalidDigest",
    "InvalidDomain",
    "InvalidReference",
    "MalformedRuleLine",
    "QualifyError",
    "ReferenceParts",
    "Rule",
    "RuleError",
    "RuleSet",
    "__version__",
    "build_rule_set",
    "decompose",
    "load_rule_set",
    "new_rule",
    "parse_rules",
    "prioritize",
    "qualify",
    "validate_domain",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
