"""Exception hierarchy for imagequalify.

Every validation failure is raised as a subclass of :class:`QualifyError`,
which itself derives from ``ValueError`` so callers that only care about
"bad input" can keep catching ``ValueError``.
"""

from __future__ import annotations


class QualifyError(ValueError):
    """Base exception for all image qualification errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# Reference / pattern errors
# ---------------------------------------------------------------------------


class InvalidReference(QualifyError):
    """The input does not parse as an image reference or rule pattern."""

    def __init__(self, reference: str, message: str = "invalid reference format") -> None:
        super().__init__(message)
        self.reference = reference


class NameEmpty(InvalidReference):
    """The input was the empty string."""

    def __init__(self, reference: str = "") -> None:
        super().__init__(reference, "repository name must have at least one component")


class NameContainsUppercase(InvalidReference):
    """The repository path holds uppercase characters."""

    def __init__(self, reference: str) -> None:
        super().__init__(reference, "repository name must be lowercase")


class PatternSyntaxError(InvalidReference):
    """The glob syntax of a pattern is malformed (e.g. an empty ``[]`` class)."""

    def __init__(self, reference: str) -> None:
        super().__init__(reference, "syntax error in pattern")


class InvalidDigest(QualifyError):
    """A digest suffix is present but is not ``<algorithm>:<hex>``."""

    def __init__(self, digest: str, message: str = "invalid digest format") -> None:
        super().__init__(message)
        self.digest = digest


class InvalidDomain(QualifyError):
    """A rule domain does not survive the round-trip through the decomposer."""

    def __init__(self, domain: str, message: str = "invalid domain") -> None:
        super().__init__(message)
        self.domain = domain


# ---------------------------------------------------------------------------
# Rule construction errors
# ---------------------------------------------------------------------------


class RuleError(QualifyError):
    """A rule definition was rejected.

    Carries enough context to point an operator at the offending input.

    Attributes:
        line: Original line text (without its newline), when the rule came from a file.
        line_number: 1-based line number, when the rule came from a file.
        filename: Source file name, if known.
        invalid_pattern: The pattern that failed to decompose, if any.
        invalid_domain: The domain that failed validation, if any.
        cause: The underlying reference/digest/domain error, if any.
    """

    def __init__(
        self,
        message: str,
        line: str | None = None,
        line_number: int | None = None,
        filename: str | None = None,
        invalid_pattern: str | None = None,
        invalid_domain: str | None = None,
        cause: QualifyError | None = None,
    ) -> None:
        super().__init__(message)
        self.line = line
        self.line_number = line_number
        self.filename = filename
        self.invalid_pattern = invalid_pattern
        self.invalid_domain = invalid_domain
        self.cause = cause

    @property
    def field(self) -> str | None:
        """Name of the rejected field (``"pattern"`` or ``"domain"``), if one was singled out."""
        if self.invalid_pattern is not None:
            return "pattern"
        if self.invalid_domain is not None:
            return "domain"
        return None

    @property
    def location(self) -> str:
        if self.filename and self.line_number:
            return f"{self.filename}:{self.line_number}"
        if self.line_number:
            return f"line {self.line_number}"
        return self.filename or ""

    def __str__(self) -> str:
        prefix = f"{self.location}: " if self.location else ""
        if self.invalid_domain is not None:
            return f"{prefix}invalid domain {self.invalid_domain!r}: {self.message}"
        if self.invalid_pattern is not None:
            return f"{prefix}invalid pattern {self.invalid_pattern!r}: {self.message}"
        if self.line is not None:
            return f"{prefix}{self.line!r}: {self.message}"
        return f"{prefix}{self.message}"


class MalformedRuleLine(RuleError):
    """A rule-definition line does not hold exactly ``<pattern> <domain>``."""

    def __init__(
        self,
        line: str,
        line_number: int,
        field_count: int,
        filename: str | None = None,
    ) -> None:
        super().__init__(
            f"invalid field count {field_count}; expected 2: <pattern> <domain>",
            line=line,
            line_number=line_number,
            filename=filename,
        )
        self.field_count = field_count


class ConfigError(QualifyError):
    """A structured rule configuration failed validation.

    Attributes:
        errors: One message per offending field, e.g. ``"rules[2].domain: required"``.
    """

    def __init__(self, errors: list[str], source: str | None = None) -> None:
        where = f"{source}: " if source else ""
        super().__init__(f"{where}invalid rule configuration: " + "; ".join(errors))
        self.errors = errors
        self.source = source


# ---------------------------------------------------------------------------
# Pod validation
# ---------------------------------------------------------------------------


class UnqualifiedImageError(QualifyError):
    """A container image still lacks a domain after qualification."""

    def __init__(self, container: str, image: str) -> None:
        super().__init__(f"container {container!r}: image {image!r} has no domain")
        self.container = container
        self.image = image
