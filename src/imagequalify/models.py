"""Data models for imagequalify rule matching and pod qualification."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import asdict, dataclass, field
from enum import Enum

from kubernetes.client import V1Pod

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
WILDCARD: str = "*"  # Glyph that marks a rule as wildcarded.

DEFAULT_NAMESPACE: str = "default"  # Fallback namespace when neither kubeconfig nor service account name one.

DEFAULT_POD_PAGE_SIZE: int = 100  # Pods requested per page when listing a namespace.

DEFAULT_LIST_TIMEOUT_SECONDS: int = 30  # Upper bound on a paginated pod listing.

STRUCTURED_CONFIG_SUFFIXES: frozenset[str] = frozenset({".yaml", ".yml", ".json"})


class ContainerType(str, Enum):
    """Classification of a container within a pod spec."""

    INIT = "init"
    APP = "app"


class AuditStatus(str, Enum):
    """Outcome of a cluster audit."""

    PASS = "PASS"  # noqa: S105
    FAIL = "FAIL"
    ERROR = "ERROR"

    @property
    def exit_code(self) -> int:
        """Return the process exit code for this audit status.

        Returns:
            0 for PASS, 1 for FAIL, 2 for ERROR.
        """
        _EXIT_CODES: dict[AuditStatus, int] = {
            AuditStatus.PASS: 0,
            AuditStatus.FAIL: 1,
        }
        return _EXIT_CODES.get(self, 2)


@dataclass(frozen=True)
class ReferenceParts:
    """Structural decomposition of an image reference or rule pattern.

    ``None`` means the component is absent altogether; the string ``"*"``
    means "any value of this component".

    Attributes:
        reference: The original input string.
        image: Final path segment (always present).
        domain: Registry host, optionally with port.
        library: Path between the domain and the image name.
        tag: Text after the tag ``:``.
        digest: Text after the ``@``.
    """

    reference: str
    image: str
    domain: str | None = None
    library: str | None = None
    tag: str | None = None
    digest: str | None = None

    @property
    def path(self) -> str:
        """``library/image``, or just ``image`` when there is no library."""
        return f"{self.library}/{self.image}" if self.library else self.image

    @property
    def depth(self) -> int:
        """Number of path segments, counting a present domain as one more."""
        return self.path.count("/") + 1 + (1 if self.domain else 0)

    @property
    def remainder(self) -> str:
        """The reference with its domain component removed."""
        if self.domain is None:
            return self.reference
        return self.reference[len(self.domain) + 1:]


@dataclass(frozen=True)
class Rule:
    """A validated ``(pattern, domain)`` pair.

    Built by :func:`imagequalify.rules.new_rule`; ``parts`` and the compiled
    matcher are derived once at construction.
    """

    pattern: str
    domain: str
    parts: ReferenceParts = field(repr=False)
    matcher: re.Pattern[str] = field(repr=False, compare=False)

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD in self.pattern

    def matches(self, reference: str) -> bool:
        """Return ``True`` when the rule pattern glob-matches ``reference``."""
        return self.matcher.fullmatch(reference) is not None


@dataclass(frozen=True)
class RuleSet:
    """Immutable, prioritized sequence of rules.

    Every explicit rule precedes every wildcard rule.  Instances are only
    produced by :func:`imagequalify.prioritize.prioritize` and may be shared
    freely between threads.
    """

    rules: tuple[Rule, ...] = ()

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __getitem__(self, index: int) -> Rule:
        return self.rules[index]

    @property
    def patterns(self) -> list[str]:
        return [rule.pattern for rule in self.rules]


@dataclass
class QualifiedImage:
    """Result of qualifying a single image reference."""

    image: str
    domain: str = ""
    qualified: str = ""

    @property
    def matched(self) -> bool:
        return bool(self.domain)


@dataclass
class ImageRewrite:
    """A single container image rewritten by :func:`imagequalify.admission.qualify_pod`."""

    container: str
    container_type: ContainerType
    original: str
    qualified: str
    domain: str


@dataclass
class UnmatchedImage:
    """A bare container image no rule matched."""

    container: str
    container_type: ContainerType
    image: str


@dataclass
class PodQualification:
    """Outcome of qualifying every container image of a pod.

    ``pod`` is a copy; the pod passed in is left untouched.
    """

    pod: V1Pod
    rewrites: list[ImageRewrite] = field(default_factory=list)
    unmatched: list[UnmatchedImage] = field(default_factory=list)


@dataclass
class PodAuditEntry:
    """Audit entry for a single pod with at least one bare image."""

    name: str
    rewrites: list[ImageRewrite] = field(default_factory=list)
    unmatched: list[UnmatchedImage] = field(default_factory=list)


@dataclass
class AuditSummary:
    """Aggregated counts for the audit report."""

    total_pods: int = 0
    total_containers: int = 0
    qualified_containers: int = 0
    rewritable_containers: int = 0
    unmatched_containers: int = 0
    invalid_containers: int = 0


@dataclass
class AuditReport:
    """Top-level report produced by :func:`imagequalify.audit.audit_pods`.

    Attributes:
        timestamp: ISO 8601 UTC timestamp of report generation.
        context: Kubeconfig context name, or ``"in-cluster"``.
        namespace: Kubernetes namespace that was inspected.
        status: PASS when every bare image has a matching rule.
        summary: Aggregated container counts.
        pods: Per-pod details, only for pods holding bare images.
        errors: Invalid image references encountered.
    """

    timestamp: str
    context: str
    namespace: str
    status: AuditStatus = AuditStatus.PASS
    summary: AuditSummary = field(default_factory=AuditSummary)
    pods: list[PodAuditEntry] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Serialise the report to a plain dict suitable for JSON output."""
        return asdict(self)
